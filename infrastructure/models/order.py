"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.order.entity.Order 中
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, comment="订单ID (UUID)")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")

    status = Column(
        String(32),
        nullable=False,
        default="PENDING",
        index=True,
        comment="订单状态: PENDING/AWAITING_PAYMENT/PAYMENT_FAILED/PAID/ACCEPTED/DELIVERED"
    )

    # 金额以最小货币单位存储，避免浮点误差
    total_amount = Column(BigInteger, nullable=False, comment="订单总额（最小货币单位）")
    currency = Column(String(3), nullable=False, default="INR", comment="货币代码 ISO-4217")

    gateway_order_id = Column(String(100), nullable=True, unique=True, comment="网关订单号")
    gateway_payment_id = Column(String(100), nullable=True, comment="网关支付单号")

    # 乐观锁版本号
    version = Column(Integer, nullable=False, default=1, comment="版本号")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_order_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, status={self.status}, version={self.version})>"


class OrderItemModel(Base):
    """订单明细（下单时刻的商品快照）"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    catalog_item_id = Column(String(64), nullable=False, comment="商品ID")
    name = Column(String(200), nullable=False, comment="商品名称快照")
    unit_price = Column(BigInteger, nullable=False, comment="单价快照（最小货币单位）")
    quantity = Column(Integer, nullable=False, comment="数量")

    order = relationship("OrderModel", back_populates="items")

    def __repr__(self):
        return f"<OrderItemModel(order_id={self.order_id}, catalog_item_id={self.catalog_item_id})>"
