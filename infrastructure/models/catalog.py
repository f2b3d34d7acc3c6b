"""
菜单商品数据库模型（本服务只读）
"""
from sqlalchemy import Column, String, BigInteger, Boolean, Text, DateTime
from datetime import datetime, timezone

from .base import Base


class CatalogItemModel(Base):
    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True, comment="商品ID")
    name = Column(String(200), nullable=False, comment="名称")
    description = Column(Text, nullable=True, comment="描述")
    price = Column(BigInteger, nullable=False, comment="价格（最小货币单位）")
    category = Column(String(100), nullable=True, index=True, comment="分类")
    image_url = Column(String(500), nullable=True, comment="图片地址")
    is_available = Column(Boolean, nullable=False, default=True, comment="是否可售")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<CatalogItemModel(id={self.id}, name={self.name}, price={self.price})>"
