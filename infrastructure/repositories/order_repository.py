"""
订单仓储实现 - 使用SQLAlchemy实现数据访问

状态变更使用条件 UPDATE（WHERE id = :id AND version = :expected），
由数据库保证 compare-and-swap 语义，不做读-改-写。
"""
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.repository import OrderRepository
from domain.common.exceptions import OrderNotFoundException, VersionConflictException
from infrastructure.models.order import OrderModel, OrderItemModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, db_order: OrderModel) -> Order:
        """ORM模型转换为领域实体"""
        return Order(
            id=db_order.id,
            user_id=db_order.user_id,
            status=OrderStatus(db_order.status),
            total_amount=db_order.total_amount,
            currency=db_order.currency,
            items=tuple(
                OrderItem(
                    catalog_item_id=item.catalog_item_id,
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                )
                for item in db_order.items
            ),
            version=db_order.version,
            gateway_order_id=db_order.gateway_order_id,
            gateway_payment_id=db_order.gateway_payment_id,
            created_at=db_order.created_at,
            updated_at=db_order.updated_at,
        )

    def _select(self):
        # populate_existing 保证读取最新已提交状态，而不是会话内的旧缓存
        return (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        )

    async def create(self, order: Order) -> Order:
        db_order = OrderModel(
            id=order.id,
            user_id=order.user_id,
            status=order.status.value,
            total_amount=order.total_amount,
            currency=order.currency,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            version=order.version,
            created_at=order.created_at or datetime.now(timezone.utc),
            updated_at=order.updated_at or datetime.now(timezone.utc),
            items=[
                OrderItemModel(
                    catalog_item_id=item.catalog_item_id,
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                )
                for item in order.items
            ],
        )
        self.session.add(db_order)
        await self.session.flush()

        logger.info(
            "order_persisted",
            order_id=order.id,
            user_id=order.user_id,
            total_amount=order.total_amount,
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self.session.execute(self._select().where(OrderModel.id == order_id))
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Order]:
        result = await self.session.execute(
            self._select().where(OrderModel.gateway_order_id == gateway_order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Order]:
        result = await self.session.execute(
            self._select()
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id)
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(o) for o in result.scalars().all()]

    async def list_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        stmt = self._select()
        if status is not None:
            stmt = stmt.where(OrderModel.status == status.value)
        result = await self.session.execute(
            stmt.order_by(OrderModel.created_at.desc(), OrderModel.id).offset(skip).limit(limit)
        )
        return [self._to_entity(o) for o in result.scalars().all()]

    async def update_status(
        self,
        order_id: str,
        *,
        expected_version: int,
        status: OrderStatus,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> Order:
        values = {
            "status": status.value,
            "version": OrderModel.version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
        if gateway_order_id is not None:
            values["gateway_order_id"] = gateway_order_id
        if gateway_payment_id is not None:
            values["gateway_payment_id"] = gateway_payment_id

        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            exists = await self.session.scalar(select(OrderModel.id).where(OrderModel.id == order_id))
            if exists is None:
                raise OrderNotFoundException(order_id)
            logger.warning(
                "order_update_version_mismatch",
                order_id=order_id,
                expected_version=expected_version,
                target=status.value,
            )
            raise VersionConflictException(order_id, expected_version)

        updated = await self.get_by_id(order_id)
        if updated is None:
            raise OrderNotFoundException(order_id)
        return updated
