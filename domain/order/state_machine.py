"""
订单状态机 - 订单状态变更的唯一入口

客户端验签路径与 Webhook 路径都通过这里推进订单状态，两者之间不加锁：
并发安全依赖于仓储的条件更新（版本号）加上“目标状态已满足即幂等成功”的规则。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from core.logging_config import get_logger
from domain.common.exceptions import (
    InvalidStatusTransitionException,
    OrderNotFoundException,
    VersionConflictException,
)
from .entity import Order, OrderStatus, PAID_STATUSES
from .events import (
    OrderAccepted,
    OrderDelivered,
    OrderEvent,
    OrderPaid,
    OrderPaymentFailed,
    PaymentOpened,
)
from .repository import OrderRepository


logger = get_logger(__name__)


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.AWAITING_PAYMENT, OrderStatus.PAYMENT_FAILED}),
    OrderStatus.AWAITING_PAYMENT: frozenset({OrderStatus.PAID, OrderStatus.PAYMENT_FAILED}),
    OrderStatus.PAYMENT_FAILED: frozenset(),
    OrderStatus.PAID: frozenset({OrderStatus.ACCEPTED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def satisfies(current: OrderStatus, target: OrderStatus) -> bool:
    """当前状态是否已满足目标状态（满足则视为幂等成功，不再变更）"""
    if current == target:
        return True
    if target == OrderStatus.PAID and current in PAID_STATUSES:
        return True
    if target == OrderStatus.ACCEPTED and current == OrderStatus.DELIVERED:
        return True
    return False


@dataclass(frozen=True)
class TransitionResult:
    order: Order
    applied: bool  # 本次调用是否执行了版本递增的变更


class OrderStateMachine:
    """
    订单状态机

    职责：
    1. 校验状态转换是否合法
    2. 目标状态已满足时返回幂等成功
    3. 以读取到的版本号做条件更新；冲突时重新读取并判定
    4. 产生领域事件
    """

    def __init__(self, order_repository: OrderRepository):
        self.order_repository = order_repository
        self.events: List[OrderEvent] = []

    async def transition(
        self,
        order_id: str,
        target: OrderStatus,
        *,
        expected_version: Optional[int] = None,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> TransitionResult:
        """
        推进订单到目标状态

        Args:
            expected_version: 调用方此前读取的版本号；为空时使用本次读取的版本

        Raises:
            OrderNotFoundException: 订单不存在
            InvalidStatusTransitionException: 状态转换不合法
            VersionConflictException: 版本冲突且重新读取后目标仍未满足
        """
        order = await self.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)

        if satisfies(order.status, target):
            logger.info(
                "order_transition_already_satisfied",
                order_id=order_id,
                status=order.status.value,
                target=target.value,
                version=order.version,
            )
            return TransitionResult(order=order, applied=False)

        if not can_transition(order.status, target):
            raise InvalidStatusTransitionException(order_id, order.status.value, target.value)

        version = expected_version if expected_version is not None else order.version
        try:
            updated = await self.order_repository.update_status(
                order_id,
                expected_version=version,
                status=target,
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
            )
        except VersionConflictException:
            current = await self.order_repository.get_by_id(order_id)
            if current is not None and satisfies(current.status, target):
                logger.info(
                    "order_version_conflict_resolved",
                    order_id=order_id,
                    status=current.status.value,
                    target=target.value,
                    version=current.version,
                )
                return TransitionResult(order=current, applied=False)
            logger.warning(
                "order_version_conflict",
                order_id=order_id,
                expected_version=version,
                current_version=current.version if current else None,
                target=target.value,
            )
            raise

        logger.info(
            "order_status_changed",
            order_id=order_id,
            from_status=order.status.value,
            to_status=target.value,
            version=updated.version,
        )
        self._record_event(updated, target)
        return TransitionResult(order=updated, applied=True)

    def _record_event(self, order: Order, target: OrderStatus) -> None:
        if target == OrderStatus.AWAITING_PAYMENT:
            self.events.append(PaymentOpened(
                order_id=order.id, version=order.version, gateway_order_id=order.gateway_order_id
            ))
        elif target == OrderStatus.PAID:
            self.events.append(OrderPaid(
                order_id=order.id, version=order.version, gateway_payment_id=order.gateway_payment_id
            ))
        elif target == OrderStatus.PAYMENT_FAILED:
            self.events.append(OrderPaymentFailed(order_id=order.id, version=order.version))
        elif target == OrderStatus.ACCEPTED:
            self.events.append(OrderAccepted(order_id=order.id, version=order.version))
        elif target == OrderStatus.DELIVERED:
            self.events.append(OrderDelivered(order_id=order.id, version=order.version))

    def clear_events(self) -> List[OrderEvent]:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
