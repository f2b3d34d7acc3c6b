"""
订单应用服务（application/services）- 编排下单、支付验签与履约推进

事务边界：
- 定价与创建 PENDING 订单在一个事务内完成并提交，随后才调用网关；
  网关调用期间不持有数据库事务。
- 每次状态变更在独立事务内经由 OrderStateMachine 完成，版本冲突时整体重试一次。
"""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from application.dtos.orders import (
    CartLine,
    CreateOrderResponse,
    OrderDTO,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from application.dtos.payments import OpenPaymentOrder
from application.ports.payment_gateway import PaymentGateway
from application.services.idempotency import IdempotencyCache, cart_fingerprint
from core.logging_config import get_logger
from core.settings import OrderFlowSettings
from domain.common.exceptions import (
    BusinessException,
    GatewayUnavailableException,
    InvalidSignatureException,
    InvalidStatusTransitionException,
    OrderNotFoundException,
    RequestTimeoutException,
    VersionConflictException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.order.events import OrderEvent
from domain.order.pricing import PriceAuthority
from domain.order.state_machine import OrderStateMachine, TransitionResult
from domain.services.signature import SignatureVerifier


logger = get_logger(__name__)


async def run_transition(
    uow_factory: Callable[..., AbstractUnitOfWork],
    order_id: str,
    target: OrderStatus,
    *,
    expected_version: Optional[int] = None,
    gateway_order_id: Optional[str] = None,
    gateway_payment_id: Optional[str] = None,
) -> TransitionResult:
    """在独立事务内推进订单状态，版本冲突时重新读取后重试一次

    expected_version 只用于第一次尝试；重试时以最新读取的版本为准。
    """
    result: Optional[TransitionResult] = None
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(VersionConflictException),
        reraise=True,
    ):
        with attempt:
            version = expected_version if attempt.retry_state.attempt_number == 1 else None
            async with uow_factory() as uow:
                machine = OrderStateMachine(uow.order_repository)
                result = await machine.transition(
                    order_id,
                    target,
                    expected_version=version,
                    gateway_order_id=gateway_order_id,
                    gateway_payment_id=gateway_payment_id,
                )
                events = machine.clear_events()
            _publish_events(events)
    assert result is not None
    return result


def _publish_events(events: List[OrderEvent]) -> None:
    for event in events:
        # 可以将事件发布到消息队列、指标系统等
        logger.info(
            "order_domain_event",
            event_type=type(event).__name__,
            order_id=event.order_id,
            version=event.version,
            event_id=event.event_id,
        )


class OrderApplicationService:
    """订单应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        signature_verifier: SignatureVerifier,
        idempotency_cache: IdempotencyCache,
        order_settings: OrderFlowSettings,
    ):
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._verifier = signature_verifier
        self._idempotency = idempotency_cache
        self._settings = order_settings

    # ------------------------------------------------------------------
    # 下单
    # ------------------------------------------------------------------

    async def create_order(self, user_id: str, lines: List[CartLine]) -> CreateOrderResponse:
        """
        下单并开启网关支付订单

        Raises:
            InvalidCartException: 购物车结构不合法
            ItemUnavailableException: 商品不存在或已下架
            GatewayUnavailableException: 网关不可用（订单已置为 PAYMENT_FAILED）
        """
        # 结构校验先于幂等检查，非法购物车不占用缓存键
        PriceAuthority.validate(lines)
        fingerprint = cart_fingerprint(user_id, lines)

        async def _produce() -> CreateOrderResponse:
            return await self._create_and_open(user_id, lines)

        return await self._idempotency.check_or_create(fingerprint, _produce)

    async def _create_and_open(self, user_id: str, lines: List[CartLine]) -> CreateOrderResponse:
        now = datetime.now(timezone.utc)
        async with self._uow_factory() as uow:
            priced = await PriceAuthority(uow.catalog_repository).price(lines)
            order = await uow.order_repository.create(Order(
                id=str(uuid.uuid4()),
                user_id=user_id,
                status=OrderStatus.PENDING,
                total_amount=priced.total_amount,
                currency=self._settings.currency,
                items=priced.items,
                created_at=now,
                updated_at=now,
            ))
        logger.info(
            "order_created",
            order_id=order.id,
            user_id=user_id,
            total_amount=order.total_amount,
            currency=order.currency,
            item_count=len(order.items),
        )

        # 订单已提交为 PENDING：此后任何失败都必须先落为 PAYMENT_FAILED 再抛出
        try:
            request = OpenPaymentOrder(
                order_id=order.id,
                amount=order.total_amount,
                currency=order.currency,
                notes={"order_id": order.id, "user_id": user_id},
            )
            gateway_order = await asyncio.wait_for(
                self._gateway.open_payment_order(request),
                timeout=self._settings.gateway_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = GatewayUnavailableException(
                "Payment gateway timed out",
                provider=self._gateway.provider,
                details={"timeout_seconds": self._settings.gateway_timeout_seconds},
            )
            await self._fail_payment(order, error)
            raise error
        except BusinessException as error:
            await self._fail_payment(order, error)
            raise
        except Exception as exc:
            logger.exception("payment_gateway_request_error", order_id=order.id, provider=self._gateway.provider)
            error = GatewayUnavailableException(
                "Payment gateway request failed",
                provider=self._gateway.provider,
                details={"error_type": type(exc).__name__},
            )
            await self._fail_payment(order, error)
            raise error from exc

        result = await run_transition(
            self._uow_factory,
            order.id,
            OrderStatus.AWAITING_PAYMENT,
            expected_version=order.version,
            gateway_order_id=gateway_order.id,
        )
        logger.info(
            "payment_order_opened",
            order_id=order.id,
            gateway_order_id=gateway_order.id,
            provider=self._gateway.provider,
            version=result.order.version,
        )

        return CreateOrderResponse(
            order_id=order.id,
            gateway_order_id=gateway_order.id,
            gateway_public_key=self._gateway.key_id,
            amount=order.total_amount,
            currency=order.currency,
            receipt=order.receipt,
            name=self._settings.merchant_name,
            description=f"Order #{order.short_id}",
        )

    async def _fail_payment(self, order: Order, error: BusinessException) -> None:
        logger.error(
            "payment_order_open_failed",
            order_id=order.id,
            provider=self._gateway.provider,
            error=error.message,
        )
        await run_transition(
            self._uow_factory,
            order.id,
            OrderStatus.PAYMENT_FAILED,
            expected_version=order.version,
        )

    # ------------------------------------------------------------------
    # 客户端验签
    # ------------------------------------------------------------------

    async def verify_payment(self, user_id: str, req: VerifyPaymentRequest) -> VerifyPaymentResponse:
        """
        客户端支付验签

        验签失败是正常业务结果（success=False），不是服务端错误。

        Raises:
            OrderNotFoundException: 订单不存在或不属于当前用户
            RequestTimeoutException: 超过验签时限（可重试）
        """
        timeout = self._settings.verify_timeout_seconds
        try:
            return await asyncio.wait_for(self._verify(user_id, req), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("payment_verify_timeout", order_id=req.order_id, timeout=timeout)
            raise RequestTimeoutException("Payment verification", timeout)

    async def _verify(self, user_id: str, req: VerifyPaymentRequest) -> VerifyPaymentResponse:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(req.order_id)
        if order is None or order.user_id != user_id:
            raise OrderNotFoundException(req.order_id)

        if order.is_paid:
            return self._verify_response(True, order, "Payment already verified")

        try:
            self._check_signature(order, req)
        except InvalidSignatureException as exc:
            logger.warning(
                "payment_signature_invalid",
                order_id=order.id,
                gateway_order_id=req.gateway_order_id,
                gateway_payment_id=req.gateway_payment_id,
                reason=exc.details["reason"],
            )
            return self._verify_response(False, order, exc.message)

        try:
            result = await run_transition(
                self._uow_factory,
                order.id,
                OrderStatus.PAID,
                expected_version=order.version,
                gateway_payment_id=req.gateway_payment_id,
            )
        except InvalidStatusTransitionException as exc:
            logger.warning(
                "payment_verify_rejected",
                order_id=order.id,
                current=exc.current,
                target=exc.target,
            )
            return self._verify_response(False, order, f"Order cannot be paid in status {exc.current}")

        logger.info(
            "payment_verified",
            order_id=order.id,
            gateway_payment_id=req.gateway_payment_id,
            applied=result.applied,
            version=result.order.version,
        )
        message = "Payment verified successfully" if result.applied else "Payment already verified"
        return self._verify_response(True, result.order, message)

    def _check_signature(self, order: Order, req: VerifyPaymentRequest) -> None:
        """
        Raises:
            InvalidSignatureException: 网关订单号与本单不符，或签名校验失败
        """
        if order.gateway_order_id != req.gateway_order_id:
            raise InvalidSignatureException(
                "Invalid payment signature",
                details={"reason": "gateway_order_mismatch", "expected_gateway_order_id": order.gateway_order_id},
            )
        if not self._verifier.verify_payment(req.gateway_order_id, req.gateway_payment_id, req.signature):
            raise InvalidSignatureException("Invalid payment signature", details={"reason": "signature_mismatch"})

    @staticmethod
    def _verify_response(success: bool, order: Order, message: str) -> VerifyPaymentResponse:
        return VerifyPaymentResponse(success=success, order_id=order.id, status=order.status, message=message)

    # ------------------------------------------------------------------
    # 查询与履约
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str, user_id: str, is_admin: bool = False) -> OrderDTO:
        """获取订单；非本人且非管理员时按不存在处理"""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None or (order.user_id != user_id and not is_admin):
            raise OrderNotFoundException(order_id)
        return OrderDTO.from_entity(order)

    async def list_user_orders(self, user_id: str, skip: int = 0, limit: int = 20) -> List[OrderDTO]:
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_by_user(user_id, skip=skip, limit=limit)
        return [OrderDTO.from_entity(o) for o in orders]

    async def list_all_orders(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
    ) -> List[OrderDTO]:
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_all(skip=skip, limit=limit, status=status)
        return [OrderDTO.from_entity(o) for o in orders]

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderDTO:
        """管理端履约推进（PAID → ACCEPTED → DELIVERED）"""
        result = await run_transition(self._uow_factory, order_id, status)
        logger.info(
            "order_fulfillment_updated",
            order_id=order_id,
            status=result.order.status.value,
            applied=result.applied,
        )
        return OrderDTO.from_entity(result.order)
