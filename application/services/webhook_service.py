"""
Webhook 接入服务 - 验签、解析、分发，并把每一次结果写入审计日志

审计日志是 HTTP 响应发出后唯一的持久记录，因此每个分支都先写审计再返回。
除审计写入本身失败外，处理结果一律确认（ack），避免网关对已记录事件无限重试。
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Callable, List, Optional

from pydantic import ValidationError

from application.dtos.orders import WebhookAuditDTO, WebhookOutcome
from application.dtos.payments import PaymentEntity, WebhookEnvelope
from application.services.order_service import run_transition
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    InvalidStatusTransitionException,
    OrderNotFoundException,
    RequestTimeoutException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import OrderStatus
from domain.services.signature import SignatureVerifier
from domain.webhook.entity import WebhookAuditEntry
from shared.codes.payment_codes import EVENT_PAYMENT_CAPTURED, EVENT_PAYMENT_FAILED


logger = get_logger(__name__)

PAYMENT_EVENTS = frozenset({EVENT_PAYMENT_CAPTURED, EVENT_PAYMENT_FAILED})


@dataclass
class _Dispatch:
    note: str
    related_order_id: Optional[str] = None
    applied: bool = False


def _peek_event_type(body: bytes) -> str:
    """尽力从未验签的报文中读取事件类型，仅用于审计"""
    try:
        data = json.loads(body)
    except ValueError:
        return "unknown"
    if isinstance(data, dict) and isinstance(data.get("event"), str):
        return data["event"]
    return "unknown"


class WebhookIngestionService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        signature_verifier: SignatureVerifier,
        *,
        source: str = "razorpay",
        timeout_seconds: float = 10.0,
    ):
        self._uow_factory = uow_factory
        self._verifier = signature_verifier
        self._source = source
        self._timeout = timeout_seconds

    async def handle(self, body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """
        处理一次 Webhook 投递

        Raises:
            RequestTimeoutException: 处理超时（已记录审计，网关可重试）
        """
        raw = body.decode("utf-8", errors="replace")

        if not self._verifier.verify_webhook(body, signature):
            event_type = _peek_event_type(body)
            logger.warning("webhook_signature_invalid", source=self._source, event_type=event_type)
            return await self._audit(raw, event_type, False, _Dispatch(note="invalid signature"))

        try:
            envelope = WebhookEnvelope.model_validate_json(body)
            entity = envelope.payment_entity() if envelope.event in PAYMENT_EVENTS else None
        except ValidationError as exc:
            logger.warning("webhook_parse_failed", source=self._source, error=str(exc))
            return await self._audit(raw, "parse_error", True, _Dispatch(note="parse error"))

        if envelope.event in PAYMENT_EVENTS and entity is None:
            logger.warning("webhook_payment_entity_missing", event_type=envelope.event)
            return await self._audit(raw, envelope.event, True, _Dispatch(note="parse error"))

        try:
            result = await asyncio.wait_for(self._dispatch(envelope.event, entity), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("webhook_timeout", event_type=envelope.event, timeout=self._timeout)
            await self._audit(
                raw,
                envelope.event,
                True,
                _Dispatch(note="timeout", related_order_id=entity.order_id if entity else None),
            )
            raise RequestTimeoutException("Webhook processing", self._timeout)
        except BusinessException as exc:
            logger.warning("webhook_dispatch_failed", event_type=envelope.event, error=exc.message)
            result = _Dispatch(note=exc.message)
        except Exception as exc:
            logger.exception("webhook_dispatch_error", event_type=envelope.event)
            result = _Dispatch(note=str(exc) or type(exc).__name__)

        return await self._audit(raw, envelope.event, True, result)

    async def _dispatch(self, event_type: str, entity: Optional[PaymentEntity]) -> _Dispatch:
        if event_type not in PAYMENT_EVENTS or entity is None:
            logger.info("webhook_event_ignored", event_type=event_type)
            return _Dispatch(note="ignored event")

        if not entity.order_id:
            return _Dispatch(note="order not found")

        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_gateway_order_id(entity.order_id)
        if order is None:
            # 事件可能属于本系统之外的订单
            logger.info("webhook_order_not_found", gateway_order_id=entity.order_id, event_type=event_type)
            return _Dispatch(note="order not found")

        if event_type == EVENT_PAYMENT_FAILED and order.is_paid:
            logger.warning(
                "webhook_payment_failed_after_paid",
                order_id=order.id,
                status=order.status.value,
                gateway_payment_id=entity.id,
            )
            return _Dispatch(
                note=f"conflict: payment.failed for {order.status.value} order",
                related_order_id=order.id,
            )

        target = OrderStatus.PAID if event_type == EVENT_PAYMENT_CAPTURED else OrderStatus.PAYMENT_FAILED
        try:
            result = await run_transition(
                self._uow_factory,
                order.id,
                target,
                expected_version=order.version,
                gateway_payment_id=entity.id if target == OrderStatus.PAID else None,
            )
        except InvalidStatusTransitionException as exc:
            logger.warning(
                "webhook_status_conflict",
                order_id=order.id,
                current=exc.current,
                target=exc.target,
                event_type=event_type,
            )
            return _Dispatch(note=f"conflict: cannot move {exc.current} to {exc.target}", related_order_id=order.id)
        except OrderNotFoundException:
            return _Dispatch(note="order not found")

        if target == OrderStatus.PAID:
            note = "payment captured" if result.applied else "already paid"
        else:
            note = "payment failed" if result.applied else "already failed"
        logger.info(
            "webhook_processed",
            order_id=order.id,
            event_type=event_type,
            applied=result.applied,
            status=result.order.status.value,
        )
        return _Dispatch(note=note, related_order_id=order.id, applied=result.applied)

    async def _audit(self, raw: str, event_type: str, signature_valid: bool, result: _Dispatch) -> WebhookOutcome:
        """写审计日志（独立事务）；写入失败向上传播，网关会重试"""
        entry = WebhookAuditEntry(
            source=self._source,
            event_type=event_type,
            raw_payload=raw,
            signature_valid=signature_valid,
            note=result.note,
            related_order_id=result.related_order_id,
        )
        async with self._uow_factory() as uow:
            await uow.webhook_audit_repository.append(entry)
        return WebhookOutcome(
            event_type=event_type,
            signature_valid=signature_valid,
            note=result.note,
            related_order_id=result.related_order_id,
            applied=result.applied,
        )

    async def list_audit_entries(self, order_id: str, skip: int = 0, limit: int = 100) -> List[WebhookAuditDTO]:
        async with self._uow_factory(readonly=True) as uow:
            entries = await uow.webhook_audit_repository.list_by_order(order_id, skip=skip, limit=limit)
        return [WebhookAuditDTO.from_entity(e) for e in entries]
