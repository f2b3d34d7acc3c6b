import asyncio
import dataclasses

import pytest

from application.dtos.orders import CartLine, VerifyPaymentRequest
from application.services.idempotency import IdempotencyCache
from application.services.order_service import OrderApplicationService
from application.services.webhook_service import WebhookIngestionService
from core.settings import OrderFlowSettings
from domain.common.exceptions import (
    GatewayUnavailableException,
    InvalidCartException,
    InvalidSignatureException,
    InvalidStatusTransitionException,
    ItemUnavailableException,
    OrderNotFoundException,
    RequestTimeoutException,
)
from domain.order.entity import OrderStatus
from domain.services.signature import SignatureVerifier
from tests.fakes import FakeCache, StubGateway, payment_webhook_body


VERIFIER = SignatureVerifier(key_secret="k", webhook_secret="w")

CART = [CartLine(catalog_item_id="A", quantity=2, price=500), CartLine(catalog_item_id="B", quantity=1, price=1200)]


def _service(store, gateway, cache=None, **overrides) -> OrderApplicationService:
    return OrderApplicationService(
        uow_factory=store.uow_factory(),
        gateway=gateway,
        signature_verifier=VERIFIER,
        idempotency_cache=IdempotencyCache(cache),
        order_settings=OrderFlowSettings(**overrides),
    )


def _verify_request(resp, payment_id="pay_1", signature=None) -> VerifyPaymentRequest:
    return VerifyPaymentRequest(
        order_id=resp.order_id,
        gateway_order_id=resp.gateway_order_id,
        gateway_payment_id=payment_id,
        signature=signature or VERIFIER.sign_payment(resp.gateway_order_id, payment_id),
    )


@pytest.mark.asyncio
async def test_create_order_uses_server_side_total(store, gateway):
    svc = _service(store, gateway)
    fabricated = [CartLine(catalog_item_id="A", quantity=2, price=1), CartLine(catalog_item_id="B", quantity=1, price=0)]

    resp = await svc.create_order("u1", fabricated)

    assert resp.amount == 2200
    assert resp.currency == "INR"
    assert resp.receipt == resp.order_id
    assert resp.gateway_public_key == "rzp_test_key"
    assert resp.name == "Food Delivery"
    assert resp.description == f"Order #{resp.order_id[:8]}"
    assert gateway.requests[0].amount == 2200

    order = store.orders[resp.order_id]
    assert order.total_amount == 2200
    assert order.status == OrderStatus.AWAITING_PAYMENT
    assert order.gateway_order_id == resp.gateway_order_id
    assert order.version == 2


@pytest.mark.asyncio
async def test_duplicate_cart_within_ttl_returns_same_order(store, gateway, cache):
    svc = _service(store, gateway, cache)

    first = await svc.create_order("u1", CART)
    second = await svc.create_order("u1", list(reversed(CART)))

    assert (second.order_id, second.gateway_order_id) == (first.order_id, first.gateway_order_id)
    assert len(gateway.requests) == 1
    assert len(store.orders) == 1


@pytest.mark.asyncio
async def test_different_users_get_different_orders(store, gateway, cache):
    svc = _service(store, gateway, cache)

    first = await svc.create_order("u1", CART)
    second = await svc.create_order("u2", CART)

    assert first.order_id != second.order_id


@pytest.mark.asyncio
async def test_invalid_cart_creates_nothing(store, gateway, cache):
    svc = _service(store, gateway, cache)

    with pytest.raises(InvalidCartException):
        await svc.create_order("u1", [])
    with pytest.raises(ItemUnavailableException):
        await svc.create_order("u1", [CartLine(catalog_item_id="C", quantity=1)])

    assert store.orders == {}
    assert gateway.requests == []
    assert cache.data == {}


@pytest.mark.asyncio
async def test_gateway_failure_marks_order_payment_failed(store, cache):
    gateway = StubGateway(error=GatewayUnavailableException("boom", provider="stub"))
    svc = _service(store, gateway, cache)

    with pytest.raises(GatewayUnavailableException):
        await svc.create_order("u1", CART)

    (order,) = store.orders.values()
    assert order.status == OrderStatus.PAYMENT_FAILED
    assert order.gateway_order_id is None
    assert cache.data == {}


@pytest.mark.asyncio
async def test_gateway_timeout_marks_order_payment_failed(store):
    svc = _service(store, StubGateway(delay=1.0), gateway_timeout_seconds=0.01)

    with pytest.raises(GatewayUnavailableException) as exc_info:
        await svc.create_order("u1", CART)

    assert exc_info.value.details["timeout_seconds"] == 0.01
    (order,) = store.orders.values()
    assert order.status == OrderStatus.PAYMENT_FAILED


@pytest.mark.asyncio
async def test_unexpected_adapter_error_marks_order_payment_failed(store, cache):
    svc = _service(store, StubGateway(error=RuntimeError("socket closed")), cache)

    with pytest.raises(GatewayUnavailableException) as exc_info:
        await svc.create_order("u1", CART)

    assert exc_info.value.details["error_type"] == "RuntimeError"
    (order,) = store.orders.values()
    assert order.status == OrderStatus.PAYMENT_FAILED
    assert cache.data == {}


@pytest.mark.asyncio
async def test_unbuildable_gateway_request_marks_order_payment_failed(store, gateway):
    svc = OrderApplicationService(
        uow_factory=store.uow_factory(),
        gateway=gateway,
        signature_verifier=VERIFIER,
        idempotency_cache=IdempotencyCache(None),
        order_settings=OrderFlowSettings.model_construct(currency="JPY"),
    )

    with pytest.raises(GatewayUnavailableException):
        await svc.create_order("u1", [CartLine(catalog_item_id="A", quantity=1)])

    assert [o.status for o in store.orders.values()] == [OrderStatus.PAYMENT_FAILED]
    assert gateway.requests == []


def test_unsupported_order_currency_fails_at_startup():
    with pytest.raises(ValueError, match="unsupported currency"):
        OrderFlowSettings(currency="JPY")
    assert OrderFlowSettings(currency="usd").currency == "USD"


@pytest.mark.asyncio
async def test_verify_payment_marks_paid_once(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)

    first = await svc.verify_payment("u1", _verify_request(resp))
    second = await svc.verify_payment("u1", _verify_request(resp))

    assert first.success and first.status == OrderStatus.PAID
    assert first.message == "Payment verified successfully"
    assert second.success and second.message == "Payment already verified"
    order = store.orders[resp.order_id]
    assert order.version == 3
    assert order.gateway_payment_id == "pay_1"


@pytest.mark.asyncio
async def test_bad_signature_never_mutates(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)

    result = await svc.verify_payment("u1", _verify_request(resp, signature="0" * 64))

    assert not result.success
    assert result.message == "Invalid payment signature"
    assert result.status == OrderStatus.AWAITING_PAYMENT
    assert store.orders[resp.order_id].version == 2


@pytest.mark.asyncio
async def test_signature_for_another_gateway_order_is_rejected(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)
    req = _verify_request(resp).model_copy(update={"gateway_order_id": "order_other"})
    req.signature = VERIFIER.sign_payment("order_other", "pay_1")

    result = await svc.verify_payment("u1", req)

    assert not result.success
    assert store.orders[resp.order_id].status == OrderStatus.AWAITING_PAYMENT


@pytest.mark.asyncio
async def test_signature_check_reports_reason(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)
    order = store.orders[resp.order_id]

    svc._check_signature(order, _verify_request(resp))

    with pytest.raises(InvalidSignatureException) as mismatch:
        svc._check_signature(order, _verify_request(resp).model_copy(update={"gateway_order_id": "order_other"}))
    assert mismatch.value.details["reason"] == "gateway_order_mismatch"
    assert mismatch.value.code == 60002

    with pytest.raises(InvalidSignatureException) as forged:
        svc._check_signature(order, _verify_request(resp, signature="0" * 64))
    assert forged.value.details["reason"] == "signature_mismatch"


@pytest.mark.asyncio
async def test_verify_other_users_order_is_not_found(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)

    with pytest.raises(OrderNotFoundException):
        await svc.verify_payment("u2", _verify_request(resp))


@pytest.mark.asyncio
async def test_verify_failed_order_reports_status(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)
    store.orders[resp.order_id] = dataclasses.replace(store.orders[resp.order_id], status=OrderStatus.PAYMENT_FAILED)

    result = await svc.verify_payment("u1", _verify_request(resp))

    assert not result.success
    assert result.message == "Order cannot be paid in status PAYMENT_FAILED"


@pytest.mark.asyncio
async def test_verify_timeout_is_retryable(store, gateway, monkeypatch):
    svc = _service(store, gateway, verify_timeout_seconds=0.01)
    resp = await svc.create_order("u1", CART)

    async def _slow(*args, **kwargs):
        await asyncio.sleep(1)

    monkeypatch.setattr(svc, "_verify", _slow)

    with pytest.raises(RequestTimeoutException):
        await svc.verify_payment("u1", _verify_request(resp))
    assert store.orders[resp.order_id].status == OrderStatus.AWAITING_PAYMENT


@pytest.mark.asyncio
async def test_verify_and_webhook_race_mutates_exactly_once(store, gateway):
    svc = _service(store, gateway)
    webhooks = WebhookIngestionService(store.uow_factory(), VERIFIER)
    resp = await svc.create_order("u1", CART)
    body = payment_webhook_body("payment.captured", resp.gateway_order_id, "pay_1")

    verified, outcome = await asyncio.gather(
        svc.verify_payment("u1", _verify_request(resp)),
        webhooks.handle(body, VERIFIER.sign_webhook(body)),
    )

    assert verified.success
    assert outcome.note in {"payment captured", "already paid"}
    applied = [verified.message == "Payment verified successfully", outcome.applied]
    assert applied.count(True) == 1
    order = store.orders[resp.order_id]
    assert order.status == OrderStatus.PAID
    assert order.version == 3


@pytest.mark.asyncio
async def test_fulfillment_progression(store, gateway):
    svc = _service(store, gateway)
    resp = await svc.create_order("u1", CART)

    with pytest.raises(InvalidStatusTransitionException):
        await svc.update_order_status(resp.order_id, OrderStatus.ACCEPTED)

    await svc.verify_payment("u1", _verify_request(resp))
    accepted = await svc.update_order_status(resp.order_id, OrderStatus.ACCEPTED)
    delivered = await svc.update_order_status(resp.order_id, OrderStatus.DELIVERED)
    again = await svc.update_order_status(resp.order_id, OrderStatus.DELIVERED)

    assert accepted.status == OrderStatus.ACCEPTED
    assert delivered.status == OrderStatus.DELIVERED
    assert again.version == delivered.version == 5


@pytest.mark.asyncio
async def test_order_queries_respect_ownership(store, gateway):
    svc = _service(store, gateway)
    mine = await svc.create_order("u1", CART)
    await svc.create_order("u2", [CartLine(catalog_item_id="A", quantity=1)])

    assert [o.id for o in await svc.list_user_orders("u1")] == [mine.order_id]
    assert (await svc.get_order(mine.order_id, "u1")).total_amount == 2200
    assert (await svc.get_order(mine.order_id, "admin", is_admin=True)).user_id == "u1"
    with pytest.raises(OrderNotFoundException):
        await svc.get_order(mine.order_id, "u2")

    assert len(await svc.list_all_orders()) == 2
    assert len(await svc.list_all_orders(status=OrderStatus.PAID)) == 0
