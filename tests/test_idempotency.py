import pytest

from application.dtos.orders import CartLine, CreateOrderResponse
from application.services.idempotency import IDEMPOTENCY_PREFIX, IdempotencyCache, cart_fingerprint
from tests.fakes import FakeCache


def _response(order_id: str = "o1") -> CreateOrderResponse:
    return CreateOrderResponse(
        order_id=order_id,
        gateway_order_id=f"gw_{order_id}",
        gateway_public_key="rzp_test_key",
        amount=2200,
        currency="INR",
        receipt=order_id,
        name="Food Delivery",
        description=f"Order #{order_id}",
    )


def test_fingerprint_ignores_line_order_and_client_price():
    a = [CartLine(catalog_item_id="A", quantity=2, price=1), CartLine(catalog_item_id="B", quantity=1)]
    b = [CartLine(catalog_item_id="B", quantity=1, price=99), CartLine(catalog_item_id="A", quantity=2)]
    assert cart_fingerprint("u1", a) == cart_fingerprint("u1", b)


def test_fingerprint_depends_on_user_and_quantity():
    lines = [CartLine(catalog_item_id="A", quantity=2)]
    assert cart_fingerprint("u1", lines) != cart_fingerprint("u2", lines)
    assert cart_fingerprint("u1", lines) != cart_fingerprint("u1", [CartLine(catalog_item_id="A", quantity=3)])


def test_fingerprint_does_not_collide_on_separator_characters():
    two_lines = [CartLine(catalog_item_id="x", quantity=1), CartLine(catalog_item_id="y", quantity=2)]
    one_line = [CartLine(catalog_item_id="x:1:y", quantity=2)]
    other_user = [CartLine(catalog_item_id="y", quantity=2)]

    fingerprints = {
        cart_fingerprint("u1", two_lines),
        cart_fingerprint("u1", one_line),
        cart_fingerprint("u1:x:1", other_user),
    }
    assert len(fingerprints) == 3


@pytest.mark.asyncio
async def test_second_call_returns_cached_response():
    cache = FakeCache()
    idem = IdempotencyCache(cache, ttl_seconds=60)
    calls = []

    async def produce():
        calls.append(1)
        return _response(f"o{len(calls)}")

    first = await idem.check_or_create("fp", produce)
    second = await idem.check_or_create("fp", produce)

    assert first == second
    assert len(calls) == 1
    assert cache.ttls[f"{IDEMPOTENCY_PREFIX}fp"] == 60


@pytest.mark.asyncio
async def test_producer_errors_are_not_cached():
    cache = FakeCache()
    idem = IdempotencyCache(cache)

    async def boom():
        raise RuntimeError("gateway down")

    with pytest.raises(RuntimeError):
        await idem.check_or_create("fp", boom)
    assert cache.data == {}


@pytest.mark.asyncio
async def test_unavailable_cache_falls_through_to_producer():
    idem = IdempotencyCache(FakeCache(fail=True))

    async def produce():
        return _response()

    assert (await idem.check_or_create("fp", produce)).order_id == "o1"


@pytest.mark.asyncio
async def test_corrupt_entry_is_ignored():
    cache = FakeCache()
    cache.data[f"{IDEMPOTENCY_PREFIX}fp"] = {"order_id": "broken"}
    idem = IdempotencyCache(cache)

    async def produce():
        return _response("fresh")

    assert (await idem.check_or_create("fp", produce)).order_id == "fresh"


@pytest.mark.asyncio
async def test_no_cache_configured():
    idem = IdempotencyCache(None)

    async def produce():
        return _response()

    assert (await idem.check_or_create("fp", produce)).amount == 2200
