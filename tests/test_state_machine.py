import asyncio
import uuid

import pytest

from domain.common.exceptions import (
    InvalidStatusTransitionException,
    OrderNotFoundException,
    VersionConflictException,
)
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.events import OrderPaid, PaymentOpened
from domain.order.state_machine import OrderStateMachine, can_transition, satisfies
from tests.fakes import InMemoryOrderRepository


def _order(status=OrderStatus.PENDING, version=1, **kwargs) -> Order:
    return Order(
        id=str(uuid.uuid4()),
        user_id="u1",
        status=status,
        total_amount=1000,
        currency="INR",
        items=(OrderItem(catalog_item_id="A", name="Paneer Tikka", unit_price=500, quantity=2),),
        version=version,
        **kwargs,
    )


def test_transition_table():
    assert can_transition(OrderStatus.PENDING, OrderStatus.AWAITING_PAYMENT)
    assert can_transition(OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID)
    assert can_transition(OrderStatus.PAID, OrderStatus.ACCEPTED)
    assert can_transition(OrderStatus.ACCEPTED, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.PAYMENT_FAILED, OrderStatus.PAID)
    assert not can_transition(OrderStatus.PAID, OrderStatus.PAYMENT_FAILED)
    assert not can_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)


def test_paid_is_satisfied_by_fulfillment_states():
    assert satisfies(OrderStatus.ACCEPTED, OrderStatus.PAID)
    assert satisfies(OrderStatus.DELIVERED, OrderStatus.PAID)
    assert not satisfies(OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID)


@pytest.mark.asyncio
async def test_transition_bumps_version_and_records_event(store):
    repo = InMemoryOrderRepository(store)
    order = await repo.create(_order())
    machine = OrderStateMachine(repo)

    result = await machine.transition(order.id, OrderStatus.AWAITING_PAYMENT, gateway_order_id="order_gw_1")

    assert result.applied
    assert result.order.version == 2
    assert result.order.gateway_order_id == "order_gw_1"
    events = machine.clear_events()
    assert [type(e) for e in events] == [PaymentOpened]
    assert machine.events == []


@pytest.mark.asyncio
async def test_already_satisfied_target_is_a_no_op(store):
    repo = InMemoryOrderRepository(store)
    order = await repo.create(_order(status=OrderStatus.PAID, version=3, gateway_order_id="g"))
    machine = OrderStateMachine(repo)

    result = await machine.transition(order.id, OrderStatus.PAID, gateway_payment_id="pay_x")

    assert not result.applied
    assert result.order.version == 3
    assert store.orders[order.id].gateway_payment_id is None
    assert machine.events == []


@pytest.mark.asyncio
async def test_illegal_transition_raises_without_mutation(store):
    repo = InMemoryOrderRepository(store)
    order = await repo.create(_order(status=OrderStatus.PAYMENT_FAILED, version=2))

    with pytest.raises(InvalidStatusTransitionException) as exc_info:
        await OrderStateMachine(repo).transition(order.id, OrderStatus.PAID)

    assert exc_info.value.current == "PAYMENT_FAILED"
    assert store.orders[order.id].version == 2


@pytest.mark.asyncio
async def test_missing_order(store):
    with pytest.raises(OrderNotFoundException):
        await OrderStateMachine(InMemoryOrderRepository(store)).transition("nope", OrderStatus.PAID)


@pytest.mark.asyncio
async def test_stale_version_conflicts_when_target_not_reached(store):
    repo = InMemoryOrderRepository(store)
    order = await repo.create(_order(status=OrderStatus.AWAITING_PAYMENT, version=2))

    with pytest.raises(VersionConflictException):
        await OrderStateMachine(repo).transition(order.id, OrderStatus.PAID, expected_version=1)

    assert store.orders[order.id].status == OrderStatus.AWAITING_PAYMENT


@pytest.mark.asyncio
async def test_concurrent_writers_on_same_version_one_applies(store):
    repo = InMemoryOrderRepository(store)
    order = await repo.create(_order(status=OrderStatus.AWAITING_PAYMENT, version=2, gateway_order_id="g"))
    first, second = OrderStateMachine(repo), OrderStateMachine(repo)

    results = await asyncio.gather(
        first.transition(order.id, OrderStatus.PAID, expected_version=2, gateway_payment_id="pay_1"),
        second.transition(order.id, OrderStatus.PAID, expected_version=2, gateway_payment_id="pay_1"),
    )

    assert sorted(r.applied for r in results) == [False, True]
    assert store.orders[order.id].version == 3
    assert len(first.events) + len(second.events) == 1
    assert isinstance((first.events or second.events)[0], OrderPaid)
