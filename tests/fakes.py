"""In-memory collaborators for service tests.

Every async method yields once to the event loop so concurrent callers
interleave the way they would against a real database.
"""
from __future__ import annotations

import asyncio
import dataclasses
import functools
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from application.dtos.payments import GatewayOrder, OpenPaymentOrder
from domain.catalog.entity import CatalogItem
from domain.catalog.repository import CatalogRepository
from domain.common.exceptions import OrderNotFoundException, VersionConflictException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.order.repository import OrderRepository
from domain.webhook.entity import WebhookAuditEntry
from domain.webhook.repository import WebhookAuditRepository


class InMemoryStore:
    def __init__(self) -> None:
        self.orders: Dict[str, Order] = {}
        self.catalog: Dict[str, CatalogItem] = {}
        self.audit: List[WebhookAuditEntry] = []
        self.commits = 0
        self.rollbacks = 0

    @classmethod
    def with_catalog(cls) -> "InMemoryStore":
        store = cls()
        store.add_catalog_item(CatalogItem(id="A", name="Paneer Tikka", price=500))
        store.add_catalog_item(CatalogItem(id="B", name="Biryani", price=1200))
        store.add_catalog_item(CatalogItem(id="C", name="Lassi", price=150, is_available=False))
        return store

    def add_catalog_item(self, item: CatalogItem) -> None:
        self.catalog[item.id] = item

    def uow_factory(self):
        return functools.partial(FakeUnitOfWork, self)

    def audit_for(self, order_id: Optional[str] = None) -> List[WebhookAuditEntry]:
        if order_id is None:
            return list(self.audit)
        return [e for e in self.audit if e.related_order_id == order_id]


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, order: Order) -> Order:
        await asyncio.sleep(0)
        self.store.orders[order.id] = dataclasses.replace(order)
        return dataclasses.replace(order)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        await asyncio.sleep(0)
        order = self.store.orders.get(order_id)
        return dataclasses.replace(order) if order else None

    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Order]:
        await asyncio.sleep(0)
        for order in self.store.orders.values():
            if order.gateway_order_id == gateway_order_id:
                return dataclasses.replace(order)
        return None

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Order]:
        await asyncio.sleep(0)
        orders = [o for o in self.store.orders.values() if o.user_id == user_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [dataclasses.replace(o) for o in orders[skip:skip + limit]]

    async def list_all(self, skip: int = 0, limit: int = 100, status: Optional[OrderStatus] = None) -> List[Order]:
        await asyncio.sleep(0)
        orders = [o for o in self.store.orders.values() if status is None or o.status == status]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [dataclasses.replace(o) for o in orders[skip:skip + limit]]

    async def update_status(
        self,
        order_id: str,
        *,
        expected_version: int,
        status: OrderStatus,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> Order:
        await asyncio.sleep(0)
        # check-and-write without yielding: the in-memory equivalent of a conditional UPDATE
        current = self.store.orders.get(order_id)
        if current is None:
            raise OrderNotFoundException(order_id)
        if current.version != expected_version:
            raise VersionConflictException(order_id, expected_version)
        changes: Dict[str, Any] = {
            "status": status,
            "version": current.version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
        if gateway_order_id is not None:
            changes["gateway_order_id"] = gateway_order_id
        if gateway_payment_id is not None:
            changes["gateway_payment_id"] = gateway_payment_id
        updated = dataclasses.replace(current, **changes)
        self.store.orders[order_id] = updated
        return dataclasses.replace(updated)


class InMemoryCatalogRepository(CatalogRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store
        self.batch_calls = 0

    async def get_by_id(self, item_id: str) -> Optional[CatalogItem]:
        await asyncio.sleep(0)
        return self.store.catalog.get(item_id)

    async def get_by_ids(self, item_ids: Iterable[str]) -> dict[str, CatalogItem]:
        await asyncio.sleep(0)
        self.batch_calls += 1
        return {i: self.store.catalog[i] for i in item_ids if i in self.store.catalog}


class InMemoryWebhookAuditRepository(WebhookAuditRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def append(self, entry: WebhookAuditEntry) -> WebhookAuditEntry:
        await asyncio.sleep(0)
        stored = dataclasses.replace(
            entry,
            id=len(self.store.audit) + 1,
            created_at=entry.created_at or datetime.now(timezone.utc),
        )
        self.store.audit.append(stored)
        return stored

    async def list_by_order(self, order_id: str, skip: int = 0, limit: int = 100) -> List[WebhookAuditEntry]:
        await asyncio.sleep(0)
        return self.store.audit_for(order_id)[skip:skip + limit]


class FakeUnitOfWork(AbstractUnitOfWork):
    def __init__(self, store: InMemoryStore, *, readonly: bool = False):
        super().__init__(readonly=readonly)
        self.store = store

    async def __aenter__(self) -> "FakeUnitOfWork":
        self.order_repository = InMemoryOrderRepository(self.store)
        self.catalog_repository = InMemoryCatalogRepository(self.store)
        self.webhook_audit_repository = InMemoryWebhookAuditRepository(self.store)
        return self

    async def commit(self) -> None:
        self.store.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self.store.rollbacks += 1


class FakeCache:
    """CachePort backed by a dict; ``fail`` simulates an unreachable Redis."""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail = fail

    async def get(self, key: str, default: Any = None) -> Any:
        if self.fail:
            raise ConnectionError("cache down")
        return self.data.get(key, default)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, nx: bool = False) -> bool:
        if self.fail:
            raise ConnectionError("cache down")
        if nx and key in self.data:
            return False
        self.data[key] = value
        self.ttls[key] = ttl
        return True


class StubGateway:
    """PaymentGateway stand-in that records every opened order."""

    provider = "stub"
    key_id = "rzp_test_key"

    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.requests: List[OpenPaymentOrder] = []
        self.closed = False

    async def open_payment_order(self, req: OpenPaymentOrder) -> GatewayOrder:
        self.requests.append(req)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return GatewayOrder(
            id=f"order_gw_{len(self.requests)}",
            amount=req.amount,
            currency=req.currency,
            receipt=req.order_id,
            status="created",
            provider=self.provider,
        )

    async def aclose(self) -> None:
        self.closed = True


def payment_webhook_body(event: str, gateway_order_id: str, payment_id: str = "pay_1") -> bytes:
    """Razorpay-shaped payment webhook body."""
    return json.dumps({
        "entity": "event",
        "account_id": "acc_test",
        "event": event,
        "contains": ["payment"],
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "entity": "payment",
                    "amount": 2200,
                    "currency": "INR",
                    "status": "captured" if event == "payment.captured" else "failed",
                    "order_id": gateway_order_id,
                    "method": "upi",
                }
            }
        },
        "created_at": 1700000000,
    }).encode("utf-8")
