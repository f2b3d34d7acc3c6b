"""Unit of Work 抽象：一次 `async with` 即一个事务"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.catalog.repository import CatalogRepository
from domain.order.repository import OrderRepository
from domain.webhook.repository import WebhookAuditRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界

    - 正常退出自动提交，异常退出回滚
    - readonly=True 时从不提交，只用于读取（订单查询、验签前读取）
    - 每次状态变更使用独立的 UoW，网关调用期间不持有事务
    """

    order_repository: OrderRepository
    catalog_repository: CatalogRepository
    webhook_audit_repository: WebhookAuditRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._readonly = readonly
        self._committed = False

    @property
    def readonly(self) -> bool:
        return self._readonly

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not self._readonly and not self._committed:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
