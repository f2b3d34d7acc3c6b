"""Repository abstraction for the webhook audit log."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .entity import WebhookAuditEntry


class WebhookAuditRepository(ABC):
    """Append-only: entries are never updated or deleted."""

    @abstractmethod
    async def append(self, entry: WebhookAuditEntry) -> WebhookAuditEntry:
        ...

    @abstractmethod
    async def list_by_order(self, order_id: str, skip: int = 0, limit: int = 100) -> List[WebhookAuditEntry]:
        ...
