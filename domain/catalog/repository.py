"""Repository abstraction for catalog lookups."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .entity import CatalogItem


class CatalogRepository(ABC):
    """Read-only contract; catalog maintenance lives outside this service."""

    @abstractmethod
    async def get_by_id(self, item_id: str) -> Optional[CatalogItem]:
        ...

    @abstractmethod
    async def get_by_ids(self, item_ids: Iterable[str]) -> dict[str, CatalogItem]:
        """Batch lookup; ids that do not resolve are absent from the result."""
        ...
