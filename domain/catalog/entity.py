"""Catalog item entity (read-only collaborator of the order flow)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    price: int  # minor currency units
    is_available: bool = True
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
