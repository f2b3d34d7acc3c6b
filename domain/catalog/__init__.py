"""Catalog domain exports."""
from .entity import CatalogItem
from .repository import CatalogRepository

__all__ = ["CatalogItem", "CatalogRepository"]
