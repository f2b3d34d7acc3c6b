"""
菜单商品仓储实现（只读）
"""
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.catalog.entity import CatalogItem
from domain.catalog.repository import CatalogRepository
from infrastructure.models.catalog import CatalogItemModel


class SQLAlchemyCatalogRepository(CatalogRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, db_item: CatalogItemModel) -> CatalogItem:
        return CatalogItem(
            id=db_item.id,
            name=db_item.name,
            price=db_item.price,
            is_available=db_item.is_available,
            category=db_item.category,
            description=db_item.description,
            image_url=db_item.image_url,
        )

    async def get_by_id(self, item_id: str) -> Optional[CatalogItem]:
        db_item = await self.session.get(CatalogItemModel, item_id)
        return self._to_entity(db_item) if db_item else None

    async def get_by_ids(self, item_ids: Iterable[str]) -> dict[str, CatalogItem]:
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(CatalogItemModel).where(CatalogItemModel.id.in_(ids))
        )
        return {m.id: self._to_entity(m) for m in result.scalars().all()}
