"""
价格权威 - 以目录数据重新计算购物车金额，从不信任客户端价格
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from domain.catalog.repository import CatalogRepository
from domain.common.exceptions import InvalidCartException, ItemUnavailableException
from .entity import OrderItem


# 单行数量上限（order_items.quantity 为 32 位整数列）
MAX_LINE_QUANTITY = 10_000


class CartLineLike(Protocol):
    catalog_item_id: str
    quantity: int


@dataclass(frozen=True)
class PricedCart:
    items: tuple[OrderItem, ...]
    total_amount: int


class PriceAuthority:
    """购物车定价

    只做一次批量目录查询；客户端提交的任何价格字段都被忽略。
    """

    def __init__(self, catalog_repository: CatalogRepository):
        self.catalog_repository = catalog_repository

    @staticmethod
    def validate(lines: Sequence[CartLineLike]) -> None:
        """结构校验：非空、数量为正且不超过上限、无重复商品"""
        if not lines:
            raise InvalidCartException("cart is empty")
        seen: set[str] = set()
        for line in lines:
            if not line.catalog_item_id:
                raise InvalidCartException("missing catalog item id")
            if line.quantity <= 0:
                raise InvalidCartException(
                    "quantity must be positive", catalog_item_id=line.catalog_item_id
                )
            if line.quantity > MAX_LINE_QUANTITY:
                raise InvalidCartException(
                    f"quantity must not exceed {MAX_LINE_QUANTITY}", catalog_item_id=line.catalog_item_id
                )
            if line.catalog_item_id in seen:
                raise InvalidCartException(
                    "duplicate catalog item", catalog_item_id=line.catalog_item_id
                )
            seen.add(line.catalog_item_id)

    async def price(self, lines: Sequence[CartLineLike]) -> PricedCart:
        """
        计算购物车价格

        Raises:
            InvalidCartException: 空购物车、数量非正或超限、重复商品
            ItemUnavailableException: 商品不存在或已下架
        """
        self.validate(lines)

        catalog = await self.catalog_repository.get_by_ids([line.catalog_item_id for line in lines])

        unavailable = [
            line.catalog_item_id
            for line in lines
            if line.catalog_item_id not in catalog or not catalog[line.catalog_item_id].is_available
        ]
        if unavailable:
            raise ItemUnavailableException(unavailable)

        items = tuple(
            OrderItem(
                catalog_item_id=line.catalog_item_id,
                name=catalog[line.catalog_item_id].name,
                unit_price=catalog[line.catalog_item_id].price,
                quantity=line.quantity,
            )
            for line in lines
        )
        return PricedCart(items=items, total_amount=sum(item.subtotal for item in items))
