"""
订单领域实体 - 订单聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "PENDING"                    # 已创建，尚未开启支付
    AWAITING_PAYMENT = "AWAITING_PAYMENT"  # 网关订单已开启
    PAYMENT_FAILED = "PAYMENT_FAILED"      # 支付失败（终态）
    PAID = "PAID"                          # 支付成功（终态）
    ACCEPTED = "ACCEPTED"                  # 商家已接单
    DELIVERED = "DELIVERED"                # 已送达


# 对支付结果而言已视为“已支付”的状态
PAID_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.ACCEPTED, OrderStatus.DELIVERED})


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class OrderItem:
    """下单时刻的商品快照，创建后不可变"""

    catalog_item_id: str
    name: str
    unit_price: int  # 最小货币单位（分/派萨）
    quantity: int

    def __post_init__(self):
        if self.unit_price < 0:
            raise DomainValidationException(
                f"单价不能为负数: {self.unit_price}",
                field="unit_price"
            )
        if self.quantity <= 0:
            raise DomainValidationException(
                f"数量必须大于0: {self.quantity}",
                field="quantity"
            )

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. 金额以整数最小货币单位存储，等于明细快照之和
    2. 明细在创建后冻结，目录价格变化不影响已有订单
    3. 状态只能经由订单状态机变更
    4. 每次变更版本号 +1，提交过期版本会被拒绝
    """

    id: str
    user_id: str
    status: OrderStatus
    total_amount: int
    currency: str
    items: tuple[OrderItem, ...]
    version: int = 1
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.items = tuple(self.items)
        self._validate_items()
        self._validate_total()
        self._validate_currency()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def _validate_items(self) -> None:
        if not self.items:
            raise DomainValidationException("订单至少包含一个商品", field="items")

    def _validate_total(self) -> None:
        """业务规则：总额必须等于明细之和"""
        expected = sum(item.subtotal for item in self.items)
        if self.total_amount != expected:
            raise DomainValidationException(
                f"订单总额 {self.total_amount} 与明细合计 {expected} 不一致",
                field="total_amount"
            )
        if self.total_amount <= 0:
            raise DomainValidationException(
                f"订单总额必须大于0: {self.total_amount}",
                field="total_amount"
            )

    def _validate_currency(self) -> None:
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"无效的货币代码: {self.currency}",
                field="currency"
            )

    @property
    def is_paid(self) -> bool:
        return self.status in PAID_STATUSES

    @property
    def receipt(self) -> str:
        return self.id

    @property
    def short_id(self) -> str:
        return self.id[:8]
