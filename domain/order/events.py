"""
订单领域事件 - 记录状态机成功应用的状态变更
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderEvent:
    order_id: str
    version: int
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PaymentOpened(OrderEvent):
    """网关订单已开启"""
    gateway_order_id: Optional[str] = None


@dataclass
class OrderPaid(OrderEvent):
    gateway_payment_id: Optional[str] = None


@dataclass
class OrderPaymentFailed(OrderEvent):
    pass


@dataclass
class OrderAccepted(OrderEvent):
    pass


@dataclass
class OrderDelivered(OrderEvent):
    pass
