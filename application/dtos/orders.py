"""
订单相关 DTO - 应用层与表现层之间的数据传输
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from application.dtos.base import DTOBase
from domain.order.entity import Order, OrderStatus
from domain.webhook.entity import WebhookAuditEntry


class CartLine(DTOBase):
    """购物车行；price 字段仅为兼容旧客户端，服务端一律忽略"""
    catalog_item_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., description="购买数量，必须大于0")
    price: Optional[int] = Field(None, description="客户端价格（忽略）")


class CreateOrderRequest(DTOBase):
    items: List[CartLine] = Field(default_factory=list)


class CreateOrderResponse(DTOBase):
    """下单响应，同时作为幂等缓存的值"""
    order_id: str
    gateway_order_id: str
    gateway_public_key: str
    amount: int
    currency: str
    receipt: str
    name: str
    description: str


class VerifyPaymentRequest(DTOBase):
    order_id: str = Field(..., min_length=1)
    gateway_order_id: str = Field(..., min_length=1)
    gateway_payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class VerifyPaymentResponse(DTOBase):
    success: bool
    order_id: str
    status: OrderStatus
    message: str


class OrderItemDTO(DTOBase):
    catalog_item_id: str
    name: str
    unit_price: int
    quantity: int
    subtotal: int

    model_config = ConfigDict(from_attributes=True)


class OrderDTO(DTOBase):
    id: str
    user_id: str
    status: OrderStatus
    total_amount: int
    currency: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    version: int
    items: List[OrderItemDTO]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, order: Order) -> "OrderDTO":
        return cls(
            id=order.id,
            user_id=order.user_id,
            status=order.status,
            total_amount=order.total_amount,
            currency=order.currency,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            version=order.version,
            items=[OrderItemDTO.model_validate(item, from_attributes=True) for item in order.items],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class UpdateOrderStatusRequest(DTOBase):
    """管理端履约推进，仅允许 ACCEPTED / DELIVERED"""
    status: OrderStatus

    @field_validator("status")
    @classmethod
    def _fulfillment_only(cls, v: OrderStatus) -> OrderStatus:
        if v not in (OrderStatus.ACCEPTED, OrderStatus.DELIVERED):
            raise ValueError("status must be ACCEPTED or DELIVERED")
        return v


class WebhookOutcome(DTOBase):
    """Webhook 处理结果（已写入审计日志）"""
    event_type: str
    signature_valid: bool
    note: str
    related_order_id: Optional[str] = None
    applied: bool = False


class WebhookAuditDTO(DTOBase):
    id: Optional[int] = None
    source: str
    event_type: str
    signature_valid: bool
    related_order_id: Optional[str] = None
    note: str
    raw_payload: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, entry: WebhookAuditEntry) -> "WebhookAuditDTO":
        return cls(
            id=entry.id,
            source=entry.source,
            event_type=entry.event_type,
            signature_valid=entry.signature_valid,
            related_order_id=entry.related_order_id,
            note=entry.note,
            raw_payload=entry.raw_payload,
            created_at=entry.created_at,
        )
