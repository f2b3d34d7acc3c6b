"""
Payment DTOs (Pydantic v2) used at the gateway boundary.

``GatewayOrder`` is what an adapter returns after opening a remote payment
order; ``WebhookEnvelope`` models the gateway's callback body.
"""
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.codes.payment_codes import SUPPORTED_CURRENCIES


class OpenPaymentOrder(BaseModel):
    order_id: str
    amount: int = Field(gt=0, description="minor currency units")
    currency: str = Field(default="INR")
    notes: dict[str, str] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        if u not in SUPPORTED_CURRENCIES:
            raise ValueError("unsupported currency")
        return u


class GatewayOrder(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None
    provider: str


class PaymentEntity(BaseModel):
    """``payload.payment.entity`` of a payment webhook."""

    id: str
    order_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    method: Optional[str] = None
    captured: Optional[bool] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class WebhookEnvelope(BaseModel):
    event: str
    payload: dict[str, Any] = Field(default_factory=dict)
    entity: Optional[str] = None
    account_id: Optional[str] = None
    contains: list[str] = Field(default_factory=list)
    created_at: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    def payment_entity(self) -> Optional[PaymentEntity]:
        payment = self.payload.get("payment")
        if not isinstance(payment, dict) or not isinstance(payment.get("entity"), dict):
            return None
        return PaymentEntity.model_validate(payment["entity"])
