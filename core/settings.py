"""
支付与下单流程配置

环境变量统一以 ``PAYMENT__`` 为前缀并按 ``__`` 嵌套，例如
``PAYMENT__RAZORPAY__KEY_SECRET``、``PAYMENT__ORDER__IDEMPOTENCY_TTL_SECONDS``。
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.codes.payment_codes import SUPPORTED_CURRENCIES


class PaymentTimeouts(BaseModel):
    """httpx 超时（秒）"""
    connect: PositiveFloat = 1.0
    read: PositiveFloat = 3.0
    write: PositiveFloat = 3.0
    total: PositiveFloat = 5.0


class PaymentRetry(BaseModel):
    # 默认单次尝试，整单重试由客户端决定
    max: int = Field(default=0, ge=0, le=5)
    base_backoff: PositiveFloat = 0.2


class RazorpaySettings(BaseModel):
    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    base_url: str = "https://api.razorpay.com/v1"


class WebhookSettings(BaseModel):
    source: str = "razorpay"
    signature_header: str = "X-Razorpay-Signature"


class OrderFlowSettings(BaseModel):
    currency: str = Field(default="INR", min_length=3, max_length=3)
    merchant_name: str = "Food Delivery"
    idempotency_ttl_seconds: PositiveInt = 60
    gateway_timeout_seconds: PositiveFloat = 8.0
    verify_timeout_seconds: PositiveFloat = 10.0
    webhook_timeout_seconds: PositiveFloat = 10.0

    @field_validator("currency")
    @classmethod
    def _supported_currency(cls, v: str) -> str:
        code = v.upper()
        if code not in SUPPORTED_CURRENCIES:
            raise ValueError(f"unsupported currency {v!r}, expected one of {sorted(SUPPORTED_CURRENCIES)}")
        return code


class PaymentSettings(BaseSettings):
    default_provider: str = "razorpay"
    razorpay: RazorpaySettings = Field(default_factory=RazorpaySettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    order: OrderFlowSettings = Field(default_factory=OrderFlowSettings)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


payment_settings = PaymentSettings()
