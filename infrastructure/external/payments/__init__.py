"""支付网关适配器"""
from __future__ import annotations

from typing import Callable, Dict, Optional

from application.ports.payment_gateway import PaymentGateway
from core.settings import payment_settings
from .razorpay_client import RazorpayClient


_PROVIDERS: Dict[str, Callable[[], PaymentGateway]] = {
    "razorpay": RazorpayClient,
    "rzp": RazorpayClient,
}


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    """按名称（默认 PAYMENT__DEFAULT_PROVIDER）创建网关客户端"""
    name = (provider or payment_settings.default_provider).strip().lower()
    try:
        factory = _PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unsupported payment provider: {name}") from None
    return factory()


__all__ = ["RazorpayClient", "get_payment_gateway"]
