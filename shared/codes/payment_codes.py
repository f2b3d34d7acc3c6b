"""
Payment specific codes and gateway event names.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    GATEWAY_UNAVAILABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003


# Webhook events this engine acts on; everything else is audited and acknowledged
EVENT_PAYMENT_CAPTURED = "payment.captured"
EVENT_PAYMENT_FAILED = "payment.failed"

# Gateway order status -> whether the order is still collectable
GATEWAY_ORDER_STATUS_OPEN = {"created", "attempted"}

# Currencies the gateway adapter accepts (ISO-4217 alpha-3)
SUPPORTED_CURRENCIES = frozenset({"INR", "USD", "EUR", "GBP", "SGD", "AED"})
