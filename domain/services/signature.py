"""
HMAC-SHA256 signature verification for the payment gateway.

Two verification sites share the algorithm but not the key or the canonical
input: client verification signs ``order_id|payment_id`` with the API key
secret, webhooks sign the raw request body with the webhook secret. Digests
are lowercase hex and always compared in constant time.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Union


def hmac_sha256_hex(secret: str, message: Union[str, bytes]) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def constant_time_equals(expected: str, provided: Optional[str]) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.strip().encode("utf-8"))


class SignatureVerifier:
    """Stateless verifier bound to the two gateway secrets.

    A missing secret makes the corresponding check fail closed.
    """

    def __init__(self, key_secret: Optional[str], webhook_secret: Optional[str]):
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret

    def sign_payment(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        if not self._key_secret:
            raise ValueError("key secret is not configured")
        return hmac_sha256_hex(self._key_secret, f"{gateway_order_id}|{gateway_payment_id}")

    def verify_payment(self, gateway_order_id: str, gateway_payment_id: str, signature: Optional[str]) -> bool:
        if not self._key_secret or not gateway_order_id or not gateway_payment_id:
            return False
        return constant_time_equals(self.sign_payment(gateway_order_id, gateway_payment_id), signature)

    def sign_webhook(self, body: bytes) -> str:
        if not self._webhook_secret:
            raise ValueError("webhook secret is not configured")
        return hmac_sha256_hex(self._webhook_secret, body)

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        if not self._webhook_secret:
            return False
        return constant_time_equals(self.sign_webhook(body), signature)
