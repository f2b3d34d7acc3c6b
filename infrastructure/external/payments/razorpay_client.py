"""
Razorpay Orders API adapter over httpx.

Opens a remote order (``POST /orders``) with HTTP basic auth (key id, key
secret). Amounts are sent in the smallest currency unit and the engine's
order id doubles as the receipt. Every transport, auth or upstream failure
surfaces as GatewayUnavailableException.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.dtos.payments import GatewayOrder, OpenPaymentOrder
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.exceptions import GatewayUnavailableException
from infrastructure.external.payments.base import BasePaymentClient
from shared.codes.payment_codes import GATEWAY_ORDER_STATUS_OPEN


logger = get_logger(__name__)


def _error_description(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("description") or body["error"].get("code") or "")
    return str(body)[:200]


class RazorpayClient(BasePaymentClient):
    provider = "razorpay"

    def __init__(
        self,
        *,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(
            timeouts=payment_settings.timeouts,
            retry=payment_settings.retry,
            http_client=http_client,
        )
        cfg = payment_settings.razorpay
        self.key_id = key_id or cfg.key_id or ""
        self._key_secret = key_secret or cfg.key_secret or ""
        if not (self.key_id and self._key_secret):
            raise RuntimeError("PAYMENT__RAZORPAY__KEY_ID / KEY_SECRET not configured")
        self._base_url = (base_url or cfg.base_url).rstrip("/")

    def _unavailable(self, message: str, **details: Any) -> GatewayUnavailableException:
        return GatewayUnavailableException(message, provider=self.provider, details=details or None)

    async def open_payment_order(self, req: OpenPaymentOrder) -> GatewayOrder:  # type: ignore[override]
        payload = {
            "amount": req.amount,
            "currency": req.currency,
            "receipt": req.order_id,
            "payment_capture": 1,
            "notes": req.notes,
        }

        async def _call() -> httpx.Response:
            return await self.http.post(
                f"{self._base_url}/orders",
                json=payload,
                auth=(self.key_id, self._key_secret),
            )

        self._log("gateway_order_request", order_id=req.order_id, amount=req.amount, currency=req.currency)
        try:
            resp = await self._with_retry(_call)
        except httpx.TimeoutException as exc:
            logger.warning("gateway_order_timeout", provider=self.provider, order_id=req.order_id)
            raise self._unavailable("Payment gateway timed out", order_id=req.order_id) from exc
        except httpx.HTTPError as exc:
            logger.warning("gateway_order_transport_error", provider=self.provider, order_id=req.order_id, error=str(exc))
            raise self._unavailable("Payment gateway unreachable", order_id=req.order_id) from exc

        if resp.status_code >= 400:
            description = _error_description(resp)
            logger.warning(
                "gateway_order_rejected",
                provider=self.provider,
                order_id=req.order_id,
                status_code=resp.status_code,
                error=description,
            )
            raise self._unavailable(
                "Payment gateway rejected the order",
                order_id=req.order_id,
                status_code=resp.status_code,
                error=description,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise self._unavailable("Payment gateway returned an invalid response", order_id=req.order_id) from exc

        if not isinstance(data, dict) or not data.get("id"):
            raise self._unavailable("Payment gateway response missing order id", order_id=req.order_id)

        status = data.get("status")
        if status and status not in GATEWAY_ORDER_STATUS_OPEN:
            raise self._unavailable(
                f"Payment gateway order is not open: {status}",
                order_id=req.order_id,
                gateway_order_id=data["id"],
            )

        self._log("gateway_order_opened", order_id=req.order_id, gateway_order_id=data["id"], status=status)
        return GatewayOrder(
            id=str(data["id"]),
            amount=int(data.get("amount", req.amount)),
            currency=str(data.get("currency", req.currency)),
            receipt=data.get("receipt"),
            status=status,
            provider=self.provider,
        )
