"""
Payment gateway webhook routes.

Keep this thin: the raw body is handed to the ingestion service untouched,
since the signature is computed over the exact bytes received.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_webhook_service
from application.services.webhook_service import WebhookIngestionService
from core.response import success_response
from core.settings import payment_settings


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/razorpay", summary="Razorpay webhook")
async def razorpay_webhook(
    request: Request,
    service: WebhookIngestionService = Depends(get_webhook_service),
):
    raw_body = await request.body()
    signature = request.headers.get(payment_settings.webhook.signature_header)
    await service.handle(raw_body, signature)
    # Acknowledge every audited outcome so the gateway does not redeliver
    return success_response(data={"received": True}, message="ok")
