"""Webhook audit domain exports."""
from .entity import WebhookAuditEntry
from .repository import WebhookAuditRepository

__all__ = ["WebhookAuditEntry", "WebhookAuditRepository"]
