"""
Webhook 审计日志仓储实现 - 仅追加
"""
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.webhook.entity import WebhookAuditEntry
from domain.webhook.repository import WebhookAuditRepository
from infrastructure.models.webhook_audit import WebhookAuditModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _fit(column, value: Optional[str]) -> Optional[str]:
    """按列宽截断；事件名等来自未验签报文，长度不可信"""
    return value[: column.type.length] if value else value


class SQLAlchemyWebhookAuditRepository(WebhookAuditRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, db_entry: WebhookAuditModel) -> WebhookAuditEntry:
        return WebhookAuditEntry(
            id=db_entry.id,
            source=db_entry.source,
            event_type=db_entry.event_type,
            raw_payload=db_entry.raw_payload,
            signature_valid=db_entry.signature_valid,
            related_order_id=db_entry.related_order_id,
            note=db_entry.note,
            created_at=db_entry.created_at,
        )

    async def append(self, entry: WebhookAuditEntry) -> WebhookAuditEntry:
        columns = WebhookAuditModel.__table__.c
        db_entry = WebhookAuditModel(
            source=_fit(columns.source, entry.source),
            event_type=_fit(columns.event_type, entry.event_type),
            raw_payload=entry.raw_payload,
            signature_valid=entry.signature_valid,
            related_order_id=_fit(columns.related_order_id, entry.related_order_id),
            note=_fit(columns.note, entry.note),
            created_at=entry.created_at or datetime.now(timezone.utc),
        )
        self.session.add(db_entry)
        await self.session.flush()

        logger.info(
            "webhook_audited",
            audit_id=db_entry.id,
            source=entry.source,
            event_type=entry.event_type,
            signature_valid=entry.signature_valid,
            related_order_id=entry.related_order_id,
            note=entry.note,
        )
        return self._to_entity(db_entry)

    async def list_by_order(self, order_id: str, skip: int = 0, limit: int = 100) -> List[WebhookAuditEntry]:
        result = await self.session.execute(
            select(WebhookAuditModel)
            .where(WebhookAuditModel.related_order_id == order_id)
            .order_by(WebhookAuditModel.created_at, WebhookAuditModel.id)
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(e) for e in result.scalars().all()]
