"""
Webhook 审计日志模型 - 仅追加
"""
from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, Index
from datetime import datetime, timezone

from .base import Base


class WebhookAuditModel(Base):
    __tablename__ = "webhook_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(50), nullable=False, comment="来源网关")
    event_type = Column(String(100), nullable=False, index=True, comment="事件类型")
    raw_payload = Column(Text, nullable=False, comment="原始报文")
    signature_valid = Column(Boolean, nullable=False, comment="签名是否有效")
    related_order_id = Column(String(36), nullable=True, comment="关联订单ID")
    note = Column(String(500), nullable=False, default="", comment="处理结果")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="接收时间"
    )

    __table_args__ = (
        Index("idx_webhook_audit_order_created", "related_order_id", "created_at"),
    )

    def __repr__(self):
        return f"<WebhookAuditModel(id={self.id}, event_type={self.event_type}, note={self.note})>"
