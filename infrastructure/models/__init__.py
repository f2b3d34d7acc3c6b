"""ORM 模型；导入本包即把全部表注册到 Base.metadata（create_all 与 alembic 依赖这一点）"""
from .base import Base
from .catalog import CatalogItemModel
from .order import OrderItemModel, OrderModel
from .webhook_audit import WebhookAuditModel

__all__ = ["Base", "CatalogItemModel", "OrderModel", "OrderItemModel", "WebhookAuditModel"]
