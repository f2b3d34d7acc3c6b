"""create order payment tables

Revision ID: 3b9e2c41d7a5
Revises:
Create Date: 2026-10-17 10:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b9e2c41d7a5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'menu_items',
        sa.Column('id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='名称'),
        sa.Column('description', sa.Text(), nullable=True, comment='描述'),
        sa.Column('price', sa.BigInteger(), nullable=False, comment='价格（最小货币单位）'),
        sa.Column('category', sa.String(length=100), nullable=True, comment='分类'),
        sa.Column('image_url', sa.String(length=500), nullable=True, comment='图片地址'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否可售'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_menu_items')),
    )
    op.create_index(op.f('ix_menu_items_category'), 'menu_items', ['category'], unique=False)

    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), nullable=False, comment='订单ID (UUID)'),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID'),
        sa.Column('status', sa.String(length=32), nullable=False, comment='订单状态: PENDING/AWAITING_PAYMENT/PAYMENT_FAILED/PAID/ACCEPTED/DELIVERED'),
        sa.Column('total_amount', sa.BigInteger(), nullable=False, comment='订单总额（最小货币单位）'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码 ISO-4217'),
        sa.Column('gateway_order_id', sa.String(length=100), nullable=True, comment='网关订单号'),
        sa.Column('gateway_payment_id', sa.String(length=100), nullable=True, comment='网关支付单号'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_orders')),
        sa.UniqueConstraint('gateway_order_id', name=op.f('uq_orders_gateway_order_id')),
    )
    op.create_index('idx_order_user_created', 'orders', ['user_id', 'created_at'], unique=False)
    op.create_index(op.f('ix_orders_user_id'), 'orders', ['user_id'], unique=False)
    op.create_index(op.f('ix_orders_status'), 'orders', ['status'], unique=False)
    op.create_index(op.f('ix_orders_created_at'), 'orders', ['created_at'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False, comment='订单ID'),
        sa.Column('catalog_item_id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='商品名称快照'),
        sa.Column('unit_price', sa.BigInteger(), nullable=False, comment='单价快照（最小货币单位）'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name=op.f('fk_order_items_order_id_orders')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_order_items')),
    )
    op.create_index(op.f('ix_order_items_order_id'), 'order_items', ['order_id'], unique=False)

    # 审计日志不加外键：事件可能关联不到本系统订单
    op.create_table(
        'webhook_audit_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False, comment='来源网关'),
        sa.Column('event_type', sa.String(length=100), nullable=False, comment='事件类型'),
        sa.Column('raw_payload', sa.Text(), nullable=False, comment='原始报文'),
        sa.Column('signature_valid', sa.Boolean(), nullable=False, comment='签名是否有效'),
        sa.Column('related_order_id', sa.String(length=36), nullable=True, comment='关联订单ID'),
        sa.Column('note', sa.String(length=500), nullable=False, server_default='', comment='处理结果'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='接收时间'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_webhook_audit_log')),
    )
    op.create_index(op.f('ix_webhook_audit_log_event_type'), 'webhook_audit_log', ['event_type'], unique=False)
    op.create_index('idx_webhook_audit_order_created', 'webhook_audit_log', ['related_order_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_webhook_audit_order_created', table_name='webhook_audit_log')
    op.drop_index(op.f('ix_webhook_audit_log_event_type'), table_name='webhook_audit_log')
    op.drop_table('webhook_audit_log')

    op.drop_index(op.f('ix_order_items_order_id'), table_name='order_items')
    op.drop_table('order_items')

    op.drop_index(op.f('ix_orders_created_at'), table_name='orders')
    op.drop_index(op.f('ix_orders_status'), table_name='orders')
    op.drop_index(op.f('ix_orders_user_id'), table_name='orders')
    op.drop_index('idx_order_user_created', table_name='orders')
    op.drop_table('orders')

    op.drop_index(op.f('ix_menu_items_category'), table_name='menu_items')
    op.drop_table('menu_items')
