"""Lifecycle core: accounts, products, orders, deliveries, events

Revision ID: 0001_lifecycle_core
Revises:
Create Date: 2026-10-19

This migration adds:
1. Account directory (read-only reference data)
2. Product catalog with non-negative stock constraint
3. Orders, order items, order timeline
4. Stock releases (exactly-once give-back queue)
5. Deliveries, delivery items, delivery issues (one delivery per order)
6. Number sequences, lifecycle events, notifications
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_lifecycle_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS
    # ==========================================================================
    op.create_table('accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('area', sa.String(length=100), nullable=True),
        sa.Column('city', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('shop_name', sa.String(length=255), nullable=True),
        sa.Column('assigned_areas', sa.JSON(), nullable=True),
        sa.Column('availability', sa.String(length=16), nullable=True),
        sa.Column('vehicle_type', sa.String(length=32), nullable=True),
        sa.Column('vehicle_number', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_accounts_email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('accounts', schema=None) as batch_op:
        batch_op.create_index('ix_accounts_role_status', ['role', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_accounts_role'), ['role'], unique=False)
        batch_op.create_index(batch_op.f('ix_accounts_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_accounts_area'), ['area'], unique=False)

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='piece'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_non_negative'),
        sa.ForeignKeyConstraint(['company_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_company_active', ['company_id', 'is_active'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_company_id'), ['company_id'], unique=False)

    # ==========================================================================
    # 3. ORDERS
    # ==========================================================================
    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('shopkeeper_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('delivery_worker_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivery_charge_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivery_address', sa.String(length=255), nullable=False, server_default='N/A'),
        sa.Column('delivery_area', sa.String(length=100), nullable=False, server_default='N/A'),
        sa.Column('delivery_city', sa.String(length=64), nullable=False, server_default='N/A'),
        sa.Column('preferred_delivery_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivery_instructions', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('notes', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='cash_on_delivery'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('rejection_reason', sa.String(length=600), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=600), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['shopkeeper_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['delivery_worker_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('orders', schema=None) as batch_op:
        batch_op.create_index('ix_orders_company_status', ['company_id', 'status'], unique=False)
        batch_op.create_index('ix_orders_shopkeeper_created', ['shopkeeper_id', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_shopkeeper_id'), ['shopkeeper_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_delivery_worker_id'), ['delivery_worker_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_status'), ['status'], unique=False)

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('order_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_order_items_order_id'), ['order_id'], unique=False)

    op.create_table('order_timeline',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('actor_role', sa.String(length=32), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('order_timeline', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_order_timeline_order_id'), ['order_id'], unique=False)

    # ==========================================================================
    # 4. STOCK RELEASES
    # ==========================================================================
    op.create_table('stock_releases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_item_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['order_item_id'], ['order_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_item_id', name='uq_stock_releases_order_item'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_releases', schema=None) as batch_op:
        batch_op.create_index('ix_stock_releases_status', ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_releases_order_id'), ['order_id'], unique=False)

    # ==========================================================================
    # 5. DELIVERIES
    # ==========================================================================
    op.create_table('deliveries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('delivery_number', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('shopkeeper_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('delivery_worker_id', sa.Integer(), nullable=False),
        sa.Column('pickup_location', sa.String(length=500), nullable=False),
        sa.Column('delivery_location', sa.String(length=500), nullable=False),
        sa.Column('delivery_area', sa.String(length=100), nullable=False),
        sa.Column('delivery_instructions', sa.String(length=500), nullable=True),
        sa.Column('shopkeeper_name', sa.String(length=120), nullable=False),
        sa.Column('shopkeeper_phone', sa.String(length=32), nullable=False, server_default='N/A'),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('amount_to_collect_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='assigned'),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('picked_up_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('in_transit_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failure_reason', sa.String(length=500), nullable=True),
        sa.Column('proof_signature', sa.Text(), nullable=True),
        sa.Column('proof_photo', sa.String(length=500), nullable=True),
        sa.Column('proof_notes', sa.String(length=500), nullable=True),
        sa.Column('route_summary', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['shopkeeper_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['delivery_worker_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', name='uq_deliveries_order'),
        sa.UniqueConstraint('delivery_number', name='uq_deliveries_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('deliveries', schema=None) as batch_op:
        batch_op.create_index('ix_deliveries_worker_status', ['delivery_worker_id', 'status'], unique=False)
        batch_op.create_index('ix_deliveries_area', ['delivery_area'], unique=False)
        batch_op.create_index(batch_op.f('ix_deliveries_shopkeeper_id'), ['shopkeeper_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_deliveries_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_deliveries_status'), ['status'], unique=False)

    op.create_table('delivery_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('delivery_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['delivery_id'], ['deliveries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('delivery_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_delivery_items_delivery_id'), ['delivery_id'], unique=False)

    op.create_table('delivery_issues',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('delivery_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('resolution', sa.String(length=500), nullable=True),
        sa.Column('reported_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reported_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['delivery_id'], ['deliveries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('delivery_issues', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_delivery_issues_delivery_id'), ['delivery_id'], unique=False)

    # ==========================================================================
    # 6. SEQUENCES, EVENTS, NOTIFICATIONS
    # ==========================================================================
    op.create_table('number_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_number_sequences_name'),
        sqlite_autoincrement=True
    )

    op.create_table('lifecycle_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('delivery_id', sa.Integer(), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('actor_role', sa.String(length=32), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['delivery_id'], ['deliveries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('lifecycle_events', schema=None) as batch_op:
        batch_op.create_index('ix_lifecycle_events_type_occurred', ['event_type', 'occurred_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_lifecycle_events_order_id'), ['order_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_lifecycle_events_delivery_id'), ['delivery_id'], unique=False)

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.String(length=1000), nullable=False),
        sa.Column('related_order_id', sa.Integer(), nullable=True),
        sa.Column('related_delivery_id', sa.Integer(), nullable=True),
        sa.Column('priority', sa.String(length=8), nullable=False, server_default='medium'),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['recipient_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.create_index('ix_notifications_recipient_read', ['recipient_id', 'is_read'], unique=False)

    op.bulk_insert(
        sa.table('number_sequences',
            sa.column('name', sa.String),
            sa.column('next_number', sa.Integer),
        ),
        [
            {'name': 'order', 'next_number': 1001},
            {'name': 'delivery', 'next_number': 1},
        ],
    )


def downgrade():
    op.drop_table('notifications')
    op.drop_table('lifecycle_events')
    op.drop_table('number_sequences')
    op.drop_table('delivery_issues')
    op.drop_table('delivery_items')
    op.drop_table('deliveries')
    op.drop_table('stock_releases')
    op.drop_table('order_timeline')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('accounts')
