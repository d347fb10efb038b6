"""Initial stock ledger schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration adds:
1. ProductCategory lookup
2. Product master data with the materialized stock balance
3. InventoryTransaction append-only ledger (stock_before / stock_after snapshots)
4. LowStockAlert log (open_key guards one open alert per product per day)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. PRODUCT CATEGORIES
    # ==========================================================================
    op.create_table('product_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_product_categories_name'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=1000), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reorder_level', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('reorder_quantity', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_discontinued', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=False, server_default='system'),
        sa.Column('modified_by', sa.String(length=128), nullable=False, server_default='system'),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_products_unit_price_non_negative'),
        sa.CheckConstraint('unit_cost_cents >= 0', name='ck_products_unit_cost_non_negative'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('reorder_level >= 0', name='ck_products_reorder_level_non_negative'),
        sa.CheckConstraint('reorder_quantity > 0', name='ck_products_reorder_quantity_positive'),
        sa.ForeignKeyConstraint(['category_id'], ['product_categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_category_id'), ['category_id'], unique=False)
        batch_op.create_index('ix_products_stock_reorder', ['stock_quantity', 'reorder_level'], unique=False)

    # ==========================================================================
    # 3. INVENTORY TRANSACTIONS (append-only ledger)
    # ==========================================================================
    op.create_table('inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.String(length=36), nullable=False),
        sa.Column('transaction_type', sa.String(length=3), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=True),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_number', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('stock_before', sa.Integer(), nullable=False),
        sa.Column('stock_after', sa.Integer(), nullable=False),
        sa.CheckConstraint("transaction_type IN ('IN', 'OUT')", name='ck_invtx_type'),
        sa.CheckConstraint('quantity > 0', name='ck_invtx_quantity_positive'),
        sa.CheckConstraint('stock_after >= 0', name='ck_invtx_stock_after_non_negative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventory_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventory_transactions_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_batch_id'), ['batch_id'], unique=False)
        batch_op.create_index('ix_invtx_product_date', ['product_id', 'transaction_date'], unique=False)
        batch_op.create_index('ix_invtx_date_type', ['transaction_date', 'transaction_type'], unique=False)
        batch_op.create_index('ix_invtx_reference', ['reference_type', 'reference_number'], unique=False)

    # ==========================================================================
    # 4. LOW STOCK ALERTS
    # ==========================================================================
    op.create_table('low_stock_alerts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=50), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('current_stock', sa.Integer(), nullable=False),
        sa.Column('reorder_level', sa.Integer(), nullable=False),
        sa.Column('stock_deficit', sa.Integer(), nullable=False),
        sa.Column('suggested_reorder', sa.Integer(), nullable=False),
        sa.Column('alert_message', sa.String(length=1000), nullable=False),
        sa.Column('alert_severity', sa.String(length=20), nullable=False, server_default='WARNING'),
        sa.Column('is_acknowledged', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acknowledged_by', sa.String(length=128), nullable=True),
        sa.Column('open_key', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint("alert_severity IN ('WARNING', 'CRITICAL')", name='ck_low_stock_alerts_severity'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('open_key', name='uq_low_stock_alerts_open_key'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('low_stock_alerts', schema=None) as batch_op:
        batch_op.create_index('ix_low_stock_alerts_product_created', ['product_id', 'created_at'], unique=False)
        batch_op.create_index('ix_low_stock_alerts_ack_created', ['is_acknowledged', 'created_at'], unique=False)


def downgrade():
    with op.batch_alter_table('low_stock_alerts', schema=None) as batch_op:
        batch_op.drop_index('ix_low_stock_alerts_ack_created')
        batch_op.drop_index('ix_low_stock_alerts_product_created')
    op.drop_table('low_stock_alerts')

    with op.batch_alter_table('inventory_transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_invtx_reference')
        batch_op.drop_index('ix_invtx_date_type')
        batch_op.drop_index('ix_invtx_product_date')
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_batch_id'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_product_id'))
    op.drop_table('inventory_transactions')

    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index('ix_products_stock_reorder')
        batch_op.drop_index(batch_op.f('ix_products_category_id'))
    op.drop_table('products')

    op.drop_table('product_categories')
