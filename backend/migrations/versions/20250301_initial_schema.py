"""Initial schema: stock pools, cycles, product lots, sales and cash outbox

Revision ID: 20250301_initial
Revises:
Create Date: 2025-03-01

This migration creates:
1. Stock pools with append-only history and the transaction log
2. Recycling processes and per-year document sequences
3. Product lots / price catalog with product history
4. Sales, the cash inflow outbox and the local cash ledger
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20250301_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STOCK
    # ==========================================================================
    op.create_table('stock_pools',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pool', sa.String(length=32), nullable=False),
        sa.Column('virgin', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('colored', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('virgin >= 0', name='ck_stock_pools_virgin_non_negative'),
        sa.CheckConstraint('colored >= 0', name='ck_stock_pools_colored_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_pools', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_pools_pool'), ['pool'], unique=True)

    op.create_table('stock_history_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pool', sa.String(length=32), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('virgin', sa.Integer(), nullable=False),
        sa.Column('colored', sa.Integer(), nullable=False),
        sa.Column('added_virgin', sa.Integer(), nullable=True),
        sa.Column('added_colored', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_history_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_history_entries_pool'), ['pool'], unique=False)
        batch_op.create_index('ix_stock_history_pool_timestamp', ['pool', 'timestamp'], unique=False)

    # ==========================================================================
    # 2. PROCESSES
    # ==========================================================================
    op.create_table('recycling_processes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cycle_number', sa.String(length=32), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expected_completion', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('input_quantity', sa.Integer(), nullable=False),
        sa.Column('output_quantity', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('outsourced', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('outsourcing_partner', sa.String(length=255), nullable=True),
        sa.Column('film_type', sa.String(length=16), nullable=False),
        sa.Column('yield_rate', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cycle_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('recycling_processes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_recycling_processes_status'), ['status'], unique=False)
        batch_op.create_index('ix_processes_status_start', ['status', 'start_date'], unique=False)

    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sequence_type', sa.String(length=32), nullable=False),
        sa.Column('scope', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence_type', 'scope', name='uq_doc_sequences_type_scope'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_sequences_sequence_type'), ['sequence_type'], unique=False)

    # ==========================================================================
    # 3. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('film_type', sa.String(length=16), nullable=False),
        sa.Column('source_type', sa.String(length=16), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('input_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_catalog', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_film_type'), ['film_type'], unique=False)
        batch_op.create_index('ix_products_catalog_film', ['is_catalog', 'film_type'], unique=False)
        batch_op.create_index(
            'uq_products_catalog_film_type', ['film_type'], unique=True,
            sqlite_where=sa.text('is_catalog = 1'), postgresql_where=sa.text('is_catalog'),
        )

    op.create_table('product_history_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('field', sa.String(length=32), nullable=True),
        sa.Column('old_value', sa.Integer(), nullable=True),
        sa.Column('new_value', sa.Integer(), nullable=True),
        sa.Column('previous_quantity', sa.Integer(), nullable=True),
        sa.Column('quantity_added', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_history_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_history_entries_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 4. SALES AND CASH LEDGER
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('film_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('destination', sa.String(length=16), nullable=False),
        sa.Column('cash_inflow_id', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_sales_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_product_id'), ['product_id'], unique=False)
        batch_op.create_index('ix_sales_date', ['date'], unique=False)

    op.create_table('stock_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('film_type', sa.String(length=16), nullable=False),
        sa.Column('from_section', sa.String(length=32), nullable=True),
        sa.Column('to_section', sa.String(length=32), nullable=True),
        sa.Column('process_id', sa.Integer(), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['process_id'], ['recycling_processes.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_transactions_kind'), ['kind'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_transactions_process_id'), ['process_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_transactions_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_transactions_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index('ix_stock_tx_date', ['date'], unique=False)
        batch_op.create_index('ix_stock_tx_film_date', ['film_type', 'date'], unique=False)

    op.create_table('cash_inflow_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('use_external', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.String(length=255), nullable=True),
        sa.Column('external_id', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id'),
        sa.UniqueConstraint('idempotency_key'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cash_inflow_notifications', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cash_inflow_notifications_status'), ['status'], unique=False)
        batch_op.create_index('ix_cash_notifications_status_created', ['status', 'created_at'], unique=False)

    op.create_table('local_cash_inflows',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('idempotency_key', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('local_cash_inflows')
    op.drop_table('cash_inflow_notifications')
    op.drop_table('stock_transactions')
    op.drop_table('sales')
    op.drop_table('product_history_entries')
    op.drop_table('products')
    op.drop_table('document_sequences')
    op.drop_table('recycling_processes')
    op.drop_table('stock_history_entries')
    op.drop_table('stock_pools')
