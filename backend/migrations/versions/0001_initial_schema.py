"""initial document schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete document management schema:
- users / session_tokens: authentication
- invoices (+ products), purchase_orders (+ purchase_order_items),
  stock_register_entries: owned documents with edit window columns
- edit_requests: owner requests for renewed edit permission
- saved_searches: per-user advanced search filters
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _document_columns():
    """Columns every editable document carries (id, owner, edit window, timestamps)."""
    return [
        sa.Column('id', sa.String(length=191), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('allow_editing', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('editable_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('ADMIN', 'USER', name='user_role', native_enum=False),
                  nullable=False, server_default='USER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # invoices + products
    # ============================================================================
    op.create_table(
        'invoices',
        *_document_columns(),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('company_name', sa.String(length=191), nullable=False),
        sa.Column('order_or_serial_number', sa.String(length=191), nullable=True),
        sa.Column('vendor_name', sa.String(length=191), nullable=False),
        sa.Column('contact_number', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=191), nullable=False),
        sa.Column('additional_details', sa.Text(), nullable=True),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('invoice_file_url', sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_invoices_owner_id', 'invoices', ['owner_id'])
    op.create_index('ix_invoices_created_at', 'invoices', ['created_at'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.String(length=191), nullable=False),
        sa.Column('product_name', sa.String(length=191), nullable=False),
        sa.Column('serial_number', sa.String(length=191), nullable=True),
        sa.Column('warranty_years', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_invoice_id', 'products', ['invoice_id'])

    # ============================================================================
    # purchase_orders + purchase_order_items
    # ============================================================================
    op.create_table(
        'purchase_orders',
        *_document_columns(),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('from_address', sa.String(length=191), nullable=False),
        sa.Column('vendor_name', sa.String(length=191), nullable=False),
        sa.Column('contact_number', sa.String(length=64), nullable=True),
        sa.Column('gst_number', sa.String(length=64), nullable=True),
        sa.Column('purchase_order_number', sa.String(length=191), nullable=False),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('purchase_order_file_url', sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_purchase_orders_owner_id', 'purchase_orders', ['owner_id'])
    op.create_index('ix_purchase_orders_created_at', 'purchase_orders', ['created_at'])
    op.create_index('ix_purchase_orders_purchase_order_number', 'purchase_orders', ['purchase_order_number'])

    op.create_table(
        'purchase_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_id', sa.String(length=191), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('rate', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_order_items_purchase_order_id', 'purchase_order_items', ['purchase_order_id'])

    # ============================================================================
    # stock_register_entries
    # ============================================================================
    op.create_table(
        'stock_register_entries',
        *_document_columns(),
        sa.Column('article_name', sa.String(length=191), nullable=False),
        sa.Column('entry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('company_name', sa.String(length=191), nullable=True),
        sa.Column('address', sa.String(length=191), nullable=True),
        sa.Column('product_details', sa.Text(), nullable=True),
        sa.Column('voucher_or_bill_number', sa.String(length=191), nullable=False),
        sa.Column('cost_rate', sa.Float(), nullable=False),
        sa.Column('cgst', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sgst', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_rate', sa.Float(), nullable=False),
        sa.Column('receipt_number', sa.String(length=191), nullable=True),
        sa.Column('page_number', sa.Integer(), nullable=True),
        sa.Column('billing_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_stock_register_entries_owner_id', 'stock_register_entries', ['owner_id'])
    op.create_index('ix_stock_register_entries_created_at', 'stock_register_entries', ['created_at'])

    # ============================================================================
    # edit_requests
    # ============================================================================
    op.create_table(
        'edit_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'REJECTED',
                                    name='edit_request_status', native_enum=False),
                  nullable=False, server_default='PENDING'),
        sa.Column('request_message', sa.Text(), nullable=False),
        sa.Column('response_message', sa.Text(), nullable=True),
        sa.Column('document_type', sa.Enum('INVOICE', 'PURCHASE_ORDER', 'STOCK_REGISTER',
                                           name='edit_request_document_type', native_enum=False),
                  nullable=False),
        sa.Column('document_id', sa.String(length=191), nullable=False),
        sa.Column('requested_by_id', sa.Integer(), nullable=False),
        sa.Column('admin_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['requested_by_id'], ['users.id']),
        sa.ForeignKeyConstraint(['admin_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_edit_requests_document_id', 'edit_requests', ['document_id'])
    op.create_index('ix_edit_requests_requested_by_id', 'edit_requests', ['requested_by_id'])
    op.create_index('ix_edit_requests_status_created', 'edit_requests', ['status', 'created_at'])
    # At most one PENDING request per document
    op.create_index(
        'uq_edit_requests_one_pending',
        'edit_requests',
        ['document_type', 'document_id'],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # ============================================================================
    # saved_searches
    # ============================================================================
    op.create_table(
        'saved_searches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('search_params', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_saved_searches_user_id', 'saved_searches', ['user_id'])


def downgrade():
    op.drop_table('saved_searches')
    op.drop_index('uq_edit_requests_one_pending', table_name='edit_requests')
    op.drop_table('edit_requests')
    op.drop_table('stock_register_entries')
    op.drop_table('purchase_order_items')
    op.drop_table('purchase_orders')
    op.drop_table('products')
    op.drop_table('invoices')
    op.drop_table('session_tokens')
    op.drop_table('users')
