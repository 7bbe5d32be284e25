"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-01-01 00:00:00.000000

Creates the asset request portal schema:
- profiles: employees, managers and admins (manager_id self reference, SET NULL)
- items: catalog with stock balance, unit cost and low-stock threshold
- stock_receipts: append-only stock receipt log
- requests: request header with lifecycle status and actor/timestamp columns
- request_items: line items with snapshotted unit cost
- request_costs: ancillary embroidery / shipping costs (one row per request)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('branch', sa.String(length=120), nullable=True),
        sa.Column('cost_centre', sa.String(length=120), nullable=True),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("role IN ('employee', 'manager', 'admin')", name='ck_profiles_role'),
        sa.ForeignKeyConstraint(['manager_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_profiles_manager_id', 'profiles', ['manager_id'])

    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('supplier', sa.String(length=255), nullable=True),
        sa.Column('stock_balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_cost', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('stock_balance >= 0', name='ck_items_stock_balance_non_negative'),
        sa.CheckConstraint('unit_cost IS NULL OR unit_cost >= 0', name='ck_items_unit_cost_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_category_name', 'items', ['category', 'name'])

    op.create_table(
        'stock_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('received_date', sa.Date(), nullable=False),
        sa.Column('received_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_stock_receipts_quantity_positive'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.ForeignKeyConstraint(['received_by'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_receipts_item_received', 'stock_receipts', ['item_id', 'received_date'])

    op.create_table(
        'requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('dispatched_by', sa.Integer(), nullable=True),
        sa.Column('dispatched_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'dispatched', 'rejected')",
            name='ck_requests_status',
        ),
        sa.ForeignKeyConstraint(['employee_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['rejected_by'], ['profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['dispatched_by'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_requests_employee_created', 'requests', ['employee_id', 'created_at'])
    op.create_index('ix_requests_status_approved', 'requests', ['status', 'approved_at'])

    op.create_table(
        'request_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('unit_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.CheckConstraint('quantity BETWEEN 1 AND 10', name='ck_request_items_quantity_range'),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_request_items_request_id', 'request_items', ['request_id'])

    op.create_table(
        'request_costs',
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('embroidery_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('shipping_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('embroidery_cost >= 0', name='ck_request_costs_embroidery_non_negative'),
        sa.CheckConstraint('shipping_cost >= 0', name='ck_request_costs_shipping_non_negative'),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id']),
        sa.PrimaryKeyConstraint('request_id')
    )


def downgrade():
    op.drop_table('request_costs')
    op.drop_index('ix_request_items_request_id', table_name='request_items')
    op.drop_table('request_items')
    op.drop_index('ix_requests_status_approved', table_name='requests')
    op.drop_index('ix_requests_employee_created', table_name='requests')
    op.drop_table('requests')
    op.drop_index('ix_stock_receipts_item_received', table_name='stock_receipts')
    op.drop_table('stock_receipts')
    op.drop_index('ix_items_category_name', table_name='items')
    op.drop_table('items')
    op.drop_index('ix_profiles_manager_id', table_name='profiles')
    op.drop_table('profiles')
