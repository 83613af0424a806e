# alembic/versions/001_initial_migration.py
"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

OPEN_STATUSES = "status IN ('PENDING', 'SUBMITTED', 'UNDER_REVIEW')"


def upgrade() -> None:
    # Create subscription_tiers table
    op.create_table(
        'subscription_tiers',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('country', sa.String(2), nullable=False, index=True),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('monthly_price', sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column('product_limit', sa.Integer, nullable=False, server_default=sa.text("-1")),
        sa.Column('order_limit_per_month', sa.Integer, nullable=False, server_default=sa.text("-1")),
        sa.Column('storage_limit_mb', sa.Integer, nullable=False, server_default=sa.text("-1")),
        sa.Column('plan_days', sa.Integer, nullable=False, server_default=sa.text("30")),
        sa.Column('overdue_grace_days', sa.Integer),
        sa.Column('tier_order', sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column('is_trial', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )

    # Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('country', sa.String(2), nullable=False, index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default=sa.text("'TRIAL'"), index=True),
        sa.Column('current_tier_id', sa.Uuid(as_uuid=True), sa.ForeignKey('subscription_tiers.id')),
        sa.Column('trial_ends_at', sa.DateTime),
        sa.Column('subscription_starts_at', sa.DateTime),
        sa.Column('subscription_ends_at', sa.DateTime),
        sa.Column('overdue_since', sa.DateTime),
        sa.Column('paused_at', sa.DateTime),
        sa.Column('cancelled_at', sa.DateTime),
        sa.Column('cancellation_reason', sa.Text),
        sa.Column('version', sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.CheckConstraint(
            "status IN ('TRIAL', 'ACTIVE', 'OVERDUE', 'SUSPENDED', 'PAUSED', 'CANCELLED')",
            name='tenants_status_check',
        ),
    )

    # Create payment_invoices table
    op.create_table(
        'payment_invoices',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('invoice_number', sa.String(32), unique=True, nullable=False),
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('tier_id', sa.Uuid(as_uuid=True), sa.ForeignKey('subscription_tiers.id'), nullable=False),
        sa.Column('previous_tier_id', sa.Uuid(as_uuid=True), sa.ForeignKey('subscription_tiers.id')),
        sa.Column('invoice_type', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default=sa.text("'PENDING'"), index=True),
        sa.Column('receipt_ref', sa.String(1024)),
        sa.Column('submission_date', sa.DateTime),
        sa.Column('review_date', sa.DateTime),
        sa.Column('reviewed_by', sa.String(100)),
        sa.Column('rejection_reason', sa.Text),
        sa.Column('due_date', sa.DateTime, nullable=False, index=True),
        sa.Column('billing_period_start', sa.DateTime),
        sa.Column('billing_period_end', sa.DateTime),
        sa.Column('resets_billing_period', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING', 'SUBMITTED', 'UNDER_REVIEW', 'APPROVED', 'REJECTED')",
            name='payment_invoices_status_check',
        ),
        sa.CheckConstraint(
            "invoice_type IN ('TRIAL_CONVERSION', 'RENEWAL', 'UPGRADE', 'DOWNGRADE')",
            name='payment_invoices_invoice_type_check',
        ),
    )

    # At most one open invoice per tenant
    op.create_index(
        'uq_payment_invoices_open_per_tenant',
        'payment_invoices',
        ['tenant_id'],
        unique=True,
        postgresql_where=sa.text(OPEN_STATUSES),
        sqlite_where=sa.text(OPEN_STATUSES),
    )

    # Create invoice_sequences table
    op.create_table(
        'invoice_sequences',
        sa.Column('name', sa.String(50), primary_key=True),
        sa.Column('value', sa.Integer, nullable=False, server_default=sa.text("0")),
    )
    op.bulk_insert(
        sa.table('invoice_sequences', sa.column('name', sa.String), sa.column('value', sa.Integer)),
        [{'name': 'invoice', 'value': 0}],
    )

    # Usage sources counted by the enforcement gate
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('status', sa.String(32), nullable=False, server_default=sa.text("'PENDING'"), index=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'stored_files',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('size_bytes', sa.BigInteger, nullable=False, server_default=sa.text("0")),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )


def downgrade() -> None:
    op.drop_table('stored_files')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('invoice_sequences')
    op.drop_index('uq_payment_invoices_open_per_tenant', table_name='payment_invoices')
    op.drop_table('payment_invoices')
    op.drop_table('tenants')
    op.drop_table('subscription_tiers')
