"""Create invoice, payment, agent and commission tables

Revision ID: 001_commission_schema
Revises: None
Create Date: 2024-01-15
"""
from alembic import op
import sqlalchemy as sa

revision = '001_commission_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False, unique=True, index=True),
        sa.Column('email', sa.String(), nullable=True, unique=True, index=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='viewer'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'agents',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, index=True),
        sa.Column('contact', sa.String(), nullable=True),
        sa.Column('agent_type', sa.String(), nullable=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('registration_id', sa.String(), nullable=True, index=True),
        sa.Column('name', sa.String(), nullable=False, index=True),
        sa.Column('contact', sa.String(), nullable=True),
        sa.Column('installation_address', sa.String(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('state', sa.String(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'invoices',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('invoice_number', sa.Integer(), nullable=True, index=True),
        sa.Column('agent_id', sa.String(), sa.ForeignKey('agents.id'), nullable=True, index=True),
        sa.Column('customer_id', sa.String(), sa.ForeignKey('customers.id'), nullable=True, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('amount_eligible_for_comm', sa.Numeric(12, 2), nullable=True),
        sa.Column('eligible_amount_description', sa.Text(), nullable=True),
        sa.Column('invoice_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('first_payment_date', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('first_payment_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('full_payment_date', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('achieved_monthly_anp', sa.Numeric(14, 2), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.String(), sa.ForeignKey('invoices.id'), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('verified_by', sa.String(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'commission_tiers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_version', sa.String(), nullable=False, index=True),
        sa.Column('min_anp', sa.Numeric(14, 2), nullable=False),
        sa.Column('bonus_rate', sa.Numeric(5, 4), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('schedule_version', 'min_anp', name='uq_commission_tier_version_min'),
    )

    op.create_table(
        'commission_adjustments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('agent_id', sa.String(), nullable=False, index=True),
        sa.Column('month_period', sa.String(), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(), nullable=False),
        sa.Column('updated_by', sa.String(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'generated_commission_reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('agent_id', sa.String(), nullable=False, index=True),
        sa.Column('month_period', sa.String(), nullable=False, index=True),
        sa.Column('agent_name', sa.String(), nullable=False),
        sa.Column('agent_type', sa.String(), nullable=True),
        sa.Column('invoices_count', sa.Integer(), server_default='0'),
        sa.Column('invoice_ids', sa.JSON(), nullable=True),
        sa.Column('total_basic_commission', sa.Numeric(12, 2), server_default='0'),
        sa.Column('total_bonus_commission', sa.Numeric(12, 2), server_default='0'),
        sa.Column('total_adjustments', sa.Numeric(12, 2), server_default='0'),
        sa.Column('final_total_commission', sa.Numeric(12, 2), server_default='0'),
        sa.Column('basic_rate', sa.Numeric(5, 4), nullable=True),
        sa.Column('tier_schedule_version', sa.String(), nullable=True),
        sa.Column('generated_by', sa.String(), nullable=True),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('paid_by', sa.String(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('agent_id', 'month_period', name='uq_generated_report_agent_month'),
    )


def downgrade():
    op.drop_table('generated_commission_reports')
    op.drop_table('commission_adjustments')
    op.drop_table('commission_tiers')
    op.drop_table('payments')
    op.drop_table('invoices')
    op.drop_table('customers')
    op.drop_table('agents')
    op.drop_table('users')
