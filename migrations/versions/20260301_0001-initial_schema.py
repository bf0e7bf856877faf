"""initial_schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-03-01 00:01:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False))
    return columns


def upgrade() -> None:
    # Tenancy and accounts
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('timezone', sa.String(), nullable=False, server_default='America/New_York'),
        sa.Column('currency', sa.String(), nullable=False, server_default='USD'),
        sa.Column('subscription_tier', sa.String(), nullable=False, server_default='starter'),
        sa.Column('subscription_status', sa.String(), nullable=False, server_default='trial'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('auth_provider', sa.String(), nullable=False, server_default='email'),
        sa.Column('email_verified', sa.DateTime(timezone=True), nullable=True),
        sa.Column('organization_id', sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    op.create_table(
        'verification_tokens',
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('identifier', sa.String(), nullable=False),
        sa.Column('expires', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('token'),
    )
    op.create_index('ix_verification_tokens_identifier', 'verification_tokens', ['identifier'])

    # Accounts receivable
    op.create_table(
        'clients',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('payment_score', sa.Integer(), nullable=True),
        sa.Column('avg_days_to_payment', sa.Float(), nullable=True),
        sa.Column('risk_level', sa.String(), nullable=True),
        sa.Column('total_invoiced', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_paid', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_outstanding', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_organization_id', 'clients', ['organization_id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=True),
        sa.Column('invoice_number', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('amount_paid', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('issue_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='sent'),
        sa.Column('recovery_likelihood', sa.Float(), nullable=True),
        sa.Column('predicted_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('risk_level', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='manual'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoices_organization_id', 'invoices', ['organization_id'])
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'])
    op.create_index('ix_invoices_org_status', 'invoices', ['organization_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('invoice_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('method', sa.String(), nullable=True),
        sa.Column('reference', sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])

    op.create_table(
        'ai_recommendations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=True),
        sa.Column('invoice_id', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('reasoning', sa.Text(), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ai_recommendations_organization_id', 'ai_recommendations', ['organization_id'])

    # Client portal
    op.create_table(
        'website_projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('project_name', sa.String(), nullable=False),
        sa.Column('project_type', sa.String(), nullable=False),
        sa.Column('existing_url', sa.String(), nullable=True),
        sa.Column('target_audience', sa.Text(), nullable=True),
        sa.Column('desired_features', sa.JSON(), nullable=True),
        sa.Column('design_preferences', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='submitted'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deployed_url', sa.String(), nullable=True),
        sa.Column('repository_url', sa.String(), nullable=True),
        sa.Column('deployment_platform', sa.String(), nullable=True),
        sa.Column('estimated_completion', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_completion', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_website_projects_organization_id', 'website_projects', ['organization_id'])

    op.create_table(
        'project_notes',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=False),
        sa.Column('author_id', sa.String(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['project_id'], ['website_projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_project_notes_project_id', 'project_notes', ['project_id'])

    op.create_table(
        'change_requests',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=False),
        sa.Column('requester_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False, server_default='normal'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('resolution', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['website_projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['requester_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_change_requests_project_id', 'change_requests', ['project_id'])

    op.create_table(
        'leads',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('business_name', sa.String(), nullable=False),
        sa.Column('contact_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('has_website', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('website_url', sa.String(), nullable=True),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('challenges', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='new'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('analysis_score', sa.Integer(), nullable=True),
        sa.Column('analysis_data', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_email', 'leads', ['email'])

    # Billing
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('plan', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='trialing'),
        sa.Column('price_monthly', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(), nullable=True),
        sa.Column('stripe_price_id', sa.String(), nullable=True),
        sa.Column('trial_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_subscription_id'),
    )
    op.create_index('ix_subscriptions_organization_id', 'subscriptions', ['organization_id'])
    op.create_index('ix_subscriptions_stripe_customer_id', 'subscriptions', ['stripe_customer_id'])

    # Business Chauffeur
    op.create_table(
        'business_insights',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('action_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('action_taken', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('action_details', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_business_insights_organization_id', 'business_insights', ['organization_id'])

    op.create_table(
        'business_metrics',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('metric_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revenue', sa.Integer(), nullable=True),
        sa.Column('transactions', sa.Integer(), nullable=True),
        sa.Column('review_count', sa.Integer(), nullable=True),
        sa.Column('avg_rating', sa.Float(), nullable=True),
        sa.Column('source', sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_business_metrics_org_date', 'business_metrics', ['organization_id', 'metric_date'])

    op.create_table(
        'integrations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('external_id', sa.String(), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_status', sa.String(), nullable=True),
        sa.Column('sync_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_integrations_organization_id', 'integrations', ['organization_id'])

    op.create_table(
        'employees',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='Staff'),
        sa.Column('department', sa.String(), nullable=False, server_default='General'),
        sa.Column('hire_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hourly_rate', sa.Float(), nullable=True),
        sa.Column('performance_score', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('external_id', sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_employees_organization_id', 'employees', ['organization_id'])
    op.create_index('ix_employees_external_id', 'employees', ['external_id'])

    op.create_table(
        'payroll_snapshots',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('pay_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_gross_pay', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_net_pay', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_tax_withholdings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_benefits_cost', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_overtime_cost', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('employee_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('department_breakdown', sa.JSON(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='manual'),
        sa.Column('external_id', sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payroll_snapshots_organization_id', 'payroll_snapshots', ['organization_id'])

    op.create_table(
        'payroll_entries',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('snapshot_id', sa.String(), nullable=False),
        sa.Column('employee_id', sa.String(), nullable=False),
        sa.Column('gross_pay', sa.Integer(), nullable=False),
        sa.Column('net_pay', sa.Integer(), nullable=False),
        sa.Column('tax_withholdings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('regular_hours', sa.Float(), nullable=False, server_default='80'),
        sa.Column('overtime_hours', sa.Float(), nullable=False, server_default='0'),
        sa.Column('department', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['snapshot_id'], ['payroll_snapshots.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payroll_entries_snapshot_id', 'payroll_entries', ['snapshot_id'])

    # Assistant
    op.create_table(
        'chat_messages',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('context', sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_chat_messages_user_time', 'chat_messages', ['user_id', 'created_at'])

    # Reference data
    op.create_table(
        'industry_benchmarks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('industry', sa.String(), nullable=False),
        sa.Column('avg_days_to_pay', sa.Float(), nullable=False),
        sa.Column('median_days_to_pay', sa.Float(), nullable=False),
        sa.Column('std_dev_days_to_pay', sa.Float(), nullable=False),
        sa.Column('pct_pay_on_time', sa.Float(), nullable=False),
        sa.Column('pct_pay_30_days', sa.Float(), nullable=False),
        sa.Column('pct_pay_60_days', sa.Float(), nullable=False),
        sa.Column('pct_pay_90_plus', sa.Float(), nullable=False),
        sa.Column('economic_sensitivity', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('sample_size', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('industry'),
    )

    # Audit trail
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('field_name', sa.String(), nullable=True),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('organization_id', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='api'),
        sa.Column('extra_data', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_organization_id', 'audit_logs', ['organization_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_log_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_log_org_time', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index('ix_audit_log_user_time', 'audit_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('industry_benchmarks')
    op.drop_table('chat_messages')
    op.drop_table('payroll_entries')
    op.drop_table('payroll_snapshots')
    op.drop_table('employees')
    op.drop_table('integrations')
    op.drop_table('business_metrics')
    op.drop_table('business_insights')
    op.drop_table('subscriptions')
    op.drop_table('leads')
    op.drop_table('change_requests')
    op.drop_table('project_notes')
    op.drop_table('website_projects')
    op.drop_table('ai_recommendations')
    op.drop_table('payments')
    op.drop_table('invoices')
    op.drop_table('clients')
    op.drop_table('verification_tokens')
    op.drop_table('users')
    op.drop_table('organizations')
