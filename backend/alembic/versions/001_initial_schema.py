"""Initial Flowless schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _owner_columns():
    return [
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('organization_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _owner_indexes(table: str):
    op.create_index(f'ix_{table}_user_id', table, ['user_id'], unique=False)
    op.create_index(f'ix_{table}_organization_id', table, ['organization_id'], unique=False)


def upgrade() -> None:
    """Create event store, workflow, promo, credential, segment, campaign and webhook tables."""
    # Event store. camelCase column names are part of the segment SQL surface.
    op.create_table(
        'Event',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('properties', sa.JSON(), nullable=False),
        sa.Column('userId', sa.String(length=255), nullable=True),
        sa.Column('organizationId', sa.String(length=255), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('path', sa.String(length=2048), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=True),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('itemName', sa.String(length=255), nullable=True),
        sa.Column('itemId', sa.String(length=255), nullable=True),
        sa.Column('itemCategory', sa.String(length=255), nullable=True),
        sa.Column('pageTitle', sa.String(length=512), nullable=True),
        sa.Column('planId', sa.String(length=255), nullable=True),
        sa.Column('userPhone', sa.String(length=64), nullable=True),
        sa.Column('ipAddress', sa.String(length=64), nullable=True),
        sa.Column('userAgent', sa.Text(), nullable=True),
        sa.Column('referrer', sa.String(length=2048), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_Event_userId', 'Event', ['userId'], unique=False)
    op.create_index('ix_Event_organizationId', 'Event', ['organizationId'], unique=False)
    op.create_index('ix_Event_timestamp', 'Event', ['timestamp'], unique=False)
    op.create_index('ix_event_org_category_name', 'Event', ['organizationId', 'category', 'name'], unique=False)

    # Workflows
    op.create_table(
        'workflows',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger', sa.JSON(), nullable=False),
        sa.Column('actions', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_owner_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    _owner_indexes('workflows')

    op.create_table(
        'workflow_executions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('workflow_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('trigger_event', sa.JSON(), nullable=True),
        sa.Column('results', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_duration_ms', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['workflow_id'], ['workflows.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workflow_executions_workflow_id', 'workflow_executions', ['workflow_id'], unique=False)
    op.create_index('ix_workflow_executions_started_at', 'workflow_executions', ['started_at'], unique=False)

    op.create_table(
        'workflow_steps',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('execution_id', sa.String(length=36), nullable=False),
        sa.Column('step_order', sa.Integer(), nullable=False),
        sa.Column('step_type', sa.String(length=32), nullable=False),
        sa.Column('step_name', sa.String(length=255), nullable=False),
        sa.Column('action_type', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('input_data', sa.JSON(), nullable=True),
        sa.Column('output_data', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['execution_id'], ['workflow_executions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workflow_steps_execution_id', 'workflow_steps', ['execution_id'], unique=False)

    # Promo codes
    op.create_table(
        'promo_code_batches',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', sa.Float(), nullable=False),
        sa.Column('min_order_value', sa.Float(), nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('total_codes', sa.Integer(), nullable=False),
        sa.Column('used_codes', sa.Integer(), nullable=False),
        *_owner_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    _owner_indexes('promo_code_batches')

    op.create_table(
        'promo_codes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('batch_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_used', sa.Boolean(), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('used_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['batch_id'], ['promo_code_batches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_index('ix_promo_codes_batch_id', 'promo_codes', ['batch_id'], unique=False)
    op.create_index('ix_promo_codes_is_used', 'promo_codes', ['is_used'], unique=False)

    # Credentials
    op.create_table(
        'integration_credentials',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('provider', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_owner_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    _owner_indexes('integration_credentials')
    op.create_index('ix_integration_credentials_provider', 'integration_credentials', ['provider'], unique=False)

    op.create_table(
        'integration_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('credential_id', sa.String(length=36), nullable=True),
        sa.Column('operation', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['credential_id'], ['integration_credentials.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_integration_logs_credential_id', 'integration_logs', ['credential_id'], unique=False)

    # Segments
    op.create_table(
        'user_segments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('user_count', sa.Integer(), nullable=False),
        sa.Column('criteria', sa.JSON(), nullable=True),
        *_owner_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    _owner_indexes('user_segments')

    # Campaigns and push
    op.create_table(
        'notification_campaigns',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('target_segment', sa.String(length=255), nullable=False),
        sa.Column('segment_id', sa.String(length=36), nullable=True),
        sa.Column('estimated_users', sa.Integer(), nullable=False),
        sa.Column('sent_count', sa.Integer(), nullable=False),
        sa.Column('offer_code', sa.String(length=64), nullable=True),
        sa.Column('url', sa.String(length=2048), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        *_owner_columns(),
        sa.ForeignKeyConstraint(['segment_id'], ['user_segments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    _owner_indexes('notification_campaigns')

    op.create_table(
        'campaign_deliveries',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('campaign_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('push_endpoint', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['notification_campaigns.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_campaign_deliveries_campaign_id', 'campaign_deliveries', ['campaign_id'], unique=False)
    op.create_index('ix_campaign_deliveries_user_id', 'campaign_deliveries', ['user_id'], unique=False)

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('endpoint', sa.String(length=2048), nullable=False),
        sa.Column('p256dh', sa.Text(), nullable=False),
        sa.Column('auth', sa.Text(), nullable=False),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_owner_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('endpoint')
    )
    _owner_indexes('push_subscriptions')

    # Webhooks
    op.create_table(
        'webhooks',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('url', sa.String(length=2048), nullable=False),
        sa.Column('secret', sa.String(length=128), nullable=False),
        sa.Column('events', sa.JSON(), nullable=False),
        sa.Column('event_name', sa.String(length=255), nullable=True),
        sa.Column('filter_item_name', sa.String(length=255), nullable=True),
        sa.Column('filter_item_category', sa.String(length=255), nullable=True),
        sa.Column('filter_item_id', sa.String(length=255), nullable=True),
        sa.Column('filter_value', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('failure_count', sa.Integer(), nullable=False),
        sa.Column('last_triggered', sa.DateTime(timezone=True), nullable=True),
        *_owner_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    _owner_indexes('webhooks')


def downgrade() -> None:
    """Drop all Flowless tables."""
    for table in (
        'webhooks',
        'push_subscriptions',
        'campaign_deliveries',
        'notification_campaigns',
        'user_segments',
        'integration_logs',
        'integration_credentials',
        'promo_codes',
        'promo_code_batches',
        'workflow_steps',
        'workflow_executions',
        'workflows',
        'Event',
    ):
        op.drop_table(table)
