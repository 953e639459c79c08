"""create_subscriptions_and_processed_webhook_events

Revision ID: 4b1f2c9e7a10
Revises:
Create Date: 2026-10-19 09:12:44.318201

Tables:
- subscriptions: One row per account with plan, status, usage counters/limits
  and Stripe IDs. version backs optimistic concurrency, last_event_at orders
  webhook application.
- processed_webhook_events: Dedup log for inbound Stripe events.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b1f2c9e7a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create billing tables with indexes and constraints."""

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('account_id', sa.String(64), nullable=False),

        # Subscription details
        sa.Column('plan', sa.String(20), nullable=False, server_default='free'),
        sa.Column('status', sa.String(20), nullable=False, server_default='inactive'),

        # External platform IDs (nullable until checkout)
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True),
        sa.Column('stripe_price_id', sa.String(255), nullable=True),

        # Billing cycle dates
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.DateTime(timezone=True), nullable=True),

        # Usage counters and limits
        sa.Column('profiles_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('proposals_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('profiles_limit', sa.Integer(), nullable=False),
        sa.Column('proposals_limit', sa.Integer(), nullable=False),

        # Webhook ordering and optimistic concurrency
        sa.Column('last_event_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),

        # Standard timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),

        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('profiles_used >= 0', name='ck_subscription_profiles_used'),
        sa.CheckConstraint('proposals_used >= 0', name='ck_subscription_proposals_used'),
    )

    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_account_id', 'subscriptions', ['account_id'], unique=True)
    op.create_index('ix_subscriptions_plan', 'subscriptions', ['plan'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_stripe_customer_id', 'subscriptions', ['stripe_customer_id'], unique=True)
    op.create_index('ix_subscriptions_stripe_subscription_id', 'subscriptions', ['stripe_subscription_id'])
    op.create_index('idx_subscription_status_plan', 'subscriptions', ['status', 'plan'])

    op.create_table(
        'processed_webhook_events',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('outcome', sa.String(20), nullable=False),
        sa.Column('account_id', sa.String(64), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_index('ix_processed_webhook_events_id', 'processed_webhook_events', ['id'])
    op.create_index('ix_processed_webhook_events_event_id', 'processed_webhook_events', ['event_id'], unique=True)
    op.create_index('ix_processed_webhook_events_account_id', 'processed_webhook_events', ['account_id'])


def downgrade() -> None:
    """Remove billing tables."""
    op.drop_table('processed_webhook_events')
    op.drop_table('subscriptions')
