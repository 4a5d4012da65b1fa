"""create notification tables

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-16 09:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f20b31'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), 'sqlite')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
            comment='Timestamp of record creation',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
            comment='Timestamp of last update',
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column(
            'user_id',
            sa.String(length=255),
            nullable=True,
            comment='Owning user; NULL for broadcast/system notifications',
        ),
        sa.Column('channel', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=10), nullable=False),
        sa.Column('template_id', sa.String(length=100), nullable=True),
        sa.Column('template_data', JSON_TYPE, nullable=True),
        sa.Column('subject', sa.String(length=500), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('body_html', sa.Text(), nullable=True),
        sa.Column('recipient_email', sa.String(length=320), nullable=True),
        sa.Column('recipient_phone', sa.String(length=32), nullable=True),
        sa.Column('recipient_telegram_chat_id', sa.String(length=64), nullable=True),
        sa.Column('recipient_device_token', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column(
            'status_message',
            sa.Text(),
            nullable=True,
            comment='Last delivery error, if any',
        ),
        sa.Column('provider', sa.String(length=50), nullable=True),
        sa.Column('provider_message_id', sa.String(length=255), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('max_retries', sa.Integer(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('campaign_id', sa.String(length=64), nullable=True),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.Column(
            'deleted_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='Timestamp of soft deletion',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications')),
    )
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'read_at'])
    op.create_index('ix_notifications_status', 'notifications', ['status'])
    op.create_index(op.f('ix_notifications_campaign_id'), 'notifications', ['campaign_id'])

    op.create_table(
        'notification_delivery_attempts',
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v4 primary key'),
        sa.Column('notification_id', sa.String(length=64), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False, comment='1-based'),
        sa.Column('channel', sa.String(length=20), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('provider_message_id', sa.String(length=255), nullable=True),
        sa.Column('error_code', sa.String(length=50), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retryable', sa.Boolean(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_delivery_attempts')),
    )
    op.create_index(
        'ix_delivery_attempts_notification',
        'notification_delivery_attempts',
        ['notification_id', 'attempt'],
    )

    op.create_table(
        'notification_preferences',
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v4 primary key'),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('email_enabled', sa.Boolean(), nullable=False),
        sa.Column('sms_enabled', sa.Boolean(), nullable=False),
        sa.Column('whatsapp_enabled', sa.Boolean(), nullable=False),
        sa.Column('telegram_enabled', sa.Boolean(), nullable=False),
        sa.Column('push_enabled', sa.Boolean(), nullable=False),
        sa.Column('marketing_enabled', sa.Boolean(), nullable=False),
        sa.Column('transactional_enabled', sa.Boolean(), nullable=False),
        sa.Column('security_enabled', sa.Boolean(), nullable=False),
        sa.Column('preferred_email', sa.String(length=320), nullable=True),
        sa.Column('preferred_phone', sa.String(length=32), nullable=True),
        sa.Column('telegram_chat_id', sa.String(length=64), nullable=True),
        sa.Column('push_device_token', sa.String(length=255), nullable=True),
        sa.Column('quiet_hours_enabled', sa.Boolean(), nullable=False),
        sa.Column('quiet_hours_start', sa.String(length=5), nullable=True),
        sa.Column('quiet_hours_end', sa.String(length=5), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_preferences')),
        sa.UniqueConstraint('user_id', name=op.f('uq_notification_preferences_user_id')),
    )

    op.create_table(
        'notification_jobs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('notification_id', sa.String(length=64), nullable=False),
        sa.Column('state', sa.String(length=20), nullable=False),
        sa.Column(
            'priority',
            sa.Integer(),
            nullable=False,
            comment='1=urgent .. 4=low; lower is claimed first',
        ),
        sa.Column('data', JSON_TYPE, nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('retry_limit', sa.Integer(), nullable=False),
        sa.Column('retry_delay', sa.Float(), nullable=False),
        sa.Column('retry_backoff', sa.Boolean(), nullable=False),
        sa.Column('start_after', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expire_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('output', JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_jobs')),
    )
    op.create_index(
        'ix_notification_jobs_claim',
        'notification_jobs',
        ['state', 'priority', 'created_at'],
    )
    op.create_index(
        op.f('ix_notification_jobs_notification_id'),
        'notification_jobs',
        ['notification_id'],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index(op.f('ix_notification_jobs_notification_id'), table_name='notification_jobs')
    op.drop_index('ix_notification_jobs_claim', table_name='notification_jobs')
    op.drop_table('notification_jobs')

    op.drop_table('notification_preferences')

    op.drop_index('ix_delivery_attempts_notification', table_name='notification_delivery_attempts')
    op.drop_table('notification_delivery_attempts')

    op.drop_index(op.f('ix_notifications_campaign_id'), table_name='notifications')
    op.drop_index('ix_notifications_status', table_name='notifications')
    op.drop_index('ix_notifications_user_read', table_name='notifications')
    op.drop_index('ix_notifications_user_created', table_name='notifications')
    op.drop_table('notifications')
