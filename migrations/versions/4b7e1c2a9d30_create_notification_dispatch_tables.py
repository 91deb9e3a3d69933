"""create_notification_dispatch_tables

Revision ID: 4b7e1c2a9d30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4b7e1c2a9d30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, notifications, deliveries, preferences and devices."""

    # --- users (recipients; written by the accounts service) ---
    op.create_table('users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('phone_verified', sa.Boolean(), nullable=False,
                  server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    # --- notifications (in-app notification center) ---
    op.create_table('notifications',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data', postgresql.JSONB(), nullable=True,
                  server_default='{}'),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False,
                  server_default='normal'),
        sa.Column('is_read', sa.Boolean(), nullable=False,
                  server_default='false'),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_created', 'notifications',
                    ['user_id', 'created_at'])
    op.create_index('idx_notifications_user_unread', 'notifications',
                    ['user_id'],
                    postgresql_where=sa.text('is_read = FALSE'))

    # --- notification_deliveries (one row per dispatch and channel) ---
    op.create_table('notification_deliveries',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('notification_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('channel', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False,
                  server_default='pending'),
        sa.Column('error_kind', sa.String(length=30), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False,
                  server_default='0'),
        sa.Column('provider_message_id', sa.String(length=255),
                  nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notification_id', 'channel'),
    )
    op.create_index('ix_notification_deliveries_notification_id',
                    'notification_deliveries', ['notification_id'])
    op.create_index('ix_notification_deliveries_user_id',
                    'notification_deliveries', ['user_id'])

    # --- notification_preferences (one row per user and type) ---
    op.create_table('notification_preferences',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('notification_type', sa.String(length=50), nullable=False),
        sa.Column('channel_push', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('channel_email', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('channel_sms', sa.Boolean(), nullable=False,
                  server_default='false'),
        sa.Column('channel_in_app', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'notification_type'),
    )
    op.create_index('ix_notification_preferences_user_id',
                    'notification_preferences', ['user_id'])

    # --- device_registrations (web push subscriptions, mobile tokens) ---
    op.create_table('device_registrations',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.String(length=20), nullable=False),
        sa.Column('token', sa.Text(), nullable=True),
        sa.Column('endpoint', sa.Text(), nullable=True),
        sa.Column('p256dh', sa.Text(), nullable=True),
        sa.Column('auth', sa.String(length=255), nullable=True),
        sa.Column('registered_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('device_id'),
    )
    op.create_index('ix_device_registrations_user_id',
                    'device_registrations', ['user_id'])


def downgrade() -> None:
    """Drop the notification dispatch tables."""
    op.drop_index('ix_device_registrations_user_id',
                  table_name='device_registrations')
    op.drop_table('device_registrations')
    op.drop_index('ix_notification_preferences_user_id',
                  table_name='notification_preferences')
    op.drop_table('notification_preferences')
    op.drop_index('ix_notification_deliveries_user_id',
                  table_name='notification_deliveries')
    op.drop_index('ix_notification_deliveries_notification_id',
                  table_name='notification_deliveries')
    op.drop_table('notification_deliveries')
    op.drop_index('idx_notifications_user_unread', table_name='notifications')
    op.drop_index('ix_notifications_user_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('users')
