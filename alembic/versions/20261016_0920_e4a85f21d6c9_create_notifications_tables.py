"""create_notifications_tables

Revision ID: e4a85f21d6c9
Revises: b71e0d93c4a5
Create Date: 2026-10-16 09:20:57.015388

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = 'e4a85f21d6c9'
down_revision: Union[str, None] = 'b71e0d93c4a5'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create notifications and notification_recipients tables."""
    op.create_table(
        'notifications',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('org_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True),
        sa.Column('entity', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.String(length=255), nullable=True),
        sa.Column('href', sa.String(length=500), nullable=True),
        sa.Column('metadata', JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_notifications_org_id', 'notifications', ['org_id'])

    op.create_table(
        'notification_recipients',
        sa.Column('notification_id', UUID(as_uuid=True), sa.ForeignKey('notifications.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Unread lookups per user
    op.create_index(
        'idx_notification_recipients_user_unread',
        'notification_recipients',
        ['user_id', 'read_at'],
    )
    op.create_index(
        'idx_notification_recipients_user_created',
        'notification_recipients',
        ['user_id', 'created_at'],
    )


def downgrade() -> None:
    """Drop notification tables."""
    op.drop_index('idx_notification_recipients_user_created', table_name='notification_recipients')
    op.drop_index('idx_notification_recipients_user_unread', table_name='notification_recipients')
    op.drop_table('notification_recipients')
    op.drop_index('idx_notifications_org_id', table_name='notifications')
    op.drop_table('notifications')
