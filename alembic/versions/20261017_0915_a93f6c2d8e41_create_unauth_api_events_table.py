"""create_unauth_api_events_table

Revision ID: a93f6c2d8e41
Revises: 5d0b7a9e3f12
Create Date: 2026-10-17 09:15:42.118730

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = 'a93f6c2d8e41'
down_revision: Union[str, None] = '5d0b7a9e3f12'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create unauth_api_events for outcomes without an authenticated caller."""
    op.create_table(
        'unauth_api_events',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('outcome', sa.String(length=10), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=10), nullable=False),
        sa.Column('path', sa.Text(), nullable=False),
        sa.Column('query', sa.Text(), nullable=False, server_default=''),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('code', sa.String(length=50), nullable=True),
        sa.Column('public_message', sa.Text(), nullable=False),
        sa.Column('internal_message', sa.Text(), nullable=True),
        sa.Column('details', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("outcome IN ('success', 'error')", name='ck_unauth_api_events_outcome'),
    )

    # Create indexes
    op.create_index('idx_unauth_api_events_created_at', 'unauth_api_events', ['created_at'])
    op.create_index('idx_unauth_api_events_path', 'unauth_api_events', ['path'])


def downgrade() -> None:
    """Drop unauth_api_events table."""
    op.drop_index('idx_unauth_api_events_path', table_name='unauth_api_events')
    op.drop_index('idx_unauth_api_events_created_at', table_name='unauth_api_events')
    op.drop_table('unauth_api_events')
