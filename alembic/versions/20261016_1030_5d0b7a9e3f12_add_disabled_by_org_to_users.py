"""add_disabled_by_org_to_users

Revision ID: 5d0b7a9e3f12
Revises: e4a85f21d6c9
Create Date: 2026-10-16 10:30:08.664251

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5d0b7a9e3f12'
down_revision: Union[str, None] = 'e4a85f21d6c9'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Record why an inactive user is inactive.

    Existing inactive users are left at false: nobody disabled before this
    revision is re-activated by an organization enable.
    """
    op.add_column(
        'users',
        sa.Column('disabled_by_org', sa.Boolean(), nullable=True, server_default=sa.text('false')),
    )
    op.create_index(
        'idx_users_org_disabled_by_org',
        'users',
        ['organization_id', 'disabled_by_org'],
    )


def downgrade() -> None:
    """Drop disabled_by_org."""
    op.drop_index('idx_users_org_disabled_by_org', table_name='users')
    op.drop_column('users', 'disabled_by_org')
