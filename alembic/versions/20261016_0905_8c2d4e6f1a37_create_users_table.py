"""create_users_table

Revision ID: 8c2d4e6f1a37
Revises: 3f9a1c7e2b10
Create Date: 2026-10-16 09:05:12.730915

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

# revision identifiers, used by Alembic.
revision: str = '8c2d4e6f1a37'
down_revision: Union[str, None] = '3f9a1c7e2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = ENUM(
    'super_admin', 'system_admin', 'organization_admin', 'member',
    name='user_role',
    create_type=False,
)


def upgrade() -> None:
    """Create user_role enum and users table. Ids come from the identity provider."""
    user_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='member'),
        sa.Column('organization_id', UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
    )

    # Create indexes
    op.create_index('idx_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_users_organization_id', 'users', ['organization_id'])
    op.create_index('idx_users_role', 'users', ['role'])


def downgrade() -> None:
    """Drop users table and user_role enum."""
    op.drop_index('idx_users_role', table_name='users')
    op.drop_index('idx_users_organization_id', table_name='users')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')
    user_role.drop(op.get_bind(), checkfirst=True)
