"""
User ORM model.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from lms.models.organization import Organization


class UserRole(str, enum.Enum):
    """Platform role enumeration. A user holds exactly one role."""

    super_admin = "super_admin"
    system_admin = "system_admin"
    organization_admin = "organization_admin"
    member = "member"


PRIVILEGED_ROLES = frozenset({UserRole.super_admin, UserRole.system_admin})
ORG_SCOPED_ROLES = frozenset({UserRole.organization_admin, UserRole.member})


class User(Base, UUIDMixin, TimestampMixin):
    """
    A platform user.

    `is_active` governs login eligibility (NULL counts as active).
    `disabled_by_org` records why an inactive user is inactive: true when
    the user's organization was disabled, false when an admin disabled the
    user directly. It is only selected when tracking is on, see
    lms.services.lifecycle.user_load_options.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"), nullable=False, default=UserRole.member
    )
    organization_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_active: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)
    # Deferred: degraded deployments run on a schema without this column
    disabled_by_org: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, deferred=True
    )

    # Relationships
    organization: Mapped[Organization | None] = relationship(
        "Organization", back_populates="users"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"
