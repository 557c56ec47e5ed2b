"""
User schemas.

Request/response models for user administration and the /me endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from lms.models.user import User, UserRole


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """User row as seen by administrators."""

    id: UUID
    email: str
    full_name: str | None
    role: UserRole
    organization_id: UUID | None
    is_active: bool | None
    disabled_by_org: bool | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User, track_reason: bool) -> UserResponse:
        """disabled_by_org is only read when the column is loaded."""
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            organization_id=user.organization_id,
            is_active=user.is_active,
            disabled_by_org=user.disabled_by_org if track_reason else None,
            created_at=user.created_at,
        )


class UsersListResponse(BaseModel):
    """Response for GET /users."""

    users: list[UserResponse]
    total: int


class UserActionResponse(BaseModel):
    """Response for disable/enable."""

    message: str
    user_id: UUID


class RoleChangeRequest(BaseModel):
    """Request body for PATCH /users/{id}/role."""

    role: UserRole


class RoleChangeResponse(BaseModel):
    message: str
    user_id: UUID
    new_role: UserRole


class AssignOrganizationRequest(BaseModel):
    """Request body for PATCH /users/{id}/organization."""

    organization_id: UUID


class AssignOrganizationResponse(BaseModel):
    message: str
    user_id: UUID
    organization_id: UUID
    is_active: bool | None


class PasswordSetupResponse(BaseModel):
    message: str
    user_id: UUID


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

class MeUser(BaseModel):
    id: UUID
    email: str
    role: UserRole
    organization_id: UUID | None
    organization_name: str | None = None
    organization_slug: str | None = None
    full_name: str | None


class MeResponse(BaseModel):
    """Response for GET/PATCH /me."""

    user: MeUser
    message: str | None = None


class ProfileUpdateRequest(BaseModel):
    """Request body for PATCH /me. An empty string clears the name."""

    full_name: str | None = Field(default=None, max_length=200)

    @field_validator("full_name")
    @classmethod
    def full_name_must_be_valid(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if len(v) < 2:
            raise ValueError("Full name must be at least 2 characters")
        if len(v) > 120:
            raise ValueError("Full name must be at most 120 characters")
        return v
