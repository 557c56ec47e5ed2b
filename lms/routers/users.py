"""
User administration endpoints.

PATCH  /users/{id}/disable          — manual disable
PATCH  /users/{id}/enable           — manual enable
PATCH  /users/{id}/role             — change platform role
PATCH  /users/{id}/organization     — move user to another organization
POST   /users/{id}/resend-invite    — resend the invite email
POST   /users/{id}/password-setup   — send a password setup link
GET    /users                       — list users visible to the caller
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_db
from lms.core.dependencies import get_current_user, get_redis
from lms.models.user import User, UserRole
from lms.schemas.user import (
    AssignOrganizationRequest,
    AssignOrganizationResponse,
    PasswordSetupResponse,
    RoleChangeRequest,
    RoleChangeResponse,
    UserActionResponse,
    UsersListResponse,
)
from lms.services.permissions import Action
from lms.services.user_service import UserService

router = APIRouter()


def get_user_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> UserService:
    """Dependency that constructs UserService."""
    return UserService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# List Users
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=UsersListResponse,
    summary="List users visible to the caller",
)
async def list_users(
    organization_id: UUID | None = Query(default=None),
    role: UserRole | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UsersListResponse:
    """Super/system admins see all users, organization admins their own org."""
    return await service.list_users(
        current_user,
        organization_id=organization_id,
        role=role,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )


# ---------------------------------------------------------------------------
# Disable / Enable
# ---------------------------------------------------------------------------

@router.patch(
    "/{user_id}/disable",
    response_model=UserActionResponse,
    summary="Disable a user",
)
async def disable_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserActionResponse:
    return await service.disable_user(current_user, user_id)


@router.patch(
    "/{user_id}/enable",
    response_model=UserActionResponse,
    summary="Enable a user",
)
async def enable_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserActionResponse:
    return await service.enable_user(current_user, user_id)


# ---------------------------------------------------------------------------
# Role
# ---------------------------------------------------------------------------

@router.patch(
    "/{user_id}/role",
    response_model=RoleChangeResponse,
    summary="Change a user's role",
)
async def change_role(
    user_id: UUID,
    data: RoleChangeRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> RoleChangeResponse:
    """
    Super admins may assign any role, system admins any role except
    super_admin. A super_admin's role cannot be changed.
    """
    return await service.change_role(current_user, user_id, data.role)


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

@router.patch(
    "/{user_id}/organization",
    response_model=AssignOrganizationResponse,
    summary="Assign a user to an organization",
)
async def assign_organization(
    user_id: UUID,
    data: AssignOrganizationRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> AssignOrganizationResponse:
    return await service.assign_organization(current_user, user_id, data.organization_id)


# ---------------------------------------------------------------------------
# Invite / Password setup
# ---------------------------------------------------------------------------

@router.post(
    "/{user_id}/resend-invite",
    response_model=PasswordSetupResponse,
    summary="Resend the invite email",
)
async def resend_invite(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> PasswordSetupResponse:
    """Non-privileged callers get 404 both for unknown and for forbidden users."""
    return await service.send_password_setup(current_user, user_id, Action.resend_invite)


@router.post(
    "/{user_id}/password-setup",
    response_model=PasswordSetupResponse,
    summary="Send a password setup link",
)
async def send_password_setup(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> PasswordSetupResponse:
    return await service.send_password_setup(current_user, user_id, Action.send_password_setup)
