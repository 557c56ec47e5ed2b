"""
Current user endpoints.

GET    /me   — profile of the authenticated user
PATCH  /me   — update own profile (rate limited per client IP)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.dependencies import enforce_profile_rate_limit, get_current_user, get_scoped_db
from lms.models.user import User
from lms.schemas.user import MeResponse, ProfileUpdateRequest
from lms.services.user_service import UserService

router = APIRouter()


def get_scoped_user_service(db: AsyncSession = Depends(get_scoped_db)) -> UserService:
    return UserService(db=db)


@router.get("", response_model=MeResponse, summary="Get current user")
async def get_me(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_scoped_user_service),
) -> MeResponse:
    return await service.get_me(current_user)


@router.patch(
    "",
    response_model=MeResponse,
    summary="Update current user profile",
    dependencies=[Depends(enforce_profile_rate_limit)],
)
async def update_me(
    data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_scoped_user_service),
) -> MeResponse:
    """Only full_name is editable. An empty string clears it."""
    return await service.update_profile(current_user, data)
