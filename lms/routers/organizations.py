"""
Organization endpoints.

`key` is either the organization UUID or its slug.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_db
from lms.core.dependencies import get_current_user
from lms.models.user import User
from lms.schemas.organization import (
    OrganizationResponse,
    OrganizationsListResponse,
    OrganizationStatusResponse,
)
from lms.services.organization_service import OrganizationService

router = APIRouter()


def get_org_service(db: AsyncSession = Depends(get_db)) -> OrganizationService:
    """Dependency that constructs OrganizationService."""
    return OrganizationService(db=db)


@router.get(
    "",
    response_model=OrganizationsListResponse,
    summary="List organizations",
)
async def list_organizations(
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationsListResponse:
    return await service.list_organizations(current_user)


@router.get(
    "/{key}",
    response_model=OrganizationResponse,
    summary="Get organization by id or slug",
)
async def get_organization(
    key: str,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    """Callers outside the organization get 404 unless they are super/system admin."""
    return await service.get_organization(current_user, key)


# ---------------------------------------------------------------------------
# Disable / Enable
# ---------------------------------------------------------------------------

@router.patch(
    "/{key}/disable",
    response_model=OrganizationStatusResponse,
    summary="Disable an organization and its active users",
)
async def disable_organization(
    key: str,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationStatusResponse:
    return await service.disable_organization(current_user, key)


@router.patch(
    "/{key}/enable",
    response_model=OrganizationStatusResponse,
    summary="Enable an organization and the users it disabled",
)
async def enable_organization(
    key: str,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationStatusResponse:
    """Users disabled manually stay disabled."""
    return await service.enable_organization(current_user, key)
