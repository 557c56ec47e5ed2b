"""
Organization schemas.

Response models for organization lookup and activation endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class OrganizationResponse(BaseModel):
    """Organization detail response."""

    id: UUID
    name: str
    slug: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrganizationsListResponse(BaseModel):
    """Response for GET /organizations."""

    organizations: list[OrganizationResponse]
    total: int


class OrganizationStatusResponse(BaseModel):
    """Response for PATCH /organizations/{key}/disable and /enable."""

    message: str
    organization_id: UUID
    users_updated: int
    degraded: bool = False
