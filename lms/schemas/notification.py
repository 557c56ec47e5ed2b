"""
Pydantic schemas for notifications.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------

class NotificationItem(BaseModel):
    """A notification as delivered to one recipient."""
    id: uuid.UUID
    type: str
    title: str
    body: str | None
    created_at: datetime
    org_id: uuid.UUID | None
    entity: str | None
    entity_id: str | None
    href: str | None
    metadata: dict[str, Any]
    read_at: datetime | None


class NotificationListResponse(BaseModel):
    """Response for GET /notifications."""
    unread_count: int
    notifications: list[NotificationItem]


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------

class MarkReadRequest(BaseModel):
    """Request body for POST /notifications/read."""
    all: bool = False
    notification_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def one_target_required(self) -> MarkReadRequest:
        if not self.all and self.notification_id is None:
            raise ValueError("Provide { all: true } or a valid notification_id")
        return self


# ---------------------------------------------------------------------------
# Internal schema used by notification_service to create notifications
# ---------------------------------------------------------------------------

class NotificationCreate(BaseModel):
    """Internal schema for creating a notification (not exposed via API)."""
    type: str
    title: str
    body: str | None = None
    org_id: uuid.UUID | None = None
    entity: str | None = None
    entity_id: str | None = None
    href: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
