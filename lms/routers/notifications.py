"""
Notification endpoints.

GET    /notifications        — latest notifications for the caller
POST   /notifications/read   — mark one or all notifications as read
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.dependencies import get_current_user, get_scoped_db
from lms.models.user import User
from lms.schemas.notification import MarkReadRequest, NotificationListResponse
from lms.services.notification_service import NotificationService

router = APIRouter()


def get_notification_service(
    db: AsyncSession = Depends(get_scoped_db),
) -> NotificationService:
    return NotificationService(db=db)


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications for current user",
)
async def list_notifications(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    return await service.list_for_user(current_user.id)


@router.post("/read", summary="Mark notifications as read")
async def mark_read(
    data: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, bool]:
    """Body is {"all": true} or {"notification_id": "<uuid>"}."""
    await service.mark_read(
        current_user.id,
        notification_id=data.notification_id,
        mark_all=data.all,
    )
    return {"ok": True}
