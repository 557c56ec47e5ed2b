"""
Business logic for notifications.
Handles fan-out to recipients and per-user read-state management.
Read queries are always scoped by user_id.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.notification import Notification, NotificationRecipient
from lms.models.user import User, UserRole
from lms.schemas.notification import (
    NotificationCreate,
    NotificationItem,
    NotificationListResponse,
)

logger = logging.getLogger(__name__)

LIST_LIMIT = 30


@dataclass(frozen=True)
class FanoutResult:
    """Outcome of emit_to_users. Callers may discard it."""

    notification_id: uuid.UUID | None
    recipients_inserted: int
    error: str | None = None


def distinct_recipients(
    recipient_ids: Iterable[uuid.UUID | None],
    actor_id: uuid.UUID | None = None,
) -> list[uuid.UUID]:
    """Deduplicate preserving order and drop the acting user."""
    seen: dict[uuid.UUID, None] = {}
    for recipient_id in recipient_ids:
        if recipient_id is None or recipient_id == actor_id:
            continue
        seen.setdefault(recipient_id, None)
    return list(seen)


class NotificationService:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def emit_to_users(
        self,
        data: NotificationCreate,
        recipient_ids: Iterable[uuid.UUID | None],
        actor_id: uuid.UUID | None = None,
    ) -> FanoutResult:
        """
        Insert one notification row plus one recipient row per user.

        Nothing is written when no recipient remains after dedup and actor
        exclusion. Recipient rows are written in their own savepoint: if they
        fail the notification is kept and recipients_inserted is 0.
        """
        recipients = distinct_recipients(recipient_ids, actor_id)
        if not recipients:
            return FanoutResult(notification_id=None, recipients_inserted=0)

        try:
            async with self._db.begin_nested():
                notification = Notification(
                    type=data.type,
                    title=data.title,
                    body=data.body,
                    org_id=data.org_id,
                    entity=data.entity,
                    entity_id=data.entity_id,
                    href=data.href,
                    details=data.metadata,
                )
                self._db.add(notification)
        except SQLAlchemyError as exc:
            logger.warning("Notification insert failed type=%s: %s", data.type, exc)
            return FanoutResult(notification_id=None, recipients_inserted=0, error=str(exc))

        notification_id = notification.id
        try:
            async with self._db.begin_nested():
                self._db.add_all([
                    NotificationRecipient(notification_id=notification_id, user_id=user_id)
                    for user_id in recipients
                ])
        except SQLAlchemyError as exc:
            logger.warning(
                "Notification recipients insert failed notification_id=%s: %s",
                notification_id,
                exc,
            )
            return FanoutResult(
                notification_id=notification_id, recipients_inserted=0, error=str(exc)
            )

        return FanoutResult(notification_id=notification_id, recipients_inserted=len(recipients))

    async def organization_admin_ids(self, org_id: uuid.UUID) -> list[uuid.UUID]:
        """Active organization admins of an org, used as notification recipients."""
        result = await self._db.execute(
            select(User.id).where(
                User.organization_id == org_id,
                User.role == UserRole.organization_admin,
                User.is_active.is_not(False),
            )
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # GET /notifications
    # ------------------------------------------------------------------

    async def list_for_user(self, user_id: uuid.UUID) -> NotificationListResponse:
        """Latest notifications for the user, newest first, with unread count."""
        unread_count = await self._db.scalar(
            select(func.count()).select_from(NotificationRecipient).where(
                NotificationRecipient.user_id == user_id,
                NotificationRecipient.read_at.is_(None),
            )
        ) or 0

        result = await self._db.execute(
            select(NotificationRecipient, Notification)
            .join(Notification, NotificationRecipient.notification_id == Notification.id)
            .where(NotificationRecipient.user_id == user_id)
            .order_by(NotificationRecipient.created_at.desc(), Notification.created_at.desc())
            .limit(LIST_LIMIT)
        )

        notifications = [
            NotificationItem(
                id=notification.id,
                type=notification.type,
                title=notification.title,
                body=notification.body,
                created_at=notification.created_at,
                org_id=notification.org_id,
                entity=notification.entity,
                entity_id=notification.entity_id,
                href=notification.href,
                metadata=notification.details or {},
                read_at=recipient.read_at,
            )
            for recipient, notification in result.all()
        ]

        return NotificationListResponse(unread_count=unread_count, notifications=notifications)

    # ------------------------------------------------------------------
    # POST /notifications/read
    # ------------------------------------------------------------------

    async def mark_read(
        self,
        user_id: uuid.UUID,
        notification_id: uuid.UUID | None = None,
        mark_all: bool = False,
    ) -> int:
        """
        Set read_at on the caller's recipient rows.
        Returns count of updated rows.
        """
        stmt = (
            update(NotificationRecipient)
            .where(NotificationRecipient.user_id == user_id)
            .values(read_at=datetime.now(UTC))
        )
        if mark_all:
            stmt = stmt.where(NotificationRecipient.read_at.is_(None))
        else:
            stmt = stmt.where(NotificationRecipient.notification_id == notification_id)

        result = await self._db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount
