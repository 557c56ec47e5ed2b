"""
Audit log business logic.

Best-effort recording of mutating actions and the CSV export.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.audit_log import AuditLog
from lms.models.organization import Organization
from lms.models.user import User, UserRole

logger = logging.getLogger(__name__)

ROLE_LABELS = {
    "super_admin": "Super Admin",
    "system_admin": "System Admin",
    "organization_admin": "Organization Admin",
    "member": "Member",
}

EXPORT_COLUMNS = [
    "created_at",
    "action",
    "actor_email",
    "actor_role",
    "entity",
    "entity_id",
    "target_user_id",
    "target_user",
    "organization",
    "metadata",
]

# Metadata keys naming an organization, in label priority order
ORGANIZATION_KEYS = (
    "to_organization_id",
    "organization_id",
    "from_organization_id",
    "previous_organization_id",
)


@dataclass(frozen=True)
class BestEffort:
    """Outcome of a side effect the caller is allowed to ignore."""

    ok: bool
    error: str | None = None


def role_label(role: str | None) -> str:
    if role is None:
        return ""
    return ROLE_LABELS.get(role, role)


class AuditService:
    """Writes and exports audit log entries."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Record
    # -----------------------------------------------------------------------

    async def record(
        self,
        actor: User,
        action: str,
        entity: str,
        entity_id: UUID | str | None,
        target_user_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BestEffort:
        """
        Append one audit entry inside a savepoint.

        A failed write rolls back only the savepoint; the primary mutation in
        the enclosing transaction is kept and the error is only logged.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(
                    AuditLog(
                        actor_user_id=actor.id,
                        actor_email=actor.email,
                        actor_role=actor.role.value,
                        action=action,
                        entity=entity,
                        entity_id=str(entity_id) if entity_id is not None else None,
                        target_user_id=target_user_id,
                        details=_jsonable(metadata or {}),
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning("Audit write failed action=%s entity_id=%s: %s", action, entity_id, exc)
            return BestEffort(ok=False, error=str(exc))
        return BestEffort(ok=True)

    # -----------------------------------------------------------------------
    # Export
    # -----------------------------------------------------------------------

    async def export_csv(self, max_rows: int) -> tuple[str, int]:
        """
        Return (csv_text, row_count) for the newest `max_rows` entries.

        Target users and organizations referenced by the entries are resolved
        to readable labels; unknown ids are written as-is.
        """
        result = await self.db.execute(
            select(AuditLog).order_by(AuditLog.created_at.desc()).limit(max_rows)
        )
        entries = result.scalars().all()

        if not entries:
            return "No data\n", 0

        user_labels = await self._user_labels({
            user_id for user_id in (_target_user_id(e) for e in entries) if user_id
        })
        org_labels = await self._organization_labels({
            org_id for org_id in (_organization_id(e) for e in entries) if org_id
        })

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for entry in entries:
            target_id = _target_user_id(entry)
            org_id = _organization_id(entry)
            writer.writerow([
                entry.created_at.isoformat() if entry.created_at else "",
                entry.action,
                entry.actor_email or "",
                role_label(entry.actor_role),
                entry.entity,
                entry.entity_id or "",
                str(entry.target_user_id) if entry.target_user_id else "",
                user_labels.get(target_id, target_id) if target_id else "-",
                org_labels.get(org_id, org_id) if org_id else "",
                json.dumps(entry.details or {}, sort_keys=True),
            ])
        return buffer.getvalue(), len(entries)

    async def _user_labels(self, ids: set[str]) -> dict[str, str]:
        """'Full Name (Role)', falling back to the email."""
        uuids = _parse_uuids(ids)
        if not uuids:
            return {}
        result = await self.db.execute(
            select(User.id, User.full_name, User.email, User.role).where(User.id.in_(uuids))
        )
        labels = {}
        for user_id, full_name, email, role in result.all():
            name = (full_name or "").strip() or email
            labels[str(user_id)] = f"{name} ({role_label(UserRole(role).value)})"
        return labels

    async def _organization_labels(self, ids: set[str]) -> dict[str, str]:
        uuids = _parse_uuids(ids)
        if not uuids:
            return {}
        result = await self.db.execute(
            select(Organization.id, Organization.name, Organization.slug).where(
                Organization.id.in_(uuids)
            )
        )
        return {str(org_id): (name or "").strip() or slug for org_id, name, slug in result.all()}


def _target_user_id(entry: AuditLog) -> str | None:
    if entry.target_user_id:
        return str(entry.target_user_id)
    if entry.entity == "users" and entry.entity_id:
        return entry.entity_id
    return None


def _organization_id(entry: AuditLog) -> str | None:
    """The organization an entry is about, destination first."""
    if entry.entity == "organizations" and entry.entity_id:
        return entry.entity_id
    details = entry.details or {}
    for key in ORGANIZATION_KEYS:
        value = details.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _parse_uuids(ids: set[str]) -> list[UUID]:
    parsed = []
    for value in ids:
        try:
            parsed.append(UUID(value))
        except ValueError:
            continue
    return parsed


def _jsonable(metadata: dict[str, Any]) -> dict[str, Any]:
    """UUIDs and enums in metadata are stored as strings."""
    return json.loads(json.dumps(metadata, default=str))
