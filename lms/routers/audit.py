"""
Audit log endpoints.

GET    /audit/export   — CSV export of the audit log (super_admin only)
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import settings
from lms.core.database import get_db
from lms.core.dependencies import require_roles
from lms.models.user import User, UserRole
from lms.services.audit_service import AuditService

router = APIRouter()


@router.get("/export", summary="Export audit log as CSV")
async def export_audit_logs(
    max_rows: int | None = Query(default=None, alias="max", ge=1),
    current_user: User = Depends(require_roles(UserRole.super_admin)),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Newest entries first, capped at AUDIT_EXPORT_MAX_ROWS."""
    limit = min(max_rows or settings.AUDIT_EXPORT_MAX_ROWS, settings.AUDIT_EXPORT_MAX_ROWS)

    service = AuditService(db)
    content, count = await service.export_csv(limit)
    await service.record(
        current_user,
        "export_audit_logs",
        "audit_logs",
        None,
        metadata={"rows": count, "max": limit},
    )

    filename = f"audit-logs-{datetime.now(UTC).strftime('%Y%m%d-%H%M%S')}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
