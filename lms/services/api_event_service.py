"""
API outcome events.

Records the outcome of /api requests, best effort:
- authenticated callers: audit_logs rows with action api_success/api_error
- no attributable caller: unauth_api_events rows with IP and user agent
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lms.core.rate_limit import client_ip
from lms.models.api_event import UnauthApiEvent
from lms.models.audit_log import AuditLog
from lms.models.user import User
from lms.services.audit_service import BestEffort

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    500: "INTERNAL",
}

PUBLIC_MESSAGE_MAX = 500
INTERNAL_MESSAGE_MAX = 4000


@dataclass(frozen=True)
class ApiCaller:
    """
    Snapshot of the authenticated caller.

    Taken at authentication time so it stays readable after the request
    session has been rolled back.
    """

    id: UUID
    email: str
    role: str

    @classmethod
    def of(cls, user: User) -> ApiCaller:
        return cls(id=user.id, email=user.email, role=user.role.value)


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)] + "…"


def current_caller(request: Request) -> ApiCaller | None:
    return getattr(request.state, "caller", None)


def build_event(
    request: Request,
    caller: ApiCaller | None,
    outcome: str,
    status_code: int,
    message: str,
    internal_message: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog | UnauthApiEvent:
    method = request.method.upper()
    path = request.url.path
    query = f"?{request.url.query}" if request.url.query else ""
    code = ERROR_CODES.get(status_code) if outcome == "error" else None
    public_message = truncate(message, PUBLIC_MESSAGE_MAX)
    internal = internal_message.strip() if internal_message else ""
    internal = truncate(internal, INTERNAL_MESSAGE_MAX) if internal else None

    if caller is None:
        return UnauthApiEvent(
            outcome=outcome,
            status=status_code,
            method=method,
            path=path,
            query=query,
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
            code=code,
            public_message=public_message,
            internal_message=internal,
            details=details,
        )

    return AuditLog(
        actor_user_id=caller.id,
        actor_email=caller.email,
        actor_role=caller.role,
        action="api_success" if outcome == "success" else "api_error",
        entity="api",
        entity_id=path,
        details={
            "api": {
                "method": method,
                "path": path,
                "query": query,
                "status": status_code,
                "code": code,
                "public_message": public_message,
                "internal_message": internal,
            },
            "details": details,
        },
    )


async def record_api_success(db: AsyncSession, request: Request) -> BestEffort:
    """
    Record a successful mutation in the request's own transaction.

    Reads are not recorded. The row is written in a savepoint so a failure
    never affects the mutation being committed.
    """
    caller = current_caller(request)
    if caller is None or request.method.upper() not in MUTATING_METHODS:
        return BestEffort(ok=True)

    try:
        async with db.begin_nested():
            db.add(build_event(request, caller, "success", 200, "OK"))
    except SQLAlchemyError as exc:
        logger.warning("API event write failed %s %s: %s", request.method, request.url.path, exc)
        return BestEffort(ok=False, error=str(exc))
    return BestEffort(ok=True)


async def record_api_error(
    request: Request,
    status_code: int,
    message: str,
    internal_message: str | None = None,
) -> BestEffort:
    """
    Record a failed request from an exception handler.

    The request transaction is already rolled back at this point, so the
    event gets its own session from app.state.session_factory.
    """
    if not request.url.path.startswith(API_PREFIX):
        return BestEffort(ok=True)

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    event = build_event(
        request,
        current_caller(request),
        "error",
        status_code,
        message,
        internal_message=internal_message,
    )
    try:
        async with session_factory() as session:
            session.add(event)
            await session.commit()
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("API event write failed %s %s: %s", request.method, request.url.path, exc)
        return BestEffort(ok=False, error=str(exc))
    return BestEffort(ok=True)
