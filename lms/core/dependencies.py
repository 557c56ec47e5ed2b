"""
FastAPI dependency injection functions.

Provides database sessions, current user, Redis connections, the profile
rate limiter, API outcome recording and role enforcement.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import settings
from lms.core.database import get_db
from lms.core.errors import Forbidden, RateLimited, Unauthenticated
from lms.core.rate_limit import SlidingWindowRateLimiter, client_ip
from lms.core.security import decode_access_token
from lms.models.user import User, UserRole
from lms.services.api_event_service import ApiCaller, record_api_success
from lms.services.lifecycle import user_load_options

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False so we can return custom 401)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """
    Return a shared async Redis client.

    Uses a module-level pool so connections are reused across requests.
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_pool


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate Bearer JWT and return the authenticated User.

    Raises 401 if:
    - No token provided
    - Token is invalid or expired
    - User does not exist or is disabled (is_active = false)
    """
    if credentials is None:
        raise Unauthenticated()

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = UUID(str(payload["sub"]))
    except (JWTError, ValueError):
        raise Unauthenticated()

    user = await db.get(User, user_id, options=user_load_options(settings.TRACK_DISABLED_BY_ORG))

    # NULL is_active counts as active
    if user is None or user.is_active is False:
        raise Unauthenticated()

    request.state.caller = ApiCaller.of(user)
    return user


# ---------------------------------------------------------------------------
# Caller-scoped session
# ---------------------------------------------------------------------------

async def get_scoped_db(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session whose statements run under the caller's identity.

    On PostgreSQL the transaction switches to DB_SCOPED_ROLE and exposes the
    caller's claims, so row-level security policies apply. Other dialects
    have no RLS and get the session unchanged.
    """
    if db.bind.dialect.name == "postgresql":
        claims = json.dumps({"sub": str(current_user.id), "role": settings.DB_SCOPED_ROLE})
        await db.execute(text(f'SET LOCAL ROLE "{settings.DB_SCOPED_ROLE}"'))
        await db.execute(
            text("SELECT set_config('request.jwt.claims', :claims, true)"),
            {"claims": claims},
        )
    yield db


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

def get_profile_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """The limiter created in the app lifespan."""
    return request.app.state.profile_rate_limiter


async def enforce_profile_rate_limit(
    request: Request,
    limiter: SlidingWindowRateLimiter = Depends(get_profile_rate_limiter),
) -> None:
    """Runs before authentication so unauthenticated floods are limited too."""
    key = client_ip(request)
    if not limiter.hit(key):
        logger.warning("Profile update rate limit hit for %s", key)
        raise RateLimited("Too many requests. Please wait a moment and try again.")


# ---------------------------------------------------------------------------
# API outcome recording
# ---------------------------------------------------------------------------

async def track_api_outcome(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AsyncGenerator[None, None]:
    """
    Router-level dependency recording successful mutations.

    Does not authenticate by itself: the caller is whoever get_current_user
    resolved during the request. Failures are recorded by the exception
    handlers in lms.main.
    """
    yield
    await record_api_success(db, request)


# ---------------------------------------------------------------------------
# Role enforcement
# ---------------------------------------------------------------------------

def require_roles(*roles: UserRole):
    """
    Dependency factory that enforces the caller's platform role.

    Usage:
        @router.get("/...")
        async def endpoint(
            current_user: User = Depends(require_roles(UserRole.super_admin)),
        ):
            ...
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise Forbidden(f"Required role: {[r.value for r in roles]}")
        return current_user

    return role_checker
