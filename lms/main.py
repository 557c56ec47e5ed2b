"""
FastAPI application entry point.

Configures logging, middleware, routes, and exception handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms.core.config import settings
from lms.core.database import AsyncSessionLocal
from lms.core.rate_limit import SlidingWindowRateLimiter
from lms.services.api_event_service import record_api_error

logger = logging.getLogger(__name__)


def create_profile_rate_limiter() -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        max_hits=settings.PROFILE_RATE_LIMIT_MAX,
        window_seconds=settings.PROFILE_RATE_LIMIT_WINDOW_SECONDS,
        max_keys=settings.PROFILE_RATE_LIMIT_MAX_KEYS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.state.profile_rate_limiter = create_profile_rate_limiter()
    logger.info("Starting LMS API in %s mode", settings.ENVIRONMENT)
    if not settings.TRACK_DISABLED_BY_ORG:
        logger.warning(
            "disabled_by_org tracking is off: the column is not used and "
            "organization enable re-activates nobody"
        )
    yield
    logger.info("Shutting down LMS API")


app = FastAPI(
    title="LMS API",
    description="Account lifecycle and authorization for a multi-tenant LMS",
    version="1.0.0",
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Also set outside the lifespan so transports that skip startup still work
app.state.profile_rate_limiter = create_profile_rate_limiter()
# Sessions for API error events, outside the failed request transaction
app.state.session_factory = AsyncSessionLocal

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# ---------------------------------------------------------------------------
# Exception handlers: every error body is {"error": "<message>"} and every
# failure is recorded as an API event
# ---------------------------------------------------------------------------

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    await record_api_error(request, exc.status_code, str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    await record_api_error(request, status.HTTP_400_BAD_REQUEST, message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    await record_api_error(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        internal_message=f"{type(exc).__name__}: {exc}",
    )
    if settings.DEBUG:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc), "type": type(exc).__name__},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
    }


from lms.core.dependencies import track_api_outcome
from lms.routers import audit, me, notifications, organizations, users

recorded = [Depends(track_api_outcome)]

app.include_router(users.router, prefix="/api/v1/users", tags=["Users"], dependencies=recorded)
app.include_router(organizations.router, prefix="/api/v1/organizations", tags=["Organizations"], dependencies=recorded)
app.include_router(me.router, prefix="/api/v1/me", tags=["Me"], dependencies=recorded)
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"], dependencies=recorded)
app.include_router(audit.router, prefix="/api/v1/audit", tags=["Audit"], dependencies=recorded)
