"""
Pytest configuration for LMS backend tests.

Requests run in-process against an in-memory SQLite database. SQLite gets
real SAVEPOINT support through the connect/begin hooks below, so audit and
notification writes behave as they do on PostgreSQL.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-lms-backend-0123456789abcdef")
os.environ.setdefault("DEBUG", "false")

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lms.core.config import settings
from lms.core.database import get_db
from lms.core.dependencies import get_redis
from lms.main import app, create_profile_rate_limiter
from lms.models import Base, Organization, User, UserRole
from lms.services.lifecycle import user_load_options
from lms.workers import email_tasks


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    """Fresh in-memory database per test, one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself so SAVEPOINT works
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeRedis:
    """The subset of redis.asyncio.Redis the services use."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttl: dict[str, int | None] = {}

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        self.ttl[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)


class RecordingTask:
    """Stands in for a Celery task; records .delay() calls."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def delay(self, **kwargs):
        self.calls.append(kwargs)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def sent_emails(monkeypatch) -> list[dict]:
    task = RecordingTask()
    monkeypatch.setattr(email_tasks, "send_password_setup_email", task)
    return task.calls


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(session_factory, fake_redis):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.state.profile_rate_limiter = create_profile_rate_limiter()
    app.state.session_factory = session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_token(user_id: uuid.UUID, expires_in: timedelta = timedelta(minutes=5), **claims) -> str:
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(UTC) + expires_in,
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user.id)}"}


class Seeder:
    """Creates rows in committed, short-lived sessions."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def org(self, slug: str | None = None, name: str | None = None, is_active: bool = True) -> Organization:
        slug = slug or f"org-{uuid.uuid4().hex[:6]}"
        async with self.session_factory() as session:
            org = Organization(name=name or slug.title(), slug=slug, is_active=is_active)
            session.add(org)
            await session.commit()
            return org

    async def user(
        self,
        role: UserRole = UserRole.member,
        org: Organization | None = None,
        is_active: bool | None = True,
        disabled_by_org: bool | None = False,
        email: str | None = None,
        full_name: str | None = None,
    ) -> User:
        async with self.session_factory() as session:
            user = User(
                email=email or f"{role.value}_{uuid.uuid4().hex[:8]}@example.com",
                full_name=full_name,
                role=role,
                organization_id=org.id if org else None,
                is_active=is_active,
                disabled_by_org=disabled_by_org,
            )
            session.add(user)
            await session.commit()
            return user

    async def get_user(self, user_id: uuid.UUID, with_reason: bool = True) -> User:
        """with_reason=False reads a schema without users.disabled_by_org."""
        async with self.session_factory() as session:
            return await session.get(User, user_id, options=user_load_options(with_reason))

    async def get_org(self, org_id: uuid.UUID) -> Organization:
        async with self.session_factory() as session:
            return await session.get(Organization, org_id)


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)
