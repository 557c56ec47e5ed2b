"""
API outcome event tests.

Verifies that:
- Anonymous failures land in unauth_api_events with IP and user agent
- Authenticated failures land in audit_logs as api_error
- Successful mutations are recorded as api_success, reads are not
- A failing event store never changes the response
"""

import pytest
from sqlalchemy import select

from lms.models import AuditLog, UnauthApiEvent, UserRole
from tests.conftest import auth_headers


async def api_entries(session_factory) -> list[AuditLog]:
    async with session_factory() as session:
        result = await session.execute(
            select(AuditLog).where(AuditLog.entity == "api").order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())


async def unauth_events(session_factory) -> list[UnauthApiEvent]:
    async with session_factory() as session:
        result = await session.execute(select(UnauthApiEvent))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_unauthenticated_request_is_recorded(client, seed, session_factory):
    member = await seed.user()

    resp = await client.patch(
        f"/api/v1/users/{member.id}/disable",
        params={"source": "admin-panel"},
        headers={"User-Agent": "pytest-agent", "X-Forwarded-For": "198.51.100.7, 10.0.0.1"},
    )
    assert resp.status_code == 401

    events = await unauth_events(session_factory)
    assert len(events) == 1
    event = events[0]
    assert event.outcome == "error"
    assert event.status == 401
    assert event.method == "PATCH"
    assert event.path == f"/api/v1/users/{member.id}/disable"
    assert event.query == "?source=admin-panel"
    assert event.ip == "198.51.100.7"
    assert event.user_agent == "pytest-agent"
    assert event.code == "UNAUTHORIZED"
    assert event.public_message == "Unauthorized"
    assert await api_entries(session_factory) == []


@pytest.mark.asyncio
async def test_forbidden_request_is_attributed_to_caller(client, seed, session_factory):
    org = await seed.org()
    member = await seed.user(org=org)
    other = await seed.user(org=org)

    resp = await client.patch(f"/api/v1/users/{other.id}/disable", headers=auth_headers(member))
    assert resp.status_code == 403

    entries = await api_entries(session_factory)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.action == "api_error"
    assert entry.actor_user_id == member.id
    assert entry.actor_email == member.email
    assert entry.actor_role == "member"
    assert entry.entity_id == f"/api/v1/users/{other.id}/disable"
    assert entry.details["api"]["method"] == "PATCH"
    assert entry.details["api"]["status"] == 403
    assert entry.details["api"]["code"] == "FORBIDDEN"
    assert entry.details["api"]["public_message"] == resp.json()["error"]
    assert await unauth_events(session_factory) == []


@pytest.mark.asyncio
async def test_rate_limited_anonymous_request_is_recorded(client, session_factory):
    for _ in range(11):
        resp = await client.patch("/api/v1/me", json={"full_name": "Nobody"})
    assert resp.status_code == 429

    statuses = sorted(e.status for e in await unauth_events(session_factory))
    assert statuses == [401] * 10 + [429]


@pytest.mark.asyncio
async def test_successful_mutation_is_recorded(client, seed, session_factory):
    admin = await seed.user(UserRole.system_admin)
    member = await seed.user()

    resp = await client.patch(f"/api/v1/users/{member.id}/disable", headers=auth_headers(admin))
    assert resp.status_code == 200, resp.text

    entries = await api_entries(session_factory)
    assert [e.action for e in entries] == ["api_success"]
    assert entries[0].actor_user_id == admin.id
    assert entries[0].details["api"]["status"] == 200
    assert entries[0].details["api"]["code"] is None


@pytest.mark.asyncio
async def test_reads_are_not_recorded(client, seed, session_factory):
    user = await seed.user()

    resp = await client.get("/api/v1/me", headers=auth_headers(user))
    assert resp.status_code == 200

    assert await api_entries(session_factory) == []
    assert await unauth_events(session_factory) == []


@pytest.mark.asyncio
async def test_event_store_failure_keeps_response(client, seed, engine, session_factory):
    member = await seed.user()
    async with engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TRIGGER fail_unauth_events BEFORE INSERT ON unauth_api_events "
            "BEGIN SELECT RAISE(ABORT, 'events unavailable'); END"
        )

    resp = await client.patch(f"/api/v1/users/{member.id}/disable")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}
    assert await unauth_events(session_factory) == []
