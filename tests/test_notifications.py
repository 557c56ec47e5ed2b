"""
Notification fan-out and read endpoint tests.
"""

import uuid

import pytest
from sqlalchemy import func, select

from lms.models import Notification, NotificationRecipient, UserRole
from lms.schemas.notification import NotificationCreate
from lms.services.notification_service import NotificationService, distinct_recipients
from tests.conftest import auth_headers

API = "/api/v1/notifications"


def notification(**overrides) -> NotificationCreate:
    data = {"type": "test", "title": "Hello", "body": "Body", "entity": "users"}
    data.update(overrides)
    return NotificationCreate(**data)


async def count(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def emit(session_factory, data, recipients, actor_id=None):
    async with session_factory() as session:
        result = await NotificationService(session).emit_to_users(data, recipients, actor_id=actor_id)
        await session.commit()
        return result


# ---------------------------------------------------------------------------
# 1. Fan-out
# ---------------------------------------------------------------------------

def test_distinct_recipients_dedupes_and_drops_actor():
    a, b, actor = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    assert distinct_recipients([a, b, a, None, actor, b], actor_id=actor) == [a, b]


@pytest.mark.asyncio
async def test_fanout_inserts_one_row_per_distinct_recipient(seed, session_factory):
    actor = await seed.user(UserRole.system_admin)
    first = await seed.user()
    second = await seed.user()

    result = await emit(
        session_factory,
        notification(),
        [first.id, second.id, first.id, actor.id],
        actor_id=actor.id,
    )

    assert result.notification_id is not None
    assert result.recipients_inserted == 2
    assert result.error is None
    assert await count(session_factory, Notification) == 1
    assert await count(session_factory, NotificationRecipient) == 2


@pytest.mark.asyncio
async def test_fanout_to_nobody_writes_nothing(seed, session_factory):
    actor = await seed.user(UserRole.system_admin)

    result = await emit(session_factory, notification(), [actor.id, None], actor_id=actor.id)

    assert result.notification_id is None
    assert result.recipients_inserted == 0
    assert await count(session_factory, Notification) == 0


@pytest.mark.asyncio
async def test_recipient_failure_keeps_notification(seed, session_factory, engine):
    user = await seed.user()
    async with engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TRIGGER fail_recipients BEFORE INSERT ON notification_recipients "
            "BEGIN SELECT RAISE(ABORT, 'recipients unavailable'); END"
        )

    result = await emit(session_factory, notification(), [user.id])

    assert result.notification_id is not None
    assert result.recipients_inserted == 0
    assert result.error
    assert await count(session_factory, Notification) == 1
    assert await count(session_factory, NotificationRecipient) == 0


@pytest.mark.asyncio
async def test_base_row_failure_is_reported_not_raised(seed, session_factory, engine):
    user = await seed.user()
    async with engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TRIGGER fail_notifications BEFORE INSERT ON notifications "
            "BEGIN SELECT RAISE(ABORT, 'notifications unavailable'); END"
        )

    result = await emit(session_factory, notification(), [user.id])

    assert result.notification_id is None
    assert result.recipients_inserted == 0
    assert result.error


# ---------------------------------------------------------------------------
# 2. GET /notifications
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_shows_only_own_notifications(client, seed, session_factory):
    user = await seed.user()
    other = await seed.user()
    await emit(session_factory, notification(title="For user"), [user.id])
    await emit(session_factory, notification(title="For both"), [user.id, other.id])

    resp = await client.get(API, headers=auth_headers(user))
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["unread_count"] == 2
    assert {n["title"] for n in body["notifications"]} == {"For user", "For both"}
    assert all(n["read_at"] is None for n in body["notifications"])

    resp = await client.get(API, headers=auth_headers(other))
    assert resp.json()["unread_count"] == 1


@pytest.mark.asyncio
async def test_list_requires_authentication(client):
    resp = await client.get(API)
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# 3. POST /notifications/read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mark_single_notification_read(client, seed, session_factory):
    user = await seed.user()
    first = await emit(session_factory, notification(title="One"), [user.id])
    await emit(session_factory, notification(title="Two"), [user.id])

    resp = await client.post(
        f"{API}/read",
        json={"notification_id": str(first.notification_id)},
        headers=auth_headers(user),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"ok": True}

    body = (await client.get(API, headers=auth_headers(user))).json()
    assert body["unread_count"] == 1
    read = {n["title"]: n["read_at"] for n in body["notifications"]}
    assert read["One"] is not None
    assert read["Two"] is None


@pytest.mark.asyncio
async def test_mark_all_read_is_per_user(client, seed, session_factory):
    user = await seed.user()
    other = await seed.user()
    await emit(session_factory, notification(), [user.id, other.id])
    await emit(session_factory, notification(), [user.id])

    resp = await client.post(f"{API}/read", json={"all": True}, headers=auth_headers(user))
    assert resp.status_code == 200, resp.text

    assert (await client.get(API, headers=auth_headers(user))).json()["unread_count"] == 0
    assert (await client.get(API, headers=auth_headers(other))).json()["unread_count"] == 1


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notification(client, seed, session_factory):
    user = await seed.user()
    other = await seed.user()
    result = await emit(session_factory, notification(), [other.id])

    resp = await client.post(
        f"{API}/read",
        json={"notification_id": str(result.notification_id)},
        headers=auth_headers(user),
    )
    assert resp.status_code == 200
    assert (await client.get(API, headers=auth_headers(other))).json()["unread_count"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"all": False}, {"notification_id": "not-a-uuid"}])
async def test_mark_read_requires_a_target(client, seed, payload):
    user = await seed.user()
    resp = await client.post(f"{API}/read", json=payload, headers=auth_headers(user))
    assert resp.status_code == 400
    assert "error" in resp.json()
