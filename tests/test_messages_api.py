from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import cast

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from notify_backend.db import session_scope
from notify_backend.main import app  # pyright: ignore[reportMissingTypeStubs]
from notify_backend.models import Notification, NotificationType, User
from notify_backend.repositories import listing_repo

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _nid(n: int) -> str:
    return f"00000000-0000-0000-0000-{n:012d}"


A, B, C = _nid(1), _nid(2), _nid(3)
MISSING = _nid(99)


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


async def _seed() -> None:
    async with session_scope() as session:
        alice = User(username="alice")
        bob = User(username="bob")
        data = NotificationType(name="data")
        session.add(alice)
        session.add(bob)
        session.add(data)
        await session.commit()
        await session.refresh(alice)
        await session.refresh(bob)
        await session.refresh(data)
        assert alice.id is not None
        assert bob.id is not None

        for n, minutes, type_id in [(1, 0, data.id), (2, 1, None), (3, 2, data.id)]:
            session.add(
                Notification(
                    id=_nid(n),
                    user_id=int(alice.id),
                    notification_type_id=type_id,
                    subject=f"Job {n} finished",
                    payload_json={"job": n},
                    time_created=T0 + timedelta(minutes=minutes),
                )
            )
        session.add(
            Notification(
                id=_nid(4),
                user_id=int(bob.id),
                subject="not yours",
                time_created=T0,
            )
        )
        await session.commit()


def _body(r: httpx.Response) -> dict[str, object]:
    return cast(dict[str, object], r.json())


def _message_ids(body: dict[str, object]) -> list[str]:
    messages = cast(list[dict[str, object]], body["messages"])
    return [cast(str, m["id"]) for m in messages]


@pytest.mark.anyio
async def test_listing_pages_omit_absent_fields(sqlite_db: str):
    _ = sqlite_db
    await _seed()

    async with _make_async_client() as client:
        r = await client.get("/v2/messages", params={"user": "alice", "limit": 2, "sort-dir": "desc"})
        assert r.status_code == 200
        body = _body(r)
        assert set(body) == {"messages", "total", "before_id"}
        assert _message_ids(body) == [C, B]
        assert body["total"] == 3
        assert body["before_id"] == A

        first = cast(list[dict[str, object]], body["messages"])[0]
        assert first["id"] == C
        assert first["type"] == "data"
        assert first["subject"] == "Job 3 finished"
        assert first["seen"] is False
        assert first["payload"] == {"job": 3}
        assert first["created_at"]

        r2 = await client.get(
            "/v2/messages",
            params={"user": "alice", "limit": 2, "sort-dir": "desc", "before-id": A},
        )
        assert r2.status_code == 200
        body2 = _body(r2)
        assert set(body2) == {"messages", "total", "after_id"}
        assert _message_ids(body2) == [A]
        assert body2["after_id"] == B


@pytest.mark.anyio
async def test_listing_count_only_and_empty_results(sqlite_db: str):
    _ = sqlite_db
    await _seed()

    async with _make_async_client() as client:
        r = await client.get("/v2/messages", params={"user": "alice", "count-only": "true"})
        assert r.status_code == 200
        assert r.json() == {"total": 3}

        r_nobody = await client.get("/v2/messages", params={"user": "carol", "limit": 10})
        assert r_nobody.status_code == 200
        assert r_nobody.json() == {"total": 0}

        r_type = await client.get(
            "/v2/messages", params={"user": "alice", "type": "DATA", "sort-dir": "asc"}
        )
        assert r_type.status_code == 200
        assert _message_ids(_body(r_type)) == [A, C]

        r_search = await client.get(
            "/v2/messages", params={"user": "alice", "subject-search": "JOB 2"}
        )
        assert r_search.status_code == 200
        assert _message_ids(_body(r_search)) == [B]


@pytest.mark.anyio
async def test_listing_parameter_errors_use_error_response(sqlite_db: str):
    _ = sqlite_db
    await _seed()

    async with _make_async_client() as client:
        r = await client.get(
            "/v2/messages",
            params={"user": "alice", "sort-dir": "sideways"},
            headers={"X-Request-Id": "rid-123"},
        )
        assert r.status_code == 400
        assert r.headers.get("x-request-id") == "rid-123"
        body = _body(r)
        assert body["error"] == "bad_request"
        assert body["message"] == "invalid sort order: sideways"
        assert body["request_id"] == "rid-123"

        r_bad_id = await client.get(
            "/v2/messages", params={"user": "alice", "before-id": "not-a-uuid"}
        )
        assert r_bad_id.status_code == 400
        assert _body(r_bad_id)["error"] == "bad_request"

        r_unknown = await client.get(
            "/v2/messages", params={"user": "alice", "after-id": MISSING}
        )
        assert r_unknown.status_code == 404
        body_unknown = _body(r_unknown)
        assert body_unknown["error"] == "not_found"
        assert body_unknown["message"] == f"message {MISSING} does not exist"

        r_no_user = await client.get("/v2/messages")
        assert r_no_user.status_code == 422
        assert _body(r_no_user)["error"] == "validation_error"

        r_negative = await client.get("/v2/messages", params={"user": "alice", "limit": -1})
        assert r_negative.status_code == 422


@pytest.mark.anyio
async def test_storage_failure_is_an_internal_error(
    sqlite_db: str, monkeypatch: pytest.MonkeyPatch
):
    _ = sqlite_db
    await _seed()

    async def _boom(*_args: object, **_kwargs: object) -> int:
        raise SQLAlchemyError("disk on fire")

    monkeypatch.setattr(listing_repo, "count_notifications", _boom)

    async with _make_async_client() as client:
        r = await client.get("/v2/messages", params={"user": "alice"})
        assert r.status_code == 500
        body = _body(r)
        assert body["error"] == "internal_error"
        assert "disk on fire" not in cast(str, body["message"])
        assert body.get("request_id")


@pytest.mark.anyio
async def test_get_mark_seen_and_delete_single_message(sqlite_db: str):
    _ = sqlite_db
    await _seed()

    async with _make_async_client() as client:
        r = await client.get(f"/v2/messages/{A}", params={"user": "alice"})
        assert r.status_code == 200
        assert _body(r)["subject"] == "Job 1 finished"

        r_other = await client.get(f"/v2/messages/{_nid(4)}", params={"user": "alice"})
        assert r_other.status_code == 404

        r_bad = await client.get("/v2/messages/nope", params={"user": "alice"})
        assert r_bad.status_code == 400

        r_seen = await client.post(f"/v2/messages/{A}/seen", params={"user": "alice"})
        assert r_seen.status_code == 200
        assert _body(r_seen)["seen"] is True

        r_list = await client.get("/v2/messages", params={"user": "alice"})
        assert _message_ids(_body(r_list)) == [C, B]

        r_del = await client.delete(f"/v2/messages/{B}", params={"user": "alice"})
        assert r_del.status_code == 200
        assert _body(r_del)["deleted"] is True

        r_all = await client.get("/v2/messages", params={"user": "alice", "seen": "true"})
        assert _message_ids(_body(r_all)) == [C, A]

        r_missing = await client.post(f"/v2/messages/{MISSING}/seen", params={"user": "alice"})
        assert r_missing.status_code == 404
        assert _body(r_missing)["message"] == f"notification ID {MISSING}"


@pytest.mark.anyio
async def test_bulk_seen_and_delete(sqlite_db: str):
    _ = sqlite_db
    await _seed()

    async with _make_async_client() as client:
        r = await client.post(
            "/v2/messages/seen", params={"user": "alice"}, json={"ids": [A, B]}
        )
        assert r.status_code == 200
        assert r.json() == {"count": 2}

        r_missing = await client.post(
            "/v2/messages/seen",
            params={"user": "alice"},
            json={"ids": [A, MISSING, _nid(4)]},
        )
        assert r_missing.status_code == 404
        body = _body(r_missing)
        assert body["error"] == "not_found"
        assert body["details"] == {"ids": [MISSING, _nid(4)]}

        r_empty = await client.post("/v2/messages/seen", params={"user": "alice"}, json={})
        assert r_empty.status_code == 400

        r_unknown_user = await client.post(
            "/v2/messages/seen", params={"user": "carol"}, json={"all_notifications": True}
        )
        assert r_unknown_user.status_code == 404

        r_all_seen = await client.post(
            "/v2/messages/seen", params={"user": "alice"}, json={"all_notifications": True}
        )
        assert r_all_seen.status_code == 200
        assert r_all_seen.json() == {"count": 1}

        r_del = await client.post(
            "/v2/messages/delete", params={"user": "alice"}, json={"all_notifications": True}
        )
        assert r_del.status_code == 200
        assert r_del.json() == {"count": 3}

        r_list = await client.get("/v2/messages", params={"user": "alice", "seen": "true"})
        assert r_list.json() == {"total": 0}

        r_bob = await client.get("/v2/messages", params={"user": "bob"})
        assert cast(int, _body(r_bob)["total"]) == 1


@pytest.mark.anyio
async def test_delete_matching(sqlite_db: str):
    _ = sqlite_db
    await _seed()

    async with _make_async_client() as client:
        await client.post(f"/v2/messages/{A}/seen", params={"user": "alice"})

        r_unknown_type = await client.post(
            "/v2/messages/delete-matching", params={"user": "alice"}, json={"type": "nope"}
        )
        assert r_unknown_type.json() == {"count": 0}

        r_seen = await client.post(
            "/v2/messages/delete-matching", params={"user": "alice"}, json={"seen": True}
        )
        assert r_seen.status_code == 200
        assert r_seen.json() == {"count": 1}

        r_type = await client.post(
            "/v2/messages/delete-matching", params={"user": "alice"}, json={"type": "Data"}
        )
        assert r_type.json() == {"count": 1}

        r_list = await client.get("/v2/messages", params={"user": "alice", "seen": "true"})
        assert _message_ids(_body(r_list)) == [B]


@pytest.mark.anyio
async def test_root_health_and_unknown_paths():
    async with _make_async_client() as client:
        r = await client.get("/v2/")
        assert r.status_code == 200
        body = _body(r)
        assert body["service"] == "notifications"
        assert body["api_version"] == "v2"

        r_health = await client.get("/health")
        assert r_health.status_code == 200
        assert r_health.json() == {"ok": True}
        assert r_health.headers.get("x-request-id")

        r_missing = await client.get("/v2/does-not-exist")
        assert r_missing.status_code == 404
        assert _body(r_missing)["error"] == "not_found"


@pytest.mark.anyio
async def test_request_id_is_echoed_and_access_logged(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO, logger="notify_backend.access")

    async with _make_async_client() as client:
        r = await client.get("/health", headers={"X-Request-Id": "rid-abc"})
        assert r.status_code == 200
        assert r.headers.get("x-request-id") == "rid-abc"

        r_generated = await client.get("/health")
        assert r_generated.headers.get("x-request-id")

    lines = [rec.getMessage() for rec in caplog.records if rec.name == "notify_backend.access"]
    assert any("GET /health" in line and "status=200" in line and "rid-abc" in line for line in lines)
