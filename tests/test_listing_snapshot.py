from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend import db
from notify_backend.db import get_engine, session_scope, snapshot_execution_options
from notify_backend.domain.filters import NotificationFilter
from notify_backend.models import Notification, User
from notify_backend.repositories import listing_repo
from notify_backend.services import listing_service

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _nid(n: int) -> str:
    return f"00000000-0000-0000-0000-{n:012d}"


async def _seed(count: int) -> int:
    async with session_scope() as session:
        user = User(username="alice")
        session.add(user)
        await session.commit()
        await session.refresh(user)
        assert user.id is not None
        for n in range(1, count + 1):
            session.add(
                Notification(
                    id=_nid(n),
                    user_id=int(user.id),
                    subject=f"n{n}",
                    time_created=T0 + timedelta(minutes=n),
                )
            )
        await session.commit()
        return int(user.id)


async def _list_all() -> listing_service.NotificationListing:
    async with session_scope() as session:
        return await listing_service.list_notifications(
            session, username="alice", filters=NotificationFilter()
        )


def test_snapshot_options_use_repeatable_read_on_postgresql():
    assert snapshot_execution_options("postgresql") == {
        "isolation_level": "REPEATABLE READ",
        "postgresql_readonly": True,
    }
    # SQLite takes its snapshot from the explicit BEGIN.
    assert snapshot_execution_options("sqlite") == {}


@pytest.mark.anyio
async def test_listing_queries_share_the_snapshot_connection(
    sqlite_db: str, monkeypatch: pytest.MonkeyPatch
):
    _ = sqlite_db
    await _seed(2)

    dialects: list[str] = []

    def _options(dialect_name: str) -> dict[str, object]:
        dialects.append(dialect_name)
        return {"logging_token": "notification-listing"}

    seen_options: list[dict[str, object]] = []
    real_count = listing_repo.count_notifications

    async def _count(session: AsyncSession, *, conditions: list[ColumnElement[bool]]) -> int:
        conn = await session.connection()
        seen_options.append(dict(conn.sync_connection.get_execution_options()))  # pyright: ignore[reportOptionalMemberAccess]
        return await real_count(session, conditions=conditions)

    monkeypatch.setattr(db, "snapshot_execution_options", _options)
    monkeypatch.setattr(listing_repo, "count_notifications", _count)

    listing = await _list_all()
    assert listing.total == 2
    assert dialects == ["sqlite"]
    assert len(seen_options) == 1
    assert seen_options[0].get("logging_token") == "notification-listing"


@pytest.mark.anyio
async def test_rows_committed_mid_listing_are_not_observed(
    sqlite_db: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    _ = sqlite_db
    user_id = await _seed(3)

    # WAL lets a writer commit while the listing's read transaction stays open.
    await get_engine().dispose()
    conn = sqlite3.connect(tmp_path / "test-notifications.db")
    try:
        assert conn.execute("PRAGMA journal_mode=WAL").fetchone()[0] == "wal"
    finally:
        conn.close()

    real_count = listing_repo.count_notifications

    async def _count_then_insert(
        session: AsyncSession, *, conditions: list[ColumnElement[bool]]
    ) -> int:
        total = await real_count(session, conditions=conditions)
        async with session_scope() as other:
            other.add(
                Notification(
                    id=_nid(4),
                    user_id=user_id,
                    subject="late arrival",
                    time_created=T0 + timedelta(minutes=10),
                )
            )
            await other.commit()
        return total

    monkeypatch.setattr(listing_repo, "count_notifications", _count_then_insert)

    listing = await _list_all()
    assert listing.total == 3
    assert listing.messages is not None
    assert [m.notification.id for m in listing.messages] == [_nid(3), _nid(2), _nid(1)]

    monkeypatch.undo()
    after = await _list_all()
    assert after.total == 4
    assert after.messages is not None
    assert after.messages[0].notification.id == _nid(4)
