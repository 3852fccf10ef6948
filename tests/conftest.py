from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from notify_backend.config import settings
from notify_backend.db import dispose_engine_cache, get_engine, init_db, reset_engine_cache


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
async def _dispose_engine_cache_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    # Dispose the cached AsyncEngine (aiosqlite worker threads) while the
    # per-test event loop is still alive.
    _ = anyio_backend
    yield

    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    get_engine.cache_clear()


@pytest.fixture
async def sqlite_db(tmp_path: Path, anyio_backend: object) -> AsyncGenerator[str, None]:  # noqa: ARG001
    """Point settings at a fresh SQLite file with all tables created."""

    _ = anyio_backend
    old_db = settings.database_url
    url = f"sqlite:///{tmp_path / 'test-notifications.db'}"
    try:
        settings.database_url = url
        reset_engine_cache()
        await init_db()
        yield url
    finally:
        settings.database_url = old_db


def pytest_sessionfinish(session: object, exitstatus: int) -> None:  # noqa: ARG001
    # Safety net: close the cached engine so CI can exit cleanly.
    _ = session, exitstatus
    dispose_engine_cache()
