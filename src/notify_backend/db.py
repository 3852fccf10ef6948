from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.config import settings
from notify_backend.db_urls import (
    ensure_sqlite_parent_dir,
    is_sqlite_url,
    normalize_database_url_for_async,
)


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    # pysqlite 只在 DML 前才发 BEGIN，连续的 SELECT 不在同一快照里；
    # 这里改由 SQLAlchemy 显式发 BEGIN，使一次列表查询的所有读取共享同一快照。
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:  # pyright: ignore[reportUnusedFunction]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Connection) -> None:  # pyright: ignore[reportUnusedFunction]
        _ = conn.exec_driver_sql("BEGIN")


def _create_async_engine(database_url: str) -> AsyncEngine:
    # 运行时统一使用异步 driver（sqlite+aiosqlite / postgresql+psycopg）
    url = normalize_database_url_for_async(database_url)
    engine = create_async_engine(url, echo=False, pool_pre_ping=True)
    if is_sqlite_url(url):
        ensure_sqlite_parent_dir(url)
        _enable_sqlite_transactions(engine)
    return engine


@lru_cache(maxsize=4)
def get_engine() -> AsyncEngine:
    # 允许测试/部署时覆写 settings.database_url 后重建 engine
    return _create_async_engine(settings.database_url)


def reset_engine_cache() -> None:
    dispose_engine_cache()
    get_engine.cache_clear()


def dispose_engine_cache() -> None:
    """关闭已缓存 engine 的连接池（若 engine 尚未创建则跳过）。"""

    if get_engine.cache_info().currsize == 0:
        return
    engine = get_engine()
    # 同步 dispose：在事件循环之外（包括解释器退出时）也可安全调用
    engine.sync_engine.dispose(close=False)


async def init_db() -> None:
    # 仅用于本地/测试场景兜底；生产以 Alembic 迁移为准
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def _session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with _session_maker()() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    async with _session_maker()() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """在单个事务中执行代码块，成功则提交。

    若 session 已处于事务中（由调用方开启），则直接复用，提交/回滚仍由调用方负责。
    """

    if session.in_transaction():
        yield session
        return

    async with session.begin():
        yield session


def snapshot_execution_options(dialect_name: str) -> dict[str, object]:
    """只读快照事务所需的连接 execution options。

    PostgreSQL 默认 READ COMMITTED：每条语句各取一次快照。REPEATABLE READ 下
    整个事务共用第一条语句取得的快照。SQLite 依靠显式 BEGIN（见
    `_enable_sqlite_transactions`）获得快照，不需要额外选项。
    """

    if dialect_name == "postgresql":
        return {"isolation_level": "REPEATABLE READ", "postgresql_readonly": True}
    return {}


@asynccontextmanager
async def read_snapshot(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """在单个只读事务中执行代码块，块内所有查询看到同一份数据快照。

    隔离级别必须在事务的第一条语句之前设置，因此已处于事务中的 session
    直接复用，由调用方保证其隔离级别。
    """

    if session.in_transaction():
        yield session
        return

    async with session.begin():
        options = snapshot_execution_options(session.get_bind().dialect.name)
        if options:
            _ = await session.connection(execution_options=options)
        yield session
