"""DATABASE_URL 规范化。

运行时（AsyncEngine）与 Alembic（同步 engine）使用同一个 DATABASE_URL，
只在 driver 上不同：
- SQLite：运行时 sqlite+aiosqlite://，迁移 sqlite://
- PostgreSQL：两者均为 postgresql+psycopg://（psycopg3 同时支持同步与异步）
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote

_SQLITE_SCHEMES = ("sqlite+aiosqlite://", "sqlite://")


def _to_psycopg(url: str) -> str:
    # 兼容 postgres:// 与 psycopg2 写法，统一落到 psycopg3
    for prefix in ("postgres://", "postgresql://", "postgresql+psycopg2://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


def _with_sqlite_scheme(url: str, scheme: str) -> str:
    for prefix in _SQLITE_SCHEMES:
        if url.startswith(prefix):
            return scheme + url[len(prefix) :]
    return url


def normalize_database_url_for_async(database_url: str) -> str:
    url = (database_url or "").strip()
    if is_sqlite_url(url):
        return _with_sqlite_scheme(url, "sqlite+aiosqlite://")
    return _to_psycopg(url)


def normalize_database_url_for_alembic(database_url: str) -> str:
    url = (database_url or "").strip()
    if is_sqlite_url(url):
        return _with_sqlite_scheme(url, "sqlite://")
    return _to_psycopg(url)


def is_sqlite_url(database_url: str) -> bool:
    return (database_url or "").strip().lower().startswith("sqlite")


def _sqlite_file_path(database_url: str) -> Path | None:
    # 仅用于推断文件路径：忽略 query/fragment；内存库与非 sqlite URL 返回 None
    url = database_url.split("#", 1)[0].split("?", 1)[0]
    _, sep, rest = url.partition("://")
    if not sep:
        return None

    # sqlite:///./dev.db -> "./dev.db"；sqlite:////tmp/a.db -> "/tmp/a.db"
    file_path = unquote(rest[1:] if rest.startswith("/") else rest)
    if not file_path or file_path == ":memory:":
        return None
    return Path(file_path)


def ensure_sqlite_parent_dir(database_url: str) -> None:
    """确保 SQLite 数据库文件的父目录存在（如 `sqlite:///./.data/dev.db`）。"""

    if not is_sqlite_url(database_url):
        return
    path = _sqlite_file_path(database_url.strip())
    if path is None or str(path.parent) in {"", "."}:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
