from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from notify_backend.config import settings
from notify_backend import models  # noqa: F401  # 确保 users/notification_types/notifications 已注册到 metadata
from notify_backend.db_urls import (
    ensure_sqlite_parent_dir,
    is_sqlite_url,
    normalize_database_url_for_alembic,
)


config = context.config
# 测试可通过 config.attributes["configure_logger"] = False 保留 pytest 的日志配置
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = SQLModel.metadata


def _get_database_url() -> str:
    # 优先级：ini 显式配置（测试）> 环境变量 DATABASE_URL > settings/.env
    raw = (
        config.get_main_option("sqlalchemy.url")
        or os.getenv("DATABASE_URL")
        or settings.database_url
    )
    return normalize_database_url_for_alembic(raw)


def run_migrations_offline() -> None:
    url = _get_database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _get_database_url()
    ensure_sqlite_parent_dir(url)

    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite 不支持大部分 ALTER TABLE，需用 batch 模式重建表
            render_as_batch=is_sqlite_url(url),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
