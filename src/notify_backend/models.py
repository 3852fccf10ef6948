# basedpyright: reportAssignmentType=false
# basedpyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, Index, Text
from sqlalchemy.types import JSON as SAJSON
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, min_length=1, max_length=255)


class NotificationType(SQLModel, table=True):
    __tablename__ = "notification_types"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    # Stored lower-case; listings compare against the lower-cased label.
    name: str = Field(index=True, unique=True, min_length=1, max_length=64)


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]
    __table_args__ = (
        # Keyset listings scan (user_id, time_created, id) in both directions.
        Index("ix_notifications_user_id_time_created_id", "user_id", "time_created", "id"),
    )

    # Canonical lower-case UUID string; also the tie-breaker of the listing order.
    id: str = Field(primary_key=True, min_length=36, max_length=36)
    user_id: int = Field(index=True, foreign_key="users.id")
    notification_type_id: Optional[int] = Field(
        default=None, index=True, foreign_key="notification_types.id"
    )

    subject: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))

    seen: bool = Field(default=False, index=True)
    deleted: bool = Field(default=False, index=True)

    # Opaque message body, returned verbatim.
    payload_json: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(SAJSON, nullable=False),
    )

    time_created: datetime = Field(default_factory=utc_now, index=True)
