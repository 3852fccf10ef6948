from __future__ import annotations

from typing import cast

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession as SAAsyncSession
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.models import Notification, NotificationType

_id_col = cast(ColumnElement[str], cast(object, Notification.id))
_user_id_col = cast(ColumnElement[int], cast(object, Notification.user_id))
_type_id_col = cast(ColumnElement[int], cast(object, Notification.notification_type_id))
_seen_col = cast(ColumnElement[bool], cast(object, Notification.seen))
_deleted_col = cast(ColumnElement[bool], cast(object, Notification.deleted))
_type_pk_col = cast(ColumnElement[int], cast(object, NotificationType.id))


async def get_notification(
    session: AsyncSession,
    *,
    user_id: int,
    notification_id: str,
) -> tuple[Notification, str | None] | None:
    stmt = (
        select(Notification, NotificationType.name)
        .select_from(Notification)
        .outerjoin(NotificationType, _type_pk_col == _type_id_col)
        .where(_user_id_col == user_id)
        .where(_id_col == notification_id)
    )
    row = (await session.exec(stmt)).first()
    if row is None:
        return None
    notification, type_name = row
    return notification, type_name


async def _update(
    session: AsyncSession,
    *,
    user_id: int,
    values: dict[str, object],
    conditions: list[ColumnElement[bool]],
) -> int:
    stmt = (
        sa.update(Notification)
        .where(_user_id_col == user_id)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await cast(SAAsyncSession, session).execute(stmt)
    # UPDATE results are cursor results; rowcount counts matched rows.
    return int(result.rowcount or 0)  # pyright: ignore[reportAttributeAccessIssue]


async def mark_seen(session: AsyncSession, *, user_id: int, notification_id: str) -> int:
    return await _update(
        session, user_id=user_id, values={"seen": True}, conditions=[_id_col == notification_id]
    )


async def mark_deleted(session: AsyncSession, *, user_id: int, notification_id: str) -> int:
    return await _update(
        session, user_id=user_id, values={"deleted": True}, conditions=[_id_col == notification_id]
    )


async def mark_many_seen(session: AsyncSession, *, user_id: int, notification_ids: list[str]) -> int:
    if not notification_ids:
        return 0
    return await _update(
        session,
        user_id=user_id,
        values={"seen": True},
        conditions=[_id_col.in_(notification_ids)],
    )


async def mark_all_seen(session: AsyncSession, *, user_id: int) -> int:
    return await _update(
        session, user_id=user_id, values={"seen": True}, conditions=[sa.not_(_seen_col)]
    )


async def mark_many_deleted(
    session: AsyncSession, *, user_id: int, notification_ids: list[str]
) -> int:
    if not notification_ids:
        return 0
    return await _update(
        session,
        user_id=user_id,
        values={"deleted": True},
        conditions=[_id_col.in_(notification_ids)],
    )


async def delete_matching(
    session: AsyncSession,
    *,
    user_id: int,
    seen: bool | None = None,
    type_id: int | None = None,
) -> int:
    """Soft-delete the user's undeleted notifications, optionally narrowed by
    seen state and type."""

    conditions: list[ColumnElement[bool]] = [sa.not_(_deleted_col)]
    if seen is not None:
        conditions.append(_seen_col if seen else sa.not_(_seen_col))
    if type_id is not None:
        conditions.append(_type_id_col == type_id)
    return await _update(session, user_id=user_id, values={"deleted": True}, conditions=conditions)


async def filter_missing_ids(
    session: AsyncSession,
    *,
    user_id: int,
    notification_ids: list[str],
) -> list[str]:
    """Ids that don't exist or aren't addressed to the user, in input order."""

    if not notification_ids:
        return []

    stmt = select(_id_col).where(_user_id_col == user_id).where(_id_col.in_(notification_ids))
    extant = set((await session.exec(stmt)).all())

    missing: list[str] = []
    for notification_id in notification_ids:
        if notification_id not in extant and notification_id not in missing:
            missing.append(notification_id)
    return missing
