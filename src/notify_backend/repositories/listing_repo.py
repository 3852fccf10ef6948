"""Keyset listing queries over notifications.

Every query here is built from the same filter conditions so that the page,
its boundary ids and the total always describe the same set of rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import cast

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.domain.filters import NotificationFilter
from notify_backend.domain.pagination import (
    Cursor,
    Lookahead,
    PaginationMode,
    Side,
    SortOrder,
    cursor_side,
    plan_boundary_lookups,
    scan_order,
    subject_search_pattern,
)
from notify_backend.models import Notification, NotificationType

_id_col = cast(ColumnElement[str], cast(object, Notification.id))
_user_id_col = cast(ColumnElement[int], cast(object, Notification.user_id))
_type_id_col = cast(ColumnElement[int], cast(object, Notification.notification_type_id))
_subject_col = cast(ColumnElement[str], cast(object, Notification.subject))
_seen_col = cast(ColumnElement[bool], cast(object, Notification.seen))
_deleted_col = cast(ColumnElement[bool], cast(object, Notification.deleted))
_time_created_col = cast(ColumnElement[datetime], cast(object, Notification.time_created))
_type_pk_col = cast(ColumnElement[int], cast(object, NotificationType.id))


def filter_conditions(
    *,
    user_id: int | None,
    type_id: int | None,
    filters: NotificationFilter,
) -> list[ColumnElement[bool]]:
    """WHERE clause shared by the page, lookahead and count queries.

    ``user_id`` and ``type_id`` are the resolved ids of the owner and of the
    type filter. None means the name did not resolve, so nothing can match.
    """

    if user_id is None:
        return [sa.false()]

    conditions: list[ColumnElement[bool]] = [
        _user_id_col == user_id,
        sa.not_(_deleted_col),
    ]

    if not filters.include_seen:
        conditions.append(sa.not_(_seen_col))

    if filters.subject_search:
        pattern = subject_search_pattern(filters.subject_search)
        conditions.append(sa.func.lower(_subject_col).like(pattern, escape="\\"))

    if filters.notification_type:
        conditions.append(_type_id_col == type_id if type_id is not None else sa.false())

    return conditions


def cursor_condition(cursor: Cursor, side: Side) -> ColumnElement[bool]:
    # Inclusive of the cursor row; the id comparison settles equal timestamps.
    if side is Side.BEFORE:
        return sa.or_(
            _time_created_col < cursor.time_created,
            sa.and_(_time_created_col == cursor.time_created, _id_col <= cursor.id),
        )
    return sa.or_(
        _time_created_col > cursor.time_created,
        sa.and_(_time_created_col == cursor.time_created, _id_col >= cursor.id),
    )


def _order_by(sort_order: SortOrder) -> tuple[ColumnElement[object], ...]:
    if sort_order is SortOrder.ASC:
        return (_time_created_col.asc(), _id_col.asc())
    return (_time_created_col.desc(), _id_col.desc())


def _require_cursor(cursor: Cursor | None) -> Cursor:
    if cursor is None:
        raise ValueError("cursor condition requested without a resolved cursor")
    return cursor


async def get_notification_timestamp(
    session: AsyncSession, *, notification_id: str
) -> datetime | None:
    # Independent of owner and flags: an id from an earlier page stays usable.
    stmt = select(Notification.time_created).where(_id_col == notification_id)
    return (await session.exec(stmt)).first()


async def fetch_page(
    session: AsyncSession,
    *,
    conditions: list[ColumnElement[bool]],
    mode: PaginationMode,
    cursor: Cursor | None,
    display_order: SortOrder,
    limit: int,
) -> list[tuple[Notification, str | None]]:
    """Return the page rows with their type names, in ``display_order``.

    Two steps: a bounded id scan in scan order, then the full rows re-sorted
    into display order by the outer query.
    """

    inner = select(_id_col).where(*conditions)
    side = cursor_side(mode)
    if side is not None:
        inner = inner.where(cursor_condition(_require_cursor(cursor), side))
    inner = inner.order_by(*_order_by(scan_order(mode, display_order)))
    if limit > 0:
        inner = inner.limit(limit)
    page_ids = inner.subquery("page_ids")

    stmt = (
        select(Notification, NotificationType.name)
        .select_from(Notification)
        .join(page_ids, page_ids.c.id == _id_col)
        .outerjoin(NotificationType, _type_pk_col == _type_id_col)
        .order_by(*_order_by(display_order))
    )
    rows = (await session.exec(stmt)).all()
    return [(notification, type_name) for notification, type_name in rows]


async def run_lookahead(
    session: AsyncSession,
    *,
    conditions: list[ColumnElement[bool]],
    cursor: Cursor | None,
    lookahead: Lookahead,
) -> str | None:
    stmt = select(_id_col).where(*conditions)
    if lookahead.side is not None:
        stmt = stmt.where(cursor_condition(_require_cursor(cursor), lookahead.side))
    stmt = stmt.order_by(*_order_by(lookahead.sort_order)).offset(lookahead.offset).limit(1)
    return (await session.exec(stmt)).first()


async def find_boundary_ids(
    session: AsyncSession,
    *,
    conditions: list[ColumnElement[bool]],
    mode: PaginationMode,
    cursor: Cursor | None,
    limit: int,
) -> tuple[str | None, str | None]:
    """Ids of the first rows of the neighbouring pages: (before_id, after_id)."""

    plan = plan_boundary_lookups(mode, limit)

    before_id: str | None = None
    if plan.before is not None:
        before_id = await run_lookahead(
            session, conditions=conditions, cursor=cursor, lookahead=plan.before
        )

    after_id: str | None = None
    if plan.after is not None:
        after_id = await run_lookahead(
            session, conditions=conditions, cursor=cursor, lookahead=plan.after
        )

    return before_id, after_id


async def count_notifications(
    session: AsyncSession,
    *,
    conditions: list[ColumnElement[bool]],
) -> int:
    stmt = select(sa.func.count()).select_from(Notification).where(*conditions)
    return int((await session.exec(stmt)).first() or 0)
