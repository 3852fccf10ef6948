from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.config import settings
from notify_backend.db import read_snapshot, transaction
from notify_backend.domain.filters import NotificationFilter
from notify_backend.domain.pagination import (
    Cursor,
    PaginationMode,
    SortOrder,
    parse_cursor_id,
    resolve_mode,
)
from notify_backend.errors import InvalidParameterError, NotFoundError, StorageError
from notify_backend.models import Notification
from notify_backend.repositories import listing_repo, notifications_repo, users_repo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListedNotification:
    notification: Notification
    type_name: str | None


@dataclass(frozen=True)
class NotificationListing:
    # None when only the count was requested.
    messages: list[ListedNotification] | None
    total: int
    before_id: str | None = None
    after_id: str | None = None


def parse_sort_order(value: str | None) -> SortOrder:
    raw = value if value and value.strip() else settings.listing_default_sort_order
    try:
        return SortOrder.parse(raw)
    except ValueError as exc:
        raise InvalidParameterError(str(exc)) from exc


def _parse_id(value: str | None, *, name: str) -> str | None:
    try:
        return parse_cursor_id(value, name=name)
    except ValueError as exc:
        raise InvalidParameterError(str(exc)) from exc


def _validate_limit(limit: int) -> None:
    if limit < 0:
        raise InvalidParameterError("invalid query parameter: limit")
    if settings.listing_max_limit > 0 and limit > settings.listing_max_limit:
        raise InvalidParameterError(
            f"invalid query parameter: limit must not exceed {settings.listing_max_limit}"
        )


async def _resolve_cursor(session: AsyncSession, *, notification_id: str) -> Cursor:
    time_created = await listing_repo.get_notification_timestamp(
        session, notification_id=notification_id
    )
    if time_created is None:
        raise NotFoundError(f"message {notification_id} does not exist")
    return Cursor(id=notification_id, time_created=time_created)


async def list_notifications(
    session: AsyncSession,
    *,
    username: str,
    filters: NotificationFilter,
    limit: int = 0,
    sort_order: SortOrder = SortOrder.DESC,
    before_id: str | None = None,
    after_id: str | None = None,
    count_only: bool = False,
) -> NotificationListing:
    """List one page of a user's notifications.

    ``limit`` 0 means no limit. At most one of ``before_id`` / ``after_id``
    drives paging; ``before_id`` wins if both are given. All queries run in one
    read-only transaction over a single snapshot, so the page, its boundary ids
    and the total describe the same rows.
    """

    _validate_limit(limit)
    before_id = _parse_id(before_id, name="before-id")
    after_id = _parse_id(after_id, name="after-id")
    filters = filters.normalized()
    mode = resolve_mode(sort_order=sort_order, before_id=before_id, after_id=after_id)

    try:
        async with read_snapshot(session):
            before_cursor = (
                await _resolve_cursor(session, notification_id=before_id) if before_id else None
            )
            after_cursor = (
                await _resolve_cursor(session, notification_id=after_id) if after_id else None
            )
            cursor = before_cursor if mode is PaginationMode.BEFORE_ID else after_cursor

            user_id = await users_repo.get_user_id(session, username=username)
            type_id: int | None = None
            if filters.notification_type:
                type_id = await users_repo.get_notification_type_id(
                    session, name=filters.notification_type
                )
            conditions = listing_repo.filter_conditions(
                user_id=user_id, type_id=type_id, filters=filters
            )

            total = await listing_repo.count_notifications(session, conditions=conditions)
            if count_only:
                return NotificationListing(messages=None, total=total)

            rows = await listing_repo.fetch_page(
                session,
                conditions=conditions,
                mode=mode,
                cursor=cursor,
                display_order=sort_order,
                limit=limit,
            )
            new_before_id, new_after_id = await listing_repo.find_boundary_ids(
                session,
                conditions=conditions,
                mode=mode,
                cursor=cursor,
                limit=limit,
            )
    except SQLAlchemyError as exc:
        raise StorageError("unable to obtain the notification listing") from exc

    logger.debug(
        "listed notifications user=%s mode=%s limit=%s returned=%s total=%s",
        username,
        mode.value,
        limit,
        len(rows),
        total,
    )
    return NotificationListing(
        messages=[ListedNotification(notification=n, type_name=t) for n, t in rows],
        total=total,
        before_id=new_before_id,
        after_id=new_after_id,
    )


async def get_notification(
    session: AsyncSession,
    *,
    username: str,
    notification_id: str,
) -> ListedNotification:
    canonical_id = _parse_id(notification_id, name="notification ID")
    if canonical_id is None:
        raise InvalidParameterError("invalid notification ID")

    try:
        async with transaction(session):
            user_id = await users_repo.get_user_id(session, username=username)
            row = None
            if user_id is not None:
                row = await notifications_repo.get_notification(
                    session, user_id=user_id, notification_id=canonical_id
                )
    except SQLAlchemyError as exc:
        raise StorageError("unable to look up the notification") from exc

    if row is None:
        raise NotFoundError(f"notification ID {canonical_id}")
    notification, type_name = row
    return ListedNotification(notification=notification, type_name=type_name)
