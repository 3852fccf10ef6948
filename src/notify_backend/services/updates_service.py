from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.db import transaction
from notify_backend.domain.pagination import parse_cursor_id
from notify_backend.errors import InvalidParameterError, NotFoundError, StorageError
from notify_backend.repositories import notifications_repo, users_repo

logger = logging.getLogger(__name__)

UpdateFn = Callable[..., Awaitable[int]]


def _canonical_id(raw: str) -> str:
    try:
        canonical = parse_cursor_id(raw, name="notification ID")
    except ValueError as exc:
        raise InvalidParameterError(str(exc)) from exc
    if canonical is None:
        raise InvalidParameterError("invalid notification ID")
    return canonical


def _canonical_ids(ids: list[str]) -> list[str]:
    out: list[str] = []
    for raw in ids:
        canonical = _canonical_id(raw)
        if canonical not in out:
            out.append(canonical)
    return out


async def _update_single(
    session: AsyncSession,
    *,
    username: str,
    notification_id: str,
    update_fn: UpdateFn,
) -> None:
    canonical_id = _canonical_id(notification_id)
    not_found = f"notification ID {canonical_id}"

    try:
        async with transaction(session):
            user_id = await users_repo.get_user_id(session, username=username)
            if user_id is None:
                raise NotFoundError(not_found)

            count = await update_fn(session, user_id=user_id, notification_id=canonical_id)
            if count == 0:
                raise NotFoundError(not_found)
    except SQLAlchemyError as exc:
        raise StorageError(f"unable to update notification {canonical_id}") from exc


async def mark_seen(session: AsyncSession, *, username: str, notification_id: str) -> None:
    await _update_single(
        session,
        username=username,
        notification_id=notification_id,
        update_fn=notifications_repo.mark_seen,
    )


async def delete(session: AsyncSession, *, username: str, notification_id: str) -> None:
    await _update_single(
        session,
        username=username,
        notification_id=notification_id,
        update_fn=notifications_repo.mark_deleted,
    )


async def _update_multiple(
    session: AsyncSession,
    *,
    username: str,
    ids: list[str],
    all_notifications: bool,
    update_ids: UpdateFn,
    update_all: UpdateFn,
) -> int:
    if not all_notifications and not ids:
        raise InvalidParameterError(
            "either `all_notifications` must be true or `ids` must be specified and not empty"
        )
    canonical_ids = [] if all_notifications else _canonical_ids(ids)

    try:
        async with transaction(session):
            user_id = await users_repo.get_user_id(session, username=username)
            if user_id is None:
                raise NotFoundError(f"no messages found for user {username}")

            if all_notifications:
                return await update_all(session, user_id=user_id)

            missing = await notifications_repo.filter_missing_ids(
                session, user_id=user_id, notification_ids=canonical_ids
            )
            if missing:
                raise NotFoundError(
                    f"notification IDs {', '.join(missing)}", missing_ids=missing
                )
            return await update_ids(session, user_id=user_id, notification_ids=canonical_ids)
    except SQLAlchemyError as exc:
        raise StorageError("unable to update notifications") from exc


async def _delete_all(session: AsyncSession, *, user_id: int) -> int:
    return await notifications_repo.delete_matching(session, user_id=user_id)


async def mark_many_seen(
    session: AsyncSession,
    *,
    username: str,
    ids: list[str],
    all_notifications: bool,
) -> int:
    count = await _update_multiple(
        session,
        username=username,
        ids=ids,
        all_notifications=all_notifications,
        update_ids=notifications_repo.mark_many_seen,
        update_all=notifications_repo.mark_all_seen,
    )
    logger.info("marked notifications seen user=%s count=%s", username, count)
    return count


async def delete_many(
    session: AsyncSession,
    *,
    username: str,
    ids: list[str],
    all_notifications: bool,
) -> int:
    count = await _update_multiple(
        session,
        username=username,
        ids=ids,
        all_notifications=all_notifications,
        update_ids=notifications_repo.mark_many_deleted,
        update_all=_delete_all,
    )
    logger.info("deleted notifications user=%s count=%s", username, count)
    return count


async def delete_matching(
    session: AsyncSession,
    *,
    username: str,
    seen: bool | None = None,
    notification_type: str | None = None,
) -> int:
    """Soft-delete the user's notifications matching the optional filters.

    An unknown type label matches nothing.
    """

    type_name = (notification_type or "").strip().lower() or None

    try:
        async with transaction(session):
            user_id = await users_repo.get_user_id(session, username=username)
            if user_id is None:
                raise NotFoundError(f"no messages found for user {username}")

            type_id: int | None = None
            if type_name is not None:
                type_id = await users_repo.get_notification_type_id(session, name=type_name)
                if type_id is None:
                    return 0

            count = await notifications_repo.delete_matching(
                session, user_id=user_id, seen=seen, type_id=type_id
            )
    except SQLAlchemyError as exc:
        raise StorageError("unable to delete matching notifications") from exc

    logger.info("deleted matching notifications user=%s count=%s", username, count)
    return count
