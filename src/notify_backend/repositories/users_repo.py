from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.models import NotificationType, User


async def get_user_id(session: AsyncSession, *, username: str) -> int | None:
    # Unknown users are not an error here; callers decide what that means.
    return (await session.exec(select(User.id).where(User.username == username))).first()


async def get_notification_type_id(session: AsyncSession, *, name: str) -> int | None:
    stmt = select(NotificationType.id).where(NotificationType.name == name.strip().lower())
    return (await session.exec(stmt)).first()
