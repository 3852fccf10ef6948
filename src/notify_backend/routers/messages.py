"""Notification mailbox endpoints.

The caller-supplied ``user`` query parameter is trusted; authentication
happens upstream.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from notify_backend.db import get_session
from notify_backend.domain.filters import NotificationFilter
from notify_backend.schemas_messages import (
    DeleteMatchingRequest,
    MultipleMessageUpdateRequest,
    Notification as NotificationSchema,
    NotificationListResponse,
    UpdateCountResponse,
    listing_to_response,
    notification_to_schema,
)
from notify_backend.services import listing_service, updates_service

router = APIRouter(tags=["messages"])

UserParam = Annotated[str, Query(min_length=1, max_length=255)]


@router.get("/messages", response_model=NotificationListResponse)
async def list_messages(
    user: UserParam,
    limit: Annotated[int, Query(ge=0)] = 0,
    seen: Annotated[bool, Query()] = False,
    sort_dir: Annotated[str | None, Query(alias="sort-dir")] = None,
    before_id: Annotated[str | None, Query(alias="before-id")] = None,
    after_id: Annotated[str | None, Query(alias="after-id")] = None,
    count_only: Annotated[bool, Query(alias="count-only")] = False,
    subject_search: Annotated[str | None, Query(alias="subject-search", max_length=255)] = None,
    notification_type: Annotated[str | None, Query(alias="type", max_length=64)] = None,
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    listing = await listing_service.list_notifications(
        session,
        username=user,
        filters=NotificationFilter(
            include_seen=seen,
            subject_search=subject_search,
            notification_type=notification_type,
        ),
        limit=limit,
        sort_order=listing_service.parse_sort_order(sort_dir),
        before_id=before_id,
        after_id=after_id,
        count_only=count_only,
    )
    body = listing_to_response(listing)
    return JSONResponse(content=body.model_dump(mode="json", exclude_unset=True))


@router.post("/messages/seen", response_model=UpdateCountResponse)
async def mark_messages_seen(
    user: UserParam,
    payload: MultipleMessageUpdateRequest,
    session: AsyncSession = Depends(get_session),
) -> UpdateCountResponse:
    count = await updates_service.mark_many_seen(
        session,
        username=user,
        ids=payload.ids,
        all_notifications=payload.all_notifications,
    )
    return UpdateCountResponse(count=count)


@router.post("/messages/delete", response_model=UpdateCountResponse)
async def delete_messages(
    user: UserParam,
    payload: MultipleMessageUpdateRequest,
    session: AsyncSession = Depends(get_session),
) -> UpdateCountResponse:
    count = await updates_service.delete_many(
        session,
        username=user,
        ids=payload.ids,
        all_notifications=payload.all_notifications,
    )
    return UpdateCountResponse(count=count)


@router.post("/messages/delete-matching", response_model=UpdateCountResponse)
async def delete_matching_messages(
    user: UserParam,
    payload: DeleteMatchingRequest,
    session: AsyncSession = Depends(get_session),
) -> UpdateCountResponse:
    count = await updates_service.delete_matching(
        session,
        username=user,
        seen=payload.seen,
        notification_type=payload.type,
    )
    return UpdateCountResponse(count=count)


@router.get("/messages/{notification_id}", response_model=NotificationSchema)
async def get_message(
    notification_id: str,
    user: UserParam,
    session: AsyncSession = Depends(get_session),
) -> NotificationSchema:
    item = await listing_service.get_notification(
        session, username=user, notification_id=notification_id
    )
    return notification_to_schema(item)


@router.post("/messages/{notification_id}/seen", response_model=NotificationSchema)
async def mark_message_seen(
    notification_id: str,
    user: UserParam,
    session: AsyncSession = Depends(get_session),
) -> NotificationSchema:
    await updates_service.mark_seen(session, username=user, notification_id=notification_id)
    item = await listing_service.get_notification(
        session, username=user, notification_id=notification_id
    )
    return notification_to_schema(item)


@router.delete("/messages/{notification_id}", response_model=NotificationSchema)
async def delete_message(
    notification_id: str,
    user: UserParam,
    session: AsyncSession = Depends(get_session),
) -> NotificationSchema:
    await updates_service.delete(session, username=user, notification_id=notification_id)
    item = await listing_service.get_notification(
        session, username=user, notification_id=notification_id
    )
    return notification_to_schema(item)
