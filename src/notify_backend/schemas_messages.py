from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from notify_backend.services.listing_service import ListedNotification, NotificationListing


class Notification(BaseModel):
    id: str = Field(min_length=36, max_length=36)
    type: str | None = None
    subject: str = ""
    seen: bool = False
    deleted: bool = False
    created_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)


class NotificationListResponse(BaseModel):
    """Listing body. ``messages``, ``before_id`` and ``after_id`` are left out
    of the JSON when there is no such page or cursor."""

    messages: list[Notification] | None = None
    total: int
    before_id: str | None = None
    after_id: str | None = None


class MultipleMessageUpdateRequest(BaseModel):
    ids: list[str] = Field(default_factory=list, max_length=1000)
    all_notifications: bool = False


class DeleteMatchingRequest(BaseModel):
    seen: bool | None = None
    type: str | None = Field(default=None, max_length=64)


class UpdateCountResponse(BaseModel):
    count: int


def notification_to_schema(item: ListedNotification) -> Notification:
    n = item.notification
    return Notification(
        id=n.id,
        type=item.type_name,
        subject=n.subject,
        seen=n.seen,
        deleted=n.deleted,
        created_at=n.time_created,
        payload=n.payload_json or {},
    )


def listing_to_response(listing: NotificationListing) -> NotificationListResponse:
    # Only set the optional fields that carry a value so `exclude_unset` drops the rest.
    fields: dict[str, object] = {"total": listing.total}
    if listing.messages:
        fields["messages"] = [notification_to_schema(item) for item in listing.messages]
    if listing.before_id:
        fields["before_id"] = listing.before_id
    if listing.after_id:
        fields["after_id"] = listing.after_id
    return NotificationListResponse.model_validate(fields)
