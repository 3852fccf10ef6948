from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotificationFilter:
    # False lists unseen notifications only.
    include_seen: bool = False
    subject_search: str | None = None
    notification_type: str | None = None

    def normalized(self) -> "NotificationFilter":
        search = self.subject_search if self.subject_search else None
        type_name = (self.notification_type or "").strip().lower() or None
        return NotificationFilter(
            include_seen=self.include_seen,
            subject_search=search,
            notification_type=type_name,
        )
