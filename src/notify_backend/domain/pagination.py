"""Keyset pagination rules for notification listings.

Pure logic, no DB access. Notifications are totally ordered by
``(time_created, id)``; a cursor is the id of one notification and stands for
its position in that order. Cursor conditions are inclusive: the cursor row
itself belongs to the page it opens, which is why the boundary ids handed back
to callers are "the first row of the neighbouring page".
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime


class SortOrder(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: str) -> "SortOrder":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"invalid sort order: {value}") from None


class Side(str, enum.Enum):
    """Which side of a cursor a condition keeps."""

    BEFORE = "before"
    AFTER = "after"


class PaginationMode(str, enum.Enum):
    BEFORE_ID = "before_id"
    AFTER_ID = "after_id"
    ASCENDING = "ascending"
    DESCENDING = "descending"


@dataclass(frozen=True)
class Cursor:
    id: str
    time_created: datetime


@dataclass(frozen=True)
class Lookahead:
    """A single-row probe: apply ``side`` relative to the cursor (if any),
    order by ``sort_order`` and take the row at ``offset``."""

    side: Side | None
    sort_order: SortOrder
    offset: int


@dataclass(frozen=True)
class BoundaryPlan:
    before: Lookahead | None
    after: Lookahead | None


def parse_cursor_id(value: str | None, *, name: str) -> str | None:
    """Validate a cursor id and return its canonical form, or None if blank."""

    if value is None or not value.strip():
        return None
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        raise ValueError(f"invalid {name}: {value}") from None


def resolve_mode(
    *,
    sort_order: SortOrder,
    before_id: str | None,
    after_id: str | None,
) -> PaginationMode:
    # before-id wins when both cursors are present.
    if before_id is not None:
        return PaginationMode.BEFORE_ID
    if after_id is not None:
        return PaginationMode.AFTER_ID
    if sort_order is SortOrder.ASC:
        return PaginationMode.ASCENDING
    return PaginationMode.DESCENDING


def cursor_side(mode: PaginationMode) -> Side | None:
    if mode is PaginationMode.BEFORE_ID:
        return Side.BEFORE
    if mode is PaginationMode.AFTER_ID:
        return Side.AFTER
    return None


def scan_order(mode: PaginationMode, display_order: SortOrder) -> SortOrder:
    """Direction of the limited scan.

    Scanning away from the cursor keeps the rows nearest to it when a limit
    applies; the page is re-sorted into ``display_order`` afterwards.
    """

    if mode is PaginationMode.BEFORE_ID:
        return SortOrder.DESC
    if mode is PaginationMode.AFTER_ID:
        return SortOrder.ASC
    return display_order


def plan_boundary_lookups(mode: PaginationMode, limit: int) -> BoundaryPlan:
    """Probes needed to find the ids just beyond the current page.

    A limit of 0 means the page already runs to the end of the listing in its
    scan direction, so no probe is needed on that side.
    """

    limited = limit > 0

    if mode is PaginationMode.BEFORE_ID:
        return BoundaryPlan(
            before=Lookahead(Side.BEFORE, SortOrder.DESC, limit) if limited else None,
            after=Lookahead(Side.AFTER, SortOrder.ASC, 1),
        )

    if mode is PaginationMode.AFTER_ID:
        return BoundaryPlan(
            before=Lookahead(Side.BEFORE, SortOrder.DESC, 1),
            after=Lookahead(Side.AFTER, SortOrder.ASC, limit) if limited else None,
        )

    if mode is PaginationMode.ASCENDING:
        # The first ascending page starts at the oldest row.
        return BoundaryPlan(
            before=None,
            after=Lookahead(None, SortOrder.ASC, limit) if limited else None,
        )

    if mode is PaginationMode.DESCENDING:
        return BoundaryPlan(
            before=Lookahead(None, SortOrder.DESC, limit) if limited else None,
            after=None,
        )

    raise ValueError(f"unexpected pagination mode: {mode}")


def subject_search_pattern(search: str) -> str:
    """Case-insensitive LIKE pattern matching ``search`` literally.

    Use with ``ESCAPE '\\'``.
    """

    s = search.lower()
    s = s.replace("\\", "\\\\")
    s = s.replace("%", "\\%")
    s = s.replace("_", "\\_")
    return f"%{s}%"
