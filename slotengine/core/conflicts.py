"""
Read-only calendar conflict detection for a proposed time range.

Nothing is persisted and no booking is changed; conflicts are computed on
demand from the same snapshots the availability compiler uses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from slotengine.core.booking_state import is_active
from slotengine.core.intervals import TimeRange
from slotengine.core.timeparse import parse_utc

SOURCE_INTERNAL = "internal_booking"
SOURCE_EXTERNAL = "external_calendar"


class CalendarConflict(BaseModel):
    source: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    booking_id: Optional[str] = None
    provider: Optional[str] = None


def find_conflicts(
    start: Any,
    end: Any,
    bookings: Iterable[Any] = (),
    busy_blocks: Iterable[Any] = (),
    exclude_booking_id: str | None = None,
) -> list[CalendarConflict]:
    """
    List occupying bookings and external busy blocks overlapping [start, end).

    Bookings carrying a non-occupying `state` are ignored, as is the booking
    identified by `exclude_booking_id` (the one being rescheduled).
    """
    window = TimeRange.from_values(start, end)
    if window is None:
        return []

    conflicts: list[CalendarConflict] = []

    for b in bookings:
        booking_id = getattr(b, "id", None)
        if exclude_booking_id is not None and booking_id == exclude_booking_id:
            continue
        state = getattr(b, "state", None)
        if state is not None and not is_active(state):
            continue
        rng = TimeRange.from_values(b.start_time, b.end_time)
        if rng is None or not rng.overlaps(window):
            continue
        conflicts.append(
            CalendarConflict(
                source=SOURCE_INTERNAL,
                start_time=rng.start,
                end_time=rng.end,
                duration_minutes=duration_minutes_between(rng.start, rng.end),
                booking_id=booking_id,
                provider="internal",
            )
        )

    for busy in busy_blocks:
        rng = TimeRange.from_values(busy.start_utc, busy.end_utc)
        if rng is None or not rng.overlaps(window):
            continue
        conflicts.append(
            CalendarConflict(
                source=SOURCE_EXTERNAL,
                start_time=rng.start,
                end_time=rng.end,
                duration_minutes=duration_minutes_between(rng.start, rng.end),
                provider=getattr(busy, "provider", None),
            )
        )

    return sorted(conflicts, key=lambda c: c.start_time)


def duration_minutes_between(start: Any, end: Any) -> int:
    s = parse_utc(start)
    e = parse_utc(end)
    if s is None or e is None or e <= s:
        return 0
    return round((e - s).total_seconds() / 60)
