"""
Availability Compiler: sellable slots for one provider in a UTC window.

    sellable = recurring + add overrides - block overrides - bookings - external busy

Pure and deterministic: no I/O, no clock reads, no caching. Bad upstream rows
never raise; they simply contribute no time, so the failure mode is always
"not sellable" rather than a double booking.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone as dt_timezone, tzinfo
from typing import Any, Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotengine.core.intervals import TimeRange, merge_ranges, normalize_ranges, subtract_range
from slotengine.core.schemas import (
    EXCLUSION_BOOKING,
    EXCLUSION_EXTERNAL_BUSY,
    EXCLUSION_OVERRIDE_BLOCK,
    ExcludedRange,
    SellableSlot,
    SellableSlotsResult,
)
from slotengine.core.timeparse import day_of_week, parse_time_of_day, parse_utc

logger = logging.getLogger(__name__)


def compute_sellable_slots(
    window: Any,
    timezone: str | None,
    recurring: Iterable[Any],
    overrides: Iterable[Any],
    occupying_bookings: Iterable[Any],
    external_busy: Iterable[Any],
    *,
    apply_timezone: bool = False,
) -> list[SellableSlot]:
    """Return sorted, non-overlapping sellable slots for `window`."""
    result = compute_sellable_slots_from_input(
        window,
        timezone,
        recurring,
        overrides,
        occupying_bookings,
        external_busy,
        apply_timezone=apply_timezone,
    )
    return result.slots


def compute_sellable_slots_from_input(
    window: Any,
    timezone: str | None,
    recurring: Iterable[Any],
    overrides: Iterable[Any],
    occupying_bookings: Iterable[Any],
    external_busy: Iterable[Any],
    *,
    apply_timezone: bool = False,
    include_exclusion_reasons: bool = False,
) -> SellableSlotsResult:
    """
    Compile sellable slots, optionally reporting why time was excluded.

    Args:
        window: object or mapping with `from_utc` / `to_utc`.
        timezone: provider IANA zone. Only used when `apply_timezone` is set;
            otherwise recurring windows are matched against UTC days.
        recurring: weekly windows (day_of_week, start_time, end_time, is_active).
        overrides: date-specific add (is_available=True) or block ranges.
        occupying_bookings: bookings already filtered to occupying states.
        external_busy: busy blocks synced from external calendars.
        include_exclusion_reasons: also return tagged excluded ranges.

    Returns:
        SellableSlotsResult. Slot output is identical with or without reasons.
    """
    from_utc = parse_utc(_get(window, "from_utc"))
    to_utc = parse_utc(_get(window, "to_utc"))
    if from_utc is None or to_utc is None or from_utc >= to_utc:
        return SellableSlotsResult()

    excluded: list[ExcludedRange] = []

    active = [w for w in recurring if _get(w, "is_active", True)]
    slots = _expand_recurring(active, from_utc, to_utc, timezone, apply_timezone)

    # All adds are unioned before any block is subtracted, so a block wins
    # regardless of where it sits in the input.
    blocks: list[TimeRange] = []
    for o in overrides:
        rng = _row_range(o, "start_utc", "end_utc", "override")
        if rng is None:
            continue
        if _get(o, "is_available", False):
            slots = merge_ranges(slots, [rng])
        else:
            blocks.append(rng)

    for rng in blocks:
        if include_exclusion_reasons:
            excluded.append(_excluded(rng, EXCLUSION_OVERRIDE_BLOCK))
        slots = subtract_range(slots, rng)

    for b in occupying_bookings:
        rng = _row_range(b, "start_time", "end_time", "booking")
        if rng is None:
            continue
        if include_exclusion_reasons:
            excluded.append(_excluded(rng, EXCLUSION_BOOKING))
        slots = subtract_range(slots, rng)

    for busy in external_busy:
        rng = _row_range(busy, "start_utc", "end_utc", "external busy block")
        if rng is None:
            continue
        if include_exclusion_reasons:
            excluded.append(_excluded(rng, EXCLUSION_EXTERNAL_BUSY))
        slots = subtract_range(slots, rng)

    return SellableSlotsResult(
        slots=[SellableSlot(start_utc=r.start, end_utc=r.end) for r in normalize_ranges(slots)],
        excluded_ranges=excluded,
    )


def expand_recurring_to_utc_slots(
    recurring: Iterable[Any],
    from_utc: Any,
    to_utc: Any,
    timezone: str | None = None,
    *,
    apply_timezone: bool = False,
) -> list[SellableSlot]:
    """Expand weekly windows into merged UTC slots clipped to [from_utc, to_utc]."""
    start = parse_utc(from_utc)
    end = parse_utc(to_utc)
    if start is None or end is None or start >= end:
        return []
    ranges = _expand_recurring(list(recurring), start, end, timezone, apply_timezone)
    return [SellableSlot(start_utc=r.start, end_utc=r.end) for r in ranges]


def _expand_recurring(
    recurring: list[Any],
    from_utc: datetime,
    to_utc: datetime,
    timezone: str | None,
    apply_timezone: bool,
) -> list[TimeRange]:
    tz: tzinfo = _resolve_zone(timezone) if apply_timezone else dt_timezone.utc

    # Calendar days are walked in `tz`; with the default UTC zone this matches
    # day_of_week and wall-clock times directly against UTC days.
    day = from_utc.astimezone(tz).date()
    last_day = to_utc.astimezone(tz).date()
    ranges: list[TimeRange] = []

    while day <= last_day:
        midnight = datetime(day.year, day.month, day.day, tzinfo=tz)
        dow = day_of_week(midnight)
        for w in recurring:
            if _get(w, "day_of_week") != dow:
                continue
            start_off = parse_time_of_day(_get(w, "start_time"))
            end_off = parse_time_of_day(_get(w, "end_time"))
            if start_off is None or end_off is None or end_off <= start_off:
                logger.debug("Dropping unusable recurring window: %s", w)
                continue
            rng = TimeRange(
                (midnight + start_off).astimezone(dt_timezone.utc),
                (midnight + end_off).astimezone(dt_timezone.utc),
            ).clip(from_utc, to_utc)
            if rng is not None:
                ranges.append(rng)
        day += timedelta(days=1)

    return normalize_ranges(ranges)


def _resolve_zone(name: str | None) -> tzinfo:
    if not name or name.upper() == "UTC":
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown provider timezone %r, expanding recurring windows in UTC", name)
        return dt_timezone.utc


def _row_range(row: Any, start_key: str, end_key: str, kind: str) -> TimeRange | None:
    rng = TimeRange.from_values(_get(row, start_key), _get(row, end_key))
    if rng is None:
        logger.debug("Dropping unusable %s row: %s", kind, row)
    return rng


def _excluded(rng: TimeRange, reason: str) -> ExcludedRange:
    return ExcludedRange(start_utc=rng.start, end_utc=rng.end, reason=reason)


def _get(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)
