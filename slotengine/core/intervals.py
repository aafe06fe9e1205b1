"""
Interval set algebra over half-open UTC ranges [start, end).

Ranges that touch (a.end == b.start) are merged, so a normalized list never
contains two ranges that could be combined into one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from slotengine.core.errors import InvalidTimeRange, MalformedTimestamp
from slotengine.core.timeparse import parse_utc


@dataclass(frozen=True, order=True)
class TimeRange:
    start: datetime
    end: datetime

    @classmethod
    def from_values(cls, start: Any, end: Any, strict: bool = False) -> TimeRange | None:
        """
        Build a range from raw timestamp values.

        Lenient mode returns None for malformed or empty ranges; strict mode
        raises MalformedTimestamp / InvalidTimeRange instead.
        """
        s = parse_utc(start)
        e = parse_utc(end)
        if s is None or e is None:
            if strict:
                raise MalformedTimestamp(start if s is None else end)
            return None
        if e <= s:
            if strict:
                raise InvalidTimeRange(start, end)
            return None
        return cls(s, e)

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def overlaps(self, other: TimeRange) -> bool:
        return self.start < other.end and other.start < self.end

    def clip(self, lower: datetime, upper: datetime) -> TimeRange | None:
        clipped = TimeRange(max(self.start, lower), min(self.end, upper))
        return None if clipped.is_empty else clipped


def normalize_ranges(ranges: Iterable[TimeRange]) -> list[TimeRange]:
    """Drop empty ranges, sort by start and merge overlapping or touching ones."""
    ordered = sorted(r for r in ranges if not r.is_empty)
    merged: list[TimeRange] = []
    for r in ordered:
        if merged and r.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = TimeRange(last.start, max(last.end, r.end))
        else:
            merged.append(r)
    return merged


def merge_ranges(existing: Iterable[TimeRange], to_add: Iterable[TimeRange]) -> list[TimeRange]:
    return normalize_ranges([*existing, *to_add])


def subtract_range(ranges: Iterable[TimeRange], block: TimeRange) -> list[TimeRange]:
    """Remove `block` from every range it intersects, keeping non-empty remainders."""
    out: list[TimeRange] = []
    for r in ranges:
        if not r.overlaps(block):
            out.append(r)
            continue
        if r.start < block.start:
            out.append(TimeRange(r.start, block.start))
        if r.end > block.end:
            out.append(TimeRange(block.end, r.end))
    return normalize_ranges(out)
