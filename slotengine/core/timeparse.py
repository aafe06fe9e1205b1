"""
Timestamp helpers. All engine arithmetic happens on timezone-aware UTC datetimes.

Lenient parsers return None on bad input; the compiler treats None as
"this row contributes nothing".
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Any

from slotengine.core.errors import MalformedTimestamp


def parse_utc(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Naive values are interpreted as UTC. Returns None for anything unparsable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_utc_strict(value: Any) -> datetime:
    dt = parse_utc(value)
    if dt is None:
        raise MalformedTimestamp(value)
    return dt


def parse_time_of_day(value: Any) -> timedelta | None:
    """Parse "HH:MM" or "HH:MM:SS" into an offset from midnight.

    "24:00" is accepted as end of day. Returns None when malformed.
    """
    if isinstance(value, time):
        return timedelta(hours=value.hour, minutes=value.minute, seconds=value.second)
    if not isinstance(value, str):
        return None

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        nums = [int(p) for p in parts]
    except ValueError:
        return None

    h, m = nums[0], nums[1]
    s = nums[2] if len(nums) == 3 else 0
    if not (0 <= m < 60 and 0 <= s < 60):
        return None
    if h == 24 and m == 0 and s == 0:
        return timedelta(hours=24)
    if not 0 <= h < 24:
        return None
    return timedelta(hours=h, minutes=m, seconds=s)


def day_of_week(dt: datetime) -> int:
    """Day of week of dt's own calendar date, 0=Sunday..6=Saturday."""
    return (dt.weekday() + 1) % 7
