"""
Error taxonomy for the availability and booking lifecycle engine.

The availability compiler never lets InvalidTimeRange or MalformedTimestamp
escape: bad rows are dropped instead. InvalidTransition is always raised to
the caller.
"""

from __future__ import annotations

from typing import Any


class SlotEngineError(Exception):
    """Base class for all engine errors."""

    code: str = "SLOT_ENGINE_ERROR"


class InvalidTimeRange(SlotEngineError):
    """Raised when a range has end <= start (strict helpers only)."""

    code = "INVALID_TIME_RANGE"

    def __init__(self, start: Any, end: Any):
        self.start = start
        self.end = end
        super().__init__(f"Invalid time range: {start} -> {end}")


class MalformedTimestamp(SlotEngineError):
    """Raised when a timestamp cannot be parsed (strict helpers only)."""

    code = "MALFORMED_TIMESTAMP"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Malformed timestamp: {value!r}")


class InvalidTransition(SlotEngineError):
    """Raised when a booking lifecycle edge is not in the transition graph."""

    code = "INVALID_BOOKING_TRANSITION"

    def __init__(self, current: Any, target: Any):
        self.current = _state_value(current)
        self.target = _state_value(target)
        super().__init__(f"Invalid booking state transition: {self.current} -> {self.target}")


class CalendarFetchError(SlotEngineError):
    """Raised when an external calendar feed cannot be fetched."""

    code = "CALENDAR_FETCH_FAILED"


def _state_value(state: Any) -> str:
    return str(getattr(state, "value", state))
