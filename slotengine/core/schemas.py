from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from slotengine.core.booking_state import BookingState

# Raw timestamps are kept as given; the compiler parses them leniently so that
# one malformed upstream row never fails a whole availability query.
RawTimestamp = Union[datetime, str]

EXCLUSION_OVERRIDE_BLOCK = "availability_override_block"
EXCLUSION_BOOKING = "booking"
EXCLUSION_EXTERNAL_BUSY = "external_calendar_busy"


class RecurringAvailabilityWindow(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0=Sunday..6=Saturday
    start_time: str  # HH:MM or HH:MM:SS
    end_time: str
    is_active: bool = True


class AvailabilityOverride(BaseModel):
    start_utc: RawTimestamp
    end_utc: RawTimestamp
    is_available: bool


class Booking(BaseModel):
    id: str
    state: BookingState
    start_time: RawTimestamp
    end_time: RawTimestamp
    created_at: RawTimestamp


class BusyInterval(BaseModel):
    """Minimal occupying-booking shape accepted by the compiler."""

    start_time: RawTimestamp
    end_time: RawTimestamp


class ExternalBusyBlock(BaseModel):
    start_utc: RawTimestamp
    end_utc: RawTimestamp
    source_event_id: Optional[str] = None
    provider: Optional[str] = None


class TimeWindow(BaseModel):
    from_utc: RawTimestamp
    to_utc: RawTimestamp


class SellableSlot(BaseModel):
    start_utc: datetime
    end_utc: datetime


class ExcludedRange(BaseModel):
    start_utc: RawTimestamp
    end_utc: RawTimestamp
    reason: str


class SellableSlotsResult(BaseModel):
    slots: list[SellableSlot] = Field(default_factory=list)
    excluded_ranges: list[ExcludedRange] = Field(default_factory=list)


class AvailabilitySnapshot(BaseModel):
    """Everything one slot computation needs, as loaded by the caller."""

    window: TimeWindow
    timezone: str = "UTC"
    recurring: list[RecurringAvailabilityWindow] = Field(default_factory=list)
    overrides: list[AvailabilityOverride] = Field(default_factory=list)
    bookings: list[BusyInterval] = Field(default_factory=list)
    external_busy: list[ExternalBusyBlock] = Field(default_factory=list)
