"""
Availability read path: loads one provider's rows and runs the compiler.

The data-access layer is abstracted behind AvailabilitySource so the engine
stays free of any persistence schema. Results are never cached: a slot list is
stale the moment a conflicting booking commits.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from slotengine.config import Settings, get_settings
from slotengine.core.availability import compute_sellable_slots_from_input
from slotengine.core.booking_state import is_active
from slotengine.core.schemas import (
    AvailabilityOverride,
    ExternalBusyBlock,
    RecurringAvailabilityWindow,
    SellableSlotsResult,
    TimeWindow,
)
from slotengine.core.timeparse import parse_utc

logger = logging.getLogger(__name__)


class AvailabilitySource(ABC):
    """Data-access port for everything the compiler needs about one provider."""

    @abstractmethod
    async def list_recurring_windows(self, provider_id: str) -> list[RecurringAvailabilityWindow]:
        """All recurring windows, active and inactive."""

    @abstractmethod
    async def list_overrides_in_range(
        self, provider_id: str, from_utc: datetime, to_utc: datetime
    ) -> list[AvailabilityOverride]:
        """Overrides overlapping the window."""

    @abstractmethod
    async def list_occupying_bookings_in_range(
        self, provider_id: str, from_utc: datetime, to_utc: datetime
    ) -> list[Any]:
        """Confirmed, modified or completed bookings overlapping the window."""

    @abstractmethod
    async def list_external_busy_blocks_in_range(
        self, provider_id: str, from_utc: datetime, to_utc: datetime
    ) -> list[ExternalBusyBlock]:
        """Busy blocks synced from external calendars overlapping the window."""


async def get_sellable_slots(
    provider_id: str,
    from_utc: Any,
    to_utc: Any,
    source: AvailabilitySource,
    timezone: str | None = None,
    settings: Settings | None = None,
    include_exclusion_reasons: bool = False,
) -> SellableSlotsResult:
    """
    Load rows for `provider_id` and compile sellable slots.

    Windows longer than `max_window_days` are clipped (with a warning) rather
    than rejected. A degenerate or unparsable window yields no slots and skips
    the data-access calls entirely.
    """
    settings = settings or get_settings()
    start = parse_utc(from_utc)
    end = parse_utc(to_utc)
    if start is None or end is None or start >= end:
        return SellableSlotsResult()

    limit = timedelta(days=settings.max_window_days)
    if end - start > limit:
        logger.warning(
            "Availability window for provider %s exceeds %s days, clipping",
            provider_id,
            settings.max_window_days,
        )
        end = start + limit

    recurring, overrides, bookings, busy = await asyncio.gather(
        source.list_recurring_windows(provider_id),
        source.list_overrides_in_range(provider_id, start, end),
        source.list_occupying_bookings_in_range(provider_id, start, end),
        source.list_external_busy_blocks_in_range(provider_id, start, end),
    )

    occupying = []
    for b in bookings:
        state = getattr(b, "state", None)
        if state is not None and not is_active(state):
            logger.debug("Ignoring non-occupying booking %s in state %s", getattr(b, "id", "?"), state)
            continue
        occupying.append(b)

    return compute_sellable_slots_from_input(
        TimeWindow(from_utc=start, to_utc=end),
        timezone or settings.default_timezone,
        recurring,
        overrides,
        occupying,
        busy,
        apply_timezone=settings.apply_provider_timezone,
        include_exclusion_reasons=include_exclusion_reasons,
    )
