"""
Booking read and transition path.

Every read applies the lazy expiry rule before the booking is returned or used
as an occupying obligation. Persistence and audit writing live behind ports;
the state decisions come from the pure lifecycle controller.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from pydantic import BaseModel

from slotengine.config import get_settings
from slotengine.core.booking_state import BookingState, transition
from slotengine.core.expiry import check_expiry
from slotengine.core.schemas import Booking

logger = logging.getLogger(__name__)


class BookingAuditEntry(BaseModel):
    booking_id: str
    previous_state: BookingState
    new_state: BookingState
    actor: str


class BookingStore(ABC):
    @abstractmethod
    async def get_booking(self, booking_id: str) -> Booking | None:
        """Load one booking, or None when it does not exist."""

    @abstractmethod
    async def update_booking_state(self, booking_id: str, new_state: BookingState) -> Booking | None:
        """Persist a new state. May return the updated row."""


class AuditRecorder(ABC):
    @abstractmethod
    async def record(self, entry: BookingAuditEntry) -> None:
        """Append an audit entry for a state change."""


async def apply_expire_check_on_read(
    booking: Booking,
    store: BookingStore,
    audit: AuditRecorder,
    now: datetime | None = None,
    ttl: timedelta | None = None,
) -> Booking:
    """
    Auto-decline an expired pending booking.

    Returns the same object untouched when nothing changes. Otherwise records
    an audit entry attributed to the system actor, persists the new state and
    returns the updated booking. The pending TTL defaults to
    `Settings.pending_ttl_hours`.
    """
    if ttl is None:
        ttl = get_settings().pending_ttl
    decision = check_expiry(booking.state, booking.created_at, now=now, ttl=ttl)
    if not decision.changed:
        return booking

    logger.info("Booking %s expired while pending, declining", booking.id)
    await audit.record(
        BookingAuditEntry(
            booking_id=booking.id,
            previous_state=decision.previous_state,
            new_state=decision.state,
            actor=decision.audit_actor,
        )
    )
    updated = await store.update_booking_state(booking.id, decision.state)
    return updated or booking.model_copy(update={"state": decision.state})


async def get_booking_with_expiry_check(
    booking_id: str,
    store: BookingStore,
    audit: AuditRecorder,
    now: datetime | None = None,
    ttl: timedelta | None = None,
) -> Booking | None:
    booking = await store.get_booking(booking_id)
    if booking is None:
        return None
    return await apply_expire_check_on_read(booking, store, audit, now=now, ttl=ttl)


async def change_booking_state(
    booking: Booking,
    target: BookingState | str,
    store: BookingStore,
    audit: AuditRecorder,
    actor: str,
    now: datetime | None = None,
    ttl: timedelta | None = None,
) -> Booking:
    """
    Apply a provider- or customer-initiated transition.

    Expiry runs first, so accepting a stale pending request fails with
    InvalidTransition (declined -> confirmed) instead of succeeding.

    Raises:
        InvalidTransition: the edge is not in the lifecycle graph.
    """
    current = await apply_expire_check_on_read(booking, store, audit, now=now, ttl=ttl)
    new_state = transition(current.state, target)

    await audit.record(
        BookingAuditEntry(
            booking_id=current.id,
            previous_state=current.state,
            new_state=new_state,
            actor=actor,
        )
    )
    updated = await store.update_booking_state(current.id, new_state)
    return updated or current.model_copy(update={"state": new_state})
