"""
Lazy pending-booking expiry.

There is no background sweep: the rule is evaluated whenever a booking is
read. A booking that is never read can stay pending past its TTL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from slotengine.core.booking_state import BookingState, transition
from slotengine.core.timeparse import parse_utc

logger = logging.getLogger(__name__)

PENDING_TTL = timedelta(hours=24)

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class ExpiryDecision:
    changed: bool
    state: BookingState | str
    previous_state: BookingState | None = None
    audit_actor: str | None = None


def is_pending_booking_expired(
    created_at: Any,
    now: datetime | None = None,
    ttl: timedelta = PENDING_TTL,
) -> bool:
    """True once strictly more than `ttl` has elapsed since `created_at`."""
    created = parse_utc(created_at)
    if created is None:
        return False
    current = parse_utc(now) if now is not None else datetime.now(timezone.utc)
    if current is None:
        return False
    return current - created > ttl


def check_expiry(
    state: BookingState | str,
    created_at: Any,
    now: datetime | None = None,
    ttl: timedelta = PENDING_TTL,
) -> ExpiryDecision:
    """
    Decide whether a booking must be auto-declined before it is used.

    Pure: the caller persists the new state and records an audit entry
    attributed to `audit_actor`. Never raises.
    """
    try:
        current = BookingState(state)
    except ValueError:
        logger.warning("Expiry check skipped for unknown booking state: %r", state)
        return ExpiryDecision(changed=False, state=state)

    if current is not BookingState.PENDING or not is_pending_booking_expired(created_at, now, ttl):
        return ExpiryDecision(changed=False, state=current)

    new_state = transition(BookingState.PENDING, BookingState.DECLINED)
    return ExpiryDecision(
        changed=True,
        state=new_state,
        previous_state=current,
        audit_actor=SYSTEM_ACTOR,
    )
