from slotengine.core.availability import (
    compute_sellable_slots,
    compute_sellable_slots_from_input,
    expand_recurring_to_utc_slots,
)
from slotengine.core.booking_state import (
    BookingState,
    can_transition,
    is_active,
    is_terminal,
    transition,
)
from slotengine.core.errors import InvalidTimeRange, InvalidTransition, MalformedTimestamp
from slotengine.core.expiry import ExpiryDecision, check_expiry, is_pending_booking_expired

__all__ = [
    "BookingState",
    "ExpiryDecision",
    "InvalidTimeRange",
    "InvalidTransition",
    "MalformedTimestamp",
    "can_transition",
    "check_expiry",
    "compute_sellable_slots",
    "compute_sellable_slots_from_input",
    "expand_recurring_to_utc_slots",
    "is_active",
    "is_pending_booking_expired",
    "is_terminal",
    "transition",
]
