"""
Booking lifecycle state machine.

The adjacency table below is the only place that decides whether an edge is
legal. `completed` is reached outside this graph once a booking's time has
passed; it occupies calendar time but has no edges here.
"""

from __future__ import annotations

from enum import Enum

from slotengine.core.errors import InvalidTransition


class BookingState(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    MODIFIED = "modified"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ALLOWED_TRANSITIONS: dict[BookingState, frozenset[BookingState]] = {
    BookingState.DRAFT: frozenset({BookingState.PENDING}),
    BookingState.PENDING: frozenset({BookingState.CONFIRMED, BookingState.DECLINED}),
    BookingState.CONFIRMED: frozenset({BookingState.MODIFIED, BookingState.CANCELLED}),
    BookingState.MODIFIED: frozenset({BookingState.MODIFIED, BookingState.CANCELLED}),
    BookingState.DECLINED: frozenset(),
    BookingState.CANCELLED: frozenset(),
    BookingState.COMPLETED: frozenset(),
}

TERMINAL_STATES = frozenset({BookingState.DECLINED, BookingState.CANCELLED, BookingState.COMPLETED})

# States that reserve real calendar time against the provider.
OCCUPYING_STATES = frozenset({BookingState.CONFIRMED, BookingState.MODIFIED, BookingState.COMPLETED})


def _coerce(state: BookingState | str) -> BookingState | None:
    try:
        return BookingState(state)
    except ValueError:
        return None


def allowed_targets(state: BookingState | str) -> frozenset[BookingState]:
    current = _coerce(state)
    if current is None:
        return frozenset()
    return ALLOWED_TRANSITIONS[current]


def can_transition(current: BookingState | str, target: BookingState | str) -> bool:
    """Same check as `transition`, without raising."""
    nxt = _coerce(target)
    return nxt is not None and nxt in allowed_targets(current)


def transition(current: BookingState | str, target: BookingState | str) -> BookingState:
    """
    Validate a lifecycle edge and return the target state.

    Raises:
        InvalidTransition: the (current, target) pair is not in the graph,
            including when either value is not a known state.
    """
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return BookingState(target)


def is_terminal(state: BookingState | str) -> bool:
    return _coerce(state) in TERMINAL_STATES


def is_active(state: BookingState | str) -> bool:
    """True when the state occupies the provider's calendar."""
    return _coerce(state) in OCCUPYING_STATES
