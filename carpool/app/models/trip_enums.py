"""
Trip and booking enumerations.

TripStatus is an explicit state machine: only the transitions listed in
TRIP_TRANSITIONS are legal.
"""

import enum

from carpool.app.core.exceptions import InvalidStateError


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    ACTIVE = "active"  # Open for booking
    COMPLETED = "completed"  # Date has passed, collecting feedback
    ARCHIVED = "archived"  # All expected feedback collected
    CANCELLED = "cancelled"  # Cancelled by driver


class BookingStatus(str, enum.Enum):
    """Booking status enumeration."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


TRIP_TRANSITIONS = {
    TripStatus.ACTIVE: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset({TripStatus.ARCHIVED}),
    TripStatus.ARCHIVED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    """Check whether `current -> target` is a legal trip transition."""
    return target in TRIP_TRANSITIONS.get(TripStatus(current), frozenset())


def ensure_transition(current: TripStatus, target: TripStatus) -> None:
    """Raise InvalidStateError unless `current -> target` is legal."""
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Trip cannot move from {TripStatus(current).value} to {TripStatus(target).value}",
            details={"from": TripStatus(current).value, "to": TripStatus(target).value}
        )
