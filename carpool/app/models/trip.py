"""
Trip database model.

A trip is created by its driver and never physically deleted; cancellation
and archival are status transitions.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Date, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from carpool.app.db.session import Base
from carpool.app.models.preferences import RidePreferencesMixin
from carpool.app.models.trip_enums import TripStatus


# Seats including the driver's
DEFAULT_SEATS_TOTAL = 3
MAX_SEATS_TOTAL = 4


class Trip(RidePreferencesMixin, Base):
    """
    Trip model.

    The driver occupies one seat implicitly, so passenger capacity is
    `seats_total - 1`. `seats_booked` is only ever changed through
    compare-and-swap updates in the booking service. Ride preferences are
    copied from the driver's profile at creation unless overridden.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - immutable after creation
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Route and schedule
    from_city = Column(String(100), nullable=False, index=True)
    to_city = Column(String(100), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)  # Calendar day, no timezone
    time = Column(String(5), nullable=False)  # HH:MM
    pickup_location = Column(String(255), nullable=False, default="")
    dropoff_location = Column(String(255), nullable=False, default="")
    comment = Column(Text, nullable=False, default="")

    # Capacity
    seats_total = Column(Integer, nullable=False, default=DEFAULT_SEATS_TOTAL)
    seats_booked = Column(Integer, nullable=False, default=0)

    # Round trip: outbound and return legs share a group id
    trip_group_id = Column(String(64), nullable=True, index=True)
    is_return = Column(Boolean, nullable=False, default=False)

    # Status
    status = Column(
        Enum(TripStatus, values_callable=lambda e: [m.value for m in e]),
        default=TripStatus.ACTIVE,
        nullable=False,
        index=True
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(f'seats_total BETWEEN 1 AND {MAX_SEATS_TOTAL}', name='ck_trips_seats_total_range'),
        CheckConstraint('seats_booked >= 0', name='ck_trips_seats_booked_non_negative'),
        CheckConstraint('seats_booked <= seats_total - 1', name='ck_trips_seats_booked_capacity'),
    )

    @property
    def passenger_capacity(self) -> int:
        return max(0, self.seats_total - 1)

    @property
    def seats_available(self) -> int:
        return max(0, self.passenger_capacity - self.seats_booked)

    def __repr__(self):
        return f"<Trip(id={self.id}, {self.from_city}->{self.to_city} {self.date}, status='{self.status.value}')>"
