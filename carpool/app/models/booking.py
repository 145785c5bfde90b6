"""
Booking database model.

A passenger's reservation against a trip.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Index, text
from sqlalchemy.sql import func
from carpool.app.db.session import Base
from carpool.app.models.trip_enums import BookingStatus


class Booking(Base):
    """
    Booking model.

    At most one non-cancelled booking per (trip, passenger), enforced by a
    partial unique index as well as the service precondition.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    passenger_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    status = Column(
        Enum(BookingStatus, values_callable=lambda e: [m.value for m in e]),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index(
            'ix_bookings_one_live_per_passenger', 'trip_id', 'passenger_id',
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, trip_id={self.trip_id}, passenger_id={self.passenger_id}, status='{self.status.value}')>"
