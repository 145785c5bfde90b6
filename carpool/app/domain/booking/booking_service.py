"""
Booking Service (Domain Logic).

Creates and cancels seat reservations. `seats_booked` is a hot, contended
counter: it is only ever written with a compare-and-swap against the value
read in the same transaction, so a lost race surfaces as ConflictError
instead of an overbooked trip.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, update, func as sql_func
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InvalidStateError,
    ResourceNotFoundError,
)
from carpool.app.db.transactions import isolated_transaction
from carpool.app.models.booking import Booking
from carpool.app.models.notification import NotificationKind
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import BookingStatus, TripStatus
from carpool.app.models.user import User
from carpool.app.services.audit import AuditAction, log_event
from carpool.app.services.notification_service import NotificationService, build_trip_context

logger = logging.getLogger(__name__)

SEAT_TAKEN_MESSAGE = "The seat was just taken by another passenger"
ALREADY_CANCELLED_MESSAGE = "The booking was already cancelled"


async def _claim_seat(db: AsyncSession, trip_id: int, observed_seats_booked: int) -> bool:
    """
    Increment `seats_booked` only if it still equals the observed value.

    Returns:
        True if this request won the seat, False if another request changed
        the counter (or the trip status) since it was read
    """
    result = await db.execute(
        update(Trip)
        .where(
            Trip.id == trip_id,
            Trip.status == TripStatus.ACTIVE,
            Trip.seats_booked == observed_seats_booked,
        )
        .values(seats_booked=Trip.seats_booked + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_seat(db: AsyncSession, trip_id: int) -> bool:
    """Decrement `seats_booked`, never below zero."""
    result = await db.execute(
        update(Trip)
        .where(Trip.id == trip_id, Trip.seats_booked > 0)
        .values(seats_booked=Trip.seats_booked - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Seat counter already at zero on release", extra={"trip_id": trip_id})
        return False
    return True


async def _mark_cancelled(db: AsyncSession, booking_id: int) -> bool:
    """Set booking status to cancelled unless someone else already did."""
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status != BookingStatus.CANCELLED)
        .values(status=BookingStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class BookingService:

    @staticmethod
    async def create_booking(db: AsyncSession, trip_id: int, passenger_id: int) -> Tuple[Booking, Trip]:
        """
        Reserve a seat on a trip.

        Flow (one transaction at the configured isolation level):
        1. Trip exists
        2. Trip is ACTIVE
        3. Passenger is not the driver
        4. No live booking for (trip, passenger)
        5. Capacity available
        6. Insert booking, then compare-and-swap the seat counter

        After commit the driver and passenger are notified (best effort).

        Returns:
            (booking, trip) as committed
        """
        async with isolated_transaction(db, SEAT_TAKEN_MESSAGE):
            # Re-read: the session may hold a copy loaded before this transaction
            trip = (await db.execute(
                select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if trip is None:
                raise ResourceNotFoundError("Trip", trip_id)

            if trip.status != TripStatus.ACTIVE:
                raise InvalidStateError(
                    "Trip is not bookable",
                    details={"trip_id": trip_id, "status": trip.status.value}
                )

            if trip.driver_id == passenger_id:
                raise InvalidStateError("You cannot book a seat on your own trip")

            existing = await db.execute(
                select(Booking.id).where(
                    Booking.trip_id == trip_id,
                    Booking.passenger_id == passenger_id,
                    Booking.status != BookingStatus.CANCELLED,
                )
            )
            if existing.first() is not None:
                raise ConflictError("You have already booked a seat on this trip")

            observed = trip.seats_booked
            if observed >= trip.passenger_capacity:
                raise ConflictError("Trip is full", details={"trip_id": trip_id})

            booking = Booking(
                trip_id=trip_id,
                passenger_id=passenger_id,
                status=BookingStatus.CONFIRMED,
            )
            db.add(booking)
            await db.flush()

            if not await _claim_seat(db, trip_id, observed):
                logger.info(
                    "Lost race for seat",
                    extra={"trip_id": trip_id, "passenger_id": passenger_id, "observed": observed}
                )
                raise ConflictError(SEAT_TAKEN_MESSAGE, details={"trip_id": trip_id})

            await log_event(
                db,
                action=AuditAction.BOOKING_CREATED,
                actor_id=passenger_id,
                trip_id=trip_id,
                metadata={"booking_id": booking.id, "seats_booked": observed + 1}
            )

        await db.refresh(trip)
        await db.refresh(booking)

        logger.info(
            "Booking confirmed",
            extra={"booking_id": booking.id, "trip_id": trip_id, "seats_booked": trip.seats_booked}
        )

        await BookingService._notify_created(db, booking, trip)
        return booking, trip

    @staticmethod
    async def cancel_booking(db: AsyncSession, booking_id: int, requester_id: int) -> Tuple[Booking, Trip]:
        """
        Cancel a booking as its passenger or the trip's driver.

        The status flip and the seat release are both conditional writes; a
        second cancel racing this one finds zero rows and gets ConflictError.
        """
        async with isolated_transaction(db, ALREADY_CANCELLED_MESSAGE):
            row = (await db.execute(
                select(Booking, Trip).join(Trip, Trip.id == Booking.trip_id).where(Booking.id == booking_id)
                .execution_options(populate_existing=True)
            )).first()
            if row is None:
                raise ResourceNotFoundError("Booking", booking_id)
            booking, trip = row

            if requester_id not in (booking.passenger_id, trip.driver_id):
                raise InsufficientPermissionsError("You cannot cancel this booking")

            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError("Booking is already cancelled")

            if not await _mark_cancelled(db, booking_id):
                raise ConflictError(ALREADY_CANCELLED_MESSAGE, details={"booking_id": booking_id})

            await _release_seat(db, trip.id)

            cancelled_by = "driver" if requester_id == trip.driver_id else "passenger"
            await log_event(
                db,
                action=AuditAction.BOOKING_CANCELLED,
                actor_id=requester_id,
                trip_id=trip.id,
                metadata={"booking_id": booking_id, "cancelled_by": cancelled_by}
            )

        await db.refresh(trip)
        await db.refresh(booking)

        logger.info(
            "Booking cancelled",
            extra={"booking_id": booking_id, "trip_id": trip.id, "cancelled_by": cancelled_by}
        )

        other_party = trip.driver_id if cancelled_by == "passenger" else booking.passenger_id
        await NotificationService.notify(
            db,
            other_party,
            NotificationKind.BOOKING_CANCELLED,
            build_trip_context(trip, booking_id=booking.id, cancelled_by=cancelled_by),
        )
        return booking, trip

    @staticmethod
    async def get_booking(db: AsyncSession, booking_id: int, requester_id: int) -> Tuple[Booking, Trip]:
        """Single booking, visible to its passenger and the trip's driver only."""
        row = (await db.execute(
            select(Booking, Trip).join(Trip, Trip.id == Booking.trip_id).where(Booking.id == booking_id)
        )).first()
        if row is None:
            raise ResourceNotFoundError("Booking", booking_id)
        booking, trip = row

        if requester_id not in (booking.passenger_id, trip.driver_id):
            raise InsufficientPermissionsError("You do not have access to this booking")

        return booking, trip

    @staticmethod
    async def get_my_bookings(db: AsyncSession, passenger_id: int) -> List[Tuple[Booking, Trip]]:
        """All bookings of a passenger, newest first."""
        result = await db.execute(
            select(Booking, Trip)
            .join(Trip, Trip.id == Booking.trip_id)
            .where(Booking.passenger_id == passenger_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return [(booking, trip) for booking, trip in result.all()]

    @staticmethod
    async def count_confirmed(db: AsyncSession, trip_id: int) -> int:
        result = await db.execute(
            select(sql_func.count(Booking.id)).where(
                Booking.trip_id == trip_id,
                Booking.status == BookingStatus.CONFIRMED,
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def is_participant(db: AsyncSession, trip: Trip, user_id: Optional[int]) -> bool:
        """Driver, or holder of a confirmed booking on the trip."""
        if user_id is None:
            return False
        if trip.driver_id == user_id:
            return True
        result = await db.execute(
            select(Booking.id).where(
                Booking.trip_id == trip.id,
                Booking.passenger_id == user_id,
                Booking.status == BookingStatus.CONFIRMED,
            )
        )
        return result.first() is not None

    @staticmethod
    async def _notify_created(db: AsyncSession, booking: Booking, trip: Trip) -> None:
        try:
            names = dict((await db.execute(
                select(User.id, User.name).where(User.id.in_([trip.driver_id, booking.passenger_id]))
            )).all())
        except Exception:
            logger.warning("Could not load names for booking notification", exc_info=True)
            names = {}
        context = build_trip_context(
            trip,
            booking_id=booking.id,
            passenger_name=names.get(booking.passenger_id, ""),
            driver_name=names.get(trip.driver_id, ""),
        )
        await NotificationService.notify(db, trip.driver_id, NotificationKind.BOOKING_CREATED, context)
        await NotificationService.notify(db, booking.passenger_id, NotificationKind.BOOKING_CONFIRMED, context)
