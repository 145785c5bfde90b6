"""
Trip service (Domain Logic).

Driver-side create / update / cancel and public reads. Status changes go
through the transition table in trip_enums; `seats_booked` is never written
here except by the cancel cascade.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core import clock
from carpool.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InvalidStateError,
    ResourceNotFoundError,
)
from carpool.app.db.transactions import isolated_transaction
from carpool.app.models.audit_log import AuditLog
from carpool.app.models.booking import Booking
from carpool.app.models.notification import NotificationKind
from carpool.app.models.preferences import preference_columns
from carpool.app.models.trip import DEFAULT_SEATS_TOTAL, Trip
from carpool.app.models.trip_enums import BookingStatus, TripStatus, ensure_transition
from carpool.app.models.user import User
from carpool.app.services.audit import AuditAction, get_trip_audit_trail, log_event
from carpool.app.services.notification_service import NotificationService, build_trip_context

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "from_city", "to_city", "date", "time",
    "pickup_location", "dropoff_location", "seats_total", "comment",
    "trip_group_id", "is_return",
)


def _ensure_not_in_past(trip_date: date, trip_time: str) -> None:
    departure = datetime.combine(trip_date, datetime.strptime(trip_time, "%H:%M").time())
    if departure < clock.now():
        raise InvalidStateError("A trip cannot be scheduled in the past")


async def _ensure_group_owner(db: AsyncSession, trip_group_id: str, driver_id: int) -> None:
    """A round-trip group only ever holds trips of one driver."""
    other = await db.execute(
        select(Trip.id).where(Trip.trip_group_id == trip_group_id, Trip.driver_id != driver_id).limit(1)
    )
    if other.first() is not None:
        raise InsufficientPermissionsError("This trip group belongs to another driver")


class TripService:

    @staticmethod
    async def create_trip(db: AsyncSession, driver_id: int, data: Dict[str, Any]) -> Trip:
        """Create an ACTIVE trip owned by the driver."""
        if data["from_city"] == data["to_city"]:
            raise InvalidStateError("Origin and destination must differ")
        _ensure_not_in_past(data["date"], data["time"])

        driver = await db.get(User, driver_id)
        if driver is None:
            raise ResourceNotFoundError("User", driver_id)

        if data.get("trip_group_id"):
            await _ensure_group_owner(db, data["trip_group_id"], driver_id)

        trip = Trip(
            driver_id=driver_id,
            from_city=data["from_city"],
            to_city=data["to_city"],
            date=data["date"],
            time=data["time"],
            pickup_location=data.get("pickup_location") or "",
            dropoff_location=data.get("dropoff_location") or "",
            comment=data.get("comment") or "",
            seats_total=data.get("seats_total") or DEFAULT_SEATS_TOTAL,
            seats_booked=0,
            trip_group_id=data.get("trip_group_id"),
            is_return=bool(data.get("is_return")),
            status=TripStatus.ACTIVE,
            **preference_columns(data.get("preferences"), driver.preferences),
        )
        db.add(trip)
        await db.flush()

        await log_event(
            db,
            action=AuditAction.TRIP_CREATED,
            actor_id=driver_id,
            trip_id=trip.id,
            metadata={"seats_total": trip.seats_total, "date": trip.date.isoformat()}
        )
        await db.commit()
        await db.refresh(trip)

        logger.info("Trip created", extra={"trip_id": trip.id, "driver_id": driver_id})
        return trip

    @staticmethod
    async def get_trip(db: AsyncSession, trip_id: int) -> Trip:
        trip = (await db.execute(
            select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    @staticmethod
    async def list_trips(
        db: AsyncSession,
        status: TripStatus = TripStatus.ACTIVE,
        from_city: Optional[str] = None,
        to_city: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        trip_group_id: Optional[str] = None,
    ) -> List[Trip]:
        query = select(Trip).where(Trip.status == status)

        if trip_group_id:
            query = query.where(Trip.trip_group_id == trip_group_id)
        if from_city:
            query = query.where(Trip.from_city == from_city)
        if to_city:
            query = query.where(Trip.to_city == to_city)
        if date_from:
            query = query.where(Trip.date >= date_from)
        if date_to:
            query = query.where(Trip.date <= date_to)

        query = query.order_by(Trip.date.asc(), Trip.time.asc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def list_driver_trips(db: AsyncSession, driver_id: int) -> List[Trip]:
        """Every trip the user has driven or published, newest date first."""
        if await db.get(User, driver_id) is None:
            raise ResourceNotFoundError("User", driver_id)

        result = await db.execute(
            select(Trip)
            .where(Trip.driver_id == driver_id)
            .order_by(Trip.date.desc(), Trip.time.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_confirmed_passengers(db: AsyncSession, trip_id: int) -> List[Tuple[Booking, User]]:
        result = await db.execute(
            select(Booking, User)
            .join(User, User.id == Booking.passenger_id)
            .where(Booking.trip_id == trip_id, Booking.status == BookingStatus.CONFIRMED)
            .order_by(Booking.created_at, Booking.id)
        )
        return [(booking, user) for booking, user in result.all()]

    @staticmethod
    async def update_trip(db: AsyncSession, trip_id: int, driver_id: int, data: Dict[str, Any]) -> Trip:
        """
        Edit an ACTIVE trip (driver only).

        Capacity may not shrink below the passengers already booked; the
        write is conditional on the observed `seats_booked`.
        """
        changes = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        preference_overrides = data.get("preferences")

        async with isolated_transaction(db, "Trip was changed by another request"):
            trip = await TripService.get_trip(db, trip_id)

            if trip.driver_id != driver_id:
                raise InsufficientPermissionsError("Only the driver can edit this trip")

            if changes.get("trip_group_id"):
                await _ensure_group_owner(db, changes["trip_group_id"], driver_id)

            if trip.status != TripStatus.ACTIVE:
                raise InvalidStateError(
                    "Only active trips can be edited",
                    details={"status": trip.status.value}
                )

            new_from = changes.get("from_city", trip.from_city)
            new_to = changes.get("to_city", trip.to_city)
            if new_from == new_to:
                raise InvalidStateError("Origin and destination must differ")

            if "date" in changes or "time" in changes:
                _ensure_not_in_past(changes.get("date", trip.date), changes.get("time", trip.time))

            observed = trip.seats_booked
            if "seats_total" in changes and changes["seats_total"] - 1 < observed:
                raise InvalidStateError(
                    "Cannot reduce seats below the number already booked",
                    details={"seats_booked": observed}
                )

            if preference_overrides:
                changes.update(preference_columns(preference_overrides, trip.preferences))

            if changes:
                result = await db.execute(
                    update(Trip)
                    .where(
                        Trip.id == trip_id,
                        Trip.status == TripStatus.ACTIVE,
                        Trip.seats_booked == observed,
                    )
                    .values(**changes)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ConflictError("Trip bookings changed while editing")

                await log_event(
                    db,
                    action=AuditAction.TRIP_UPDATED,
                    actor_id=driver_id,
                    trip_id=trip_id,
                    metadata={"fields": sorted(changes)}
                )

        await db.refresh(trip)
        return trip

    @staticmethod
    async def cancel_trip(db: AsyncSession, trip_id: int, driver_id: int) -> Trip:
        """
        Cancel an ACTIVE trip (driver only).

        Every confirmed booking is cancelled with it and its passenger notified.
        """
        async with isolated_transaction(db, "Trip was changed by another request"):
            trip = await TripService.get_trip(db, trip_id)

            if trip.driver_id != driver_id:
                raise InsufficientPermissionsError("Only the driver can cancel this trip")

            ensure_transition(trip.status, TripStatus.CANCELLED)

            result = await db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status == TripStatus.ACTIVE)
                .values(status=TripStatus.CANCELLED, seats_booked=0)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Trip status changed while cancelling")

            passenger_ids = list((await db.execute(
                select(Booking.passenger_id).where(
                    Booking.trip_id == trip_id,
                    Booking.status == BookingStatus.CONFIRMED,
                )
            )).scalars().all())

            await db.execute(
                update(Booking)
                .where(Booking.trip_id == trip_id, Booking.status == BookingStatus.CONFIRMED)
                .values(status=BookingStatus.CANCELLED)
                .execution_options(synchronize_session=False)
            )

            driver = await db.get(User, driver_id)
            driver_name = driver.name if driver else ""

            await log_event(
                db,
                action=AuditAction.TRIP_CANCELLED,
                actor_id=driver_id,
                trip_id=trip_id,
                metadata={"cancelled_bookings": len(passenger_ids)}
            )

        await db.refresh(trip)
        logger.info("Trip cancelled", extra={"trip_id": trip_id, "passengers": len(passenger_ids)})

        context = build_trip_context(trip, driver_name=driver_name)
        for passenger_id in passenger_ids:
            await NotificationService.notify(db, passenger_id, NotificationKind.TRIP_CANCELLED, context)

        return trip

    @staticmethod
    async def get_audit_trail(
        db: AsyncSession,
        trip_id: int,
        requester_id: int,
        action: Optional[str] = None,
        limit: int = 100
    ) -> List[AuditLog]:
        """Audit history of a trip, most recent first (driver only)."""
        trip = await TripService.get_trip(db, trip_id)
        if trip.driver_id != requester_id:
            raise InsufficientPermissionsError("Only the driver can view the trip history")
        return await get_trip_audit_trail(db, trip_id, action=action, limit=limit)
