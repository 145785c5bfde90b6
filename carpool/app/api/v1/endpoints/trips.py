"""
Trip endpoints.

Drivers publish, edit and cancel trips; anyone can browse active trips and
view a single trip with its confirmed passengers.
"""

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core.dependencies import get_current_user, get_optional_user
from carpool.app.db.session import get_db
from carpool.app.domain.reviews.archival import count_feedback_records
from carpool.app.domain.reviews.feedback_rules import reviews_remaining
from carpool.app.domain.trips.trip_service import TripService
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import TripStatus
from carpool.app.models.user import User
from carpool.app.schemas.trip import AuditEntry, TripCreate, TripResponse, TripUpdate
from carpool.app.schemas.user import RidePreferences, UserSummary

router = APIRouter(prefix="/trips", tags=["Trips"])


def trip_to_response(trip: Trip, **extra) -> TripResponse:
    """Flat trip view without passengers."""
    return TripResponse(
        id=trip.id,
        driver_id=trip.driver_id,
        from_city=trip.from_city,
        to_city=trip.to_city,
        date=trip.date,
        time=trip.time,
        pickup_location=trip.pickup_location,
        dropoff_location=trip.dropoff_location,
        comment=trip.comment,
        seats_total=trip.seats_total,
        seats_booked=trip.seats_booked,
        seats_available=trip.seats_available,
        status=trip.status.value,
        trip_group_id=trip.trip_group_id,
        is_return=bool(trip.is_return),
        preferences=RidePreferences(**trip.preferences),
        created_at=trip.created_at,
        updated_at=trip.updated_at,
        **extra
    )


async def build_trip_detail(db: AsyncSession, trip: Trip, viewer_id: Optional[int] = None) -> TripResponse:
    """Trip view with driver, confirmed passengers and feedback progress."""
    driver = (await db.execute(select(User).where(User.id == trip.driver_id))).scalar_one_or_none()
    passengers = await TripService.get_confirmed_passengers(db, trip.id)

    remaining = None
    if trip.status == TripStatus.COMPLETED:
        recorded = await count_feedback_records(db, trip.id)
        remaining = reviews_remaining(len(passengers), recorded)

    my_booking_id = None
    if viewer_id is not None:
        my_booking_id = next((b.id for b, u in passengers if u.id == viewer_id), None)

    return trip_to_response(
        trip,
        driver=UserSummary.model_validate(driver) if driver else None,
        passengers=[UserSummary.model_validate(u) for _, u in passengers],
        reviews_remaining=remaining,
        my_booking_id=my_booking_id,
    )


@router.get("", response_model=List[TripResponse])
async def list_trips(
    from_city: Optional[str] = Query(None),
    to_city: Optional[str] = Query(None),
    date_from: Optional[dt.date] = Query(None),
    date_to: Optional[dt.date] = Query(None),
    trip_status: TripStatus = Query(TripStatus.ACTIVE, alias="status"),
    trip_group_id: Optional[str] = Query(None, description="Only the legs of this round trip"),
    db: AsyncSession = Depends(get_db)
):
    """Browse trips (public). Defaults to active trips, soonest first."""
    trips = await TripService.list_trips(
        db,
        status=trip_status,
        from_city=from_city,
        to_city=to_city,
        date_from=date_from,
        date_to=date_to,
        trip_group_id=trip_group_id,
    )
    return [trip_to_response(t) for t in trips]


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Publish a new trip as its driver."""
    trip = await TripService.create_trip(db, current_user["user_id"], trip_data.model_dump())
    return await build_trip_detail(db, trip, current_user["user_id"])


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Optional[dict] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Trip details with confirmed passengers (public)."""
    trip = await TripService.get_trip(db, trip_id)
    viewer_id = current_user["user_id"] if current_user else None
    return await build_trip_detail(db, trip, viewer_id)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_data: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Edit an active trip (driver only)."""
    trip = await TripService.update_trip(
        db, trip_id, current_user["user_id"], trip_data.model_dump(exclude_unset=True)
    )
    return await build_trip_detail(db, trip, current_user["user_id"])


@router.delete("/{trip_id}", response_model=TripResponse)
async def cancel_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Cancel an active trip and all of its bookings (driver only)."""
    trip = await TripService.cancel_trip(db, trip_id, current_user["user_id"])
    return trip_to_response(trip)


@router.get("/{trip_id}/audit", response_model=List[AuditEntry])
async def get_trip_audit(
    trip_id: int = Path(..., description="Trip ID"),
    action: Optional[str] = Query(None, description="Only entries of this action"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """History of bookings, edits and status changes on a trip (driver only)."""
    return await TripService.get_audit_trail(db, trip_id, current_user["user_id"], action=action, limit=limit)
