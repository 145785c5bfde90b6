"""
Booking endpoints.

Seat reservations for passengers. A 409 means the seat counter or booking
changed under the request; the client should refresh and retry.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.api.v1.endpoints.trips import trip_to_response
from carpool.app.core.dependencies import get_current_user
from carpool.app.db.session import get_db
from carpool.app.domain.booking.booking_service import BookingService
from carpool.app.models.booking import Booking
from carpool.app.models.trip import Trip
from carpool.app.schemas.booking import BookingCreate, BookingResponse

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def booking_to_response(booking: Booking, trip: Trip) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        trip_id=booking.trip_id,
        passenger_id=booking.passenger_id,
        status=booking.status.value,
        created_at=booking.created_at,
        trip=trip_to_response(trip),
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Book a seat on an active trip."""
    booking, trip = await BookingService.create_booking(db, booking_data.trip_id, current_user["user_id"])
    return booking_to_response(booking, trip)


@router.get("/my", response_model=List[BookingResponse])
async def get_my_bookings(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current user's bookings, newest first."""
    rows = await BookingService.get_my_bookings(db, current_user["user_id"])
    return [booking_to_response(booking, trip) for booking, trip in rows]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int = Path(..., description="Booking ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Single booking (passenger or driver of the trip)."""
    booking, trip = await BookingService.get_booking(db, booking_id, current_user["user_id"])
    return booking_to_response(booking, trip)


@router.delete("/{booking_id}", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int = Path(..., description="Booking ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a booking as its passenger or the trip's driver.

    The seat is released exactly once; a concurrent second cancel gets 409.
    """
    booking, trip = await BookingService.cancel_booking(db, booking_id, current_user["user_id"])
    return booking_to_response(booking, trip)
