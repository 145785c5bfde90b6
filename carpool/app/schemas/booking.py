"""
Booking schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime

from carpool.app.schemas.trip import TripResponse


class BookingCreate(BaseModel):
    """Schema for booking a seat."""
    trip_id: int = Field(..., gt=0)


class BookingResponse(BaseModel):
    """Schema for booking response, with the trip it belongs to."""
    id: int
    trip_id: int
    passenger_id: int
    status: str
    created_at: datetime
    trip: TripResponse
