"""
Trip schemas.

Request and response models for publishing, editing and browsing trips.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
import datetime as dt

from carpool.app.models.trip import DEFAULT_SEATS_TOTAL, MAX_SEATS_TOTAL
from carpool.app.schemas.user import RidePreferences, UserSummary

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TripCreate(BaseModel):
    """Schema for publishing a trip."""
    from_city: str = Field(..., min_length=1, max_length=100)
    to_city: str = Field(..., min_length=1, max_length=100)
    date: dt.date
    time: str = Field(..., pattern=TIME_PATTERN, description="Departure time, HH:MM")
    pickup_location: Optional[str] = Field(None, max_length=255)
    dropoff_location: Optional[str] = Field(None, max_length=255)
    seats_total: int = Field(
        DEFAULT_SEATS_TOTAL, ge=1, le=MAX_SEATS_TOTAL, description="Seats including the driver's"
    )
    comment: Optional[str] = Field(None, max_length=1000)
    trip_group_id: Optional[str] = Field(None, min_length=1, max_length=64, description="Links outbound and return legs")
    is_return: bool = False
    preferences: Optional[RidePreferences] = None  # Missing values come from the driver's profile


class TripUpdate(BaseModel):
    """Schema for editing an active trip. Omitted fields are left unchanged."""
    from_city: Optional[str] = Field(None, min_length=1, max_length=100)
    to_city: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[dt.date] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    pickup_location: Optional[str] = Field(None, max_length=255)
    dropoff_location: Optional[str] = Field(None, max_length=255)
    seats_total: Optional[int] = Field(None, ge=1, le=MAX_SEATS_TOTAL)
    comment: Optional[str] = Field(None, max_length=1000)
    trip_group_id: Optional[str] = Field(None, min_length=1, max_length=64)
    is_return: Optional[bool] = None
    preferences: Optional[RidePreferences] = None


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    driver_id: int
    from_city: str
    to_city: str
    date: dt.date
    time: str
    pickup_location: str
    dropoff_location: str
    comment: str
    seats_total: int
    seats_booked: int
    seats_available: int
    status: str
    trip_group_id: Optional[str] = None
    is_return: bool = False
    preferences: RidePreferences
    created_at: dt.datetime
    updated_at: dt.datetime
    driver: Optional[UserSummary] = None
    passengers: List[UserSummary] = []
    reviews_remaining: Optional[int] = None  # Set once the trip is completed
    my_booking_id: Optional[int] = None  # Caller's confirmed booking, if any

    class Config:
        from_attributes = True


class AuditEntry(BaseModel):
    """One row of a trip's audit trail."""
    id: int
    action: str
    actor_id: Optional[int] = None
    meta_data: Optional[dict] = None
    timestamp: dt.datetime

    class Config:
        from_attributes = True
