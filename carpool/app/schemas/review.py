"""
Review schemas.

A review carries a 1..5 rating; a skip carries none and only counts toward
closing the trip.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
import datetime as dt

from carpool.app.schemas.user import UserSummary


class ReviewCreate(BaseModel):
    """Schema for leaving a review."""
    trip_id: int = Field(..., gt=0)
    target_id: int = Field(..., gt=0, description="User being reviewed")
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


class SkipReviewRequest(BaseModel):
    """Schema for explicitly skipping a review."""
    trip_id: int = Field(..., gt=0)
    target_id: int = Field(..., gt=0)


class ReviewResponse(BaseModel):
    id: int
    trip_id: int
    author_id: int
    target_id: int
    rating: int
    comment: str
    skipped: bool
    created_at: dt.datetime

    class Config:
        from_attributes = True


class UserReviewResponse(BaseModel):
    """Public review as shown on a user's profile."""
    id: int
    rating: int
    comment: str
    created_at: dt.datetime
    author: UserSummary
    trip_id: int
    from_city: str
    to_city: str
    trip_date: dt.date


class PendingReviewResponse(BaseModel):
    """A completed trip where the caller still owes feedback."""
    trip_id: int
    from_city: str
    to_city: str
    date: dt.date
    time: str
    driver: UserSummary
    pending_for: List[UserSummary]
