"""
Review endpoints.

Feedback between driver and passengers of a completed trip. Once every
expected review or skip is in, the trip is archived.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core.dependencies import get_current_user
from carpool.app.db.session import get_db
from carpool.app.domain.reviews.review_service import ReviewService
from carpool.app.models.user import User
from carpool.app.core.exceptions import ResourceNotFoundError
from carpool.app.schemas.review import (
    PendingReviewResponse,
    ReviewCreate,
    ReviewResponse,
    SkipReviewRequest,
    UserReviewResponse,
)
from carpool.app.schemas.user import UserSummary

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def submit_review(
    review_data: ReviewCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Rate another participant of a completed trip."""
    return await ReviewService.submit_review(
        db,
        trip_id=review_data.trip_id,
        author_id=current_user["user_id"],
        target_id=review_data.target_id,
        rating=review_data.rating,
        comment=review_data.comment or "",
    )


@router.post("/skip", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def skip_review(
    skip_data: SkipReviewRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Decline to rate a participant. Counts toward closing the trip, not toward ratings."""
    return await ReviewService.skip_review(
        db,
        trip_id=skip_data.trip_id,
        author_id=current_user["user_id"],
        target_id=skip_data.target_id,
    )


@router.get("/pending", response_model=List[PendingReviewResponse])
async def get_pending_reviews(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Completed trips where the current user still owes feedback."""
    pending = await ReviewService.get_pending_reviews(db, current_user["user_id"])
    return [
        PendingReviewResponse(
            trip_id=item.trip.id,
            from_city=item.trip.from_city,
            to_city=item.trip.to_city,
            date=item.trip.date,
            time=item.trip.time,
            driver=UserSummary.model_validate(item.driver),
            pending_for=[UserSummary.model_validate(u) for u in item.pending_for],
        )
        for item in pending
    ]


@router.get("/user/{user_id}", response_model=List[UserReviewResponse])
async def get_user_reviews(
    user_id: int = Path(..., description="User ID"),
    db: AsyncSession = Depends(get_db)
):
    """Reviews a user has received (public). Skips are not listed."""
    if await db.get(User, user_id) is None:
        raise ResourceNotFoundError("User", user_id)

    rows = await ReviewService.get_user_reviews(db, user_id)
    return [
        UserReviewResponse(
            id=review.id,
            rating=review.rating,
            comment=review.comment,
            created_at=review.created_at,
            author=UserSummary.model_validate(author),
            trip_id=trip.id,
            from_city=trip.from_city,
            to_city=trip.to_city,
            trip_date=trip.date,
        )
        for review, author, trip in rows
    ]
