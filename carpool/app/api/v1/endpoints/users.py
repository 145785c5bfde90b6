"""
User endpoints.

Public profiles and driver trip history, plus the caller's default ride
preferences.
"""

from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.api.v1.endpoints.trips import trip_to_response
from carpool.app.core.dependencies import get_current_user
from carpool.app.db.session import get_db
from carpool.app.domain.trips.trip_service import TripService
from carpool.app.domain.users.user_service import UserService
from carpool.app.models.user import User
from carpool.app.schemas.trip import TripResponse
from carpool.app.schemas.user import RidePreferences, UserProfile, UserSummary

router = APIRouter(prefix="/users", tags=["Users"])


def user_to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        name=user.name,
        username=user.username,
        rating=user.rating,
        default_preferences=RidePreferences(**user.preferences),
    )


@router.patch("/me/preferences", response_model=UserProfile)
async def update_my_preferences(
    preferences: RidePreferences,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change the preferences new trips start from. Omitted values stay as they are."""
    user = await UserService.update_preferences(
        db, current_user["user_id"], preferences.model_dump(exclude_none=True)
    )
    return user_to_profile(user)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user_profile(
    user_id: int = Path(..., description="User ID"),
    db: AsyncSession = Depends(get_db)
):
    """Public profile (no authentication required)."""
    return user_to_profile(await UserService.get_user(db, user_id))


@router.get("/{user_id}/trips", response_model=List[TripResponse])
async def get_user_trips(
    user_id: int = Path(..., description="User ID"),
    db: AsyncSession = Depends(get_db)
):
    """Trips the user drives, in any status, newest first (public)."""
    trips = await TripService.list_driver_trips(db, user_id)
    driver = await UserService.get_user(db, user_id)
    summary = UserSummary.model_validate(driver)
    return [trip_to_response(t, driver=summary) for t in trips]
