"""
User schemas.

UserSummary is embedded in trip, booking and review responses; the profile
adds the default ride preferences.
"""

from pydantic import BaseModel
from typing import Optional

from carpool.app.models.preferences import BaggageSize, ConversationStyle, MusicPreference


class RidePreferences(BaseModel):
    """Ride preferences. In requests, omitted values keep their current or default value."""
    music: Optional[MusicPreference] = None
    smoking: Optional[bool] = None
    pets: Optional[bool] = None
    baggage: Optional[BaggageSize] = None
    conversation: Optional[ConversationStyle] = None
    ac: Optional[bool] = None


class UserSummary(BaseModel):
    """Public view of a user."""
    id: int
    name: str
    username: str
    rating: float

    class Config:
        from_attributes = True


class UserProfile(UserSummary):
    """Public profile with the preferences new trips start from."""
    default_preferences: RidePreferences

    class Config:
        from_attributes = True
