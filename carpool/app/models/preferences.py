"""
Ride preferences shared by users and trips.

A user's profile carries default preferences; a new trip copies them unless
the driver overrides individual values when publishing.
"""

import enum
from typing import Any, Dict

from sqlalchemy import Column, Boolean, Enum


class MusicPreference(str, enum.Enum):
    QUIET = "Quiet"
    NORMAL = "Normal"
    LOUD = "Loud"


class BaggageSize(str, enum.Enum):
    HAND = "Hand"
    MEDIUM = "Medium"
    SUITCASE = "Suitcase"


class ConversationStyle(str, enum.Enum):
    CHATTY = "Chatty"
    QUIET = "Quiet"


PREFERENCE_FIELDS = ("music", "smoking", "pets", "baggage", "conversation", "ac")

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "music": MusicPreference.NORMAL,
    "smoking": False,
    "pets": False,
    "baggage": BaggageSize.MEDIUM,
    "conversation": ConversationStyle.CHATTY,
    "ac": True,
}


def _enum_column(enum_cls, default):
    return Column(
        Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=default,
        nullable=False,
    )


class RidePreferencesMixin:
    """Adds the `pref_*` columns to a model."""
    pref_music = _enum_column(MusicPreference, DEFAULT_PREFERENCES["music"])
    pref_smoking = Column(Boolean, default=DEFAULT_PREFERENCES["smoking"], nullable=False)
    pref_pets = Column(Boolean, default=DEFAULT_PREFERENCES["pets"], nullable=False)
    pref_baggage = _enum_column(BaggageSize, DEFAULT_PREFERENCES["baggage"])
    pref_conversation = _enum_column(ConversationStyle, DEFAULT_PREFERENCES["conversation"])
    pref_ac = Column(Boolean, default=DEFAULT_PREFERENCES["ac"], nullable=False)

    @property
    def preferences(self) -> Dict[str, Any]:
        return {field: getattr(self, f"pref_{field}") for field in PREFERENCE_FIELDS}


def preference_columns(overrides: Dict[str, Any], base: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge explicit preference values over a base set.

    Keys missing from `overrides` or set to None keep the base value.
    Returns the result keyed by column name (`pref_music`, ...).
    """
    merged = dict(base)
    merged.update({k: v for k, v in (overrides or {}).items() if k in PREFERENCE_FIELDS and v is not None})
    return {f"pref_{field}": merged[field] for field in PREFERENCE_FIELDS}
