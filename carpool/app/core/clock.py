"""
Calendar date source.

Every "is this trip in the past" decision goes through today() so that the
lifecycle sweep and trip validation agree on the same calendar day.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from carpool.app.core.config import settings


def now(tz_name: Optional[str] = None) -> datetime:
    """Current wall-clock time, naive, in the configured calendar zone."""
    tz_name = tz_name or settings.calendar_timezone
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
    return datetime.now()


def today(tz_name: Optional[str] = None) -> date:
    """Current calendar day (local wall clock unless a zone is configured)."""
    return now(tz_name).date()
