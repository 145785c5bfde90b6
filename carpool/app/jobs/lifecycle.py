"""
Lifecycle sweep.

Moves every ACTIVE trip dated strictly before today to COMPLETED, then archives
completed trips whose feedback set is full. Both steps are conditional bulk
writes, so re-running a cycle is harmless.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core import clock
from carpool.app.db.session import AsyncSessionLocal
from carpool.app.domain.reviews.archival import ArchivalTrigger
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import TripStatus, ensure_transition

logger = logging.getLogger(__name__)


async def complete_past_trips(db: AsyncSession, today: Optional[date] = None) -> int:
    """
    Bulk ACTIVE -> COMPLETED for trips dated before `today`.

    Returns:
        Number of trips transitioned
    """
    today = today or clock.today()
    ensure_transition(TripStatus.ACTIVE, TripStatus.COMPLETED)

    result = await db.execute(
        update(Trip)
        .where(Trip.status == TripStatus.ACTIVE, Trip.date < today)
        .values(status=TripStatus.COMPLETED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    count = result.rowcount or 0
    if count > 0:
        logger.info("Completed %d past trips", count, extra={"today": today.isoformat()})
    return count


async def run_lifecycle_sweep(today: Optional[date] = None, session_factory=AsyncSessionLocal) -> int:
    """
    One scheduler cycle in its own session.

    Failures are logged and swallowed; the next cycle retries.

    Returns:
        Number of trips completed in this cycle (0 on failure)
    """
    try:
        async with session_factory() as db:
            completed = await complete_past_trips(db, today)
            archived = await ArchivalTrigger.archive_ready_trips(db)
            if archived:
                logger.info("Archived %d trips with complete feedback", len(archived))
            return completed
    except Exception:
        logger.exception("Lifecycle sweep failed")
        return 0
