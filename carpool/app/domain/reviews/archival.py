"""
Trip archival.

Moves a COMPLETED trip to ARCHIVED once every expected feedback record
(reviews and skips) exists. Safe to call after every feedback event: it only
moves a trip forward and the status write is conditional, so redundant or
concurrent calls perform at most one transition.
"""

import logging
from typing import List

from sqlalchemy import select, update, func as sql_func
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.db.transactions import isolated_transaction
from carpool.app.domain.booking.booking_service import BookingService
from carpool.app.domain.reviews.feedback_rules import expected_review_count, is_feedback_complete
from carpool.app.models.review import Review
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import TripStatus, ensure_transition
from carpool.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


async def count_feedback_records(db: AsyncSession, trip_id: int) -> int:
    """Reviews plus skips recorded for a trip."""
    result = await db.execute(
        select(sql_func.count(Review.id)).where(Review.trip_id == trip_id)
    )
    return result.scalar() or 0


class ArchivalTrigger:

    @staticmethod
    async def try_archive(db: AsyncSession, trip_id: int) -> bool:
        """
        Archive the trip if its feedback set is complete.

        Returns:
            True if this call performed the COMPLETED -> ARCHIVED transition
        """
        async with isolated_transaction(db, "Trip was archived by another request"):
            trip = (await db.execute(
                select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if trip is None or trip.status != TripStatus.COMPLETED:
                return False

            confirmed = await BookingService.count_confirmed(db, trip_id)
            recorded = await count_feedback_records(db, trip_id)
            if not is_feedback_complete(confirmed, recorded):
                return False

            ensure_transition(trip.status, TripStatus.ARCHIVED)
            result = await db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status == TripStatus.COMPLETED)
                .values(status=TripStatus.ARCHIVED)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            await log_event(
                db,
                action=AuditAction.TRIP_ARCHIVED,
                trip_id=trip_id,
                metadata={"feedback_records": recorded, "expected": expected_review_count(confirmed)}
            )

        logger.info("Trip archived", extra={"trip_id": trip_id, "feedback_records": recorded})
        return True

    @staticmethod
    async def archive_ready_trips(db: AsyncSession) -> List[int]:
        """
        Run try_archive for every COMPLETED trip.

        Catches trips whose final feedback event could not archive them
        (e.g. the post-commit archival attempt failed). A trip that fails
        here is logged and left for the next run; the rest are still tried.
        """
        result = await db.execute(select(Trip.id).where(Trip.status == TripStatus.COMPLETED))
        trip_ids = list(result.scalars().all())
        await db.commit()

        archived = []
        for trip_id in trip_ids:
            try:
                if await ArchivalTrigger.try_archive(db, trip_id):
                    archived.append(trip_id)
            except Exception:
                logger.warning("Archival catch-up failed for trip", exc_info=True, extra={"trip_id": trip_id})
        return archived
