"""
Review service (Domain Logic).

Records feedback between participants of a completed trip, keeps the target's
aggregate rating current and checks after every feedback event whether the
trip can be archived.
"""

import logging
from typing import List, NamedTuple, Optional, Tuple

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InvalidStateError,
    ResourceNotFoundError,
)
from carpool.app.db.session import side_session
from carpool.app.db.transactions import isolated_transaction
from carpool.app.domain.booking.booking_service import BookingService
from carpool.app.domain.reviews.archival import ArchivalTrigger
from carpool.app.domain.reviews.feedback_rules import average_rating
from carpool.app.models.booking import Booking
from carpool.app.models.review import Review, SKIPPED_RATING
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import BookingStatus, TripStatus
from carpool.app.models.user import User
from carpool.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)

DUPLICATE_REVIEW_MESSAGE = "You have already reviewed or skipped this participant for this trip"


class PendingReview(NamedTuple):
    trip: Trip
    driver: User
    pending_for: List[User]


class ReviewService:

    @staticmethod
    async def _check_preconditions(
        db: AsyncSession,
        trip_id: int,
        author_id: int,
        target_id: int
    ) -> Trip:
        """
        Validate a feedback event.

        Order matters: lifecycle, author participation, target participation,
        self-review, duplicate.
        """
        trip = (await db.execute(
            select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)

        if trip.status != TripStatus.COMPLETED:
            raise InvalidStateError(
                "Feedback can only be left once the trip is completed",
                details={"trip_id": trip_id, "status": trip.status.value}
            )

        if not await BookingService.is_participant(db, trip, author_id):
            raise InsufficientPermissionsError("You did not take part in this trip")

        if not await BookingService.is_participant(db, trip, target_id):
            raise InvalidStateError("This user did not take part in the trip")

        if author_id == target_id:
            raise InvalidStateError("You cannot leave feedback for yourself")

        existing = await db.execute(
            select(Review.id).where(
                Review.trip_id == trip_id,
                Review.author_id == author_id,
                Review.target_id == target_id,
            )
        )
        if existing.first() is not None:
            raise ConflictError(DUPLICATE_REVIEW_MESSAGE)

        return trip

    @staticmethod
    async def recalculate_user_rating(db: AsyncSession, user_id: int) -> Optional[float]:
        """
        Set the user's rating to the mean of non-skipped reviews received.

        Leaves the rating untouched when there are none.
        """
        result = await db.execute(
            select(Review.rating).where(Review.target_id == user_id, Review.skipped.is_(False))
        )
        rating = average_rating(result.scalars().all())
        if rating is None:
            return None

        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(rating=rating)
            .execution_options(synchronize_session=False)
        )
        return rating

    @staticmethod
    async def submit_review(
        db: AsyncSession,
        trip_id: int,
        author_id: int,
        target_id: int,
        rating: int,
        comment: str = ""
    ) -> Review:
        """Record a rated review, recompute the target's rating, then try archival."""
        if not 1 <= rating <= 5:
            raise InvalidStateError("Rating must be between 1 and 5")

        async with isolated_transaction(db, DUPLICATE_REVIEW_MESSAGE):
            await ReviewService._check_preconditions(db, trip_id, author_id, target_id)

            review = Review(
                trip_id=trip_id,
                author_id=author_id,
                target_id=target_id,
                rating=rating,
                comment=comment or "",
                skipped=False,
            )
            db.add(review)
            await db.flush()

            new_rating = await ReviewService.recalculate_user_rating(db, target_id)

            await log_event(
                db,
                action=AuditAction.REVIEW_SUBMITTED,
                actor_id=author_id,
                trip_id=trip_id,
                metadata={"review_id": review.id, "target_id": target_id, "rating": rating}
            )

        await db.refresh(review)
        logger.info(
            "Review submitted",
            extra={"trip_id": trip_id, "author_id": author_id, "target_id": target_id, "target_rating": new_rating}
        )

        await ReviewService._after_feedback(db, trip_id)
        return review

    @staticmethod
    async def skip_review(db: AsyncSession, trip_id: int, author_id: int, target_id: int) -> Review:
        """Record an explicit skip; it counts toward archival but not toward ratings."""
        async with isolated_transaction(db, DUPLICATE_REVIEW_MESSAGE):
            await ReviewService._check_preconditions(db, trip_id, author_id, target_id)

            review = Review(
                trip_id=trip_id,
                author_id=author_id,
                target_id=target_id,
                rating=SKIPPED_RATING,
                comment="",
                skipped=True,
            )
            db.add(review)
            await db.flush()

            await log_event(
                db,
                action=AuditAction.REVIEW_SKIPPED,
                actor_id=author_id,
                trip_id=trip_id,
                metadata={"review_id": review.id, "target_id": target_id}
            )

        await db.refresh(review)
        logger.info(
            "Review skipped",
            extra={"trip_id": trip_id, "author_id": author_id, "target_id": target_id}
        )

        await ReviewService._after_feedback(db, trip_id)
        return review

    @staticmethod
    async def _after_feedback(db: AsyncSession, trip_id: int) -> None:
        # The feedback record is already committed; a failed archival attempt
        # is picked up again by the next feedback event or the scheduled sweep.
        try:
            async with side_session(db) as session:
                await ArchivalTrigger.try_archive(session, trip_id)
        except Exception:
            logger.warning("Archival attempt failed", exc_info=True, extra={"trip_id": trip_id})

    @staticmethod
    async def get_pending_reviews(db: AsyncSession, user_id: int) -> List[PendingReview]:
        """
        Completed trips where the user still owes feedback.

        Driver owes each confirmed passenger, passenger owes the driver.
        Trips with nothing pending are omitted.
        """
        passenger_trip_ids = select(Booking.trip_id).where(
            Booking.passenger_id == user_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
        trips = (await db.execute(
            select(Trip)
            .where(
                Trip.status == TripStatus.COMPLETED,
                or_(Trip.driver_id == user_id, Trip.id.in_(passenger_trip_ids)),
            )
            .order_by(Trip.date.desc(), Trip.time.desc())
        )).scalars().all()

        pending: List[Tuple[Trip, List[int]]] = []
        for trip in trips:
            reviewed = set((await db.execute(
                select(Review.target_id).where(Review.trip_id == trip.id, Review.author_id == user_id)
            )).scalars().all())

            if trip.driver_id == user_id:
                counterparties = (await db.execute(
                    select(Booking.passenger_id)
                    .where(Booking.trip_id == trip.id, Booking.status == BookingStatus.CONFIRMED)
                    .order_by(Booking.created_at, Booking.id)
                )).scalars().all()
            else:
                counterparties = [trip.driver_id]

            missing = [uid for uid in counterparties if uid not in reviewed]
            if missing:
                pending.append((trip, missing))

        user_ids = {uid for _, missing in pending for uid in missing} | {t.driver_id for t, _ in pending}
        users = {}
        if user_ids:
            users = {
                u.id: u for u in (await db.execute(select(User).where(User.id.in_(user_ids)))).scalars().all()
            }

        return [
            PendingReview(
                trip=trip,
                driver=users[trip.driver_id],
                pending_for=[users[uid] for uid in missing if uid in users],
            )
            for trip, missing in pending
        ]

    @staticmethod
    async def get_user_reviews(db: AsyncSession, user_id: int) -> List[Tuple[Review, User, Trip]]:
        """Public, non-skipped reviews received by a user, newest first."""
        result = await db.execute(
            select(Review, User, Trip)
            .join(User, User.id == Review.author_id)
            .join(Trip, Trip.id == Review.trip_id)
            .where(Review.target_id == user_id, Review.skipped.is_(False))
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return [(review, author, trip) for review, author, trip in result.all()]
