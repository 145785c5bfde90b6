"""
Feedback rules (pure functions).

Each passenger owes the driver one record and the driver owes each passenger
one record, so a trip with N confirmed bookings expects 2N records (reviews
and skips alike). Archival and any "reviews remaining" indicator both derive
from expected_review_count.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional


def expected_review_count(confirmed_bookings: int) -> int:
    """Number of feedback records that closes a trip."""
    return 2 * max(0, confirmed_bookings)


def reviews_remaining(confirmed_bookings: int, recorded_reviews: int) -> int:
    """Feedback records still missing before the trip can be archived."""
    return max(0, expected_review_count(confirmed_bookings) - recorded_reviews)


def is_feedback_complete(confirmed_bookings: int, recorded_reviews: int) -> bool:
    return recorded_reviews >= expected_review_count(confirmed_bookings)


def average_rating(ratings: Iterable[int]) -> Optional[float]:
    """
    Mean of the given ratings rounded half-up to one decimal.

    Returns None for an empty input so the caller can keep the default.
    """
    ratings = list(ratings)
    if not ratings:
        return None
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
