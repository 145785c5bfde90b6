"""
Review database model.

Feedback between two trip participants. A skip is a review record with
`skipped=True` and the sentinel rating.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from carpool.app.db.session import Base

SKIPPED_RATING = 0


class Review(Base):
    """
    Review model.

    Immutable once created. One record per (trip, author, target).
    """
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    target_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    rating = Column(Integer, nullable=False, default=SKIPPED_RATING)
    comment = Column(String(500), nullable=False, default="")
    skipped = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('trip_id', 'author_id', 'target_id', name='uq_reviews_trip_author_target'),
    )

    def __repr__(self):
        return f"<Review(id={self.id}, trip_id={self.trip_id}, {self.author_id}->{self.target_id}, skipped={self.skipped})>"
