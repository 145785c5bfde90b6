"""
Notification database model.

In-app copy of every booking / trip notification sent to a user.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from carpool.app.db.session import Base
import enum


class NotificationKind(str, enum.Enum):
    BOOKING_CREATED = "BOOKING_CREATED"  # To driver: a passenger booked a seat
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"  # To passenger: their seat is confirmed
    BOOKING_CANCELLED = "BOOKING_CANCELLED"  # To the other party of a booking
    TRIP_CANCELLED = "TRIP_CANCELLED"  # To passengers of a cancelled trip


class Notification(Base):
    """
    In-App Notification.
    Stores messages for users.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Content
    kind = Column(Enum(NotificationKind), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_payload = Column(JSON, nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, kind='{self.kind.value}')>"
