"""
Audit Log Database Model.

Append-only trail of booking, trip and feedback mutations. Rows are written
inside the same transaction as the mutation they describe.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from carpool.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - BOOKING_CREATED / BOOKING_CANCELLED
    - TRIP_CREATED / TRIP_UPDATED / TRIP_CANCELLED / TRIP_ARCHIVED
    - REVIEW_SUBMITTED / REVIEW_SKIPPED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions such as archival)
    actor_id = Column(Integer, index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which trip it concerns
    trip_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, trip={self.trip_id})>"
