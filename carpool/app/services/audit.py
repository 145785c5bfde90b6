"""
Audit logging service for booking, trip and feedback mutations.

Entries are added to the caller's session and committed together with the
mutation, so a rolled-back booking leaves no audit row behind.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from carpool.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    # Trips
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_CANCELLED = "TRIP_CANCELLED"

    # Bookings
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"

    # Reviews and archival
    REVIEW_SUBMITTED = "REVIEW_SUBMITTED"
    REVIEW_SKIPPED = "REVIEW_SKIPPED"
    TRIP_ARCHIVED = "TRIP_ARCHIVED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    trip_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an audit entry to the current transaction.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action, None for system actions
        trip_id: Trip the action concerns
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        trip_id=trip_id,
        meta_data=metadata
    )

    db.add(audit_log)
    return audit_log


async def get_trip_audit_trail(
    db: AsyncSession,
    trip_id: int,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve the audit trail of a trip, most recent first.

    Args:
        db: Database session
        trip_id: Trip to get history for
        action: Filter by action type
        limit: Maximum number of records to return
    """
    query = select(AuditLog).where(AuditLog.trip_id == trip_id).order_by(desc(AuditLog.id))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
