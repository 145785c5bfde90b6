"""
Transaction helpers for contended writes.

Bookings, cancellations and feedback run inside one transaction at the
configured isolation level. Precondition failures raised inside the block
roll it back; serialization failures and unique-index violations reported by
the database are surfaced as ConflictError so the caller can retry.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core.config import settings
from carpool.app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

# 40001 serialization_failure, 40P01 deadlock_detected
SERIALIZATION_SQLSTATES = {"40001", "40P01"}


def is_serialization_failure(exc: DBAPIError) -> bool:
    """True if the driver reports a retryable concurrency failure."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in SERIALIZATION_SQLSTATES:
        return True
    # SQLite reports writer contention as "database is locked"
    return isinstance(exc, OperationalError) and "database is locked" in str(exc)


@asynccontextmanager
async def isolated_transaction(
    db: AsyncSession,
    conflict_message: str = "The resource was changed by another request",
    isolation_level: Optional[str] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Run the block in a fresh transaction and commit it on success.

    Usage:
        async with isolated_transaction(db, "Seat already taken"):
            ...
    """
    level = isolation_level or settings.booking_isolation_level

    # Reads done earlier on this session (e.g. identity lookup) autobegin a
    # transaction; the isolation level only applies to a new one.
    if db.in_transaction():
        await db.commit()

    await db.connection(execution_options={"isolation_level": level})

    try:
        yield db
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.info("Integrity conflict: %s", exc.orig)
        raise ConflictError(conflict_message) from exc
    except DBAPIError as exc:
        await db.rollback()
        if is_serialization_failure(exc):
            logger.info("Serialization failure, reporting conflict: %s", exc.orig)
            raise ConflictError(conflict_message) from exc
        raise
    except BaseException:
        await db.rollback()
        raise
