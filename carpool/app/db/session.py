"""
Database session configuration.

One AsyncSession per request; sessions are never shared across requests.
PostgreSQL through asyncpg in production.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from carpool.app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# Objects stay usable after commit; notifications run after the business commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Anything left uncommitted when the request ends is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def side_session(db: AsyncSession) -> AsyncSession:
    """
    Open a second session on the engine behind `db`.

    Used for best-effort work after a commit (notifications, archival
    attempts) so that its rollback never expires the caller's objects.
    """
    return AsyncSession(db.bind, expire_on_commit=False, autoflush=False)
