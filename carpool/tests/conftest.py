"""
Centralized Test Configuration.

Each test gets a fresh in-memory SQLite database and a fake Redis. Trips are
inserted directly so tests can place them in the past or in any status.
"""

import datetime as dt

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from carpool.app.main import app
from carpool.app.db.session import get_db, Base
from carpool.app.core.jwt import create_access_token
import carpool.app.core.token_revocation as token_revocation_module
from carpool.app.models.booking import Booking
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import BookingStatus, TripStatus
from carpool.app.models.user import User

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}

    async def ping(self):
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


@pytest.fixture
def mock_redis(monkeypatch):
    redis = MockRedis()
    monkeypatch.setattr(token_revocation_module, "redis_client", redis)
    return redis


@pytest.fixture
async def session_factory():
    """Fresh database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(autouse=True)
def apply_overrides(session_factory, mock_redis):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# --- Data helpers ---

async def make_user(db: AsyncSession, username: str, name: str = None, **fields) -> User:
    user = User(username=username, name=name or username.title(), **fields)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_trip(
    db: AsyncSession,
    driver: User,
    days_ahead: int = 1,
    seats_total: int = 3,
    status: TripStatus = TripStatus.ACTIVE,
    from_city: str = "Almaty",
    to_city: str = "Astana",
) -> Trip:
    trip = Trip(
        driver_id=driver.id,
        from_city=from_city,
        to_city=to_city,
        date=dt.date.today() + dt.timedelta(days=days_ahead),
        time="09:30",
        seats_total=seats_total,
        seats_booked=0,
        status=status,
    )
    db.add(trip)
    await db.commit()
    await db.refresh(trip)
    return trip


async def add_confirmed_booking(db: AsyncSession, trip: Trip, passenger: User) -> Booking:
    """Booking inserted directly with the seat counter kept in step."""
    booking = Booking(trip_id=trip.id, passenger_id=passenger.id, status=BookingStatus.CONFIRMED)
    db.add(booking)
    trip.seats_booked += 1
    await db.commit()
    await db.refresh(booking)
    await db.refresh(trip)
    return booking


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.username, "user_id": user.id})
    return {"Authorization": f"Bearer {token}"}


async def revoke_token(redis: MockRedis, token: str, user_id: int) -> None:
    """Write a revocation key the way the identity service does."""
    await redis.setex(f"{token_revocation_module.TOKEN_BLACKLIST_PREFIX}{token}", 60, str(user_id))


async def block_user(redis: MockRedis, user_id: int) -> None:
    await redis.setex(f"{token_revocation_module.USER_TOKENS_PREFIX}{user_id}:revoked", 60, "1")


@pytest.fixture
async def driver(db_session):
    return await make_user(db_session, "driver", "Dana Driver")


@pytest.fixture
async def passenger(db_session):
    return await make_user(db_session, "passenger", "Pavel Passenger")


@pytest.fixture
async def other_passenger(db_session):
    return await make_user(db_session, "other", "Olga Other")
