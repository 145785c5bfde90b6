"""
Concurrency tests for the seat counter.

The in-memory database serves every session from one connection, so most
tests simulate a racing writer by changing the row between the read and the
compare-and-swap. The last-seat race at the end runs two real sessions
against a file-backed database.
"""

import asyncio

import pytest
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from carpool.app.core.exceptions import ConflictError
from carpool.app.db.session import Base
from carpool.app.db.transactions import isolated_transaction
from carpool.app.domain.booking import booking_service
from carpool.app.domain.booking.booking_service import BookingService
from carpool.app.models.booking import Booking
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import BookingStatus
from conftest import add_confirmed_booking, make_trip, make_user


async def _seats_booked(db_session, trip_id):
    return (await db_session.execute(select(Trip.seats_booked).where(Trip.id == trip_id))).scalar_one()


@pytest.mark.asyncio
async def test_lost_race_for_last_seat_rolls_back(db_session, driver, passenger, other_passenger, mocker):
    trip = await make_trip(db_session, driver, seats_total=2)
    # The loser's rollback expires every instance in the session
    trip_id, passenger_id, other_id = trip.id, passenger.id, other_passenger.id
    real_claim = booking_service._claim_seat

    async def claim_after_competitor(db, trip_id, observed):
        # Another passenger wins the seat after our read
        await db.execute(
            update(Trip).where(Trip.id == trip_id).values(seats_booked=Trip.seats_booked + 1)
            .execution_options(synchronize_session=False)
        )
        return await real_claim(db, trip_id, observed)

    mocker.patch.object(booking_service, "_claim_seat", side_effect=claim_after_competitor)

    with pytest.raises(ConflictError) as exc_info:
        await BookingService.create_booking(db_session, trip_id, passenger_id)
    assert "refresh" in exc_info.value.message.lower()

    bookings = (await db_session.execute(select(Booking.id).where(Booking.trip_id == trip_id))).scalars().all()
    assert bookings == []
    assert await _seats_booked(db_session, trip_id) == 0

    # Loser's rollback leaves the seat bookable
    mocker.stopall()
    booking, trip_after = await BookingService.create_booking(db_session, trip_id, other_id)
    assert booking.status == BookingStatus.CONFIRMED
    assert trip_after.seats_booked == 1


@pytest.mark.asyncio
async def test_claim_seat_is_compare_and_swap(db_session, driver):
    trip = await make_trip(db_session, driver, seats_total=4)

    assert await booking_service._claim_seat(db_session, trip.id, 0) is True
    # Stale observation no longer matches
    assert await booking_service._claim_seat(db_session, trip.id, 0) is False
    assert await booking_service._claim_seat(db_session, trip.id, 1) is True
    await db_session.commit()

    assert await _seats_booked(db_session, trip.id) == 2


@pytest.mark.asyncio
async def test_concurrent_cancel_releases_seat_once(db_session, driver, passenger, mocker):
    trip = await make_trip(db_session, driver, seats_total=3)
    booking = await add_confirmed_booking(db_session, trip, passenger)
    trip_id, booking_id, passenger_id = trip.id, booking.id, passenger.id
    real_mark = booking_service._mark_cancelled

    async def mark_after_competitor(db, booking_id):
        # The other party cancels first
        await db.execute(
            update(Booking).where(Booking.id == booking_id).values(status=BookingStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return await real_mark(db, booking_id)

    mocker.patch.object(booking_service, "_mark_cancelled", side_effect=mark_after_competitor)

    with pytest.raises(ConflictError):
        await BookingService.cancel_booking(db_session, booking_id, passenger_id)

    assert await _seats_booked(db_session, trip_id) == 1


@pytest.mark.asyncio
async def test_release_seat_never_goes_negative(db_session, driver):
    trip = await make_trip(db_session, driver)

    assert await booking_service._release_seat(db_session, trip.id) is False
    await db_session.commit()

    assert await _seats_booked(db_session, trip.id) == 0


@pytest.mark.asyncio
async def test_second_live_booking_violates_index_as_conflict(db_session, driver, passenger):
    trip = await make_trip(db_session, driver)

    with pytest.raises(ConflictError):
        async with isolated_transaction(db_session, "duplicate"):
            db_session.add(Booking(trip_id=trip.id, passenger_id=passenger.id, status=BookingStatus.CONFIRMED))
            db_session.add(Booking(trip_id=trip.id, passenger_id=passenger.id, status=BookingStatus.CONFIRMED))
            await db_session.flush()


@pytest.mark.asyncio
async def test_cancelled_booking_does_not_block_rebooking(db_session, driver, passenger):
    trip = await make_trip(db_session, driver)

    async with isolated_transaction(db_session):
        db_session.add(Booking(trip_id=trip.id, passenger_id=passenger.id, status=BookingStatus.CANCELLED))
        db_session.add(Booking(trip_id=trip.id, passenger_id=passenger.id, status=BookingStatus.CONFIRMED))
        await db_session.flush()

    rows = (await db_session.execute(select(Booking).where(Booking.trip_id == trip.id))).scalars().all()
    assert len(rows) == 2


# --- Two sessions, two connections ---

@pytest.fixture
async def file_session_factory(tmp_path):
    """File-backed database so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.mark.asyncio
async def test_two_sessions_race_for_last_seat(file_session_factory):
    async with file_session_factory() as setup:
        driver = await make_user(setup, "race_driver")
        holder = await make_user(setup, "race_holder")
        racer_a = await make_user(setup, "racer_a")
        racer_b = await make_user(setup, "racer_b")
        # Three seats: the driver's, one already taken, one left
        trip = await make_trip(setup, driver, seats_total=3)
        await add_confirmed_booking(setup, trip, holder)
        trip_id = trip.id
        racer_ids = [racer_a.id, racer_b.id]

    async def book(passenger_id):
        async with file_session_factory() as session:
            try:
                await BookingService.create_booking(session, trip_id, passenger_id)
                return "ok"
            except ConflictError:
                return "conflict"

    outcomes = await asyncio.gather(*(book(pid) for pid in racer_ids))

    assert sorted(outcomes) == ["conflict", "ok"]

    async with file_session_factory() as check:
        assert await _seats_booked(check, trip_id) == 2
        live = (await check.execute(
            select(Booking.passenger_id).where(
                Booking.trip_id == trip_id, Booking.status == BookingStatus.CONFIRMED
            )
        )).scalars().all()
        assert len(live) == 2
        assert len(set(live) & set(racer_ids)) == 1
