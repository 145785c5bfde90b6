"""
Lifecycle sweep tests.
"""

import datetime as dt
import logging

import pytest
from sqlalchemy import select

from carpool.app.jobs.lifecycle import run_lifecycle_sweep
from carpool.app.jobs.scheduler import LIFECYCLE_JOB_ID, SchedulerManager
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import TripStatus
from conftest import add_confirmed_booking, make_trip


async def _statuses(db_session):
    rows = (await db_session.execute(select(Trip.id, Trip.status))).all()
    return dict(rows)


@pytest.mark.asyncio
async def test_sweep_completes_only_past_active_trips(db_session, session_factory, driver, passenger):
    past = await make_trip(db_session, driver, days_ahead=-1)
    await add_confirmed_booking(db_session, past, passenger)
    today = await make_trip(db_session, driver, days_ahead=0)
    future = await make_trip(db_session, driver, days_ahead=2)
    past_cancelled = await make_trip(db_session, driver, days_ahead=-3, status=TripStatus.CANCELLED)

    completed = await run_lifecycle_sweep(session_factory=session_factory)
    assert completed == 1

    statuses = await _statuses(db_session)
    assert statuses[past.id] == TripStatus.COMPLETED
    assert statuses[today.id] == TripStatus.ACTIVE
    assert statuses[future.id] == TripStatus.ACTIVE
    assert statuses[past_cancelled.id] == TripStatus.CANCELLED


@pytest.mark.asyncio
async def test_sweep_is_idempotent(db_session, session_factory, driver, passenger):
    trip = await make_trip(db_session, driver, days_ahead=-1)
    await add_confirmed_booking(db_session, trip, passenger)

    assert await run_lifecycle_sweep(session_factory=session_factory) == 1
    assert await run_lifecycle_sweep(session_factory=session_factory) == 0
    assert (await _statuses(db_session))[trip.id] == TripStatus.COMPLETED


@pytest.mark.asyncio
async def test_sweep_uses_given_calendar_day(db_session, session_factory, driver):
    trip = await make_trip(db_session, driver, days_ahead=3)

    tomorrow = dt.date.today() + dt.timedelta(days=1)
    assert await run_lifecycle_sweep(today=tomorrow, session_factory=session_factory) == 0

    later = dt.date.today() + dt.timedelta(days=4)
    assert await run_lifecycle_sweep(today=later, session_factory=session_factory) == 1
    # No bookings means no feedback is owed, so the same cycle archives it
    assert (await _statuses(db_session))[trip.id] == TripStatus.ARCHIVED


@pytest.mark.asyncio
async def test_failing_cycle_is_logged_and_swallowed(caplog):
    def broken_factory():
        raise RuntimeError("database unavailable")

    with caplog.at_level(logging.ERROR, logger="carpool.app.jobs.lifecycle"):
        assert await run_lifecycle_sweep(session_factory=broken_factory) == 0
    assert "Lifecycle sweep failed" in caplog.text


def test_scheduler_registers_interval_job():
    manager = SchedulerManager()
    manager.add_lifecycle_sweep(interval_minutes=15)

    job = manager.scheduler.get_job(LIFECYCLE_JOB_ID)
    assert job is not None
    assert job.trigger.interval == dt.timedelta(minutes=15)
    assert job.next_run_time is not None
