"""
Booking tests.

Create / cancel / read bookings through the API, plus the seat counter
invariants behind them.
"""

import pytest
from sqlalchemy import select

from carpool.app.models.booking import Booking
from carpool.app.models.notification import Notification, NotificationKind
from carpool.app.models.trip import Trip
from carpool.app.models.trip_enums import BookingStatus, TripStatus
from conftest import add_confirmed_booking, auth_headers, make_trip, make_user


async def _reload_trip(db_session, trip_id):
    return (await db_session.execute(select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True))).scalar_one()


@pytest.mark.asyncio
async def test_create_booking_claims_seat(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver, seats_total=3)

    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["passenger_id"] == passenger.id
    assert data["trip"]["seats_booked"] == 1
    assert data["trip"]["seats_available"] == 1

    trip = await _reload_trip(db_session, trip.id)
    assert trip.seats_booked == 1


@pytest.mark.asyncio
async def test_create_booking_notifies_driver_and_passenger(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver)

    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert response.status_code == 201

    rows = (await db_session.execute(select(Notification).order_by(Notification.id))).scalars().all()
    assert [(n.user_id, n.kind) for n in rows] == [
        (driver.id, NotificationKind.BOOKING_CREATED),
        (passenger.id, NotificationKind.BOOKING_CONFIRMED),
    ]
    assert "Pavel Passenger" in rows[0].message


@pytest.mark.asyncio
async def test_create_booking_requires_auth(client, db_session, driver):
    trip = await make_trip(db_session, driver)
    response = await client.post("/v1/bookings", json={"trip_id": trip.id})
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_revoked_user_is_rejected(client, db_session, driver, passenger, mock_redis):
    trip = await make_trip(db_session, driver)
    await mock_redis.setex(f"user:tokens:{passenger.id}:revoked", 60, "1")

    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_booking_missing_trip_is_not_found(client, passenger):
    response = await client.post("/v1/bookings", json={"trip_id": 999}, headers=auth_headers(passenger))
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_booking_own_trip_is_rejected(client, db_session, driver):
    trip = await make_trip(db_session, driver)
    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(driver))
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED, TripStatus.ARCHIVED])
async def test_booking_inactive_trip_is_rejected(client, db_session, driver, passenger, status):
    trip = await make_trip(db_session, driver, status=status)
    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_double_booking_is_conflict(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver)
    headers = auth_headers(passenger)

    first = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=headers)
    assert first.status_code == 201
    second = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=headers)
    assert second.status_code == 409
    assert second.json()["error_code"] == "ERR_CONFLICT_001"

    trip = await _reload_trip(db_session, trip.id)
    assert trip.seats_booked == 1
    live = (await db_session.execute(
        select(Booking).where(Booking.trip_id == trip.id, Booking.status == BookingStatus.CONFIRMED)
    )).scalars().all()
    assert len(live) == 1


@pytest.mark.asyncio
async def test_full_trip_is_conflict(client, db_session, driver, passenger, other_passenger):
    # seats_total=2 leaves one passenger seat
    trip = await make_trip(db_session, driver, seats_total=2)
    await add_confirmed_booking(db_session, trip, other_passenger)

    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert response.status_code == 409
    assert "refresh" in response.json()["message"].lower()

    trip = await _reload_trip(db_session, trip.id)
    assert trip.seats_booked == 1


@pytest.mark.asyncio
async def test_driver_only_trip_cannot_be_booked(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver, seats_total=1)
    response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_cancel_restores_capacity(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver, seats_total=2)
    booking = await add_confirmed_booking(db_session, trip, passenger)

    response = await client.delete(f"/v1/bookings/{booking.id}", headers=auth_headers(passenger))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    trip = await _reload_trip(db_session, trip.id)
    assert trip.seats_booked == 0

    # Seat can be taken again, including by the same passenger
    again = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(passenger))
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_driver_can_cancel_booking_and_passenger_is_notified(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver)
    booking = await add_confirmed_booking(db_session, trip, passenger)

    response = await client.delete(f"/v1/bookings/{booking.id}", headers=auth_headers(driver))
    assert response.status_code == 200

    notes = (await db_session.execute(
        select(Notification).where(Notification.user_id == passenger.id)
    )).scalars().all()
    assert len(notes) == 1
    assert notes[0].kind == NotificationKind.BOOKING_CANCELLED
    assert notes[0].metadata_payload["cancelled_by"] == "driver"


@pytest.mark.asyncio
async def test_stale_cancel_is_rejected_and_releases_nothing(client, db_session, driver, passenger):
    trip = await make_trip(db_session, driver)
    booking = await add_confirmed_booking(db_session, trip, passenger)
    headers = auth_headers(passenger)

    first = await client.delete(f"/v1/bookings/{booking.id}", headers=headers)
    assert first.status_code == 200
    second = await client.delete(f"/v1/bookings/{booking.id}", headers=headers)
    assert second.status_code == 400

    trip = await _reload_trip(db_session, trip.id)
    assert trip.seats_booked == 0


@pytest.mark.asyncio
async def test_outsider_cannot_cancel_or_view(client, db_session, driver, passenger, other_passenger):
    trip = await make_trip(db_session, driver)
    booking = await add_confirmed_booking(db_session, trip, passenger)

    cancel = await client.delete(f"/v1/bookings/{booking.id}", headers=auth_headers(other_passenger))
    assert cancel.status_code == 403
    view = await client.get(f"/v1/bookings/{booking.id}", headers=auth_headers(other_passenger))
    assert view.status_code == 403

    for user in (driver, passenger):
        ok = await client.get(f"/v1/bookings/{booking.id}", headers=auth_headers(user))
        assert ok.status_code == 200


@pytest.mark.asyncio
async def test_my_bookings_newest_first(client, db_session, driver, passenger):
    first_trip = await make_trip(db_session, driver, days_ahead=1)
    second_trip = await make_trip(db_session, driver, days_ahead=2)
    headers = auth_headers(passenger)

    await client.post("/v1/bookings", json={"trip_id": first_trip.id}, headers=headers)
    await client.post("/v1/bookings", json={"trip_id": second_trip.id}, headers=headers)

    response = await client.get("/v1/bookings/my", headers=headers)
    assert response.status_code == 200
    assert [b["trip_id"] for b in response.json()] == [second_trip.id, first_trip.id]


@pytest.mark.asyncio
async def test_bookings_never_exceed_capacity(client, db_session, driver):
    trip = await make_trip(db_session, driver, seats_total=3)
    statuses = []
    for i in range(4):
        rider = await make_user(db_session, f"rider{i}")
        response = await client.post("/v1/bookings", json={"trip_id": trip.id}, headers=auth_headers(rider))
        statuses.append(response.status_code)

    assert statuses == [201, 201, 409, 409]
    trip = await _reload_trip(db_session, trip.id)
    assert trip.seats_booked == 2 == trip.seats_total - 1
