"""
User tests: public profiles, driver trip history and default ride preferences.
"""

import pytest

from carpool.app.models.trip_enums import TripStatus
from conftest import auth_headers, make_trip


@pytest.mark.asyncio
async def test_user_trips_is_public_and_includes_every_status(client, db_session, driver, passenger):
    past = await make_trip(db_session, driver, days_ahead=-3, status=TripStatus.COMPLETED)
    upcoming = await make_trip(db_session, driver, days_ahead=2)
    cancelled = await make_trip(db_session, driver, days_ahead=4, status=TripStatus.CANCELLED)
    await make_trip(db_session, passenger, days_ahead=1)

    response = await client.get(f"/v1/users/{driver.id}/trips")
    assert response.status_code == 200
    data = response.json()
    assert [t["id"] for t in data] == [cancelled.id, upcoming.id, past.id]
    assert {t["driver"]["name"] for t in data} == {"Dana Driver"}


@pytest.mark.asyncio
async def test_user_trips_for_unknown_user(client):
    response = await client.get("/v1/users/999/trips")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_profile_shows_default_preferences(client, driver):
    response = await client.get(f"/v1/users/{driver.id}")
    assert response.status_code == 200
    assert response.json()["default_preferences"] == {
        "music": "Normal",
        "smoking": False,
        "pets": False,
        "baggage": "Medium",
        "conversation": "Chatty",
        "ac": True,
    }


@pytest.mark.asyncio
async def test_updated_preferences_apply_to_new_trips_only(client, db_session, driver):
    existing = await make_trip(db_session, driver)
    headers = auth_headers(driver)

    response = await client.patch(
        "/v1/users/me/preferences", json={"music": "Loud", "pets": True}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["default_preferences"]["music"] == "Loud"
    assert response.json()["default_preferences"]["conversation"] == "Chatty"

    new_trip = await client.post(
        "/v1/trips",
        json={"from_city": "Almaty", "to_city": "Astana", "date": "2099-01-01", "time": "10:00"},
        headers=headers,
    )
    assert new_trip.json()["preferences"]["music"] == "Loud"
    assert new_trip.json()["preferences"]["pets"] is True

    old_trip = await client.get(f"/v1/trips/{existing.id}")
    assert old_trip.json()["preferences"]["music"] == "Normal"


@pytest.mark.asyncio
async def test_updating_preferences_requires_auth(client):
    response = await client.patch("/v1/users/me/preferences", json={"music": "Loud"})
    assert response.status_code in (401, 403)
