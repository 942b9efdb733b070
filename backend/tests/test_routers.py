from datetime import date

import pytest
from fastapi.testclient import TestClient

from conftest import seed_parcel
from enrollment.database import get_db
from enrollment.main import app
from enrollment.services.scheduling import get_clock
from enrollment.services.scheduling.parcels import build_parcel


@pytest.fixture
def api_client(db, clock, location) -> TestClient:
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    # No context manager: the lifespan (Redis worker) is not started
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def _payload(parcels, location_id="loc1"):
    return {
        "pickup_location_id": location_id,
        "parcels": [
            {
                "id": p.id,
                "pickup_date": p.pickup_date.isoformat(),
                "pickup_earliest_time": p.pickup_earliest_time.isoformat(),
                "pickup_latest_time": p.pickup_latest_time.isoformat(),
            }
            for p in parcels
        ],
    }


def test_list_locations(api_client):
    resp = api_client.get("/locations/")

    assert resp.status_code == 200
    assert resp.json() == [{"id": "loc1", "name": "Västerås Stadsmission"}]


def test_schedules(api_client):
    resp = api_client.get("/locations/loc1/schedules")

    assert resp.status_code == 200
    schedule = resp.json()["schedules"][0]
    days = {d["weekday"]: d for d in schedule["days"]}
    assert days["monday"]["is_open"] is True
    assert days["monday"]["opening_time"] == "09:00"
    assert days["wednesday"]["is_open"] is False


def test_capacity(api_client, db, clock):
    day = date(2025, 5, 5)
    seed_parcel(db, "hh1", "loc1", clock.at(day, "09:00"), clock.at(day, "09:30"))

    resp = api_client.get(
        "/locations/loc1/capacity",
        params={"start_date": "2025-05-01", "end_date": "2025-05-31"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["has_limit"] is True
    assert body["max_per_day"] == 5
    assert body["date_capacities"] == {"2025-05-05": 1}


def test_capacity_default_range(api_client):
    body = api_client.get("/locations/loc1/capacity").json()

    assert body["start_date"] == "2025-05-01"
    assert body["end_date"] == "2025-06-30"


def test_capacity_bad_range(api_client):
    resp = api_client.get(
        "/locations/loc1/capacity",
        params={"start_date": "2025-05-31", "end_date": "2025-05-01"},
    )

    assert resp.status_code == 400


def test_unknown_location_is_404(api_client):
    assert api_client.get("/locations/nowhere/capacity").status_code == 404
    assert api_client.get("/locations/nowhere/slot-duration").status_code == 404


def test_slot_duration(api_client):
    assert api_client.get("/locations/loc1/slot-duration").json()["slot_duration_minutes"] == 30


def test_days(api_client):
    resp = api_client.get(
        "/locations/loc1/days",
        params={"start_date": "2025-04-30", "end_date": "2025-05-03"},
    )

    statuses = {d["date"]: d["status"] for d in resp.json()["days"]}
    assert statuses == {
        "2025-04-30": "past",
        "2025-05-01": "available",
        "2025-05-02": "available",
        "2025-05-03": "closed",
    }


def test_slots(api_client):
    body = api_client.get("/locations/loc1/slots", params={"date": "2025-05-05"}).json()

    assert body["available_times"][0] == "09:00"
    assert body["available_times"][-1] == "16:30"
    assert body["closing_time"] == "17:00"


def test_slots_for_past_date(api_client):
    assert api_client.get("/locations/loc1/slots", params={"date": "2025-04-28"}).status_code == 400


def test_commit_parcels(api_client, clock):
    parcels = [build_parcel(date(2025, 5, 5), "09:00", 30, clock)]

    resp = api_client.post("/households/hh1/parcels", json=_payload(parcels))

    assert resp.status_code == 201
    assert len(resp.json()["parcel_ids"]) == 1

    retry = api_client.post("/households/hh1/parcels", json=_payload(parcels))
    assert retry.json()["parcel_ids"] == resp.json()["parcel_ids"]


def test_commit_validation_errors(api_client, clock):
    parcels = [build_parcel(date(2025, 5, 7), "10:00", 30, clock)]

    resp = api_client.post("/households/hh1/parcels", json=_payload(parcels))

    assert resp.status_code == 422
    errors = resp.json()["detail"]["errors"]
    assert errors[0]["field"] == "parcel_0_time_slot"
    assert errors[0]["code"] == "OUTSIDE_OPERATING_HOURS"
    assert set(errors[0]) == {"field", "code", "message", "details"}
    assert errors[0]["details"]["reason"] == "Closed on 2025-05-07"


def test_commit_unknown_household(api_client, clock):
    parcels = [build_parcel(date(2025, 5, 5), "09:00", 30, clock)]

    assert api_client.post("/households/nobody/parcels", json=_payload(parcels)).status_code == 404


def test_commit_requires_offset(api_client):
    payload = {
        "pickup_location_id": "loc1",
        "parcels": [{
            "pickup_date": "2025-05-05",
            "pickup_earliest_time": "2025-05-05T09:00:00",
            "pickup_latest_time": "2025-05-05T09:30:00",
        }],
    }

    assert api_client.post("/households/hh1/parcels", json=payload).status_code == 422
