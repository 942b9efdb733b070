import json
from datetime import date

from conftest import seed_parcel
from enrollment.models.tables import PickupLocations, PickupLocationScheduleDays
from enrollment.services import events, outside_hours
from enrollment.services.outside_hours import (
    RECOUNT_TASK,
    count_outside_hours,
    is_outside_hours,
    recount_outside_hours,
)


class DummyRedis:
    def __init__(self):
        self.items = []

    def rpush(self, key, value):
        self.items.append((key, value))

    def blpop(self, key, timeout=0):
        for i, (k, value) in enumerate(self.items):
            if k == key:
                self.items.pop(i)
                return k, value
        return None


class BrokenRedis:
    def rpush(self, key, value):
        raise ConnectionError("redis down")


def test_slot_ending_at_closing_is_inside(index, clock):
    day = date(2025, 5, 5)

    assert not is_outside_hours(clock.at(day, "16:30"), clock.at(day, "17:00"), index, clock)
    assert is_outside_hours(clock.at(day, "16:45"), clock.at(day, "17:15"), index, clock)
    assert is_outside_hours(clock.at(day, "08:45"), clock.at(day, "09:15"), index, clock)
    assert is_outside_hours(clock.at(date(2025, 5, 7), "10:00"), clock.at(date(2025, 5, 7), "10:30"), index, clock)


def test_recount_after_hours_change(db, location, clock):
    day = date(2025, 5, 5)
    for start, end in (("09:00", "09:30"), ("15:00", "15:30"), ("16:30", "17:00")):
        seed_parcel(db, "hh1", "loc1", clock.at(day, start), clock.at(day, end))

    assert count_outside_hours(db, "loc1", clock) == 0

    # Monday hours shortened to 09:00-15:00
    monday = (
        db.query(PickupLocationScheduleDays)
        .filter(PickupLocationScheduleDays.weekday == "monday")
        .one()
    )
    monday.closing_time = "15:00"
    db.commit()

    assert recount_outside_hours(db, "loc1", clock) == 2
    assert db.get(PickupLocations, "loc1").outside_hours_count == 2


def test_recount_ignores_deleted_and_past_parcels(db, location, clock):
    closed_day = date(2025, 5, 7)
    deleted = seed_parcel(db, "hh1", "loc1", clock.at(closed_day, "10:00"), clock.at(closed_day, "10:30"))
    deleted.deleted_at = clock.at(closed_day, "08:00").replace(tzinfo=None)
    seed_parcel(db, "hh1", "loc1", clock.at(date(2025, 4, 30), "10:00"), clock.at(date(2025, 4, 30), "10:30"))
    db.commit()

    assert count_outside_hours(db, "loc1", clock) == 0


def test_recount_unknown_location(db, clock):
    assert recount_outside_hours(db, "nowhere", clock) is None


def test_emit_and_process_task(db, location, monkeypatch):
    fake = DummyRedis()
    monkeypatch.setattr(events, "redis_client", fake)
    monkeypatch.setattr(outside_hours, "SessionLocal", lambda: db)
    monkeypatch.setattr(db, "close", lambda: None)
    calls = []
    monkeypatch.setattr(
        outside_hours,
        "recount_outside_hours",
        lambda session, location_id, clock: calls.append(location_id),
    )

    events.emit_task(RECOUNT_TASK, {"location_id": "loc1"})
    key, raw = fake.items[0]
    assert key == events.TASK_QUEUE
    assert json.loads(raw)["location_id"] == "loc1"

    outside_hours._process_next_task()

    assert calls == ["loc1"]
    assert fake.items == []


def test_emit_failure_is_swallowed(monkeypatch, caplog):
    monkeypatch.setattr(events, "redis_client", BrokenRedis())

    events.emit_task(RECOUNT_TASK, {"location_id": "loc1"})

    assert "Failed to emit task" in caplog.text


def test_malformed_task_dropped(monkeypatch):
    fake = DummyRedis()
    fake.items.append((events.TASK_QUEUE, "not json"))
    monkeypatch.setattr(events, "redis_client", fake)

    assert events.pop_task(timeout=0) is None
