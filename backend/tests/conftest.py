from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from enrollment.models import Base
from enrollment.models.tables import (
    FoodParcels,
    Households,
    PickupLocations,
    PickupLocationScheduleDays,
    PickupLocationSchedules,
)
from enrollment.services.pickup_locations import to_storage
from enrollment.services.scheduling import (
    DaySpec,
    FixedClock,
    OpeningSchedule,
    ScheduleIndex,
)
from enrollment.services.scheduling.models import WEEKDAYS

# Mon/Tue/Thu/Fri 09:00-17:00; Wed, Sat and Sun closed
OPEN_DAYS = ("monday", "tuesday", "thursday", "friday")


def make_schedule(
    opening: str = "09:00",
    closing: str = "17:00",
    days=OPEN_DAYS,
    start: date = date(2025, 1, 1),
    end: date = date(2025, 12, 31),
    name: str = "Regular",
) -> OpeningSchedule:
    return OpeningSchedule(
        name=name,
        start_date=start,
        end_date=end,
        days={d: DaySpec(is_open=True, opening_time=opening, closing_time=closing) for d in days},
    )


@pytest.fixture
def clock() -> FixedClock:
    # Thursday morning, before opening
    return FixedClock(datetime(2025, 5, 1, 8, 0))


@pytest.fixture
def index() -> ScheduleIndex:
    return ScheduleIndex([make_schedule()])


# ── Database ─────────────────────────────────────────────────────────────


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def seed_location(
    db,
    location_id: str = "loc1",
    max_per_day: int | None = 5,
    duration: int = 30,
    opening: str = "09:00",
    closing: str = "17:00",
    days=OPEN_DAYS,
) -> PickupLocations:
    location = PickupLocations(
        id=location_id,
        name="Västerås Stadsmission",
        parcels_max_per_day=max_per_day,
        default_slot_duration_minutes=duration,
        is_active=1,
    )
    schedule = PickupLocationSchedules(
        id=f"{location_id}-spring",
        pickup_location_id=location_id,
        name="Spring",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
    )
    schedule.days = [
        PickupLocationScheduleDays(
            weekday=weekday,
            is_open=1 if weekday in days else 0,
            opening_time=opening if weekday in days else None,
            closing_time=closing if weekday in days else None,
        )
        for weekday in WEEKDAYS
    ]
    db.add_all([location, schedule])
    db.commit()
    return location


def seed_household(db, household_id: str = "hh1") -> Households:
    household = Households(id=household_id, first_name="Anna", last_name="Svensson")
    db.add(household)
    db.commit()
    return household


def seed_parcel(db, household_id: str, location_id: str, earliest, latest, parcel_id=None) -> FoodParcels:
    row = FoodParcels(
        household_id=household_id,
        pickup_location_id=location_id,
        pickup_date_time_earliest=to_storage(earliest),
        pickup_date_time_latest=to_storage(latest),
        is_picked_up=0,
    )
    if parcel_id:
        row.id = parcel_id
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def location(db):
    loc = seed_location(db)
    seed_household(db)
    return loc


# ── Post-commit queue ────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def emitted(monkeypatch):
    """Record post-commit tasks instead of pushing them to Redis."""
    from enrollment.services.parcels import commit

    tasks = []
    monkeypatch.setattr(commit, "emit_task", lambda task_type, payload: tasks.append((task_type, payload)))
    return tasks
