"""
Read side of pickup locations: active locations, opening schedules,
capacity snapshots and slot duration, in engine types.
"""

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.orm import Session, selectinload

from ..models.tables import FoodParcels, PickupLocations, PickupLocationSchedules
from .scheduling import (
    CapacitySnapshot,
    Clock,
    DaySpec,
    OpeningSchedule,
    ScheduleIndex,
    date_key,
    get_scheduling_config,
)


def list_active_locations(db: Session) -> list[PickupLocations]:
    return (
        db.query(PickupLocations)
        .filter(PickupLocations.is_active == 1)
        .order_by(PickupLocations.name)
        .all()
    )


def get_location(db: Session, location_id: str) -> PickupLocations | None:
    return db.get(PickupLocations, location_id)


def load_schedules(
    db: Session,
    location_id: str,
    from_date: date | None = None,
) -> list[OpeningSchedule]:
    """Schedules of a location, optionally only those still valid on/after from_date."""
    query = (
        db.query(PickupLocationSchedules)
        .options(selectinload(PickupLocationSchedules.days))
        .filter(PickupLocationSchedules.pickup_location_id == location_id)
    )
    if from_date is not None:
        query = query.filter(PickupLocationSchedules.end_date >= from_date)

    return [_to_opening_schedule(row) for row in query.order_by(PickupLocationSchedules.start_date)]


def schedule_index_for(db: Session, location_id: str) -> ScheduleIndex:
    return ScheduleIndex(load_schedules(db, location_id))


def slot_duration_for(location: PickupLocations | None) -> int:
    if location is None or not location.default_slot_duration_minutes:
        return get_scheduling_config().default_slot_duration_minutes
    return location.default_slot_duration_minutes


def capacity_snapshot(
    db: Session,
    location: PickupLocations,
    start_date: date,
    end_date: date,
    clock: Clock,
) -> CapacitySnapshot:
    """Active parcels per civil date on [start_date, end_date] (reference timezone)."""
    counts: dict[str, int] = {}
    for earliest in active_parcel_times(db, location.id, start_date, end_date, clock):
        key = date_key(clock.to_reference_civil_date(earliest))
        counts[key] = counts.get(key, 0) + 1

    return CapacitySnapshot(
        max_per_day=location.parcels_max_per_day,
        date_capacities=counts,
    )


def active_parcel_times(
    db: Session,
    location_id: str,
    start_date: date,
    end_date: date,
    clock: Clock,
) -> list[datetime]:
    """Earliest pickup times (naive UTC) of non-deleted parcels within the civil date range."""
    range_start = to_storage(clock.at(start_date, "00:00"))
    range_end = to_storage(
        datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=clock.tz)
    )

    rows = (
        db.query(FoodParcels.pickup_date_time_earliest)
        .filter(
            FoodParcels.pickup_location_id == location_id,
            FoodParcels.deleted_at.is_(None),
            FoodParcels.pickup_date_time_earliest >= range_start,
            FoodParcels.pickup_date_time_earliest < range_end,
        )
        .all()
    )
    return [row[0] for row in rows]


def capacity_range(today: date, months_ahead: int | None = None) -> tuple[date, date]:
    """First day of the current month to the last day of the month months_ahead later."""
    if months_ahead is None:
        months_ahead = get_scheduling_config().capacity_months_ahead
    start = today.replace(day=1)
    month_index = today.month - 1 + months_ahead + 1
    first_after = date(today.year + month_index // 12, month_index % 12 + 1, 1)
    return start, first_after - timedelta(days=1)


def to_storage(instant: datetime) -> datetime:
    """Aware datetime → naive UTC, as stored in food_parcels."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


# ── Helpers ──────────────────────────────────────────────────────────────


def _to_opening_schedule(row: PickupLocationSchedules) -> OpeningSchedule:
    return OpeningSchedule(
        id=row.id,
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
        days={
            day.weekday: DaySpec(
                is_open=bool(day.is_open),
                opening_time=day.opening_time,
                closing_time=day.closing_time,
            )
            for day in row.days
        },
    )
