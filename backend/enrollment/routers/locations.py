# backend/enrollment/routers/locations.py
"""
Pickup location lookups used by the enrollment form.

GET /locations                       - active locations
GET /locations/{id}/schedules        - opening schedules still in force
GET /locations/{id}/capacity         - persisted parcels per date
GET /locations/{id}/slot-duration    - pickup slot length
GET /locations/{id}/days             - per-day selectability (engine, server side)
GET /locations/{id}/slots            - start times for one date
"""

from datetime import date, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.locations import (
    CapacityResponse,
    DayStatusRead,
    DaysResponse,
    LocationRead,
    ScheduleDayRead,
    ScheduleRead,
    SchedulesResponse,
    SlotDurationResponse,
    SlotsResponse,
)
from ..services.pickup_locations import (
    capacity_range,
    capacity_snapshot,
    get_location,
    list_active_locations,
    load_schedules,
    slot_duration_for,
)
from ..services.scheduling import (
    CapacityLedger,
    Clock,
    DateSelectionPolicy,
    ScheduleIndex,
    available_slots_for,
    date_key,
    get_clock,
)
from ..services.scheduling.models import WEEKDAYS

MAX_RANGE_DAYS = 93

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("/", response_model=list[LocationRead])
def list_locations(db: Session = Depends(get_db)):
    return list_active_locations(db)


@router.get("/{id}/schedules", response_model=SchedulesResponse)
def get_schedules(
    id: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    _require_location(db, id)
    schedules = load_schedules(db, id, from_date=clock.today())
    return SchedulesResponse(
        schedules=[
            ScheduleRead(
                id=s.id,
                name=s.name,
                start_date=s.start_date,
                end_date=s.end_date,
                days=[
                    ScheduleDayRead(
                        weekday=weekday,
                        is_open=s.days[weekday].is_open,
                        opening_time=s.days[weekday].opening_time,
                        closing_time=s.days[weekday].closing_time,
                    )
                    for weekday in WEEKDAYS
                    if weekday in s.days
                ],
            )
            for s in schedules
        ]
    )


@router.get("/{id}/capacity", response_model=CapacityResponse)
def get_capacity(
    id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    location = _require_location(db, id)
    start_date, end_date = _resolve_range(start_date, end_date, clock)

    snapshot = capacity_snapshot(db, location, start_date, end_date, clock)
    return CapacityResponse(
        location_id=id,
        start_date=start_date,
        end_date=end_date,
        has_limit=snapshot.has_limit,
        max_per_day=snapshot.max_per_day,
        date_capacities=snapshot.date_capacities,
    )


@router.get("/{id}/slot-duration", response_model=SlotDurationResponse)
def get_slot_duration(id: str, db: Session = Depends(get_db)):
    location = _require_location(db, id)
    return SlotDurationResponse(
        location_id=id,
        slot_duration_minutes=slot_duration_for(location),
    )


@router.get("/{id}/days", response_model=DaysResponse)
def get_days(
    id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Selectability of each date for a household with nothing selected yet."""
    location = _require_location(db, id)
    start_date, end_date = _resolve_range(start_date, end_date, clock)

    index = ScheduleIndex(load_schedules(db, id))
    ledger = CapacityLedger(capacity_snapshot(db, location, start_date, end_date, clock))
    policy = DateSelectionPolicy(index, ledger, [], clock)

    days = []
    current = start_date
    while current <= end_date:
        status = policy.evaluate(current)
        window = index.opening_window_for(current)
        days.append(DayStatusRead(
            date=current,
            status=status.value,
            is_selectable=status.is_selectable,
            opening_time=window.opening_time if window else None,
            closing_time=window.closing_time if window else None,
            remaining_capacity=ledger.remaining_capacity(date_key(current)),
        ))
        current += timedelta(days=1)

    return DaysResponse(
        location_id=id,
        start_date=start_date,
        end_date=end_date,
        slot_duration_minutes=slot_duration_for(location),
        days=days,
    )


@router.get("/{id}/slots", response_model=SlotsResponse)
def get_slots(
    id: str,
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    location = _require_location(db, id)
    if clock.is_past_date(target_date):
        raise HTTPException(status_code=400, detail="Date cannot be in the past")

    index = ScheduleIndex(load_schedules(db, id))
    duration = slot_duration_for(location)
    window = index.opening_window_for(target_date)

    return SlotsResponse(
        location_id=id,
        date=target_date,
        slot_duration_minutes=duration,
        opening_time=window.opening_time if window else None,
        closing_time=window.closing_time if window else None,
        available_times=available_slots_for(target_date, index, duration, clock),
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _require_location(db: Session, id: str):
    location = get_location(db, id)
    if not location or not location.is_active:
        raise HTTPException(status_code=404, detail="Not found")
    return location


def _resolve_range(
    start_date: date | None,
    end_date: date | None,
    clock: Clock,
) -> tuple[date, date]:
    default_start, default_end = capacity_range(clock.today())
    start_date = start_date or default_start
    end_date = end_date or default_end

    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date is before start_date")
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=400,
            detail=f"Date range cannot exceed {MAX_RANGE_DAYS} days",
        )
    return start_date, end_date
