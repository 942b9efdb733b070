"""
Parcels scheduled outside opening hours.

The per-location count is an aggregate refreshed after each parcel
commit through the post-commit task queue. It never runs inside the
commit transaction.

Runs as an asyncio task in backend lifespan.
Uses synchronous DB and Redis (via asyncio.to_thread).
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.tables import FoodParcels, PickupLocations
from .events import pop_task
from .pickup_locations import schedule_index_for, to_storage
from .scheduling import Clock, ScheduleIndex
from .scheduling.config import time_str_to_minutes

logger = logging.getLogger(__name__)

RECOUNT_TASK = "recount_outside_hours"
POP_TIMEOUT = 5  # seconds


def is_outside_hours(
    earliest: datetime,
    latest: datetime,
    index: ScheduleIndex,
    clock: Clock,
) -> bool:
    """
    True if the slot does not fit the opening window of its date.
    A slot ending exactly at closing time fits.
    """
    start_local = clock.localize(earliest)
    end_local = clock.localize(latest)

    window = index.opening_window_for(start_local.date())
    if window is None:
        return True
    if end_local.date() != start_local.date():
        return True

    start = time_str_to_minutes(clock.time_of_day(start_local))
    end = time_str_to_minutes(clock.time_of_day(end_local))
    return (
        start < window.opening_minutes
        or start >= window.closing_minutes
        or end > window.closing_minutes
    )


def count_outside_hours(
    db: Session,
    location_id: str,
    clock: Clock,
    now: datetime | None = None,
) -> int:
    """Active parcels (upcoming, not picked up, not deleted) outside opening hours."""
    now = now or clock.now()
    index = schedule_index_for(db, location_id)

    parcels = (
        db.query(FoodParcels)
        .filter(
            FoodParcels.pickup_location_id == location_id,
            FoodParcels.deleted_at.is_(None),
            FoodParcels.is_picked_up == 0,
            FoodParcels.pickup_date_time_earliest > to_storage(now),
        )
        .all()
    )
    return sum(
        1
        for p in parcels
        if is_outside_hours(p.pickup_date_time_earliest, p.pickup_date_time_latest, index, clock)
    )


def recount_outside_hours(db: Session, location_id: str, clock: Clock) -> int | None:
    """Store the fresh count on the location. None if the location is gone."""
    location = db.get(PickupLocations, location_id)
    if location is None:
        logger.warning(f"Outside-hours recount skipped, unknown location {location_id}")
        return None

    count = count_outside_hours(db, location_id, clock)
    location.outside_hours_count = count
    db.commit()
    logger.info(f"Outside-hours count for location {location_id}: {count}")
    return count


async def post_commit_worker_loop() -> None:
    """Consume tasks:post_commit until cancelled."""
    logger.info("post_commit_worker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(_process_next_task)
            except asyncio.CancelledError:
                logger.info("post_commit_worker_loop cancelled")
                raise
            except Exception:
                logger.exception("post_commit_worker_loop error")
                await asyncio.sleep(POP_TIMEOUT)
    except asyncio.CancelledError:
        pass


def _process_next_task() -> None:
    """Handle one queued task, if any (synchronous)."""
    task = pop_task(timeout=POP_TIMEOUT)
    if task is None:
        return

    if task.get("type") != RECOUNT_TASK:
        logger.warning(f"Unknown post-commit task: {task.get('type')}")
        return

    db = SessionLocal()
    try:
        recount_outside_hours(db, task["location_id"], Clock())
    finally:
        db.close()
