"""
Persisting the parcels of one enrollment.

Validation, removal of dropped parcels, time updates of existing parcels
and inserts of new ones run in one transaction; any problem rolls back
everything.

The submission is the household's complete list of upcoming parcels at
the location: upcoming rows it no longer contains are soft-deleted.

Inserts are idempotent: the partial unique index
food_parcels_household_location_time_active_unique (WHERE deleted_at IS NULL)
turns a retried or double-clicked submission into a no-op, and the
existing ids are returned instead.

Capacity race note: two concurrent submissions can both pass the
capacity check and both insert. The unique index only prevents the
same household from booking a slot twice; overbooking across households
is accepted and handled by staff.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import settings
from ...models.tables import FoodParcels, generate_id
from ..events import emit_task
from ..outside_hours import RECOUNT_TASK
from ..pickup_locations import get_location, schedule_index_for, to_storage
from ..scheduling import Clock, Parcel
from .validation import (
    ParcelValidationError,
    ValidationCodes,
    ValidationIssue,
    load_context,
    removed_rows,
    storage_key,
    validate_submission,
)

logger = logging.getLogger(__name__)

UNIQUE_COLUMNS = [
    "household_id",
    "pickup_location_id",
    "pickup_date_time_earliest",
    "pickup_date_time_latest",
]


def commit_parcels(
    db: Session,
    household_id: str,
    location_id: str,
    parcels: list[Parcel],
    clock: Clock | None = None,
    now: datetime | None = None,
) -> list[str]:
    """
    Validate and store parcels; returns their ids in input order.

    Raises ParcelValidationError with per-field issues; nothing is
    written in that case.
    """
    clock = clock or Clock()
    now = now or clock.now()

    location = get_location(db, location_id)
    if location is None or not location.is_active:
        raise ParcelValidationError([ValidationIssue(
            field="pickup_location_id",
            code=ValidationCodes.LOCATION_NOT_FOUND,
            message="Pickup location not found",
            details={"location_id": location_id},
        )])

    index = schedule_index_for(db, location_id)
    ctx = load_context(
        db, location, household_id, parcels, index, clock, now,
        settings.max_parcels_per_slot,
    )
    issues, _ = validate_submission(db, ctx, parcels)
    if issues:
        db.rollback()
        logger.info(
            f"Parcel submission rejected for household {household_id}: "
            f"{len(issues)} issue(s)"
        )
        raise ParcelValidationError(issues)

    removed = removed_rows(ctx, parcels)

    try:
        _delete_removed(db, removed, now)
        _update_existing(db, location_id, parcels)
        inserted = insert_parcels(db, household_id, location_id, [p for p in parcels if p.id is None])
        ids = _resolve_ids(db, household_id, location_id, parcels)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Parcel submission for household {household_id} hit a slot conflict")
        raise ParcelValidationError([ValidationIssue(
            field="time_slot",
            code=ValidationCodes.TIME_SLOT_CONFLICT,
            message="Another parcel of this household already uses this time slot",
            details={"household_id": household_id, "location_id": location_id},
        )])
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Committed {len(ids)} parcel(s) for household {household_id} "
        f"at {location_id} ({len(inserted)} new, {len(removed)} removed)"
    )
    emit_task(RECOUNT_TASK, {"location_id": location_id})
    return ids


def insert_parcels(
    db: Session,
    household_id: str,
    location_id: str,
    parcels: list[Parcel],
) -> list[str]:
    """
    INSERT ... ON CONFLICT DO NOTHING against the active-slot unique index.

    Returns ids of rows actually inserted (duplicates are skipped).
    """
    if not parcels:
        return []

    values = [
        {
            "id": generate_id(12),
            "household_id": household_id,
            "pickup_location_id": location_id,
            "pickup_date_time_earliest": to_storage(p.pickup_earliest_time),
            "pickup_date_time_latest": to_storage(p.pickup_latest_time),
            "is_picked_up": 0,
        }
        for p in parcels
    ]

    dialect = postgresql if db.get_bind().dialect.name == "postgresql" else sqlite
    stmt = (
        dialect.insert(FoodParcels)
        .values(values)
        .on_conflict_do_nothing(
            index_elements=UNIQUE_COLUMNS,
            index_where=FoodParcels.deleted_at.is_(None),
        )
        .returning(FoodParcels.id)
    )
    return [row[0] for row in db.execute(stmt)]


# ── Helpers ──────────────────────────────────────────────────────────────


def _delete_removed(db: Session, rows: list[FoodParcels], now: datetime) -> None:
    """Soft-delete parcels the household no longer wants."""
    deleted_at = to_storage(now)
    for row in rows:
        row.deleted_at = deleted_at
    db.flush()


def _update_existing(db: Session, location_id: str, parcels: list[Parcel]) -> None:
    for parcel in parcels:
        if parcel.id is None:
            continue
        row = db.get(FoodParcels, parcel.id)
        earliest = to_storage(parcel.pickup_earliest_time)
        latest = to_storage(parcel.pickup_latest_time)
        if (
            row.pickup_location_id != location_id
            or row.pickup_date_time_earliest != earliest
            or row.pickup_date_time_latest != latest
        ):
            row.pickup_location_id = location_id
            row.pickup_date_time_earliest = earliest
            row.pickup_date_time_latest = latest
    db.flush()


def _resolve_ids(
    db: Session,
    household_id: str,
    location_id: str,
    parcels: list[Parcel],
) -> list[str]:
    """Ids of the active rows matching each parcel's uniqueness key."""
    keys = [storage_key(household_id, location_id, p) for p in parcels]
    if not keys:
        return []

    rows = (
        db.query(FoodParcels)
        .filter(
            FoodParcels.deleted_at.is_(None),
            or_(*[
                and_(
                    FoodParcels.household_id == k[0],
                    FoodParcels.pickup_location_id == k[1],
                    FoodParcels.pickup_date_time_earliest == k[2],
                    FoodParcels.pickup_date_time_latest == k[3],
                )
                for k in keys
            ]),
        )
        .all()
    )
    by_key = {
        (r.household_id, r.pickup_location_id, r.pickup_date_time_earliest, r.pickup_date_time_latest): r.id
        for r in rows
    }
    return [by_key[k] for k in keys]
