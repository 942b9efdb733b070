"""
Submission-time validation of parcels.

The client-side capacity and hours checks are advisory; this pass is
authoritative. It reports every problem as a structured issue instead
of stopping at the first one.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ...models.tables import FoodParcels, PickupLocations
from ..outside_hours import is_outside_hours
from ..pickup_locations import to_storage
from ..scheduling import Clock, Parcel, ScheduleIndex


class ValidationCodes:
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    PARCEL_NOT_FOUND = "PARCEL_NOT_FOUND"
    MAX_DAILY_CAPACITY_REACHED = "MAX_DAILY_CAPACITY_REACHED"
    MAX_SLOT_CAPACITY_REACHED = "MAX_SLOT_CAPACITY_REACHED"
    TIME_SLOT_CONFLICT = "TIME_SLOT_CONFLICT"
    OUTSIDE_OPERATING_HOURS = "OUTSIDE_OPERATING_HOURS"
    PAST_TIME_SLOT = "PAST_TIME_SLOT"
    HOUSEHOLD_DOUBLE_BOOKING = "HOUSEHOLD_DOUBLE_BOOKING"
    INVALID_TIME_SLOT = "INVALID_TIME_SLOT"


@dataclass
class ValidationIssue:
    field: str
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class ParcelValidationError(Exception):
    """Submission rejected; nothing was written."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(f"{i.field}: {i.message}" for i in issues))


@dataclass
class SubmissionContext:
    """Persisted state the validation pass compares against."""
    location: PickupLocations
    household_id: str
    index: ScheduleIndex
    clock: Clock
    now: datetime
    max_parcels_per_slot: int
    # Active rows of the location / household in the affected date range
    location_rows: list[FoodParcels]
    household_rows: list[FoodParcels]
    # Upcoming, not picked up rows of the household at this location
    upcoming_rows: list[FoodParcels]


def storage_key(household_id: str, location_id: str, parcel: Parcel) -> tuple:
    """Uniqueness key of a parcel row."""
    return (
        household_id,
        location_id,
        to_storage(parcel.pickup_earliest_time),
        to_storage(parcel.pickup_latest_time),
    )


def row_key(row: FoodParcels) -> tuple:
    return (
        row.household_id,
        row.pickup_location_id,
        row.pickup_date_time_earliest,
        row.pickup_date_time_latest,
    )


def load_context(
    db: Session,
    location: PickupLocations,
    household_id: str,
    parcels: list[Parcel],
    index: ScheduleIndex,
    clock: Clock,
    now: datetime,
    max_parcels_per_slot: int,
) -> SubmissionContext:
    dates = [clock.to_reference_civil_date(p.pickup_earliest_time) for p in parcels]
    range_start = to_storage(clock.at(min(dates), "00:00")) if dates else None
    range_end = to_storage(clock.at(max(dates), "00:00") + timedelta(days=2)) if dates else None

    def active_rows(*criteria) -> list[FoodParcels]:
        if range_start is None:
            return []
        return (
            db.query(FoodParcels)
            .filter(
                FoodParcels.deleted_at.is_(None),
                FoodParcels.pickup_date_time_earliest >= range_start,
                FoodParcels.pickup_date_time_earliest < range_end,
                *criteria,
            )
            .all()
        )

    return SubmissionContext(
        location=location,
        household_id=household_id,
        index=index,
        clock=clock,
        now=now,
        max_parcels_per_slot=max_parcels_per_slot,
        location_rows=active_rows(FoodParcels.pickup_location_id == location.id),
        household_rows=active_rows(FoodParcels.household_id == household_id),
        upcoming_rows=(
            db.query(FoodParcels)
            .filter(
                FoodParcels.deleted_at.is_(None),
                FoodParcels.is_picked_up == 0,
                FoodParcels.household_id == household_id,
                FoodParcels.pickup_location_id == location.id,
                FoodParcels.pickup_date_time_earliest > to_storage(now),
            )
            .all()
        ),
    )


def validate_submission(
    db: Session,
    ctx: SubmissionContext,
    parcels: list[Parcel],
) -> tuple[list[ValidationIssue], set[int]]:
    """
    Validate all parcels of one submission.

    Returns (issues, already_committed) where already_committed holds the
    positions of parcels identical to an active row (a retried submission);
    those are neither re-validated nor counted twice.
    """
    issues: list[ValidationIssue] = []
    clock = ctx.clock

    existing_keys = {row_key(row): row for row in ctx.location_rows}
    already_committed = {
        i
        for i, p in enumerate(parcels)
        if storage_key(ctx.household_id, ctx.location.id, p) in existing_keys
    }
    # Rows being replaced, re-submitted or removed by this request are not competitors
    own_ids = {p.id for p in parcels if p.id} | {
        existing_keys[storage_key(ctx.household_id, ctx.location.id, parcels[i])].id
        for i in already_committed
    } | {row.id for row in removed_rows(ctx, parcels)}
    competitors = [row for row in ctx.location_rows if row.id not in own_ids]
    household_others = [row for row in ctx.household_rows if row.id not in own_ids]

    batch: list[Parcel] = [parcels[i] for i in sorted(already_committed)]

    for n, parcel in enumerate(parcels):
        if n in already_committed:
            continue
        prefix = f"parcel_{n}_"
        found = _check_parcel(db, ctx, parcel, prefix)
        if not found:
            found = _check_against_bookings(ctx, parcel, prefix, competitors, household_others, batch)
        issues.extend(found)
        batch.append(parcel)

    return issues, already_committed


def removed_rows(ctx: SubmissionContext, parcels: list[Parcel]) -> list[FoodParcels]:
    """
    Upcoming rows of the household at this location that the submission
    no longer contains, by id or by uniqueness key.
    """
    ids = {p.id for p in parcels if p.id}
    keys = {storage_key(ctx.household_id, ctx.location.id, p) for p in parcels}
    return [
        row for row in ctx.upcoming_rows
        if row.id not in ids and row_key(row) not in keys
    ]


# ── Checks ───────────────────────────────────────────────────────────────


def _check_parcel(
    db: Session,
    ctx: SubmissionContext,
    parcel: Parcel,
    prefix: str,
) -> list[ValidationIssue]:
    clock = ctx.clock
    issues = []
    earliest, latest = parcel.pickup_earliest_time, parcel.pickup_latest_time
    start_date = clock.to_reference_civil_date(earliest)

    if parcel.id is not None:
        row = db.get(FoodParcels, parcel.id)
        if (
            row is None
            or row.deleted_at is not None
            or row.household_id != ctx.household_id
        ):
            return [ValidationIssue(
                field=f"{prefix}parcel_id",
                code=ValidationCodes.PARCEL_NOT_FOUND,
                message="Food parcel not found",
                details={"parcel_id": parcel.id},
            )]

    if latest <= earliest or clock.to_reference_civil_date(latest) != start_date or (
        clock.to_reference_civil_date(parcel.pickup_date) != start_date
    ):
        return [ValidationIssue(
            field=f"{prefix}time_slot",
            code=ValidationCodes.INVALID_TIME_SLOT,
            message="Pickup window must start before it ends, on the pickup date",
            details={"date": start_date.isoformat()},
        )]

    if earliest <= ctx.now:
        issues.append(ValidationIssue(
            field=f"{prefix}time_slot",
            code=ValidationCodes.PAST_TIME_SLOT,
            message="Cannot schedule pickup in the past",
            details={
                "requested_time": earliest.isoformat(),
                "current_time": ctx.now.isoformat(),
            },
        ))

    if is_outside_hours(earliest, latest, ctx.index, clock):
        window = ctx.index.opening_window_for(start_date)
        reason = (
            f"Open {window.opening_time}-{window.closing_time} on {start_date.isoformat()}"
            if window
            else f"Closed on {start_date.isoformat()}"
        )
        issues.append(ValidationIssue(
            field=f"{prefix}time_slot",
            code=ValidationCodes.OUTSIDE_OPERATING_HOURS,
            message="The selected time is outside operating hours",
            details={
                "date": start_date.isoformat(),
                "time_slot": clock.time_of_day(earliest),
                "location_id": ctx.location.id,
                "reason": reason,
            },
        ))

    return issues


def _check_against_bookings(
    ctx: SubmissionContext,
    parcel: Parcel,
    prefix: str,
    competitors: list[FoodParcels],
    household_others: list[FoodParcels],
    batch: list[Parcel],
) -> list[ValidationIssue]:
    clock = ctx.clock
    issues = []
    day = clock.to_reference_civil_date(parcel.pickup_earliest_time)
    start = to_storage(parcel.pickup_earliest_time)
    end = to_storage(parcel.pickup_latest_time)

    batch_same_day = [
        p for p in batch if clock.to_reference_civil_date(p.pickup_earliest_time) == day
    ]

    max_per_day = ctx.location.parcels_max_per_day
    if max_per_day is not None:
        current = _count_on_day(competitors, day, clock) + len(batch_same_day)
        if current >= max_per_day:
            issues.append(ValidationIssue(
                field=f"{prefix}capacity",
                code=ValidationCodes.MAX_DAILY_CAPACITY_REACHED,
                message=f"Maximum daily capacity ({max_per_day}) reached for this date",
                details={
                    "current": current,
                    "maximum": max_per_day,
                    "date": day.isoformat(),
                    "location_id": ctx.location.id,
                },
            ))

    slot_count = sum(
        1
        for row in competitors
        if row.pickup_date_time_earliest < end and row.pickup_date_time_latest > start
    ) + sum(
        1
        for p in batch
        if to_storage(p.pickup_earliest_time) < end and to_storage(p.pickup_latest_time) > start
    )
    if slot_count >= ctx.max_parcels_per_slot:
        issues.append(ValidationIssue(
            field=f"{prefix}time_slot",
            code=ValidationCodes.MAX_SLOT_CAPACITY_REACHED,
            message=f"Maximum capacity ({ctx.max_parcels_per_slot}) reached for this time slot",
            details={
                "current": slot_count,
                "maximum": ctx.max_parcels_per_slot,
                "date": day.isoformat(),
                "time_slot": clock.time_of_day(parcel.pickup_earliest_time),
                "location_id": ctx.location.id,
            },
        ))

    conflicting = [
        row for row in household_others
        if clock.to_reference_civil_date(row.pickup_date_time_earliest) == day
    ]
    if conflicting or batch_same_day:
        issues.append(ValidationIssue(
            field=f"{prefix}time_slot",
            code=ValidationCodes.HOUSEHOLD_DOUBLE_BOOKING,
            message="Household already has a parcel scheduled for this date",
            details={
                "conflicting_parcel_id": conflicting[0].id if conflicting else None,
                "household_id": ctx.household_id,
                "date": day.isoformat(),
            },
        ))

    return issues


def _count_on_day(rows: list[FoodParcels], day: date, clock: Clock) -> int:
    return sum(
        1 for row in rows if clock.to_reference_civil_date(row.pickup_date_time_earliest) == day
    )
