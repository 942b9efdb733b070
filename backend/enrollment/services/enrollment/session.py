# backend/enrollment/services/enrollment/session.py
"""
Form-side state of one household enrollment.

EnrollmentSession owns the selected location, the schedule and capacity
snapshots, the selected dates, the parcel list and the bulk editor. Every
change to the dates goes through ParcelStateReducer; nothing else writes
the parcel list before submission.

Reads go through the async ApiClient. A failed read falls back to a
default and never blocks the form.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Iterable

from ...clients.api import ApiClient, CommitResult
from ..pickup_locations import capacity_range
from ..scheduling import (
    BulkEditState,
    BulkTimeReconciler,
    CapacityLedger,
    CapacitySnapshot,
    Clock,
    DateSelectionPolicy,
    DateStatus,
    DayCell,
    OpeningSchedule,
    Parcel,
    ParcelStateReducer,
    ScheduleIndex,
    SchedulingConfig,
    SchedulingError,
    available_slots_for,
    date_key,
    get_scheduling_config,
    set_parcel_start,
)
from ..scheduling.parcels import dedupe_dates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityNotification:
    date: date
    message: str
    expires_at: datetime


class EnrollmentSession:

    def __init__(
        self,
        client: ApiClient,
        clock: Clock | None = None,
        config: SchedulingConfig | None = None,
    ):
        self.client = client
        self.clock = clock or Clock()
        self.config = config or get_scheduling_config()

        self.locations: list[dict] = []
        self.location_id: str | None = None
        self.schedules: list[OpeningSchedule] = []
        self.capacity = CapacitySnapshot.unlimited()
        self.slot_duration = self.config.default_slot_duration_minutes

        self.selected_dates: list[date] = []
        self.parcels: list[Parcel] = []

        self.index = ScheduleIndex()
        self.bulk = BulkTimeReconciler(self.index, self.clock, self.config)
        self.errors: list[dict] = []

        self._notification: CapacityNotification | None = None
        self._generation = 0

    # ── Location ─────────────────────────────────────────────────────────

    async def load_locations(self) -> list[dict]:
        result = await self.client.list_pickup_locations()
        if result is None:
            logger.warning("Pickup locations unavailable, using empty list")
            result = []
        self.locations = result
        return self.locations

    def load_existing(self, parcels: list[Parcel]) -> None:
        """Start from a household's stored parcels (editing an enrollment)."""
        self.parcels = list(parcels)
        self.selected_dates = dedupe_dates(
            (p.pickup_date for p in parcels), self.clock
        )
        self._reconcile()

    async def select_location(self, location_id: str) -> bool:
        """
        Switch location and load its snapshots.

        Returns False when a newer select_location() call finished first;
        the responses of this call are then discarded.
        """
        self._generation += 1
        generation = self._generation
        self.location_id = location_id

        start, end = capacity_range(self.clock.today(), self.config.capacity_months_ahead)
        schedules, capacity, duration = await asyncio.gather(
            self.client.get_schedules(location_id),
            self.client.get_capacity(location_id, start, end),
            self.client.get_slot_duration(location_id),
        )

        if generation != self._generation:
            logger.info(f"Discarding stale responses for location {location_id}")
            return False

        if schedules is None:
            logger.warning(f"No schedules for location {location_id}, treating as closed")
            schedules = []
        if capacity is None:
            logger.warning(f"No capacity for location {location_id}, treating as unlimited")
            capacity = CapacitySnapshot.unlimited()
        if not duration or duration <= 0:
            logger.warning(
                f"No slot duration for location {location_id}, "
                f"using {self.config.default_slot_duration_minutes} min"
            )
            duration = self.config.default_slot_duration_minutes

        self.schedules = schedules
        self.capacity = capacity
        self.slot_duration = duration
        self.index = ScheduleIndex(schedules)
        self.bulk = BulkTimeReconciler(self.index, self.clock, self.config)

        # Unsaved parcels were timed for the previous location's hours.
        self.parcels = [p for p in self.parcels if p.is_persisted]
        self._reconcile()
        return True

    # ── Dates ────────────────────────────────────────────────────────────

    def policy(self) -> DateSelectionPolicy:
        ledger = CapacityLedger(self.capacity, self.selected_dates)
        return DateSelectionPolicy(self.index, ledger, self.selected_dates, self.clock)

    def day_cell(self, d: date) -> DayCell:
        return self.policy().day_cell(d)

    def add_date(self, d: date) -> bool:
        """Select a date. False when it is not selectable or has no room left."""
        d = self.clock.to_reference_civil_date(d)
        status = self.policy().evaluate(d)

        if status is DateStatus.SELECTED:
            return True
        if status in (DateStatus.PAST, DateStatus.CLOSED, DateStatus.CLOSED_FOR_TODAY):
            logger.info(f"Date {d} not selectable: {status.value}")
            return False

        tentative = self.selected_dates + [d]
        if self._over_capacity(d, tentative):
            self._notify_full(d)
            return False

        self.selected_dates = tentative
        self._reconcile()
        return True

    def remove_date(self, d: date) -> bool:
        d = self.clock.to_reference_civil_date(d)
        if d not in self.selected_dates:
            return False
        self.selected_dates = [s for s in self.selected_dates if s != d]
        self._reconcile()
        return True

    def set_dates(self, dates: Iterable[date]) -> list[date]:
        """
        Replace the selection. Newly added dates without room are
        dropped (with a notification); the rest is kept.
        """
        requested = dedupe_dates(dates, self.clock)
        kept = [d for d in requested if d in self.selected_dates]

        for d in requested:
            if d in self.selected_dates:
                continue
            if self._over_capacity(d, kept + [d]):
                self._notify_full(d)
                continue
            kept.append(d)

        self.selected_dates = sorted(kept)
        self._reconcile()
        return list(self.selected_dates)

    # ── Times ────────────────────────────────────────────────────────────

    def available_times(self, d: date) -> list[str]:
        return available_slots_for(d, self.index, self.slot_duration, self.clock)

    def set_parcel_time(self, position: int, time_str: str) -> Parcel:
        """Individual time edit for the parcel at position."""
        parcel = self.parcels[position]
        if time_str not in self.available_times(parcel.pickup_date):
            raise SchedulingError(
                f"{time_str} is not an available time on {parcel.pickup_date.isoformat()}"
            )
        updated = set_parcel_start(parcel, time_str, self.slot_duration, self.clock)
        self.parcels = self.parcels[:position] + [updated] + self.parcels[position + 1:]
        return updated

    def begin_bulk_edit(self) -> BulkEditState:
        return self.bulk.begin(self.parcels)

    def choose_bulk_time(self, time_str: str) -> None:
        self.bulk.choose(time_str)

    def apply_bulk_edit(self) -> bool:
        """Apply the bulk time. False (state untouched, bulk.state.last_error set) on rejection."""
        try:
            self.parcels = self.bulk.apply(self.parcels, self.slot_duration)
        except SchedulingError as e:
            logger.info(f"Bulk time rejected: {e}")
            return False
        return True

    def cancel_bulk_edit(self) -> None:
        self.bulk.cancel()

    # ── Submission ───────────────────────────────────────────────────────

    async def submit(self, household_id: str) -> CommitResult:
        if not self.location_id:
            result = CommitResult(errors=[{
                "field": "pickup_location_id",
                "code": "LOCATION_NOT_FOUND",
                "message": "No pickup location selected",
                "details": {},
            }])
            self.errors = result.errors
            return result

        result = await self.client.commit_parcels(household_id, self.location_id, self.parcels)
        self.errors = result.errors
        if not result.success:
            logger.warning(f"Submission for household {household_id} rejected: {len(result.errors)} error(s)")
            return result

        if len(result.parcel_ids) == len(self.parcels):
            self.parcels = [
                replace(p, id=parcel_id)
                for p, parcel_id in zip(self.parcels, result.parcel_ids)
            ]
        else:
            logger.warning(
                f"Submission for household {household_id} returned {len(result.parcel_ids)} id(s) "
                f"for {len(self.parcels)} parcel(s); local parcels keep their ids"
            )
        logger.info(f"Submitted {len(result.parcel_ids)} parcel(s) for household {household_id}")
        return result

    # ── Notification ─────────────────────────────────────────────────────

    def active_notification(self) -> CapacityNotification | None:
        if self._notification and self.clock.now() >= self._notification.expires_at:
            self._notification = None
        return self._notification

    # ── Helpers ──────────────────────────────────────────────────────────

    def _reconcile(self) -> bool:
        reducer = ParcelStateReducer(self.index, self.slot_duration, self.clock, self.config)
        parcels, changed = reducer.reconcile_state(self.parcels, self.selected_dates)
        if changed:
            self.parcels = parcels
        return changed

    def _over_capacity(self, d: date, selection: list[date]) -> bool:
        ledger = CapacityLedger(self.capacity, selection)
        max_per_day = ledger.max_per_day
        return max_per_day is not None and ledger.booked_count(date_key(d)) > max_per_day

    def _notify_full(self, d: date) -> None:
        self._notification = CapacityNotification(
            date=d,
            message=f"Max {self.capacity.max_per_day} parcels already booked for this date",
            expires_at=self.clock.now() + timedelta(
                seconds=self.config.capacity_notification_seconds
            ),
        )
        logger.info(f"Date {d} is full, selection reverted")
