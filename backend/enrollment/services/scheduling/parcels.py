# backend/enrollment/services/scheduling/parcels.py
"""
Selected dates → parcel list.

The reducer is the only writer of the parcel list before submission.
It keeps parcel identity across recomputation: a previous parcel on the
same civil date is reused (persisted ones first, each at most once), so
unrelated edits never drop server-assigned ids or edited times.
"""

import logging
from datetime import date, timedelta
from typing import Iterable

from .clock import Clock
from .config import SchedulingConfig, get_scheduling_config
from .models import Parcel
from .schedule_index import ScheduleIndex
from .slots import default_start_time

logger = logging.getLogger(__name__)


def dedupe_dates(dates: Iterable[date], clock: Clock) -> list[date]:
    """Civil dates, sorted, each once."""
    seen = set()
    result = []
    duplicates = []
    for d in dates:
        civil = clock.to_reference_civil_date(d)
        if civil in seen:
            duplicates.append(civil)
            continue
        seen.add(civil)
        result.append(civil)

    if duplicates:
        logger.warning(
            f"Duplicate pickup dates dropped: {', '.join(d.isoformat() for d in duplicates)}"
        )
    return sorted(result)


def build_parcel(
    pickup_date: date,
    start_time: str,
    duration_minutes: int,
    clock: Clock,
    parcel_id: str | None = None,
) -> Parcel:
    earliest = clock.at(pickup_date, start_time)
    return Parcel(
        id=parcel_id,
        pickup_date=pickup_date,
        pickup_earliest_time=earliest,
        pickup_latest_time=earliest + timedelta(minutes=duration_minutes),
    )


def set_parcel_start(
    parcel: Parcel,
    start_time: str,
    duration_minutes: int,
    clock: Clock,
) -> Parcel:
    """New start time on the parcel's own date; end follows the duration."""
    earliest = clock.at(parcel.pickup_date, start_time)
    return parcel.with_times(earliest, earliest + timedelta(minutes=duration_minutes))


class ParcelStateReducer:

    def __init__(
        self,
        index: ScheduleIndex,
        duration_minutes: int,
        clock: Clock,
        config: SchedulingConfig | None = None,
    ):
        self.index = index
        self.duration_minutes = duration_minutes
        self.clock = clock
        self.config = config or get_scheduling_config()

    def reconcile(
        self,
        selected_dates: Iterable[date],
        previous_parcels: list[Parcel],
    ) -> list[Parcel]:
        dates = dedupe_dates(selected_dates, self.clock)

        by_date: dict[date, list[Parcel]] = {}
        for parcel in previous_parcels:
            civil = self.clock.to_reference_civil_date(parcel.pickup_date)
            by_date.setdefault(civil, []).append(parcel)

        consumed_ids: set[str] = set()
        parcels = []

        for d in dates:
            reused = self._take_previous(by_date.get(d, []), consumed_ids)
            if reused is not None:
                parcels.append(self._with_duration(reused))
                continue

            start = default_start_time(d, self.index, self.duration_minutes, self.clock)
            parcels.append(build_parcel(d, start, self.duration_minutes, self.clock))

        return parcels

    def reconcile_state(
        self,
        previous_parcels: list[Parcel],
        selected_dates: Iterable[date],
    ) -> tuple[list[Parcel], bool]:
        """reconcile() plus whether the parcel list actually changed."""
        parcels = self.reconcile(selected_dates, previous_parcels)
        return parcels, parcels != list(previous_parcels)

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _take_previous(candidates: list[Parcel], consumed_ids: set[str]) -> Parcel | None:
        """Pop the first persisted candidate with an unused id, else the first new one."""
        for i, parcel in enumerate(candidates):
            if parcel.id is not None and parcel.id not in consumed_ids:
                consumed_ids.add(parcel.id)
                return candidates.pop(i)
        for i, parcel in enumerate(candidates):
            if parcel.id is None:
                return candidates.pop(i)
        return None

    def _with_duration(self, parcel: Parcel) -> Parcel:
        expected = parcel.pickup_earliest_time + timedelta(minutes=self.duration_minutes)
        if parcel.pickup_latest_time == expected:
            return parcel
        return parcel.with_times(parcel.pickup_earliest_time, expected)
