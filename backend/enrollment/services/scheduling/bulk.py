# backend/enrollment/services/scheduling/bulk.py
"""
Bulk time edit: one start time for every upcoming parcel.

All-or-nothing: if the time does not fit the opening window of any
upcoming date, no parcel is changed and every offending date is
reported. Parcels on past dates keep their times.
"""

from dataclasses import dataclass
from datetime import date, timedelta

from .clock import Clock
from .config import SchedulingConfig, get_scheduling_config, time_str_to_minutes
from .errors import BulkTimeRejected, SchedulingError
from .models import Parcel
from .schedule_index import ScheduleIndex


@dataclass
class BulkEditState:
    active: bool = False
    chosen_time: str = "12:00"
    last_error: str | None = None


def invalid_dates_for(
    chosen_time: str,
    parcels: list[Parcel],
    duration_minutes: int,
    index: ScheduleIndex,
    clock: Clock,
) -> list[date]:
    """Upcoming parcel dates on which chosen_time is not a valid slot start."""
    chosen = time_str_to_minutes(chosen_time)
    invalid = []

    for parcel in parcels:
        if clock.is_past_date(parcel.pickup_date):
            continue
        window = index.opening_window_for(parcel.pickup_date)
        if (
            window is None
            or chosen < window.opening_minutes
            or chosen > window.closing_minutes - duration_minutes
        ):
            invalid.append(parcel.pickup_date)

    return invalid


def apply_bulk_time(
    chosen_time: str,
    parcels: list[Parcel],
    duration_minutes: int,
    index: ScheduleIndex,
    clock: Clock,
    config: SchedulingConfig | None = None,
) -> list[Parcel]:
    """
    Set chosen_time (snapped down to the time grid) on every upcoming parcel.

    Raises BulkTimeRejected listing all dates the time does not fit.
    """
    config = config or get_scheduling_config()
    try:
        start_time = config.quantize(chosen_time)
    except ValueError:
        raise SchedulingError(f"Invalid time: {chosen_time!r}") from None

    invalid = invalid_dates_for(start_time, parcels, duration_minutes, index, clock)
    if invalid:
        raise BulkTimeRejected(start_time, invalid)

    updated = []
    for parcel in parcels:
        if clock.is_past_date(parcel.pickup_date):
            updated.append(parcel)
            continue
        earliest = clock.at(parcel.pickup_date, start_time)
        updated.append(
            parcel.with_times(earliest, earliest + timedelta(minutes=duration_minutes))
        )
    return updated


class BulkTimeReconciler:
    """Drives one bulk-edit session over a BulkEditState."""

    def __init__(
        self,
        index: ScheduleIndex,
        clock: Clock,
        config: SchedulingConfig | None = None,
    ):
        self.index = index
        self.clock = clock
        self.config = config or get_scheduling_config()
        self.state = BulkEditState(chosen_time=self.config.fallback_pickup_time)

    def begin(self, parcels: list[Parcel]) -> BulkEditState:
        """
        Open the editor, proposing the opening time shared by all
        upcoming dates when there is one.
        """
        upcoming = [
            p.pickup_date for p in parcels if not self.clock.is_past_date(p.pickup_date)
        ]
        common = self.index.common_window_for(upcoming) if upcoming else None
        proposed = common.opening_time if common else self.config.fallback_pickup_time
        self.state = BulkEditState(active=True, chosen_time=proposed)
        return self.state

    def choose(self, time_str: str) -> None:
        self.state.chosen_time = time_str
        self.state.last_error = None

    def apply(self, parcels: list[Parcel], duration_minutes: int) -> list[Parcel]:
        """
        Apply the chosen time. On rejection the editor stays open with
        last_error set and the error is re-raised.
        """
        try:
            updated = apply_bulk_time(
                self.state.chosen_time,
                parcels,
                duration_minutes,
                self.index,
                self.clock,
                self.config,
            )
        except SchedulingError as e:
            self.state.last_error = str(e)
            raise
        self.state = BulkEditState(chosen_time=self.config.fallback_pickup_time)
        return updated

    def cancel(self) -> None:
        self.state = BulkEditState(chosen_time=self.config.fallback_pickup_time)
