# backend/enrollment/services/scheduling/models.py
"""
Value types of the scheduling engine.

Times of day are "HH:MM" strings; civil dates are datetime.date;
pickup instants are timezone-aware datetimes in the reference zone.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime

from .config import normalize_time, time_str_to_minutes


WEEKDAYS = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


def weekday_name(d: date) -> str:
    """Weekday name as stored on schedules ("sunday".."saturday")."""
    # date.weekday(): 0 = Monday, 6 = Sunday
    return WEEKDAYS[(d.weekday() + 1) % 7]


def date_key(d: date) -> str:
    """Capacity map key: "YYYY-MM-DD"."""
    return d.isoformat()


@dataclass(frozen=True)
class DaySpec:
    is_open: bool = False
    opening_time: str | None = None
    closing_time: str | None = None

    def window(self) -> "OpeningWindow | None":
        """Open window for this weekday, or None when closed or inverted."""
        if not self.is_open or not self.opening_time or not self.closing_time:
            return None
        window = OpeningWindow(
            normalize_time(self.opening_time), normalize_time(self.closing_time)
        )
        return window if window.is_valid else None


@dataclass(frozen=True)
class OpeningWindow:
    opening_time: str
    closing_time: str

    @property
    def is_valid(self) -> bool:
        return self.opening_time < self.closing_time

    @property
    def opening_minutes(self) -> int:
        return time_str_to_minutes(self.opening_time)

    @property
    def closing_minutes(self) -> int:
        return time_str_to_minutes(self.closing_time)

    def intersect(self, other: "OpeningWindow") -> "OpeningWindow | None":
        """Later opening and earlier closing of the two; None when empty."""
        merged = OpeningWindow(
            max(self.opening_time, other.opening_time),
            min(self.closing_time, other.closing_time),
        )
        return merged if merged.is_valid else None


@dataclass(frozen=True)
class OpeningSchedule:
    """
    Recurring weekly hours valid on [start_date, end_date] (inclusive).

    days maps weekday names to DaySpec; a missing weekday is closed.
    """
    name: str
    start_date: date
    end_date: date
    days: dict[str, DaySpec] = field(default_factory=dict)
    id: str | None = None

    def covers(self, d: date) -> bool:
        return self.start_date <= _as_date(d) <= self.end_date

    def day_spec(self, d: date) -> DaySpec:
        return self.days.get(weekday_name(_as_date(d)), DaySpec())

    @classmethod
    def from_payload(cls, payload: dict) -> "OpeningSchedule":
        """
        Build from an API payload.

        Accepts date strings or dates, and "days" either as a list of
        {"weekday", "is_open", "opening_time", "closing_time"} or as a
        mapping keyed by weekday name.
        """
        raw_days = payload.get("days") or []
        if isinstance(raw_days, dict):
            raw_days = [{"weekday": k, **(v or {})} for k, v in raw_days.items()]

        days = {}
        for day in raw_days:
            weekday = str(day.get("weekday", "")).lower()
            if weekday not in WEEKDAYS:
                continue
            days[weekday] = DaySpec(
                is_open=bool(day.get("is_open", False)),
                opening_time=day.get("opening_time"),
                closing_time=day.get("closing_time"),
            )

        return cls(
            id=payload.get("id"),
            name=payload.get("name", ""),
            start_date=_as_date(payload["start_date"]),
            end_date=_as_date(payload["end_date"]),
            days=days,
        )


@dataclass(frozen=True)
class CapacitySnapshot:
    """Server-side booking counts per civil date. max_per_day None = unlimited."""
    max_per_day: int | None = None
    date_capacities: dict[str, int] = field(default_factory=dict)

    @property
    def has_limit(self) -> bool:
        return self.max_per_day is not None

    @classmethod
    def unlimited(cls) -> "CapacitySnapshot":
        return cls()

    @classmethod
    def from_payload(cls, payload: dict) -> "CapacitySnapshot":
        return cls(
            max_per_day=payload.get("max_per_day"),
            date_capacities={
                str(k): int(v) for k, v in (payload.get("date_capacities") or {}).items()
            },
        )


@dataclass(frozen=True)
class Parcel:
    """
    One pickup. id is set iff the parcel already exists in storage.
    pickup_latest_time is always pickup_earliest_time + slot duration.
    """
    pickup_date: date
    pickup_earliest_time: datetime
    pickup_latest_time: datetime
    id: str | None = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def with_times(self, earliest: datetime, latest: datetime) -> "Parcel":
        return replace(self, pickup_earliest_time=earliest, pickup_latest_time=latest)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
