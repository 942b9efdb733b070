# backend/enrollment/services/scheduling/clock.py
"""
Reference clock.

"Now" and "today" are always taken in the locations' civil timezone,
never in the viewer's. Every date-only comparison in the engine goes
through Clock.to_reference_civil_date().

Naive datetimes are treated as UTC (that is how parcels are stored).
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .config import get_scheduling_config, time_str_to_minutes


class Clock:
    """System clock pinned to the reference timezone."""

    def __init__(self, tz_name: str | None = None):
        self.tz = ZoneInfo(tz_name or get_scheduling_config().timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def to_reference_civil_date(self, instant: date | datetime) -> date:
        """Civil date of an instant in the reference timezone."""
        if isinstance(instant, datetime):
            return self.localize(instant).date()
        return instant

    def localize(self, instant: datetime) -> datetime:
        """Express an instant in the reference timezone."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def at(self, civil_date: date, time_str: str) -> datetime:
        """Aware datetime for "HH:MM" on a civil date in the reference timezone."""
        minutes = time_str_to_minutes(time_str)
        return datetime.combine(
            civil_date, time(minutes // 60, minutes % 60), tzinfo=self.tz
        )

    def time_of_day(self, instant: datetime | None = None) -> str:
        """Wall-clock "HH:MM" of an instant (default: now) in the reference timezone."""
        local = self.localize(instant) if instant is not None else self.now()
        return f"{local.hour:02d}:{local.minute:02d}"

    def is_today(self, value: date | datetime) -> bool:
        return self.to_reference_civil_date(value) == self.today()

    def is_past_date(self, value: date | datetime) -> bool:
        """Strictly before today."""
        return self.to_reference_civil_date(value) < self.today()


class FixedClock(Clock):
    """
    Clock frozen at a given instant; advance() moves it forward.

    A naive frozen value is read as reference-local wall-clock time.
    """

    def __init__(self, frozen: datetime, tz_name: str | None = None):
        super().__init__(tz_name)
        if frozen.tzinfo is None:
            frozen = frozen.replace(tzinfo=self.tz)
        self._now = frozen.astimezone(self.tz)

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> None:
        self._now = self._now + timedelta(**delta)


# FastAPI dependency
def get_clock() -> Clock:
    return Clock()
