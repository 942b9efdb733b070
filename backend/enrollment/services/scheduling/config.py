# backend/enrollment/services/scheduling/config.py
"""
Scheduling configuration and "HH:MM" time helpers.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import settings


MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class SchedulingConfig:
    """
    Configuration for the pickup scheduling engine.

    Attributes:
        timezone: IANA zone that defines "today" and every pickup time
        default_slot_duration_minutes: Used when a location has none or the lookup fails
        time_grid_minutes: Grid the bulk editor snaps chosen times onto
        fallback_pickup_time: Default start time when a date has no resolvable hours
        capacity_notification_seconds: Lifetime of the "date is full" notice
        capacity_months_ahead: Months after the current one covered by a capacity snapshot
    """
    timezone: str = "Europe/Stockholm"
    default_slot_duration_minutes: int = 15
    time_grid_minutes: int = 15
    fallback_pickup_time: str = "12:00"
    capacity_notification_seconds: int = 5
    capacity_months_ahead: int = 1

    def __post_init__(self):
        """Validate configuration."""
        if self.time_grid_minutes <= 0 or 60 % self.time_grid_minutes:
            raise ValueError(
                f"time_grid_minutes must divide 60, got {self.time_grid_minutes}"
            )
        if self.default_slot_duration_minutes <= 0:
            raise ValueError(
                "default_slot_duration_minutes must be positive, "
                f"got {self.default_slot_duration_minutes}"
            )
        time_str_to_minutes(self.fallback_pickup_time)

    def quantize(self, time_str: str) -> str:
        """Snap "HH:MM" down to the time grid ("10:20" -> "10:15" on a 15 min grid)."""
        minutes = time_str_to_minutes(time_str)
        return minutes_to_time_str(minutes - minutes % self.time_grid_minutes)


@lru_cache
def get_scheduling_config() -> SchedulingConfig:
    """Get scheduling configuration (singleton, built from settings)."""
    return SchedulingConfig(
        timezone=settings.timezone,
        default_slot_duration_minutes=settings.default_slot_duration_minutes,
        time_grid_minutes=settings.time_grid_minutes,
        fallback_pickup_time=settings.fallback_pickup_time,
        capacity_notification_seconds=settings.capacity_notification_seconds,
    )


# ── Time helpers ─────────────────────────────────────────────────────────


def normalize_time(value: str) -> str:
    """
    Normalize a time of day to "HH:MM".

    "9:30" → "09:30", "17:00:00" → "17:00".
    Raises ValueError for anything that is not a valid time of day.
    """
    return minutes_to_time_str(time_str_to_minutes(value))


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" (optionally with trailing ":SS") to minutes since midnight."""
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time: {value!r}")
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Invalid time: {value!r}") from None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time: {value!r}")
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of day range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
