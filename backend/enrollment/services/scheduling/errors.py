# backend/enrollment/services/scheduling/errors.py

from datetime import date


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""


class BulkTimeRejected(SchedulingError):
    """Bulk time does not fit every upcoming date; nothing was changed."""

    def __init__(self, chosen_time: str, dates: list[date]):
        self.chosen_time = chosen_time
        self.dates = sorted(dates)
        super().__init__(
            f"{chosen_time} is outside opening hours on: {format_dates(self.dates)}"
        )


def format_dates(dates: list[date]) -> str:
    """"Wed 2025-05-28, Thu 2025-05-29" style list for user-facing messages."""
    return ", ".join(f"{d.strftime('%a')} {d.isoformat()}" for d in dates)
