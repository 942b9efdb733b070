# backend/enrollment/services/scheduling/schedule_index.py
"""
Opening hours lookup for one pickup location.

A date is open when at least one schedule covers it and is open on its
weekday. When several schedules apply, the facility is only open while
all of them agree: latest opening, earliest closing.
"""

from datetime import date
from typing import Iterable

from .models import OpeningSchedule, OpeningWindow, _as_date


class ScheduleIndex:
    """Resolves opening windows from a snapshot of a location's schedules."""

    def __init__(self, schedules: Iterable[OpeningSchedule] = ()):
        self.schedules = list(schedules)

    def __bool__(self) -> bool:
        return bool(self.schedules)

    def opening_window_for(self, d: date) -> OpeningWindow | None:
        """
        Window that applies on d, or None when the location is closed.

        A datetime is looked up by its date part.
        """
        d = _as_date(d)
        result: OpeningWindow | None = None
        found = False

        for schedule in self.schedules:
            if not schedule.covers(d):
                continue
            window = schedule.day_spec(d).window()
            if window is None:
                continue

            if not found:
                result, found = window, True
            elif result is not None:
                result = result.intersect(window)

        return result

    def is_open(self, d: date) -> bool:
        return self.opening_window_for(d) is not None

    def common_window_for(self, dates: Iterable[date]) -> OpeningWindow | None:
        """
        Window valid on every date, for offering one shared time.

        None if the set is empty, any date is closed, or the
        per-date windows do not overlap.
        """
        result: OpeningWindow | None = None
        for i, d in enumerate(dates):
            window = self.opening_window_for(d)
            if window is None:
                return None
            result = window if i == 0 else result.intersect(window)
            if result is None:
                return None
        return result
