# backend/enrollment/services/scheduling/date_policy.py
"""
Which calendar dates can be picked.

Rules, first match wins:
  1. already selected       → selectable (so it can always be deselected)
  2. before today           → excluded (past)
  3. no opening window      → excluded (closed)
  4. today, past closing    → excluded (closed for the rest of today)
  5. one more would exceed  → excluded (full)
  6. otherwise              → selectable
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

from .capacity import CapacityLedger
from .clock import Clock
from .config import time_str_to_minutes
from .models import date_key
from .schedule_index import ScheduleIndex


class DateStatus(str, Enum):
    SELECTED = "selected"
    AVAILABLE = "available"
    PAST = "past"
    CLOSED = "closed"
    CLOSED_FOR_TODAY = "closed_for_today"
    FULL = "full"

    @property
    def is_selectable(self) -> bool:
        return self in (DateStatus.SELECTED, DateStatus.AVAILABLE)


@dataclass(frozen=True)
class DayCell:
    """Presentation flags for one calendar day."""
    date: date
    status: DateStatus
    is_selected: bool
    is_closed: bool
    is_full: bool
    is_weekend: bool
    is_today: bool


class DateSelectionPolicy:

    def __init__(
        self,
        index: ScheduleIndex,
        ledger: CapacityLedger,
        selected_dates: Iterable[date],
        clock: Clock,
    ):
        self.index = index
        self.ledger = ledger
        self.clock = clock
        self._selected = {clock.to_reference_civil_date(d) for d in selected_dates}

    def evaluate(self, candidate: date) -> DateStatus:
        d = self.clock.to_reference_civil_date(candidate)

        if d in self._selected:
            return DateStatus.SELECTED

        if self.clock.is_past_date(d):
            return DateStatus.PAST

        window = self.index.opening_window_for(d)
        if window is None:
            return DateStatus.CLOSED

        if self.clock.is_today(d):
            now = time_str_to_minutes(self.clock.time_of_day())
            if now >= window.closing_minutes:
                return DateStatus.CLOSED_FOR_TODAY

        if self.ledger.would_exceed(date_key(d), additional_count=1):
            return DateStatus.FULL

        return DateStatus.AVAILABLE

    def is_excluded(self, candidate: date) -> bool:
        return not self.evaluate(candidate).is_selectable

    def day_cell(self, candidate: date) -> DayCell:
        d = self.clock.to_reference_civil_date(candidate)
        status = self.evaluate(d)
        return DayCell(
            date=d,
            status=status,
            is_selected=status is DateStatus.SELECTED,
            is_closed=not self.index.is_open(d),
            is_full=self.ledger.is_full(date_key(d)),
            is_weekend=d.weekday() >= 5,
            is_today=self.clock.is_today(d),
        )
