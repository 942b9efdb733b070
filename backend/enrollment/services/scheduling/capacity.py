# backend/enrollment/services/scheduling/capacity.py
"""
Daily capacity: persisted bookings (server snapshot) plus the dates
selected in the current session.

The snapshot is never modified here. In-session additions are only
visible through the selected dates the ledger is built with.
"""

from datetime import date
from typing import Iterable

from .models import CapacitySnapshot, date_key


class CapacityLedger:

    def __init__(
        self,
        snapshot: CapacitySnapshot | None = None,
        selected_dates: Iterable[date] = (),
    ):
        self.snapshot = snapshot or CapacitySnapshot.unlimited()
        self._selected_keys = [date_key(d) for d in selected_dates]

    @property
    def max_per_day(self) -> int | None:
        return self.snapshot.max_per_day

    def persisted_count(self, key: str) -> int:
        return self.snapshot.date_capacities.get(key, 0)

    def tentative_count(self, key: str, exclude_self: bool = False) -> int:
        """
        Selected dates on key. With exclude_self, one occurrence is
        not counted: the date being re-evaluated must not block itself.
        """
        count = self._selected_keys.count(key)
        if exclude_self and count:
            count -= 1
        return count

    def booked_count(self, key: str, exclude_self: bool = False) -> int:
        return self.persisted_count(key) + self.tentative_count(key, exclude_self)

    def remaining_capacity(self, key: str) -> int | None:
        """Free places on key (never below 0); None when unlimited."""
        if self.max_per_day is None:
            return None
        return max(0, self.max_per_day - self.booked_count(key, exclude_self=True))

    def would_exceed(self, key: str, additional_count: int = 1) -> bool:
        if self.max_per_day is None:
            return False
        return self.booked_count(key) + additional_count > self.max_per_day

    def is_full(self, key: str) -> bool:
        """No room for one more parcel on key."""
        return self.would_exceed(key, 1)
