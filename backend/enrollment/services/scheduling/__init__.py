# backend/enrollment/services/scheduling/__init__.py
"""
Pickup scheduling engine.

ScheduleIndex      → opening window per date
CapacityLedger     → persisted + in-session bookings per date
DateSelectionPolicy→ which dates can be picked
slots              → start times within a window
bulk               → one time for every upcoming parcel
ParcelStateReducer → selected dates → parcel list
"""

from .config import SchedulingConfig, get_scheduling_config
from .clock import Clock, FixedClock, get_clock
from .models import (
    CapacitySnapshot,
    DaySpec,
    OpeningSchedule,
    OpeningWindow,
    Parcel,
    date_key,
    weekday_name,
)
from .schedule_index import ScheduleIndex
from .capacity import CapacityLedger
from .date_policy import DateSelectionPolicy, DateStatus, DayCell
from .slots import (
    available_slots_for,
    enumerate_slots,
    filter_past_slots,
    first_available_slot,
    slot_end_time,
)
from .bulk import BulkEditState, BulkTimeReconciler, apply_bulk_time
from .parcels import ParcelStateReducer, set_parcel_start
from .errors import BulkTimeRejected, SchedulingError

__all__ = [
    "SchedulingConfig",
    "get_scheduling_config",
    "Clock",
    "FixedClock",
    "get_clock",
    "CapacitySnapshot",
    "DaySpec",
    "OpeningSchedule",
    "OpeningWindow",
    "Parcel",
    "date_key",
    "weekday_name",
    "ScheduleIndex",
    "CapacityLedger",
    "DateSelectionPolicy",
    "DateStatus",
    "DayCell",
    "available_slots_for",
    "enumerate_slots",
    "filter_past_slots",
    "first_available_slot",
    "slot_end_time",
    "BulkEditState",
    "BulkTimeReconciler",
    "apply_bulk_time",
    "ParcelStateReducer",
    "set_parcel_start",
    "BulkTimeRejected",
    "SchedulingError",
]
