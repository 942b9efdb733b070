# backend/enrollment/services/scheduling/slots.py
"""
Pickup start-time slots within an opening window.

A slot must end by closing time, so the last start is
closing - duration. All functions are pure; "today" comes from the
injected Clock.
"""

from datetime import date

from .clock import Clock
from .config import (
    get_scheduling_config,
    minutes_to_time_str,
    time_str_to_minutes,
)
from .schedule_index import ScheduleIndex


def enumerate_slots(
    opening_time: str,
    closing_time: str,
    duration_minutes: int,
) -> list[str]:
    """
    Start times from opening_time, every duration_minutes, while
    start <= closing_time - duration_minutes.

    Empty list = no slot fits (not an error).
    A zero duration falls back to the time grid as step and allows
    a start exactly at closing time.
    """
    start = time_str_to_minutes(opening_time)
    end = time_str_to_minutes(closing_time)

    if duration_minutes > 0:
        step = duration_minutes
        last_start = end - duration_minutes
    else:
        step = get_scheduling_config().time_grid_minutes
        last_start = end

    slots = []
    t = start
    while t <= last_start:
        slots.append(minutes_to_time_str(t))
        t += step
    return slots


def filter_past_slots(
    slots: list[str],
    target_date: date,
    clock: Clock,
    duration_minutes: int | None = None,
) -> list[str]:
    """
    For today, keep slots starting strictly after the current time.
    Other dates are returned unchanged.

    duration_minutes is accepted for call-site symmetry; a slot that has
    already started is gone even if it has not ended yet.
    """
    if not clock.is_today(target_date):
        return list(slots)

    now = time_str_to_minutes(clock.time_of_day())
    return [s for s in slots if time_str_to_minutes(s) > now]


def first_available_slot(
    opening_time: str | None,
    closing_time: str | None,
    duration_minutes: int,
    fallback: str | None = None,
) -> str:
    """First slot of the window, or the configured fallback when there is none."""
    fallback = fallback or get_scheduling_config().fallback_pickup_time
    if not opening_time or not closing_time:
        return fallback
    slots = enumerate_slots(opening_time, closing_time, duration_minutes)
    return slots[0] if slots else fallback


def slot_end_time(start_time: str, duration_minutes: int) -> str:
    """End of a slot. Raises ValueError when the slot would cross midnight."""
    return minutes_to_time_str(time_str_to_minutes(start_time) + duration_minutes)


def available_slots_for(
    target_date: date,
    index: ScheduleIndex,
    duration_minutes: int,
    clock: Clock,
) -> list[str]:
    """Selectable start times for a date: enumerated, minus past ones for today."""
    window = index.opening_window_for(target_date)
    if window is None:
        return []
    slots = enumerate_slots(window.opening_time, window.closing_time, duration_minutes)
    return filter_past_slots(slots, target_date, clock, duration_minutes)


def default_start_time(
    target_date: date,
    index: ScheduleIndex,
    duration_minutes: int,
    clock: Clock,
) -> str:
    """
    Start time for a newly added date: first slot still ahead of now,
    else the window's first slot, else the fallback.
    """
    upcoming = available_slots_for(target_date, index, duration_minutes, clock)
    if upcoming:
        return upcoming[0]

    window = index.opening_window_for(target_date)
    if window is None:
        return first_available_slot(None, None, duration_minutes)
    return first_available_slot(window.opening_time, window.closing_time, duration_minutes)
