from datetime import date, datetime

import pytest

from enrollment.services.scheduling import (
    CapacityLedger,
    CapacitySnapshot,
    DateSelectionPolicy,
    DateStatus,
    FixedClock,
    ScheduleIndex,
    first_available_slot,
)


def _policy(index, clock, capacity=None, selected=()):
    ledger = CapacityLedger(capacity, selected)
    return DateSelectionPolicy(index, ledger, selected, clock)


def test_closed_full_and_open_dates(index, clock):
    capacity = CapacitySnapshot(max_per_day=5, date_capacities={"2025-05-05": 5})
    policy = _policy(index, clock, capacity)

    assert policy.evaluate(date(2025, 5, 28)) is DateStatus.CLOSED
    assert policy.evaluate(date(2025, 5, 5)) is DateStatus.FULL
    assert policy.evaluate(date(2025, 5, 29)) is DateStatus.AVAILABLE

    window = index.opening_window_for(date(2025, 5, 29))
    assert first_available_slot(window.opening_time, window.closing_time, 30) == "09:00"


def test_past_date_excluded(index, clock):
    policy = _policy(index, clock)

    assert policy.evaluate(date(2025, 4, 28)) is DateStatus.PAST
    assert policy.is_excluded(date(2025, 4, 28))


def test_today_after_closing_is_excluded(index):
    clock = FixedClock(datetime(2025, 5, 26, 17, 0))
    policy = _policy(index, clock)

    assert policy.evaluate(date(2025, 5, 26)) is DateStatus.CLOSED_FOR_TODAY
    assert policy.evaluate(date(2025, 5, 27)) is DateStatus.AVAILABLE


def test_today_before_closing_is_selectable(index):
    clock = FixedClock(datetime(2025, 5, 26, 16, 59))

    assert _policy(index, clock).evaluate(date(2025, 5, 26)) is DateStatus.AVAILABLE


def test_today_uses_reference_timezone(index):
    # 15:30 UTC is 17:30 in Stockholm (summer time)
    clock = FixedClock(datetime.fromisoformat("2025-05-26T15:30:00+00:00"))

    assert _policy(index, clock).evaluate(date(2025, 5, 26)) is DateStatus.CLOSED_FOR_TODAY


@pytest.mark.parametrize(
    "selected_date, capacity",
    [
        (date(2025, 5, 28), None),  # closed
        (date(2025, 4, 28), None),  # past
        (date(2025, 5, 5), CapacitySnapshot(max_per_day=1, date_capacities={"2025-05-05": 3})),  # over capacity
    ],
)
def test_selected_dates_are_never_excluded(index, clock, selected_date, capacity):
    policy = _policy(index, clock, capacity, selected=[selected_date])

    assert policy.evaluate(selected_date) is DateStatus.SELECTED
    assert not policy.is_excluded(selected_date)


def test_no_schedules_means_every_date_closed(clock):
    policy = _policy(ScheduleIndex(), clock)

    assert policy.evaluate(date(2025, 5, 5)) is DateStatus.CLOSED


def test_day_cell_flags(index, clock):
    capacity = CapacitySnapshot(max_per_day=2, date_capacities={"2025-05-05": 2})
    policy = _policy(index, clock, capacity)

    cell = policy.day_cell(date(2025, 5, 5))
    assert cell.is_full and not cell.is_closed and not cell.is_selected
    assert policy.day_cell(date(2025, 5, 3)).is_weekend
    assert policy.day_cell(date(2025, 5, 1)).is_today


# ── Ledger ───────────────────────────────────────────────────────────────


def test_ledger_counts_persisted_and_selected():
    snapshot = CapacitySnapshot(max_per_day=3, date_capacities={"2025-05-05": 1})
    ledger = CapacityLedger(snapshot, [date(2025, 5, 5)])

    assert ledger.booked_count("2025-05-05") == 2
    assert ledger.remaining_capacity("2025-05-05") == 2  # own selection not counted
    assert not ledger.would_exceed("2025-05-05")
    assert ledger.would_exceed("2025-05-05", additional_count=2)


def test_ledger_remaining_never_negative():
    snapshot = CapacitySnapshot(max_per_day=2, date_capacities={"2025-05-05": 4})

    assert CapacityLedger(snapshot).remaining_capacity("2025-05-05") == 0


def test_unlimited_ledger():
    ledger = CapacityLedger(CapacitySnapshot.unlimited(), [date(2025, 5, 5)] * 10)

    assert ledger.remaining_capacity("2025-05-05") is None
    assert not ledger.is_full("2025-05-05")
