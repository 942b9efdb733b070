from datetime import date, datetime

from conftest import make_schedule
from enrollment.services.scheduling import DaySpec, OpeningSchedule, OpeningWindow, ScheduleIndex


def test_overlapping_schedules_intersect():
    index = ScheduleIndex([
        make_schedule("09:00", "17:00", name="Regular"),
        make_schedule("10:00", "15:00", name="Summer"),
    ])

    # 2025-06-02 is a Monday
    assert index.opening_window_for(date(2025, 6, 2)) == OpeningWindow("10:00", "15:00")


def test_closed_weekday_has_no_window():
    index = ScheduleIndex([make_schedule()])

    assert index.opening_window_for(date(2025, 5, 28)) is None  # Wednesday
    assert not index.is_open(date(2025, 5, 31))  # Saturday
    assert index.is_open(date(2025, 5, 29))  # Thursday


def test_date_outside_every_schedule_is_closed():
    index = ScheduleIndex([make_schedule(start=date(2025, 5, 1), end=date(2025, 5, 31))])

    assert index.opening_window_for(date(2025, 6, 2)) is None
    assert index.opening_window_for(date(2025, 4, 28)) is None


def test_schedule_closed_on_weekday_does_not_narrow_other_schedule():
    index = ScheduleIndex([
        make_schedule("09:00", "17:00"),
        make_schedule("12:00", "13:00", days=("wednesday",)),
    ])

    assert index.opening_window_for(date(2025, 5, 26)) == OpeningWindow("09:00", "17:00")
    assert index.opening_window_for(date(2025, 5, 28)) == OpeningWindow("12:00", "13:00")


def test_disjoint_windows_mean_closed():
    index = ScheduleIndex([
        make_schedule("09:00", "11:00"),
        make_schedule("13:00", "17:00"),
    ])

    assert index.opening_window_for(date(2025, 5, 26)) is None


def test_inverted_day_is_ignored():
    schedule = OpeningSchedule(
        name="Broken",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        days={"monday": DaySpec(is_open=True, opening_time="17:00", closing_time="09:00")},
    )

    assert ScheduleIndex([schedule]).opening_window_for(date(2025, 5, 26)) is None


def test_times_with_seconds_are_normalized():
    schedule = OpeningSchedule.from_payload({
        "name": "From API",
        "start_date": "2025-01-01",
        "end_date": "2025-12-31",
        "days": [{"weekday": "Monday", "is_open": True, "opening_time": "9:00:00", "closing_time": "17:00:00"}],
    })

    assert ScheduleIndex([schedule]).opening_window_for(date(2025, 5, 26)) == OpeningWindow("09:00", "17:00")


def test_common_window_for_dates():
    index = ScheduleIndex([
        make_schedule("09:00", "17:00", days=("monday",)),
        make_schedule("10:00", "12:00", days=("tuesday",), name="Short Tuesdays"),
        make_schedule("09:00", "17:00", days=("tuesday",), name="Tuesdays"),
    ])

    assert index.common_window_for([date(2025, 5, 26), date(2025, 5, 27)]) == OpeningWindow("10:00", "12:00")
    assert index.common_window_for([date(2025, 5, 26), date(2025, 5, 28)]) is None
    assert index.common_window_for([]) is None


def test_lookup_by_datetime_uses_its_date():
    index = ScheduleIndex([make_schedule()])

    # Monday morning and Wednesday afternoon
    assert index.opening_window_for(datetime(2025, 5, 5, 10, 0)) == index.opening_window_for(date(2025, 5, 5))
    assert index.opening_window_for(datetime(2025, 5, 5, 10, 0)) is not None
    assert not index.is_open(datetime(2025, 5, 7, 15, 30))
    assert index.schedules[0].covers(datetime(2025, 5, 5, 23, 59))
