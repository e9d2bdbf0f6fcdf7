"""Tests for shift-date resolution, including shifts that cross midnight."""

from datetime import date, datetime, time

from attendance_engine.domain.enums import ScanRole, ShiftType
from attendance_engine.domain.shift_resolver import (resolve_shift,
                                                     resolve_without_schedule)
from attendance_engine.domain.snapshots import ScheduleSnapshot

NIGHT = ScheduleSnapshot(
    user_id=2,
    shift_type=ShiftType.NIGHT,
    scheduled_time_in=time(22, 0),
    scheduled_time_out=time(7, 0),
)
DAY = ScheduleSnapshot(user_id=1, scheduled_time_in=time(8, 0), scheduled_time_out=time(17, 0))


def test_night_departure_after_midnight_belongs_to_previous_day():
    resolved = resolve_shift(datetime(2025, 3, 2, 7, 5), NIGHT)
    assert resolved.shift_date == date(2025, 3, 1)
    assert resolved.role == ScanRole.TIME_OUT


def test_night_arrival_anchors_on_scan_date():
    resolved = resolve_shift(datetime(2025, 3, 1, 22, 3), NIGHT)
    assert resolved.shift_date == date(2025, 3, 1)
    assert resolved.role == ScanRole.TIME_IN


def test_night_arrival_before_start_hour_lands_on_previous_day():
    # known limitation of the hour rule: 21:50 is earlier than hour 22
    resolved = resolve_shift(datetime(2025, 3, 1, 21, 50), NIGHT)
    assert resolved.shift_date == date(2025, 2, 28)
    assert resolved.role == ScanRole.TIME_OUT


def test_night_scan_just_after_midnight_is_previous_day_departure():
    resolved = resolve_shift(datetime(2025, 3, 2, 0, 30), NIGHT)
    assert resolved.shift_date == date(2025, 3, 1)


def test_day_shift_roles_split_at_midpoint():
    morning = resolve_shift(datetime(2025, 3, 3, 8, 10), DAY)
    evening = resolve_shift(datetime(2025, 3, 3, 17, 2), DAY)
    assert morning.shift_date == evening.shift_date == date(2025, 3, 3)
    assert morning.role == ScanRole.TIME_IN
    assert evening.role == ScanRole.TIME_OUT


def test_overnight_utility_shift_crosses_midnight_like_a_night_shift():
    utility = ScheduleSnapshot(
        user_id=3,
        shift_type=ShiftType.UTILITY_24H,
        scheduled_time_in=time(22, 0),
        scheduled_time_out=time(6, 0),
    )
    arrival = resolve_shift(datetime(2025, 3, 1, 22, 0), utility)
    departure = resolve_shift(datetime(2025, 3, 2, 6, 30), utility)
    assert arrival.shift_date == departure.shift_date == date(2025, 3, 1)
    assert departure.role == ScanRole.TIME_OUT


def test_night_arrival_and_morning_departure_share_shift_date():
    arrival = resolve_shift(datetime(2025, 11, 5, 22, 5), NIGHT)
    departure = resolve_shift(datetime(2025, 11, 6, 7, 2), NIGHT)
    assert arrival.shift_date == departure.shift_date == date(2025, 11, 5)
    assert (arrival.role, departure.role) == (ScanRole.TIME_IN, ScanRole.TIME_OUT)


def test_is_night_shift_compares_hours():
    assert NIGHT.is_night_shift
    assert not DAY.is_night_shift


def test_works_on_respects_work_days():
    weekdays = DAY.model_copy(update={"work_days": ("Monday", "Tuesday")})
    assert weekdays.works_on(date(2025, 3, 3))  # Monday
    assert not weekdays.works_on(date(2025, 3, 2))  # Sunday
    assert DAY.works_on(date(2025, 3, 2))


def test_without_schedule_anchors_on_scan_date():
    resolved = resolve_without_schedule(datetime(2025, 3, 2, 1, 0))
    assert resolved.shift_date == date(2025, 3, 2)
    assert resolved.role == ScanRole.TIME_IN
