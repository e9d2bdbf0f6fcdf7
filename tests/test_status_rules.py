"""Tests for status derivation and scan merging."""

from datetime import date, datetime, time

import pytest

from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.enums import AttendanceStatus, ScanRole, ShiftType
from attendance_engine.domain.points import derive_points
from attendance_engine.domain.snapshots import AttendanceSnapshot, ScanSnapshot
from attendance_engine.domain.status import (IRREGULAR_SCANS, classify_arrival,
                                             derive_status, distinct_scans,
                                             reconcile_scans)

Status = AttendanceStatus
CONFIG = EngineConfig()
DAY = date(2025, 3, 3)


def day_record(**overrides) -> AttendanceSnapshot:
    values = dict(
        user_id=1,
        shift_date=DAY,
        shift_type=ShiftType.MORNING,
        scheduled_time_in=time(8, 0),
        scheduled_time_out=time(17, 0),
        grace_period_minutes=15,
    )
    values.update(overrides)
    return AttendanceSnapshot(**values)


def night_record(**overrides) -> AttendanceSnapshot:
    return day_record(
        user_id=2,
        shift_date=date(2025, 3, 1),
        shift_type=ShiftType.NIGHT,
        scheduled_time_in=time(22, 0),
        scheduled_time_out=time(7, 0),
        **overrides,
    )


def scan(hour: int, minute: int, role: ScanRole, day: date = DAY, site: int = 1) -> ScanSnapshot:
    return ScanSnapshot(
        scanned_at=datetime(day.year, day.month, day.day, hour, minute), site_id=site, role=role
    )


# ── Arrival classification ──────────────────────────────────────────
@pytest.mark.parametrize(
    "delta, expected, tardy",
    [
        (-10, Status.ON_TIME, None),
        (15, Status.ON_TIME, None),
        (16, Status.TARDY, 16),
        (120, Status.TARDY, 120),
        (121, Status.HALF_DAY_ABSENCE, 121),
    ],
)
def test_classify_arrival_boundaries(delta, expected, tardy):
    assert classify_arrival(delta, 15, 120) == (expected, tardy)


def test_arrival_exactly_at_grace_is_on_time():
    record = day_record(actual_time_in=datetime(2025, 3, 3, 8, 15), actual_time_out=datetime(2025, 3, 3, 17, 0))
    assert derive_status(record, CONFIG).status == Status.ON_TIME


def test_seconds_are_ignored_at_the_grace_boundary():
    record = day_record(
        actual_time_in=datetime(2025, 3, 3, 8, 15, 59),
        actual_time_out=datetime(2025, 3, 3, 17, 0),
    )
    assert derive_status(record, CONFIG).status == Status.ON_TIME


# ── Derivation ──────────────────────────────────────────────────────
def test_no_scans_is_ncns():
    assert derive_status(day_record(), CONFIG).status == Status.NCNS


def test_missing_arrival_is_failed_bio_in():
    record = day_record(actual_time_out=datetime(2025, 3, 3, 17, 0))
    assert derive_status(record, CONFIG).status == Status.FAILED_BIO_IN


def test_on_time_without_departure_is_failed_bio_out():
    record = day_record(actual_time_in=datetime(2025, 3, 3, 7, 55))
    derived = derive_status(record, CONFIG)
    assert derived.status == Status.FAILED_BIO_OUT
    assert derived.secondary_status is None


def test_tardy_without_departure_keeps_failed_bio_out_as_secondary():
    record = day_record(actual_time_in=datetime(2025, 3, 3, 8, 30))
    derived = derive_status(record, CONFIG)
    assert derived.status == Status.TARDY
    assert derived.secondary_status == Status.FAILED_BIO_OUT
    assert derived.tardy_minutes == 30


def test_early_departure_is_undertime():
    record = day_record(
        actual_time_in=datetime(2025, 3, 3, 8, 0),
        actual_time_out=datetime(2025, 3, 3, 16, 30),
    )
    derived = derive_status(record, CONFIG)
    assert derived.status == Status.UNDERTIME
    assert derived.undertime_minutes == 30


def test_tardy_and_undertime_are_both_recorded():
    record = day_record(
        actual_time_in=datetime(2025, 3, 3, 8, 40),
        actual_time_out=datetime(2025, 3, 3, 15, 0),
    )
    derived = derive_status(record, CONFIG)
    assert derived.status == Status.TARDY
    assert derived.secondary_status == Status.UNDERTIME
    assert derived.tardy_minutes == 40
    assert derived.undertime_minutes == 120


def test_record_without_schedule_needs_review():
    record = AttendanceSnapshot(
        user_id=5, shift_date=DAY, actual_time_in=datetime(2025, 3, 3, 8, 0)
    )
    assert derive_status(record, CONFIG).status == Status.NEEDS_MANUAL_REVIEW


def test_review_reason_forces_manual_review():
    record = day_record(
        review_reason="scan on a non-work day",
        actual_time_in=datetime(2025, 3, 3, 8, 0),
        actual_time_out=datetime(2025, 3, 3, 17, 0),
    )
    assert derive_status(record, CONFIG).status == Status.NEEDS_MANUAL_REVIEW


def test_utility_shift_judged_on_hours_worked():
    record = day_record(
        shift_type=ShiftType.UTILITY_24H,
        actual_time_in=datetime(2025, 3, 3, 8, 0),
        actual_time_out=datetime(2025, 3, 3, 15, 0),
    )
    derived = derive_status(record, CONFIG)
    assert derived.status == Status.UNDERTIME
    # utility shortfalls are a flat undertime, not minutes against a schedule
    assert derived.undertime_minutes is None
    assert derived.tardy_minutes is None


# ── Scan merging ────────────────────────────────────────────────────
def test_night_shift_merge_is_order_independent():
    arrival = scan(22, 3, ScanRole.TIME_IN, day=date(2025, 3, 1))
    departure = scan(7, 5, ScanRole.TIME_OUT, day=date(2025, 3, 2))

    forward = reconcile_scans(night_record(), [arrival, departure], CONFIG)
    backward = reconcile_scans(night_record(), [departure, arrival], CONFIG)

    assert forward == backward
    assert forward.status == Status.ON_TIME
    assert forward.actual_time_in == datetime(2025, 3, 1, 22, 3)
    assert forward.actual_time_out == datetime(2025, 3, 2, 7, 5)
    assert forward.scan_count == 2


def test_duplicate_scans_count_once():
    first = scan(8, 0, ScanRole.TIME_IN, site=3)
    again = scan(8, 0, ScanRole.TIME_IN, site=1)
    merged = reconcile_scans(day_record(), [first, again, first], CONFIG)
    assert merged.scan_count == 1
    assert merged.bio_in_site_id == 1
    assert len(distinct_scans([first, again])) == 1


def test_earliest_arrival_and_latest_departure_win():
    scans = [
        scan(8, 20, ScanRole.TIME_IN),
        scan(7, 58, ScanRole.TIME_IN),
        scan(16, 0, ScanRole.TIME_OUT),
        scan(17, 5, ScanRole.TIME_OUT),
    ]
    merged = reconcile_scans(day_record(), scans, CONFIG)
    assert merged.actual_time_in == datetime(2025, 3, 3, 7, 58)
    assert merged.actual_time_out == datetime(2025, 3, 3, 17, 5)
    assert merged.status == Status.ON_TIME


def test_partially_verified_record_only_takes_the_departure():
    base = day_record(
        actual_time_in=datetime(2025, 3, 3, 8, 30),
        status=Status.TARDY,
        secondary_status=Status.FAILED_BIO_OUT,
        tardy_minutes=30,
        admin_verified=True,
        is_partially_verified=True,
        scan_count=1,
    )
    scans = [scan(8, 30, ScanRole.TIME_IN), scan(7, 0, ScanRole.TIME_IN), scan(16, 0, ScanRole.TIME_OUT)]
    merged = reconcile_scans(base, scans, CONFIG)
    assert merged.actual_time_in == datetime(2025, 3, 3, 8, 30)
    assert merged.actual_time_out == datetime(2025, 3, 3, 16, 0)
    assert merged.status == Status.TARDY
    assert merged.secondary_status == Status.UNDERTIME
    assert merged.undertime_minutes == 60
    assert merged.scan_count == 3


# ── Day-shift pairing ───────────────────────────────────────────────
def test_very_late_arrival_pairs_with_departure():
    scans = [scan(13, 0, ScanRole.TIME_OUT), scan(17, 0, ScanRole.TIME_OUT)]
    merged = reconcile_scans(day_record(), scans, CONFIG)
    assert merged.actual_time_in == datetime(2025, 3, 3, 13, 0)
    assert merged.actual_time_out == datetime(2025, 3, 3, 17, 0)
    assert merged.status == Status.HALF_DAY_ABSENCE
    assert merged.tardy_minutes == 300


def test_first_and_last_scans_pair_an_early_departure():
    scans = [scan(8, 0, ScanRole.TIME_IN), scan(14, 30, ScanRole.TIME_OUT)]
    merged = reconcile_scans(day_record(), scans, CONFIG)
    assert merged.actual_time_out == datetime(2025, 3, 3, 14, 30)
    assert merged.status == Status.UNDERTIME
    assert merged.undertime_minutes == 150


def test_single_scan_uses_the_midpoint_role():
    late = reconcile_scans(day_record(), [scan(16, 50, ScanRole.TIME_OUT)], CONFIG)
    assert late.actual_time_in is None
    assert late.status == Status.FAILED_BIO_IN

    early = reconcile_scans(day_record(), [scan(8, 5, ScanRole.TIME_IN)], CONFIG)
    assert early.actual_time_out is None
    assert early.status == Status.FAILED_BIO_OUT


def test_night_shift_tardy_arrival():
    arrival = scan(22, 40, ScanRole.TIME_IN, day=date(2025, 3, 1))
    departure = scan(7, 0, ScanRole.TIME_OUT, day=date(2025, 3, 2))
    merged = reconcile_scans(night_record(), [departure, arrival], CONFIG)
    assert merged.status == Status.TARDY
    assert merged.tardy_minutes == 40

    (spec,) = derive_points(merged, CONFIG)
    assert spec.point_type.value == "tardy"
    assert spec.expires_at == date(2025, 9, 1)


# ── Overnight utility ───────────────────────────────────────────────
def test_overnight_utility_judged_on_hours_worked():
    base = day_record(
        shift_date=date(2025, 3, 1),
        shift_type=ShiftType.UTILITY_24H,
        scheduled_time_in=time(22, 0),
        scheduled_time_out=time(6, 0),
    )
    full = [
        scan(22, 0, ScanRole.TIME_IN, day=date(2025, 3, 1)),
        scan(6, 30, ScanRole.TIME_OUT, day=date(2025, 3, 2)),
    ]
    assert reconcile_scans(base, full, CONFIG).status == Status.ON_TIME

    short = [
        scan(22, 0, ScanRole.TIME_IN, day=date(2025, 3, 1)),
        scan(3, 0, ScanRole.TIME_OUT, day=date(2025, 3, 2)),
    ]
    merged = reconcile_scans(base, short, CONFIG)
    assert merged.status == Status.UNDERTIME
    (spec,) = derive_points(merged, CONFIG)
    assert str(spec.points) == "0.25"
    assert "5.0 hours worked" in spec.violation_details


# ── Scan screening ──────────────────────────────────────────────────
def test_double_punch_clears_the_departure():
    scans = [scan(8, 0, ScanRole.TIME_IN), scan(8, 6, ScanRole.TIME_IN)]
    merged = reconcile_scans(day_record(), scans, CONFIG)
    assert merged.actual_time_out is None
    assert merged.status == Status.FAILED_BIO_OUT
    assert len(merged.warnings) == 1
    assert merged.warnings[0].startswith("Double punch")


def test_excessive_duration_clears_the_departure():
    arrival = scan(22, 0, ScanRole.TIME_IN, day=date(2025, 3, 1))
    departure = scan(19, 30, ScanRole.TIME_OUT, day=date(2025, 3, 2))
    merged = reconcile_scans(night_record(), [arrival, departure], CONFIG)
    assert merged.actual_time_out is None
    assert merged.status == Status.FAILED_BIO_OUT
    assert merged.warnings[0].startswith("Excessive duration")


def test_departure_hours_before_schedule_needs_review():
    scans = [scan(8, 0, ScanRole.TIME_IN), scan(11, 0, ScanRole.TIME_IN)]
    merged = reconcile_scans(day_record(), scans, CONFIG)
    assert merged.status == Status.NEEDS_MANUAL_REVIEW
    assert merged.review_reason == IRREGULAR_SCANS
    assert "before the scheduled end" in merged.warnings[0]
    assert derive_points(merged, CONFIG) == []


def test_arrival_hours_before_schedule_needs_review():
    scans = [scan(4, 0, ScanRole.TIME_IN), scan(17, 0, ScanRole.TIME_OUT)]
    merged = reconcile_scans(day_record(), scans, CONFIG)
    assert merged.status == Status.NEEDS_MANUAL_REVIEW
    assert any("before the scheduled start" in w for w in merged.warnings)


def test_lone_scan_far_from_schedule_needs_review():
    merged = reconcile_scans(day_record(), [scan(12, 30, ScanRole.TIME_OUT)], CONFIG)
    assert merged.status == Status.NEEDS_MANUAL_REVIEW
    assert merged.warnings[0].startswith("Only 1 scan(s)")


def test_scan_screen_is_redone_when_more_scans_arrive():
    first = reconcile_scans(
        day_record(), [scan(8, 0, ScanRole.TIME_IN), scan(11, 0, ScanRole.TIME_IN)], CONFIG
    )
    assert first.review_reason == IRREGULAR_SCANS

    later = reconcile_scans(
        first,
        [scan(8, 0, ScanRole.TIME_IN), scan(11, 0, ScanRole.TIME_IN), scan(17, 0, ScanRole.TIME_OUT)],
        CONFIG,
    )
    assert later.review_reason is None
    assert later.warnings == ()
    assert later.status == Status.ON_TIME


def test_schedule_review_reason_survives_new_scans():
    base = day_record(review_reason="scan on a non-work day")
    merged = reconcile_scans(base, [scan(8, 0, ScanRole.TIME_IN)], CONFIG)
    assert merged.review_reason == "scan on a non-work day"
    assert merged.status == Status.NEEDS_MANUAL_REVIEW
