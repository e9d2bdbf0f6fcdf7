"""Tests for point values, expiration horizons and point derivation."""

from datetime import date, datetime, time
from decimal import Decimal

from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.enums import AttendanceStatus, PointType
from attendance_engine.domain.points import (derive_points, expiration_date,
                                             is_gbro_eligible, point_value)
from attendance_engine.domain.snapshots import AttendanceSnapshot
from attendance_engine.domain.timeutils import add_months

Status = AttendanceStatus
CONFIG = EngineConfig()


def record(**overrides) -> AttendanceSnapshot:
    values = dict(
        user_id=1,
        shift_date=date(2025, 1, 10),
        scheduled_time_in=time(8, 0),
        scheduled_time_out=time(17, 0),
    )
    values.update(overrides)
    return AttendanceSnapshot(**values)


def test_point_value_table():
    assert point_value(PointType.TARDY, CONFIG) == Decimal("0.25")
    assert point_value(PointType.HALF_DAY_ABSENCE, CONFIG) == Decimal("0.50")
    assert point_value(PointType.WHOLE_DAY_ABSENCE, CONFIG) == Decimal("1.00")
    assert point_value(PointType.UNDERTIME, CONFIG, 60) == Decimal("0.25")
    assert point_value(PointType.UNDERTIME, CONFIG, 61) == Decimal("0.50")


def test_expiration_horizons():
    shift = date(2025, 1, 10)
    assert expiration_date(shift, PointType.TARDY, CONFIG) == date(2025, 7, 10)
    assert expiration_date(shift, PointType.WHOLE_DAY_ABSENCE, CONFIG) == date(2026, 1, 10)


def test_add_months_clamps_to_month_end():
    assert add_months(date(2025, 8, 31), 6) == date(2026, 2, 28)
    assert add_months(date(2023, 8, 31), 6) == date(2024, 2, 29)


def test_whole_day_absences_are_not_gbro_eligible():
    assert not is_gbro_eligible(PointType.WHOLE_DAY_ABSENCE)
    assert is_gbro_eligible(PointType.TARDY)
    assert is_gbro_eligible(PointType.UNDERTIME)


def test_ncns_yields_one_whole_day_point():
    specs = derive_points(record(status=Status.NCNS), CONFIG)
    assert len(specs) == 1
    spec = specs[0]
    assert spec.point_type == PointType.WHOLE_DAY_ABSENCE
    assert spec.points == Decimal("1.00")
    assert spec.expires_at == date(2026, 1, 10)
    assert not spec.eligible_for_gbro
    assert "NCNS" in spec.violation_details


def test_advised_absence_is_flagged():
    specs = derive_points(record(status=Status.ADVISED_ABSENCE, is_advised=True), CONFIG)
    assert [s.point_type for s in specs] == [PointType.WHOLE_DAY_ABSENCE]
    assert specs[0].is_advised


def test_tardy_and_undertime_produce_two_entries():
    snapshot = record(
        actual_time_in=datetime(2025, 1, 10, 8, 40),
        actual_time_out=datetime(2025, 1, 10, 15, 0),
        status=Status.TARDY,
        secondary_status=Status.UNDERTIME,
        tardy_minutes=40,
        undertime_minutes=120,
    )
    specs = {s.point_type: s for s in derive_points(snapshot, CONFIG)}
    assert set(specs) == {PointType.TARDY, PointType.UNDERTIME}
    assert specs[PointType.TARDY].points == Decimal("0.25")
    assert specs[PointType.TARDY].tardy_minutes == 40
    assert specs[PointType.UNDERTIME].points == Decimal("0.50")
    assert specs[PointType.UNDERTIME].expires_at == date(2025, 7, 10)


def test_clean_statuses_yield_no_points():
    for status in (Status.ON_TIME, Status.FAILED_BIO_IN, Status.FAILED_BIO_OUT, Status.NEEDS_MANUAL_REVIEW):
        assert derive_points(record(status=status), CONFIG) == []


def test_set_home_skips_undertime():
    snapshot = record(status=Status.UNDERTIME, undertime_minutes=180, is_set_home=True)
    assert derive_points(snapshot, CONFIG) == []


def test_points_can_wait_for_verification():
    strict = EngineConfig(points_require_verification=True)
    tardy = record(status=Status.TARDY, tardy_minutes=30)
    assert derive_points(tardy, strict) == []
    verified = tardy.model_copy(update={"admin_verified": True})
    assert len(derive_points(verified, strict)) == 1
