"""
Point derivation — which disciplinary point entries a record implies.

Values come from :class:`~attendance_engine.core.config.PointValues`; nothing
here computes a value ad hoc.  Primary and secondary statuses are evaluated
independently, so a record that is both tardy and undertime carries one entry
of each type.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.enums import AttendanceStatus, PointType, ShiftType
from attendance_engine.domain.snapshots import AttendanceSnapshot, PointSpec
from attendance_engine.domain.timeutils import add_months

Status = AttendanceStatus

STATUS_TO_POINT_TYPE: dict[AttendanceStatus, PointType] = {
    Status.TARDY: PointType.TARDY,
    Status.UNDERTIME: PointType.UNDERTIME,
    Status.HALF_DAY_ABSENCE: PointType.HALF_DAY_ABSENCE,
    Status.NCNS: PointType.WHOLE_DAY_ABSENCE,
    Status.ADVISED_ABSENCE: PointType.WHOLE_DAY_ABSENCE,
}


def point_value(
    point_type: PointType, config: EngineConfig, undertime_minutes: int | None = None
) -> Decimal:
    table = config.points
    if point_type == PointType.UNDERTIME:
        if (undertime_minutes or 0) > table.undertime_hour_threshold_minutes:
            return table.undertime_over_hour
        return table.undertime
    return {
        PointType.TARDY: table.tardy,
        PointType.HALF_DAY_ABSENCE: table.half_day_absence,
        PointType.WHOLE_DAY_ABSENCE: table.whole_day_absence,
    }[point_type]


def expiration_date(shift_date: date, point_type: PointType, config: EngineConfig) -> date:
    """SRO horizon: 12 months for whole-day absences, 6 months otherwise."""
    if point_type == PointType.WHOLE_DAY_ABSENCE:
        return add_months(shift_date, config.sro_whole_day_months)
    return add_months(shift_date, config.sro_months)


def is_gbro_eligible(point_type: PointType) -> bool:
    # NCNS and FTN are both whole-day absences and never roll off early
    return point_type != PointType.WHOLE_DAY_ABSENCE


def _fmt(value) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%H:%M")


def violation_details(snapshot: AttendanceSnapshot, status: AttendanceStatus) -> str:
    sched_in = _fmt(snapshot.scheduled_time_in)
    sched_out = _fmt(snapshot.scheduled_time_out)
    actual_in = _fmt(snapshot.actual_time_in) if snapshot.actual_time_in else "No scan"
    actual_out = _fmt(snapshot.actual_time_out) if snapshot.actual_time_out else "No scan"

    if status == Status.NCNS:
        return (
            "No Call, No Show (NCNS): did not report for work without prior notice. "
            f"Scheduled: {sched_in} - {sched_out}. No biometric scans recorded."
        )
    if status == Status.ADVISED_ABSENCE:
        return (
            "Failed to Notify (FTN): absence was advised but not scheduled as leave. "
            f"Scheduled: {sched_in} - {sched_out}."
        )
    if status == Status.HALF_DAY_ABSENCE:
        return (
            f"Half-Day Absence: arrived {snapshot.tardy_minutes or 0} minutes late. "
            f"Scheduled: {sched_in}, Actual: {actual_in}."
        )
    if status == Status.TARDY:
        return (
            f"Tardy: arrived {snapshot.tardy_minutes or 0} minutes late. "
            f"Scheduled: {sched_in}, Actual: {actual_in}."
        )
    if status == Status.UNDERTIME and snapshot.shift_type == ShiftType.UTILITY_24H:
        worked = 0.0
        if snapshot.actual_time_in and snapshot.actual_time_out:
            worked = (snapshot.actual_time_out - snapshot.actual_time_in).total_seconds() / 3600
        return (
            f"24H Utility: only {worked:.1f} hours worked, short of the utility minimum. "
            f"Actual: {actual_in} - {actual_out}."
        )
    if status == Status.UNDERTIME:
        return (
            f"Undertime: left {snapshot.undertime_minutes or 0} minutes early. "
            f"Scheduled: {sched_out}, Actual: {actual_out}."
        )
    return f"Attendance violation on {snapshot.shift_date.isoformat()}"


def derive_points(snapshot: AttendanceSnapshot, config: EngineConfig) -> list[PointSpec]:
    """Point entries that should be active for *snapshot*, at most one per type."""
    if config.points_require_verification and not snapshot.admin_verified:
        return []

    specs: dict[PointType, PointSpec] = {}
    for status in (snapshot.status, snapshot.secondary_status):
        if status is None:
            continue
        point_type = STATUS_TO_POINT_TYPE.get(status)
        if point_type is None or point_type in specs:
            continue
        if point_type == PointType.UNDERTIME and snapshot.is_set_home:
            continue

        whole_day = point_type == PointType.WHOLE_DAY_ABSENCE
        specs[point_type] = PointSpec(
            point_type=point_type,
            points=point_value(point_type, config, snapshot.undertime_minutes),
            source_status=status,
            tardy_minutes=snapshot.tardy_minutes
            if point_type in (PointType.TARDY, PointType.HALF_DAY_ABSENCE)
            else None,
            undertime_minutes=snapshot.undertime_minutes
            if point_type == PointType.UNDERTIME
            else None,
            is_advised=status == Status.ADVISED_ABSENCE or (whole_day and snapshot.is_advised),
            eligible_for_gbro=is_gbro_eligible(point_type),
            expires_at=expiration_date(snapshot.shift_date, point_type, config),
            violation_details=violation_details(snapshot, status),
        )
    return list(specs.values())
