"""
Shift resolver — assigns one raw scan timestamp to the shift it belongs to.

Night shifts (start hour later than end hour, e.g. 22:00 → 07:00) cross
midnight: a scan whose clock hour is earlier than the scheduled start hour is
the departure of the shift that began the previous calendar day, anything
else is the arrival for the current day.  The rule applies to 24-hour utility
schedules as well.  Day shifts always anchor on the scan's own calendar
date; the scan is an arrival candidate when it falls before the midpoint of
the scheduled shift and a departure candidate after.  The role only decides
the pairing when the shift has a single scan.

The hour comparison cannot tell two night cycles inside one 24 h window
apart, and an arrival earlier than the start hour of a night shift lands on
the previous day's shift.  Both are known limitations of the rule.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from attendance_engine.domain.enums import ScanRole
from attendance_engine.domain.snapshots import ResolvedScan, ScheduleSnapshot
from attendance_engine.domain.timeutils import scheduled_bounds


def resolve_shift(scanned_at: datetime, schedule: ScheduleSnapshot) -> ResolvedScan:
    scan_date = scanned_at.date()

    if schedule.is_night_shift:
        if scanned_at.hour < schedule.scheduled_time_in.hour:
            return ResolvedScan(shift_date=scan_date - timedelta(days=1), role=ScanRole.TIME_OUT)
        return ResolvedScan(shift_date=scan_date, role=ScanRole.TIME_IN)

    start, end = scheduled_bounds(
        scan_date, schedule.scheduled_time_in, schedule.scheduled_time_out
    )
    midpoint = start + (end - start) / 2
    role = ScanRole.TIME_IN if scanned_at < midpoint else ScanRole.TIME_OUT
    return ResolvedScan(shift_date=scan_date, role=role)


def resolve_without_schedule(scanned_at: datetime) -> ResolvedScan:
    """Fallback used when no schedule covers the scan: anchor on the scan date."""
    role = ScanRole.TIME_IN if scanned_at.hour < 12 else ScanRole.TIME_OUT
    return ResolvedScan(shift_date=scanned_at.date(), role=role)
