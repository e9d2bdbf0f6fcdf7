"""
Immutable snapshots the rule functions operate on.

The ORM rows are converted into these before any rule runs, so the shift
resolver, the status derivation and the point derivation never touch a
session and can be unit-tested with plain values.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel

from attendance_engine.domain.enums import (AttendanceStatus, PointType,
                                            ScanRole, ShiftType)


class ScheduleSnapshot(BaseModel):
    schedule_id: int | None = None
    user_id: int
    shift_type: ShiftType = ShiftType.MORNING
    scheduled_time_in: time
    scheduled_time_out: time
    grace_period_minutes: int = 15
    work_days: tuple[str, ...] = ()
    site_id: int | None = None

    model_config = {"frozen": True, "from_attributes": True}

    @property
    def is_night_shift(self) -> bool:
        """Night shifts start at a later hour than they end (22:00 → 07:00)."""
        return self.scheduled_time_in.hour > self.scheduled_time_out.hour

    @property
    def is_utility(self) -> bool:
        return self.shift_type == ShiftType.UTILITY_24H

    def works_on(self, day: date) -> bool:
        if not self.work_days:
            return True
        return day.strftime("%A").lower() in {d.lower() for d in self.work_days}


class ScanSnapshot(BaseModel):
    scanned_at: datetime
    site_id: int | None = None
    role: ScanRole

    model_config = {"frozen": True, "from_attributes": True}


class ResolvedScan(BaseModel):
    shift_date: date
    role: ScanRole

    model_config = {"frozen": True}


class AttendanceSnapshot(BaseModel):
    user_id: int
    shift_date: date
    shift_type: ShiftType | None = None
    schedule_id: int | None = None
    scheduled_time_in: time | None = None
    scheduled_time_out: time | None = None
    grace_period_minutes: int = 15
    actual_time_in: datetime | None = None
    actual_time_out: datetime | None = None
    bio_in_site_id: int | None = None
    bio_out_site_id: int | None = None
    status: AttendanceStatus = AttendanceStatus.NCNS
    secondary_status: AttendanceStatus | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    is_advised: bool = False
    is_set_home: bool = False
    admin_verified: bool = False
    is_partially_verified: bool = False
    review_reason: str | None = None
    warnings: tuple[str, ...] = ()
    scan_count: int = 0

    model_config = {"frozen": True, "from_attributes": True}

    @property
    def has_schedule(self) -> bool:
        return self.scheduled_time_in is not None and self.scheduled_time_out is not None

    @property
    def is_night_shift(self) -> bool:
        return self.has_schedule and self.scheduled_time_in.hour > self.scheduled_time_out.hour


class PointSpec(BaseModel):
    """One point entry the engine wants to exist for a record."""

    point_type: PointType
    points: Decimal
    source_status: AttendanceStatus
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    is_advised: bool = False
    eligible_for_gbro: bool = True
    expires_at: date
    violation_details: str

    model_config = {"frozen": True}
