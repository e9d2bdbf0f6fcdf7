"""Pydantic schemas for attendance records, review actions and summaries."""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator

from attendance_engine.domain.enums import AttendanceStatus

MAX_BATCH_SIZE = 500


# ── Record ──────────────────────────────────────────────────────────
class AttendanceRead(BaseModel):
    id: int
    user_id: int
    shift_date: date
    shift_type: str | None = None
    schedule_id: int | None = None
    scheduled_time_in: time | None = None
    scheduled_time_out: time | None = None
    grace_period_minutes: int
    actual_time_in: datetime | None = None
    actual_time_out: datetime | None = None
    bio_in_site_id: int | None = None
    bio_out_site_id: int | None = None
    status: AttendanceStatus
    secondary_status: AttendanceStatus | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    review_reason: str | None = None
    warnings: list[str] = []
    scan_count: int
    is_advised: bool
    is_set_home: bool
    admin_verified: bool
    is_partially_verified: bool
    verification_state: str
    verification_notes: str | None = None
    verified_by: int | None = None
    verified_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Review actions ──────────────────────────────────────────────────
class _Notes(BaseModel):
    verification_notes: str | None = Field(default=None, max_length=1000)

    @field_validator("verification_notes")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class PartialApproveRequest(_Notes):
    # reviewer may confirm a different arrival verdict than the derived one
    status: AttendanceStatus | None = None


class VerifyRequest(_Notes):
    actual_time_in: datetime | None = None
    actual_time_out: datetime | None = None
    status: AttendanceStatus | None = None
    is_set_home: bool | None = None

    @field_validator("actual_time_in", "actual_time_out")
    @classmethod
    def _wall_clock(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is not None:
            return v.replace(tzinfo=None)
        return v


class MarkAdvisedRequest(_Notes):
    pass


class BatchReviewRequest(_Notes):
    record_ids: list[int] = Field(min_length=1, max_length=MAX_BATCH_SIZE)


class DetectAbsencesRequest(BaseModel):
    shift_date: date


# ── Summary ─────────────────────────────────────────────────────────
class AttendanceSummaryResponse(BaseModel):
    start: date
    end: date
    user_id: int | None = None
    total_records: int
    by_status: dict[str, int]
    pending_verification: int
