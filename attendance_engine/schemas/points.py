"""Pydantic schemas for the point ledger and expiration actions."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class PointRead(BaseModel):
    id: int
    user_id: int
    attendance_record_id: int
    shift_date: date
    point_type: str
    points: Decimal
    status: str
    source_status: str | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    violation_details: str | None = None
    is_advised: bool
    expires_at: date
    expiration_type: str
    is_expired: bool
    expired_at: datetime | None = None
    is_excused: bool
    excused_by: int | None = None
    excused_at: datetime | None = None
    excuse_reason: str | None = None
    eligible_for_gbro: bool
    gbro_batch_id: str | None = None
    gbro_applied_at: datetime | None = None
    voided_at: datetime | None = None

    model_config = {"from_attributes": True}


class PointTotalResponse(BaseModel):
    user_id: int
    active_points: Decimal
    active_count: int
    expired_count: int
    excused_count: int


class ExcuseRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Excuse reason must not be empty")
        return v


class GbroRequest(BaseModel):
    user_ids: list[int] = Field(min_length=1, max_length=500)
    reason: str | None = Field(default=None, max_length=500)


class GbroResult(BaseModel):
    user_id: int
    batch_id: str
    expired: int = 0
    skipped: int = 0


class GbroBatchResponse(BaseModel):
    batch_id: str
    expired: int = 0
    results: list[GbroResult] = Field(default_factory=list)
    errors: int = 0


class SweepSummary(BaseModel):
    run_date: date
    expired: int = 0
    skipped: int = 0
    errors: int = 0
