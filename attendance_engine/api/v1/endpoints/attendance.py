"""
Attendance endpoints — record listing, summary and reviewer actions.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.api.v1.deps import get_acting_user_id, get_db, get_engine_config
from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.enums import AttendanceStatus
from attendance_engine.repositories.attendance import AttendanceRepository
from attendance_engine.schemas.attendance import (AttendanceRead,
                                                  AttendanceSummaryResponse,
                                                  BatchReviewRequest,
                                                  DetectAbsencesRequest,
                                                  MarkAdvisedRequest,
                                                  PartialApproveRequest,
                                                  VerifyRequest)
from attendance_engine.schemas.common import BatchSummary
from attendance_engine.services.reconciler import (AbsenceSweepSummary,
                                                   AttendanceReconciler)
from attendance_engine.services.reports import attendance_summary
from attendance_engine.services.verification import VerificationWorkflow

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


# ── Read ────────────────────────────────────────────────────────────
@router.get("", response_model=list[AttendanceRead])
async def list_attendance(
    user_id: int | None = Query(default=None),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    status: AttendanceStatus | None = Query(default=None),
    needs_verification: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[AttendanceRead]:
    records = await AttendanceRepository(db).search(
        user_id=user_id,
        start=start,
        end=end,
        status=status.value if status else None,
        needs_verification=needs_verification,
        limit=limit,
        offset=offset,
    )
    return [AttendanceRead.model_validate(r) for r in records]


@router.get("/summary", response_model=AttendanceSummaryResponse)
async def summary(
    start: date = Query(...),
    end: date = Query(...),
    user_id: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> AttendanceSummaryResponse:
    """Status counts for a date range (optionally one user)."""
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    return await attendance_summary(db, start, end, user_id)


@router.get("/{record_id}", response_model=AttendanceRead)
async def get_attendance(record_id: int, db: AsyncSession = Depends(get_db)) -> AttendanceRead:
    record = await AttendanceRepository(db).get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Attendance record not found")
    return AttendanceRead.model_validate(record)


# ── Reviewer actions ────────────────────────────────────────────────
@router.post("/{record_id}/partial-approve", response_model=AttendanceRead)
async def partial_approve(
    record_id: int,
    body: PartialApproveRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> AttendanceRead:
    """Confirm the arrival of a record whose departure is still missing."""
    record = await VerificationWorkflow(db, config).partial_approve(
        record_id, actor_id, body.verification_notes, body.status
    )
    return AttendanceRead.model_validate(record)


@router.post("/{record_id}/verify", response_model=AttendanceRead)
async def verify(
    record_id: int,
    body: VerifyRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> AttendanceRead:
    record = await VerificationWorkflow(db, config).verify(
        record_id,
        actor_id,
        body.verification_notes,
        actual_time_in=body.actual_time_in,
        actual_time_out=body.actual_time_out,
        status=body.status,
        is_set_home=body.is_set_home,
    )
    return AttendanceRead.model_validate(record)


@router.post("/{record_id}/mark-advised", response_model=AttendanceRead)
async def mark_advised(
    record_id: int,
    body: MarkAdvisedRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> AttendanceRead:
    record = await VerificationWorkflow(db, config).mark_advised(
        record_id, actor_id, body.verification_notes
    )
    return AttendanceRead.model_validate(record)


# ── Batches ─────────────────────────────────────────────────────────
@router.post("/batch-partial-approve", response_model=BatchSummary)
async def batch_partial_approve(
    body: BatchReviewRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> BatchSummary:
    return await VerificationWorkflow(db, config).batch_partial_approve(
        body.record_ids, actor_id, body.verification_notes
    )


@router.post("/batch-verify", response_model=BatchSummary)
async def batch_verify(
    body: BatchReviewRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> BatchSummary:
    return await VerificationWorkflow(db, config).batch_verify(
        body.record_ids, actor_id, body.verification_notes
    )


@router.post("/detect-absences", response_model=AbsenceSweepSummary)
async def detect_absences(
    body: DetectAbsencesRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    _actor_id: int = Depends(get_acting_user_id),
) -> AbsenceSweepSummary:
    """Record NCNS for scheduled users without any scan once their shift ended."""
    return await AttendanceReconciler(db, config).detect_absences(body.shift_date)
