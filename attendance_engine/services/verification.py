"""
Verification workflow — reviewer decisions on attendance records.

* **Partial approval** confirms the arrival of a record that has a time-in but
  no time-out.  The record stays open: a later departure scan still merges
  into it and completes the status.
* **Full verification** locks the record against further scan updates,
  optionally correcting times or overriding the status.
* **Mark advised** turns an absence into an advised absence (FTN).

Every action re-syncs the record's points and emits an audit event.  The
batch variants process each id on its own and report what was skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core import audit
from attendance_engine.core.config import EngineConfig
from attendance_engine.core.exceptions import InvariantViolation, RecordNotFound
from attendance_engine.domain.enums import AttendanceStatus
from attendance_engine.domain.status import apply_derivation, complete_departure, derive_status
from attendance_engine.models.attendance import AttendanceRecord
from attendance_engine.repositories.attendance import AttendanceRepository, record_snapshot
from attendance_engine.schemas.common import BatchSummary
from attendance_engine.services.point_engine import PointEngine

logger = logging.getLogger(__name__)


def _state(record: AttendanceRecord) -> dict:
    return {
        "status": record.status,
        "secondary_status": record.secondary_status,
        "actual_time_in": record.actual_time_in.isoformat() if record.actual_time_in else None,
        "actual_time_out": record.actual_time_out.isoformat() if record.actual_time_out else None,
        "verification_state": record.verification_state,
    }


class VerificationWorkflow:
    def __init__(self, session: AsyncSession, config: EngineConfig) -> None:
        self.session = session
        self.config = config
        self.records = AttendanceRepository(session)
        self.point_engine = PointEngine(session, config)

    async def _get(self, record_id: int) -> AttendanceRecord:
        record = await self.records.get(record_id)
        if record is None:
            raise RecordNotFound(f"Attendance record {record_id} not found")
        return record

    async def _finish(
        self, record_id: int, action: str, before: dict, actor_id: int | None, reason: str | None
    ) -> AttendanceRecord:
        record = await self._get(record_id)
        await self.point_engine.sync(record, actor_id=actor_id, reason=reason or action)
        await self.session.commit()
        audit.emit(
            action,
            "attendance_record",
            record.id,
            actor_id=actor_id,
            before=before,
            after=_state(record),
            reason=reason,
        )
        return record

    # ── Partial approval ────────────────────────────────────────────
    async def partial_approve(
        self,
        record_id: int,
        actor_id: int | None,
        notes: str | None = None,
        status: AttendanceStatus | None = None,
    ) -> AttendanceRecord:
        record = await self._get(record_id)
        if record.actual_time_out is not None:
            raise InvariantViolation(
                "Record already has a time-out; use full verification instead"
            )
        if record.actual_time_in is None:
            raise InvariantViolation("Partial approval requires a recorded time-in")

        before = _state(record)
        values = {
            "admin_verified": True,
            "is_partially_verified": True,
            "verification_notes": notes,
            "verified_by": actor_id,
            "verified_at": datetime.now(timezone.utc),
        }
        if status is not None:
            values.update(status=status, secondary_status=None)

        applied = await self.records.update_where(
            record.id,
            values,
            AttendanceRecord.actual_time_in.is_not(None),
            AttendanceRecord.actual_time_out.is_(None),
        )
        if not applied:
            raise InvariantViolation("Record changed while being approved; reload and retry")
        return await self._finish(record.id, "attendance.partially_verified", before, actor_id, notes)

    # ── Full verification ───────────────────────────────────────────
    async def verify(
        self,
        record_id: int,
        actor_id: int | None,
        notes: str | None = None,
        *,
        actual_time_in: datetime | None = None,
        actual_time_out: datetime | None = None,
        status: AttendanceStatus | None = None,
        is_set_home: bool | None = None,
    ) -> AttendanceRecord:
        record = await self._get(record_id)
        before = _state(record)
        current = record_snapshot(record)

        updates: dict = {}
        if actual_time_in is not None:
            updates["actual_time_in"] = actual_time_in
        if actual_time_out is not None:
            updates["actual_time_out"] = actual_time_out
        if is_set_home is not None:
            updates["is_set_home"] = is_set_home
        times_changed = "actual_time_in" in updates or "actual_time_out" in updates
        if times_changed:
            updates["review_reason"] = None
        candidate = current.model_copy(update=updates)

        if status is not None:
            derived = derive_status(candidate, self.config)
            candidate = candidate.model_copy(
                update={
                    "status": status,
                    "secondary_status": None,
                    "tardy_minutes": derived.tardy_minutes,
                    "undertime_minutes": derived.undertime_minutes,
                }
            )
        elif times_changed:
            if current.is_partially_verified and "actual_time_in" not in updates:
                candidate = complete_departure(candidate)
            else:
                candidate = apply_derivation(candidate, self.config)

        values = {
            "actual_time_in": candidate.actual_time_in,
            "actual_time_out": candidate.actual_time_out,
            "status": candidate.status,
            "secondary_status": candidate.secondary_status,
            "tardy_minutes": candidate.tardy_minutes,
            "undertime_minutes": candidate.undertime_minutes,
            "review_reason": candidate.review_reason,
            "is_set_home": candidate.is_set_home,
            "admin_verified": True,
            # stays partial only while the departure is still missing
            "is_partially_verified": current.is_partially_verified
            and candidate.actual_time_out is None,
            "verification_notes": notes if notes is not None else record.verification_notes,
            "verified_by": actor_id,
            "verified_at": datetime.now(timezone.utc),
        }
        await self.records.update_where(record.id, values)
        return await self._finish(record.id, "attendance.verified", before, actor_id, notes)

    # ── Advised absence ─────────────────────────────────────────────
    async def mark_advised(
        self, record_id: int, actor_id: int | None, notes: str | None = None
    ) -> AttendanceRecord:
        record = await self._get(record_id)
        if record.actual_time_in is not None:
            raise InvariantViolation("Record has a time-in; only absences can be marked advised")

        before = _state(record)
        await self.records.update_where(
            record.id,
            {
                "status": AttendanceStatus.ADVISED_ABSENCE,
                "secondary_status": None,
                "tardy_minutes": None,
                "undertime_minutes": None,
                "is_advised": True,
                "admin_verified": True,
                "is_partially_verified": False,
                "verification_notes": notes,
                "verified_by": actor_id,
                "verified_at": datetime.now(timezone.utc),
            },
            AttendanceRecord.actual_time_in.is_(None),
        )
        return await self._finish(record.id, "attendance.marked_advised", before, actor_id, notes)

    # ── Batches ─────────────────────────────────────────────────────
    async def _batch(
        self, record_ids: list[int], action: Callable[[int], Awaitable[AttendanceRecord]]
    ) -> BatchSummary:
        summary = BatchSummary(requested=len(record_ids))
        for record_id in dict.fromkeys(record_ids):
            try:
                await action(record_id)
                summary.updated += 1
            except (InvariantViolation, RecordNotFound) as exc:
                await self.session.rollback()
                summary.skipped += 1
                summary.details[record_id] = exc.message
            except Exception as exc:
                await self.session.rollback()
                summary.errors += 1
                summary.details[record_id] = "internal error"
                logger.exception("Batch review failed for record %s: %s", record_id, exc)
        logger.info(
            "Batch review: %d updated, %d skipped, %d errors",
            summary.updated,
            summary.skipped,
            summary.errors,
        )
        return summary

    async def batch_partial_approve(
        self, record_ids: list[int], actor_id: int | None, notes: str | None = None
    ) -> BatchSummary:
        return await self._batch(
            record_ids, lambda rid: self.partial_approve(rid, actor_id, notes)
        )

    async def batch_verify(
        self, record_ids: list[int], actor_id: int | None, notes: str | None = None
    ) -> BatchSummary:
        return await self._batch(record_ids, lambda rid: self.verify(rid, actor_id, notes))
