"""
Attendance reconciler — turns the scans of one (user, shift date) into the
canonical attendance record and keeps its points in sync.

Each key is its own unit of work: read the scan set, derive the snapshot,
upsert, sync points, commit.  Transient database errors (lock timeouts,
``database is locked``) roll the unit back and retry it with a short
backoff; after ``upsert_max_retries`` attempts a
:class:`~attendance_engine.core.exceptions.ConcurrencyConflict` is raised.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core import audit
from attendance_engine.core.config import EngineConfig
from attendance_engine.core.exceptions import ConcurrencyConflict
from attendance_engine.domain.enums import AttendanceStatus
from attendance_engine.domain.snapshots import AttendanceSnapshot, ScheduleSnapshot
from attendance_engine.domain.status import reconcile_scans
from attendance_engine.domain.timeutils import scheduled_bounds
from attendance_engine.repositories.attendance import AttendanceRepository, record_snapshot
from attendance_engine.repositories.scans import ScanRepository
from attendance_engine.repositories.schedules import ScheduleRepository
from attendance_engine.services.point_engine import PointEngine

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = 0.05

NO_SCHEDULE = "no active schedule for shift date"
NON_WORK_DAY = "scan on a non-work day"


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class AbsenceSweepSummary(BaseModel):
    shift_date: date
    created: int = 0
    skipped: int = 0
    errors: int = 0


def base_snapshot(
    user_id: int, shift_date: date, schedule: ScheduleSnapshot | None
) -> AttendanceSnapshot:
    """Empty record for a key, carrying a frozen copy of *schedule*."""
    if schedule is None:
        return AttendanceSnapshot(user_id=user_id, shift_date=shift_date, review_reason=NO_SCHEDULE)
    return AttendanceSnapshot(
        user_id=user_id,
        shift_date=shift_date,
        shift_type=schedule.shift_type,
        schedule_id=schedule.schedule_id,
        scheduled_time_in=schedule.scheduled_time_in,
        scheduled_time_out=schedule.scheduled_time_out,
        grace_period_minutes=schedule.grace_period_minutes,
        review_reason=None if schedule.works_on(shift_date) else NON_WORK_DAY,
    )


class AttendanceReconciler:
    def __init__(
        self,
        session: AsyncSession,
        config: EngineConfig,
        point_engine: PointEngine | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.scans = ScanRepository(session)
        self.schedules = ScheduleRepository(session)
        self.records = AttendanceRepository(session)
        self.point_engine = point_engine or PointEngine(session, config)

    async def reconcile(self, user_id: int, shift_date: date) -> ReconcileOutcome:
        """Reconcile one key and commit, retrying transient failures."""
        attempts = max(1, self.config.upsert_max_retries)
        for attempt in range(1, attempts + 1):
            try:
                outcome = await self._reconcile_once(user_id, shift_date)
                await self.session.commit()
                return outcome
            except OperationalError as exc:
                await self.session.rollback()
                logger.warning(
                    "Reconcile of user %s / %s failed (attempt %d/%d): %s",
                    user_id,
                    shift_date,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    await asyncio.sleep(RETRY_BACKOFF_SECONDS * 2 ** (attempt - 1))
        raise ConcurrencyConflict(
            f"Could not reconcile user {user_id} on {shift_date} after {attempts} attempts"
        )

    async def _reconcile_once(self, user_id: int, shift_date: date) -> ReconcileOutcome:
        existing = await self.records.get_for_shift(user_id, shift_date)
        before = existing.status if existing is not None else None
        if existing is not None:
            base = record_snapshot(existing)
            if base.admin_verified and not base.is_partially_verified:
                logger.debug("Record %s is verified; scans ignored", existing.id)
                return ReconcileOutcome.UNCHANGED
        else:
            schedule = await self.schedules.active_for(user_id, shift_date)
            base = base_snapshot(user_id, shift_date, schedule)

        scans = await self.scans.for_shift(user_id, shift_date)
        snapshot = reconcile_scans(base, scans, self.config)

        if not await self.records.upsert(snapshot):
            return ReconcileOutcome.UNCHANGED

        record = await self.records.get_for_shift(user_id, shift_date)
        await self.point_engine.sync(record)

        if before != record.status:
            audit.emit(
                "attendance.status_changed",
                "attendance_record",
                record.id,
                before={"status": before} if before else None,
                after={"status": record.status, "secondary_status": record.secondary_status},
                reason="scan reconciliation",
            )
        return ReconcileOutcome.CREATED if existing is None else ReconcileOutcome.UPDATED

    async def detect_absences(
        self, shift_date: date, now: datetime | None = None
    ) -> AbsenceSweepSummary:
        """Create NCNS records for scheduled users with no record once the shift is over."""
        now = now or datetime.now()
        summary = AbsenceSweepSummary(shift_date=shift_date)
        recorded = await self.records.user_ids_for_shift(shift_date)

        for schedule in await self.schedules.covering(shift_date):
            if schedule.user_id in recorded or not schedule.works_on(shift_date):
                continue
            _start, end = scheduled_bounds(
                shift_date, schedule.scheduled_time_in, schedule.scheduled_time_out
            )
            if end > now:
                summary.skipped += 1
                continue
            try:
                snapshot = base_snapshot(schedule.user_id, shift_date, schedule).model_copy(
                    update={"status": AttendanceStatus.NCNS}
                )
                if not await self.records.insert_if_absent(snapshot):
                    summary.skipped += 1
                    continue
                record = await self.records.get_for_shift(schedule.user_id, shift_date)
                await self.point_engine.sync(record, reason="no scans for scheduled shift")
                await self.session.commit()
                summary.created += 1
                audit.emit(
                    "attendance.status_changed",
                    "attendance_record",
                    record.id,
                    after={"status": record.status},
                    reason="absence detection",
                )
            except Exception:
                await self.session.rollback()
                summary.errors += 1
                logger.exception(
                    "Absence detection failed for user %s on %s", schedule.user_id, shift_date
                )

        logger.info(
            "Absence detection for %s: %d created, %d skipped, %d errors",
            shift_date,
            summary.created,
            summary.skipped,
            summary.errors,
        )
        return summary
