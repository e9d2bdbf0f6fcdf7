"""
Upload ingestion — store a biometric upload and reconcile every key it touches.

1. Resolve each scan to ``(shift_date, role)`` against the user's schedule
   (cached per user and calendar date for the duration of the upload).
2. Append all resolved scans to the ledger and commit.
3. Reconcile each distinct ``(user_id, shift_date)`` key independently; a
   failure on one key is logged and counted, the rest still run.

Unresolved scans (no user) are skipped, not rejected.  Re-ingesting the same
upload stores the scans again, but the distinct scan set per key is
unchanged, so every record ends up ``unchanged``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.shift_resolver import resolve_shift, resolve_without_schedule
from attendance_engine.domain.snapshots import ScheduleSnapshot
from attendance_engine.repositories.scans import ScanRepository
from attendance_engine.repositories.schedules import ScheduleRepository
from attendance_engine.schemas.scans import IngestSummary, ScanIn
from attendance_engine.services.reconciler import AttendanceReconciler, ReconcileOutcome

logger = logging.getLogger(__name__)

# error_details is capped; the counters stay exact
MAX_ERROR_DETAILS = 50


class UploadIngestor:
    def __init__(self, session: AsyncSession, config: EngineConfig) -> None:
        self.session = session
        self.config = config
        self.scans = ScanRepository(session)
        self.schedules = ScheduleRepository(session)
        self.reconciler = AttendanceReconciler(session, config)
        self._schedule_cache: dict[tuple[int, date], ScheduleSnapshot | None] = {}

    async def _schedule_for(self, user_id: int, on_date: date) -> ScheduleSnapshot | None:
        key = (user_id, on_date)
        if key not in self._schedule_cache:
            self._schedule_cache[key] = await self.schedules.active_for(user_id, on_date)
        return self._schedule_cache[key]

    @staticmethod
    def _record_error(summary: IngestSummary, message: str) -> None:
        summary.errors += 1
        if len(summary.error_details) < MAX_ERROR_DETAILS:
            summary.error_details.append(message)

    async def ingest(self, upload_id: str, scans: Iterable[ScanIn]) -> IngestSummary:
        summary = IngestSummary(upload_id=upload_id)
        rows: list[dict] = []
        keys: set[tuple[int, date]] = set()

        # ── Resolve ─────────────────────────────────────────────────
        for scan in scans:
            summary.scans_received += 1
            if scan.user_id is None:
                summary.scans_skipped += 1
                continue
            try:
                schedule = await self._schedule_for(scan.user_id, scan.scanned_at.date())
                if schedule is not None:
                    resolved = resolve_shift(scan.scanned_at, schedule)
                else:
                    resolved = resolve_without_schedule(scan.scanned_at)
            except Exception as exc:
                logger.warning("Could not resolve scan %s: %s", scan, exc)
                self._record_error(summary, f"user {scan.user_id} at {scan.scanned_at}: {exc}")
                continue
            rows.append(
                {
                    "user_id": scan.user_id,
                    "site_id": scan.site_id,
                    "scanned_at": scan.scanned_at,
                    "scan_date": scan.scanned_at.date(),
                    "upload_id": upload_id,
                    "shift_date": resolved.shift_date,
                    "role": resolved.role.value,
                }
            )
            keys.add((scan.user_id, resolved.shift_date))

        # ── Store ───────────────────────────────────────────────────
        summary.scans_stored = await self.scans.add_many(rows)
        await self.session.commit()

        # ── Reconcile ───────────────────────────────────────────────
        for user_id, shift_date in sorted(keys):
            try:
                outcome = await self.reconciler.reconcile(user_id, shift_date)
            except Exception as exc:
                await self.session.rollback()
                logger.exception("Reconcile failed for user %s on %s", user_id, shift_date)
                self._record_error(summary, f"user {user_id} on {shift_date}: {exc}")
                continue
            if outcome == ReconcileOutcome.CREATED:
                summary.records_created += 1
            elif outcome == ReconcileOutcome.UPDATED:
                summary.records_updated += 1
            else:
                summary.records_unchanged += 1

        logger.info(
            "Upload %s: %d scans stored, %d skipped, records %d created / %d updated / "
            "%d unchanged, %d errors",
            upload_id,
            summary.scans_stored,
            summary.scans_skipped,
            summary.records_created,
            summary.records_updated,
            summary.records_unchanged,
            summary.errors,
        )
        return summary


async def ingest_upload(
    session: AsyncSession, upload_id: str, scans: Iterable[ScanIn], config: EngineConfig
) -> IngestSummary:
    return await UploadIngestor(session, config).ingest(upload_id, scans)
