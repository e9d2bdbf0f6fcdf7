"""
Point expiration — standard roll-off (SRO), good-behaviour roll-off (GBRO)
and excusal.

* **SRO** expires every countable entry whose ``expires_at`` has passed.  Each
  entry is expired by its own conditional update and committed on its own,
  so one failing entry never blocks the rest of the sweep.
* **GBRO** expires a user's GBRO-eligible entries early.  An admin batch
  expires all of them under one batch id; the scheduled rollout expires the
  newest ``gbro_points_per_rollout`` once a user has gone
  ``gbro_clean_days`` without a new eligible violation.
* **Excuse** waives a single entry; excused entries are never expired later.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core import audit
from attendance_engine.core.config import EngineConfig
from attendance_engine.core.exceptions import InvariantViolation, RecordNotFound
from attendance_engine.domain.enums import ExpirationType, PointStatus
from attendance_engine.models.point import PointEntry
from attendance_engine.repositories.points import PointRepository
from attendance_engine.schemas.points import (GbroBatchResponse, GbroResult,
                                              SweepSummary)

logger = logging.getLogger(__name__)


def new_batch_id(prefix: str = "gbro") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ExpirationService:
    def __init__(self, session: AsyncSession, config: EngineConfig) -> None:
        self.session = session
        self.config = config
        self.points = PointRepository(session)

    # ── SRO ─────────────────────────────────────────────────────────
    async def run_sro_sweep(self, today: date | None = None) -> SweepSummary:
        today = today or date.today()
        summary = SweepSummary(run_date=today)
        for point_id in await self.points.due_for_sro(today):
            try:
                if await self.points.expire(point_id, ExpirationType.SRO):
                    await self.session.commit()
                    summary.expired += 1
                    audit.emit(
                        "point.expired",
                        "point_entry",
                        point_id,
                        after={"expiration_type": ExpirationType.SRO.value},
                        reason="standard roll-off",
                    )
                else:
                    summary.skipped += 1
            except Exception:
                await self.session.rollback()
                summary.errors += 1
                logger.exception("SRO expiration failed for point %s", point_id)
        logger.info(
            "SRO sweep %s: %d expired, %d skipped, %d errors",
            today,
            summary.expired,
            summary.skipped,
            summary.errors,
        )
        return summary

    # ── GBRO ────────────────────────────────────────────────────────
    async def _expire_gbro(
        self,
        user_id: int,
        entries: list[PointEntry],
        batch_id: str,
        actor_id: int | None,
        reason: str | None,
        at: datetime | None = None,
    ) -> GbroResult:
        result = GbroResult(user_id=user_id, batch_id=batch_id)
        for entry in entries:
            if await self.points.expire(
                entry.id, ExpirationType.GBRO, batch_id=batch_id, at=at
            ):
                result.expired += 1
                audit.emit(
                    "point.expired",
                    "point_entry",
                    entry.id,
                    actor_id=actor_id,
                    after={"expiration_type": ExpirationType.GBRO.value, "gbro_batch_id": batch_id},
                    reason=reason or "good behaviour roll-off",
                )
            else:
                result.skipped += 1
        await self.session.commit()
        return result

    async def apply_gbro(
        self,
        user_ids: list[int],
        actor_id: int | None,
        reason: str | None = None,
        batch_id: str | None = None,
    ) -> GbroBatchResponse:
        """Expire every countable GBRO-eligible entry of each user under one batch id."""
        batch_id = batch_id or new_batch_id()
        response = GbroBatchResponse(batch_id=batch_id)
        for user_id in dict.fromkeys(user_ids):
            try:
                entries = await self.points.gbro_eligible(user_id)
                result = await self._expire_gbro(user_id, entries, batch_id, actor_id, reason)
            except Exception:
                await self.session.rollback()
                response.errors += 1
                logger.exception("GBRO failed for user %s in batch %s", user_id, batch_id)
                continue
            response.results.append(result)
            response.expired += result.expired
        logger.info(
            "GBRO batch %s: %d point(s) expired for %d user(s)",
            batch_id,
            response.expired,
            len(response.results),
        )
        return response

    async def process_due_gbro(self, today: date | None = None) -> GbroBatchResponse:
        """Scheduled rollout after ``gbro_clean_days`` without an eligible violation.

        The clean period is measured from the newest eligible violation or the
        user's last GBRO, whichever is later, so a rollout does not repeat
        until another full clean period has passed.
        """
        today = today or date.today()
        batch_id = f"auto-{today:%Y%m%d}"
        response = GbroBatchResponse(batch_id=batch_id)
        clean_period = timedelta(days=self.config.gbro_clean_days)

        for user_id in await self.points.users_with_gbro_eligible():
            try:
                entries = await self.points.gbro_eligible(user_id)
                if not entries:
                    continue
                reference = entries[0].shift_date
                last_applied = await self.points.last_gbro_applied(user_id)
                if last_applied is not None:
                    reference = max(reference, last_applied.date())
                if reference + clean_period > today:
                    continue
                result = await self._expire_gbro(
                    user_id,
                    entries[: self.config.gbro_points_per_rollout],
                    batch_id,
                    None,
                    f"{self.config.gbro_clean_days} days without violation",
                    at=datetime.combine(today, time.min, tzinfo=timezone.utc),
                )
            except Exception:
                await self.session.rollback()
                response.errors += 1
                logger.exception("Scheduled GBRO failed for user %s", user_id)
                continue
            response.results.append(result)
            response.expired += result.expired

        logger.info("Scheduled GBRO %s: %d point(s) expired", batch_id, response.expired)
        return response

    # ── Excuse ──────────────────────────────────────────────────────
    async def excuse(self, point_id: int, actor_id: int | None, reason: str) -> PointEntry:
        entry = await self.points.get(point_id)
        if entry is None:
            raise RecordNotFound(f"Point entry {point_id} not found")
        if entry.status != PointStatus.ACTIVE.value:
            raise InvariantViolation("Voided point entries cannot be excused")
        if entry.is_excused:
            return entry

        if await self.points.excuse(point_id, actor_id, reason):
            await self.session.commit()
            audit.emit(
                "point.excused",
                "point_entry",
                point_id,
                actor_id=actor_id,
                before={"is_excused": False},
                after={"is_excused": True, "excused_at": datetime.now(timezone.utc).isoformat()},
                reason=reason,
            )
        return await self.points.get(point_id)
