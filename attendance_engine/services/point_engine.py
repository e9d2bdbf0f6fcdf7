"""
Point engine — keeps a record's active point entries in line with its status.

Sync is idempotent: entries that already match what the record implies are
left untouched, entries that no longer match are voided, and missing ones are
inserted with ``ON CONFLICT DO NOTHING`` against the partial unique index on
active ``(record, point type)`` pairs.  A replacement of the same type keeps the
excusal and expiry of the entry it replaces.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core import audit
from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.points import derive_points
from attendance_engine.domain.snapshots import PointSpec
from attendance_engine.models.attendance import AttendanceRecord
from attendance_engine.models.point import PointEntry
from attendance_engine.repositories.attendance import record_snapshot
from attendance_engine.repositories.points import PointRepository

logger = logging.getLogger(__name__)


class PointSyncResult(BaseModel):
    created: int = 0
    voided: int = 0
    kept: int = 0


def _matches(entry: PointEntry, spec: PointSpec) -> bool:
    return (
        Decimal(entry.points) == spec.points
        and entry.source_status == spec.source_status.value
        and entry.tardy_minutes == spec.tardy_minutes
        and entry.undertime_minutes == spec.undertime_minutes
        and entry.is_advised == spec.is_advised
        and entry.expires_at == spec.expires_at
    )


def _settled_state(entry: PointEntry) -> dict:
    """Excusal and expiry of *entry*, for the entry that replaces it."""
    state: dict = {}
    if entry.is_excused:
        state.update(
            is_excused=True,
            excused_by=entry.excused_by,
            excused_at=entry.excused_at,
            excuse_reason=entry.excuse_reason,
        )
    if entry.is_expired:
        state.update(
            is_expired=True,
            expired_at=entry.expired_at,
            expiration_type=entry.expiration_type,
            gbro_batch_id=entry.gbro_batch_id,
            gbro_applied_at=entry.gbro_applied_at,
        )
    return state


def _entry_state(entry: PointEntry) -> dict:
    return {
        "point_type": entry.point_type,
        "points": str(entry.points),
        "source_status": entry.source_status,
        "shift_date": entry.shift_date.isoformat(),
    }


class PointEngine:
    def __init__(self, session: AsyncSession, config: EngineConfig) -> None:
        self.config = config
        self.points = PointRepository(session)

    async def sync(
        self,
        record: AttendanceRecord,
        *,
        actor_id: int | None = None,
        reason: str | None = None,
    ) -> PointSyncResult:
        """Bring the active entries of *record* in line with its current outcome."""
        specs = derive_points(record_snapshot(record), self.config)
        desired = {spec.point_type.value: spec for spec in specs}
        result = PointSyncResult()
        carried: dict[str, dict] = {}

        for entry in await self.points.active_for_record(record.id):
            spec = desired.get(entry.point_type)
            if spec is not None and _matches(entry, spec):
                desired.pop(entry.point_type)
                result.kept += 1
                continue
            if await self.points.void(entry.id):
                result.voided += 1
                if spec is not None:
                    carried[entry.point_type] = _settled_state(entry)
                audit.emit(
                    "point.voided",
                    "point_entry",
                    entry.id,
                    actor_id=actor_id,
                    before=_entry_state(entry),
                    reason=reason or "record outcome changed",
                )

        for spec in desired.values():
            if await self.points.insert_if_absent(
                record, spec, carried.get(spec.point_type.value)
            ):
                result.created += 1
                audit.emit(
                    "point.created",
                    "point_entry",
                    None,
                    actor_id=actor_id,
                    after={
                        "attendance_record_id": record.id,
                        "user_id": record.user_id,
                        "point_type": spec.point_type.value,
                        "points": str(spec.points),
                        "expires_at": spec.expires_at.isoformat(),
                    },
                    reason=reason,
                )

        if result.created or result.voided:
            logger.info(
                "Points synced for record %s (user %s, %s): +%d / -%d",
                record.id,
                record.user_id,
                record.shift_date,
                result.created,
                result.voided,
            )
        return result
