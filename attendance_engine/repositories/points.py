"""
Point ledger persistence.

Every state change is a conditional ``UPDATE`` (void only active entries,
expire only entries that are not yet expired or excused), so running a sweep
or a batch twice is harmless.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.db.upsert import dialect_insert
from attendance_engine.domain.enums import ExpirationType, PointStatus
from attendance_engine.domain.snapshots import PointSpec
from attendance_engine.models.attendance import AttendanceRecord
from attendance_engine.models.point import PointEntry

ACTIVE = PointStatus.ACTIVE.value


def _countable():
    """Entries that still count towards a user's total."""
    return (
        PointEntry.status == ACTIVE,
        PointEntry.is_expired.is_(False),
        PointEntry.is_excused.is_(False),
    )


class PointRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Reads ───────────────────────────────────────────────────────
    async def get(self, point_id: int) -> PointEntry | None:
        result = await self.session.execute(
            select(PointEntry)
            .where(PointEntry.id == point_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def active_for_record(self, record_id: int) -> list[PointEntry]:
        result = await self.session.execute(
            select(PointEntry)
            .where(PointEntry.attendance_record_id == record_id, PointEntry.status == ACTIVE)
            .order_by(PointEntry.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def for_user(
        self, user_id: int, *, include_inactive: bool = False, limit: int = 200, offset: int = 0
    ) -> list[PointEntry]:
        query = select(PointEntry).where(PointEntry.user_id == user_id)
        if not include_inactive:
            query = query.where(*_countable())
        result = await self.session.execute(
            query.order_by(PointEntry.shift_date.desc(), PointEntry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def totals(self, user_id: int) -> tuple[Decimal, int, int, int]:
        """``(active points, active count, expired count, excused count)``."""
        active = await self.session.execute(
            select(func.coalesce(func.sum(PointEntry.points), 0), func.count(PointEntry.id))
            .where(PointEntry.user_id == user_id, *_countable())
        )
        total, active_count = active.one()
        expired = await self.session.execute(
            select(func.count(PointEntry.id)).where(
                PointEntry.user_id == user_id,
                PointEntry.status == ACTIVE,
                PointEntry.is_expired.is_(True),
            )
        )
        excused = await self.session.execute(
            select(func.count(PointEntry.id)).where(
                PointEntry.user_id == user_id,
                PointEntry.status == ACTIVE,
                PointEntry.is_excused.is_(True),
            )
        )
        return (
            Decimal(str(total)).quantize(Decimal("0.01")),
            active_count or 0,
            expired.scalar() or 0,
            excused.scalar() or 0,
        )

    async def due_for_sro(self, today: date) -> list[int]:
        result = await self.session.execute(
            select(PointEntry.id)
            .where(*_countable(), PointEntry.expires_at <= today)
            .order_by(PointEntry.expires_at, PointEntry.id)
        )
        return list(result.scalars().all())

    async def gbro_eligible(self, user_id: int) -> list[PointEntry]:
        """Countable GBRO-eligible entries of *user_id*, newest violation first."""
        result = await self.session.execute(
            select(PointEntry)
            .where(
                PointEntry.user_id == user_id,
                PointEntry.eligible_for_gbro.is_(True),
                *_countable(),
            )
            .order_by(PointEntry.shift_date.desc(), PointEntry.id.desc())
        )
        return list(result.scalars().all())

    async def users_with_gbro_eligible(self) -> list[int]:
        result = await self.session.execute(
            select(PointEntry.user_id)
            .where(PointEntry.eligible_for_gbro.is_(True), *_countable())
            .distinct()
            .order_by(PointEntry.user_id)
        )
        return list(result.scalars().all())

    async def last_gbro_applied(self, user_id: int) -> datetime | None:
        result = await self.session.execute(
            select(func.max(PointEntry.gbro_applied_at)).where(PointEntry.user_id == user_id)
        )
        return result.scalar()

    # ── Writes ──────────────────────────────────────────────────────
    async def insert_if_absent(
        self,
        record: AttendanceRecord,
        spec: PointSpec,
        carried: dict[str, Any] | None = None,
    ) -> bool:
        """Insert an active entry unless one of the same type already exists.

        *carried* overrides the fresh expiry and excusal columns, for an entry
        that replaces one a reviewer or the expiry sweep already settled.
        """
        now = datetime.now(timezone.utc)
        values = dict(
            user_id=record.user_id,
            attendance_record_id=record.id,
            shift_date=record.shift_date,
            point_type=spec.point_type.value,
            points=spec.points,
            status=ACTIVE,
            source_status=spec.source_status.value,
            tardy_minutes=spec.tardy_minutes,
            undertime_minutes=spec.undertime_minutes,
            violation_details=spec.violation_details,
            is_advised=spec.is_advised,
            expires_at=spec.expires_at,
            expiration_type=ExpirationType.SRO.value,
            is_expired=False,
            is_excused=False,
            eligible_for_gbro=spec.eligible_for_gbro,
            created_at=now,
        )
        values.update(carried or {})
        stmt = (
            dialect_insert(self.session, PointEntry)
            .values(**values)
            .on_conflict_do_nothing()
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def void(self, point_id: int) -> bool:
        result = await self.session.execute(
            update(PointEntry)
            .where(PointEntry.id == point_id, PointEntry.status == ACTIVE)
            .values(status=PointStatus.VOIDED.value, voided_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0

    async def expire(
        self,
        point_id: int,
        expiration_type: ExpirationType,
        *,
        batch_id: str | None = None,
        at: datetime | None = None,
    ) -> bool:
        now = at or datetime.now(timezone.utc)
        values = {
            "is_expired": True,
            "expired_at": now,
            "expiration_type": expiration_type.value,
        }
        if expiration_type == ExpirationType.GBRO:
            values.update(gbro_batch_id=batch_id, gbro_applied_at=now)
        result = await self.session.execute(
            update(PointEntry)
            .where(PointEntry.id == point_id, *_countable())
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0

    async def excuse(self, point_id: int, actor_id: int | None, reason: str | None) -> bool:
        result = await self.session.execute(
            update(PointEntry)
            .where(
                PointEntry.id == point_id,
                PointEntry.status == ACTIVE,
                PointEntry.is_excused.is_(False),
            )
            .values(
                is_excused=True,
                excused_by=actor_id,
                excused_at=datetime.now(timezone.utc),
                excuse_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0
