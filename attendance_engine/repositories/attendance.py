"""
Attendance record persistence.

The scan path only ever writes through :meth:`AttendanceRepository.upsert`,
a single ``INSERT ... ON CONFLICT (user_id, shift_date) DO UPDATE`` whose
``WHERE`` clause carries the monotonic scan-count guard and the reviewer
lock.  Two workers reconciling the same key can therefore never produce two
rows, and the stale one of them turns into a no-op.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.db.upsert import dialect_insert
from attendance_engine.domain.enums import AttendanceStatus
from attendance_engine.domain.snapshots import AttendanceSnapshot
from attendance_engine.models.attendance import AttendanceRecord

logger = logging.getLogger(__name__)

# columns a newer scan set may overwrite; schedule fields and reviewer
# decisions are set once and left alone by the scan path
SCAN_DERIVED_COLUMNS = (
    "actual_time_in",
    "actual_time_out",
    "bio_in_site_id",
    "bio_out_site_id",
    "status",
    "secondary_status",
    "tardy_minutes",
    "undertime_minutes",
    "review_reason",
    "warnings",
    "scan_count",
)

REVIEW_STATUSES = (
    AttendanceStatus.FAILED_BIO_IN.value,
    AttendanceStatus.FAILED_BIO_OUT.value,
    AttendanceStatus.NEEDS_MANUAL_REVIEW.value,
)


def record_snapshot(record: AttendanceRecord) -> AttendanceSnapshot:
    return AttendanceSnapshot.model_validate(record)


def snapshot_values(snapshot: AttendanceSnapshot) -> dict[str, Any]:
    """Column values for *snapshot* with enums flattened to their string values."""
    values = snapshot.model_dump()
    for key, value in values.items():
        if isinstance(value, Enum):
            values[key] = value.value
    return values


class AttendanceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Reads ───────────────────────────────────────────────────────
    async def get(self, record_id: int) -> AttendanceRecord | None:
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.id == record_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_shift(self, user_id: int, shift_date: date) -> AttendanceRecord | None:
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.user_id == user_id,
                AttendanceRecord.shift_date == shift_date,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def user_ids_for_shift(self, shift_date: date) -> set[int]:
        result = await self.session.execute(
            select(AttendanceRecord.user_id).where(AttendanceRecord.shift_date == shift_date)
        )
        return set(result.scalars().all())

    async def search(
        self,
        *,
        user_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
        status: str | None = None,
        needs_verification: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AttendanceRecord]:
        query = select(AttendanceRecord)
        if user_id is not None:
            query = query.where(AttendanceRecord.user_id == user_id)
        if start is not None:
            query = query.where(AttendanceRecord.shift_date >= start)
        if end is not None:
            query = query.where(AttendanceRecord.shift_date <= end)
        if status is not None:
            query = query.where(
                or_(AttendanceRecord.status == status, AttendanceRecord.secondary_status == status)
            )
        if needs_verification is not None:
            pending = and_(
                AttendanceRecord.admin_verified.is_(False),
                AttendanceRecord.status.in_(REVIEW_STATUSES),
            )
            query = query.where(pending if needs_verification else ~pending)
        result = await self.session.execute(
            query.order_by(AttendanceRecord.shift_date.desc(), AttendanceRecord.user_id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def status_counts(
        self, start: date, end: date, user_id: int | None = None
    ) -> dict[str, int]:
        query = (
            select(AttendanceRecord.status, func.count(AttendanceRecord.id))
            .where(AttendanceRecord.shift_date >= start, AttendanceRecord.shift_date <= end)
            .group_by(AttendanceRecord.status)
        )
        if user_id is not None:
            query = query.where(AttendanceRecord.user_id == user_id)
        result = await self.session.execute(query)
        return {status: count for status, count in result.all()}

    async def pending_verification_count(
        self, start: date, end: date, user_id: int | None = None
    ) -> int:
        query = select(func.count(AttendanceRecord.id)).where(
            AttendanceRecord.shift_date >= start,
            AttendanceRecord.shift_date <= end,
            AttendanceRecord.admin_verified.is_(False),
            AttendanceRecord.status.in_(REVIEW_STATUSES),
        )
        if user_id is not None:
            query = query.where(AttendanceRecord.user_id == user_id)
        return (await self.session.execute(query)).scalar() or 0

    # ── Writes ──────────────────────────────────────────────────────
    async def upsert(self, snapshot: AttendanceSnapshot) -> bool:
        """Insert or conditionally update the record for the snapshot's key.

        The update only applies when the incoming scan count is strictly
        greater than the stored one and the record is not fully verified.
        Returns ``False`` when the row was left unchanged.
        """
        now = datetime.now(timezone.utc)
        values = snapshot_values(snapshot)
        stmt = dialect_insert(self.session, AttendanceRecord).values(
            **values, created_at=now, updated_at=now
        )
        excluded = stmt.excluded
        set_ = {column: excluded[column] for column in SCAN_DERIVED_COLUMNS}
        set_["updated_at"] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "shift_date"],
            set_=set_,
            where=and_(
                AttendanceRecord.scan_count < excluded.scan_count,
                or_(
                    AttendanceRecord.admin_verified.is_(False),
                    AttendanceRecord.is_partially_verified.is_(True),
                ),
            ),
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def insert_if_absent(self, snapshot: AttendanceSnapshot) -> bool:
        """Create the record unless one already exists for the key."""
        now = datetime.now(timezone.utc)
        stmt = (
            dialect_insert(self.session, AttendanceRecord)
            .values(**snapshot_values(snapshot), created_at=now, updated_at=now)
            .on_conflict_do_nothing(
                index_elements=["user_id", "shift_date"]
            )
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def update_where(self, record_id: int, values: dict[str, Any], *guards) -> bool:
        """Apply *values* to one record only while every guard still holds."""
        values = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in values.items()
        }
        values.setdefault("updated_at", datetime.now(timezone.utc))
        result = await self.session.execute(
            update(AttendanceRecord)
            .where(AttendanceRecord.id == record_id, *guards)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0
