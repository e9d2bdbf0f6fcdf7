"""
Schedule lookup — the active schedule version for a user on a date.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.domain.enums import ShiftType
from attendance_engine.domain.snapshots import ScheduleSnapshot
from attendance_engine.models.schedule import Schedule


def schedule_snapshot(row: Schedule) -> ScheduleSnapshot:
    return ScheduleSnapshot(
        schedule_id=row.id,
        user_id=row.user_id,
        shift_type=ShiftType(row.shift_type),
        scheduled_time_in=row.scheduled_time_in,
        scheduled_time_out=row.scheduled_time_out,
        grace_period_minutes=row.grace_period_minutes,
        work_days=tuple(row.work_days or ()),
        site_id=row.site_id,
    )


def _covering(on_date: date):
    return (
        Schedule.is_active.is_(True),
        Schedule.effective_date <= on_date,
        or_(Schedule.end_date.is_(None), Schedule.end_date >= on_date),
    )


class ScheduleRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def active_for(self, user_id: int, on_date: date) -> ScheduleSnapshot | None:
        result = await self.session.execute(
            select(Schedule)
            .where(Schedule.user_id == user_id, *_covering(on_date))
            .order_by(Schedule.effective_date.desc(), Schedule.id.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return schedule_snapshot(row) if row is not None else None

    async def covering(self, on_date: date) -> list[ScheduleSnapshot]:
        """Latest active schedule of every user that has one on *on_date*."""
        result = await self.session.execute(
            select(Schedule)
            .where(*_covering(on_date))
            .order_by(Schedule.user_id, Schedule.effective_date.desc(), Schedule.id.desc())
        )
        latest: dict[int, ScheduleSnapshot] = {}
        for row in result.scalars():
            latest.setdefault(row.user_id, schedule_snapshot(row))
        return list(latest.values())
