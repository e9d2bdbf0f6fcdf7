"""Read-side aggregates: attendance status counts and point totals."""

from __future__ import annotations

from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.repositories.attendance import AttendanceRepository
from attendance_engine.repositories.points import PointRepository
from attendance_engine.schemas.attendance import AttendanceSummaryResponse
from attendance_engine.schemas.points import PointTotalResponse


async def attendance_summary(
    session: AsyncSession, start: date, end: date, user_id: int | None = None
) -> AttendanceSummaryResponse:
    records = AttendanceRepository(session)
    by_status = await records.status_counts(start, end, user_id)
    return AttendanceSummaryResponse(
        start=start,
        end=end,
        user_id=user_id,
        total_records=sum(by_status.values()),
        by_status=by_status,
        pending_verification=await records.pending_verification_count(start, end, user_id),
    )


async def point_total(session: AsyncSession, user_id: int) -> PointTotalResponse:
    active_points, active_count, expired_count, excused_count = await PointRepository(
        session
    ).totals(user_id)
    return PointTotalResponse(
        user_id=user_id,
        active_points=active_points,
        active_count=active_count,
        expired_count=expired_count,
        excused_count=excused_count,
    )
