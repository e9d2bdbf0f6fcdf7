"""
Schedule model — versioned shift assignment per employee.

Schedules are never deleted; a new version closes the previous one with an
``end_date``.  At most one schedule is active for a user on a given date.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, Index, Integer,
                        String, Time)

from attendance_engine.db.base import Base


class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (Index("ix_schedule_user_effective", "user_id", "effective_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    site_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    shift_type: str = Column(String(20), nullable=False, default="morning")  # type: ignore[assignment]
    # morning | afternoon | night | graveyard | utility_24h
    scheduled_time_in: time = Column(Time, nullable=False)  # type: ignore[assignment]
    scheduled_time_out: time = Column(Time, nullable=False)  # type: ignore[assignment]
    grace_period_minutes: int = Column(Integer, nullable=False, default=15)  # type: ignore[assignment]
    work_days: list[str] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    effective_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
