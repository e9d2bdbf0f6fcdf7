"""
AttendanceRecord model — the canonical, reconciled unit per (user, shift date).

The unique constraint on ``(user_id, shift_date)`` is what the upsert targets;
records are merged in place and never hard-deleted.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, Index, Integer,
                        String, Time, UniqueConstraint)
from sqlalchemy.orm import relationship

from attendance_engine.db.base import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("user_id", "shift_date", name="uq_attendance_user_shift"),
        Index("ix_attendance_shift_status", "shift_date", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    shift_date: date = Column(Date, nullable=False)  # type: ignore[assignment]

    # Frozen copy of the schedule at creation time
    schedule_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    shift_type: str | None = Column(String(20), nullable=True)  # type: ignore[assignment]
    scheduled_time_in: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    scheduled_time_out: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    grace_period_minutes: int = Column(Integer, nullable=False, default=15)  # type: ignore[assignment]

    actual_time_in: datetime | None = Column(DateTime, nullable=True)  # type: ignore[assignment]
    actual_time_out: datetime | None = Column(DateTime, nullable=True)  # type: ignore[assignment]
    bio_in_site_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    bio_out_site_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]

    status: str = Column(String(30), nullable=False, default="ncns")  # type: ignore[assignment]
    secondary_status: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    tardy_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    undertime_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    review_reason: str | None = Column(String(255), nullable=True)  # type: ignore[assignment]
    # scan-quality notes for reviewers, recomputed on every scan merge
    warnings: list[str] = Column(JSON, nullable=False, default=lambda: [])  # type: ignore[assignment]
    scan_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]

    is_advised: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    is_set_home: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    admin_verified: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    is_partially_verified: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    verification_notes: str | None = Column(String(1000), nullable=True)  # type: ignore[assignment]
    verified_by: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    verified_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    points = relationship(
        "PointEntry",
        back_populates="attendance_record",
        order_by="PointEntry.id",
    )

    @property
    def verification_state(self) -> str:
        if not self.admin_verified:
            return "unverified"
        if self.is_partially_verified:
            return "partially_verified"
        return "verified"
