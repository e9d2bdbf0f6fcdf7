"""
PointEntry model — disciplinary point ledger.

Entries are never deleted: a replaced outcome is ``voided``, expiration and
excusal are flags.  The partial unique index keeps at most one *active* entry
per (record, point type) even when two workers sync the same record.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (Boolean, Column, Date, DateTime, ForeignKey, Index,
                        Integer, Numeric, String, text)
from sqlalchemy.orm import relationship

from attendance_engine.db.base import Base


class PointEntry(Base):
    __tablename__ = "point_entries"
    __table_args__ = (
        Index("ix_point_user_expired_excused", "user_id", "is_expired", "is_excused"),
        Index(
            "uq_point_active_record_type",
            "attendance_record_id",
            "point_type",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    attendance_record_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("attendance_records.id"), nullable=False, index=True
    )
    shift_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    point_type: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    # tardy | undertime | half_day_absence | whole_day_absence
    points: Decimal = Column(Numeric(4, 2), nullable=False)  # type: ignore[assignment]
    status: str = Column(String(10), nullable=False, default="active")  # type: ignore[assignment]
    source_status: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    tardy_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    undertime_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    violation_details: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    is_advised: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]

    expires_at: date = Column(Date, nullable=False)  # type: ignore[assignment]
    expiration_type: str = Column(String(10), nullable=False, default="sro")  # type: ignore[assignment]
    is_expired: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    expired_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    is_excused: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    excused_by: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    excused_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    excuse_reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]

    eligible_for_gbro: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    gbro_batch_id: str | None = Column(String(64), nullable=True, index=True)  # type: ignore[assignment]
    gbro_applied_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    voided_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    attendance_record = relationship("AttendanceRecord", back_populates="points")
