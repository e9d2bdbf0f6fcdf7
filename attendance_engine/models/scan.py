"""
ScanRecord model — append-only ledger of raw biometric scans.

Rows are written once per upload and never updated.  ``shift_date`` and
``role`` are what the shift resolver produced at insert time; they are the
non-owning back-reference to the attendance record the scan fed.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, Index, Integer, String

from attendance_engine.db.base import Base


class ScanRecord(Base):
    __tablename__ = "scan_records"
    __table_args__ = (
        Index("ix_scan_user_scan_date", "user_id", "scan_date"),
        Index("ix_scan_user_shift_date", "user_id", "shift_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    site_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    scanned_at: datetime = Column(DateTime, nullable=False)  # type: ignore[assignment]  # device wall-clock time
    scan_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    upload_id: str = Column(String(64), nullable=False, index=True)  # type: ignore[assignment]
    shift_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    role: str = Column(String(10), nullable=False)  # type: ignore[assignment]
    # time_in | time_out
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
