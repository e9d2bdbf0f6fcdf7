"""
Scan ledger persistence — append, read back per shift, purge.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.domain.enums import ScanRole
from attendance_engine.domain.snapshots import ScanSnapshot
from attendance_engine.models.scan import ScanRecord

logger = logging.getLogger(__name__)


class ScanRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_many(self, rows: list[dict[str, Any]]) -> int:
        """Bulk insert resolved scans; returns how many rows were written."""
        if not rows:
            return 0
        await self.session.execute(insert(ScanRecord), rows)
        return len(rows)

    async def for_shift(self, user_id: int, shift_date: date) -> list[ScanSnapshot]:
        """Every scan already resolved to *(user_id, shift_date)*, oldest first."""
        result = await self.session.execute(
            select(ScanRecord.scanned_at, ScanRecord.site_id, ScanRecord.role)
            .where(ScanRecord.user_id == user_id, ScanRecord.shift_date == shift_date)
            .order_by(ScanRecord.scanned_at, ScanRecord.id)
        )
        return [
            ScanSnapshot(scanned_at=scanned_at, site_id=site_id, role=ScanRole(role))
            for scanned_at, site_id, role in result.all()
        ]

    async def purge_before(self, cutoff: date) -> int:
        result = await self.session.execute(
            delete(ScanRecord).where(ScanRecord.scan_date < cutoff)
        )
        purged = result.rowcount or 0
        logger.info("Purged %d scan(s) dated before %s", purged, cutoff)
        return purged
