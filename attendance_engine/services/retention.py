"""Scan retention — raw scans are purged after the retention window."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core.config import EngineConfig
from attendance_engine.repositories.scans import ScanRepository

logger = logging.getLogger(__name__)


async def purge_expired_scans(
    session: AsyncSession, config: EngineConfig, today: date | None = None
) -> int:
    cutoff = (today or date.today()) - timedelta(days=config.scan_retention_days)
    purged = await ScanRepository(session).purge_before(cutoff)
    await session.commit()
    return purged
