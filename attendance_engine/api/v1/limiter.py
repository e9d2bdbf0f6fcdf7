"""
Rate limiter for the ingestion endpoint — keyed by client IP.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from attendance_engine.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
