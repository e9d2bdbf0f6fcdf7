"""
FastAPI dependencies — database session, engine config and acting user.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core.config import EngineConfig
from attendance_engine.db.session import async_session_factory


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Engine config ───────────────────────────────────────────────────
@lru_cache
def get_engine_config() -> EngineConfig:
    return EngineConfig.from_settings()


# ── Acting user ─────────────────────────────────────────────────────
async def get_acting_user_id(
    x_acting_user_id: int | None = Header(default=None),
) -> int:
    """Identity of the reviewer, used only for audit attribution.

    Authentication happens upstream; write endpoints just refuse to run
    without knowing who is acting.
    """
    if x_acting_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Acting-User-Id header is required",
        )
    return x_acting_user_id
