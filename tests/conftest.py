"""
Shared test fixtures for the attendance engine test suite.

Every test gets a fresh in-memory SQLite database (aiosqlite + StaticPool)
wired into the app through the ``get_db`` override.
"""

import os
import sys
from collections.abc import AsyncGenerator
from datetime import date, time

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,
                                    create_async_engine)
from sqlalchemy.pool import StaticPool

from attendance_engine.api.v1.deps import get_db
from attendance_engine.core.config import EngineConfig
from attendance_engine.db.base import Base
from attendance_engine.main import app
from attendance_engine.models.schedule import Schedule

ACTOR_HEADERS = {"X-Acting-User-Id": "900"}


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create all tables on a fresh engine and route the app to it."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await test_engine.dispose()


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries and service calls."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


# ── Schedule helpers ────────────────────────────────────────────────
async def add_schedule(
    session: AsyncSession,
    user_id: int,
    time_in: time,
    time_out: time,
    *,
    shift_type: str = "morning",
    grace: int = 15,
    work_days: list[str] | None = None,
    effective: date = date(2025, 1, 1),
) -> Schedule:
    schedule = Schedule(
        user_id=user_id,
        shift_type=shift_type,
        scheduled_time_in=time_in,
        scheduled_time_out=time_out,
        grace_period_minutes=grace,
        work_days=work_days or [],
        effective_date=effective,
    )
    session.add(schedule)
    await session.commit()
    return schedule


@pytest.fixture
async def day_schedule(db_session) -> Schedule:
    """User 1 works 08:00 → 17:00 every day."""
    return await add_schedule(db_session, 1, time(8, 0), time(17, 0))


@pytest.fixture
async def night_schedule(db_session) -> Schedule:
    """User 2 works 22:00 → 07:00 every day."""
    return await add_schedule(db_session, 2, time(22, 0), time(7, 0), shift_type="night")
