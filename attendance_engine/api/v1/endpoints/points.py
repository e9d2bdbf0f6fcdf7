"""
Point ledger endpoints — listing, totals, excusal and expiration runs.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.api.v1.deps import get_acting_user_id, get_db, get_engine_config
from attendance_engine.core.config import EngineConfig
from attendance_engine.repositories.points import PointRepository
from attendance_engine.schemas.points import (ExcuseRequest, GbroBatchResponse,
                                              GbroRequest, PointRead,
                                              PointTotalResponse, SweepSummary)
from attendance_engine.services.expiration import ExpirationService
from attendance_engine.services.reports import point_total

router = APIRouter(prefix="/points", tags=["points"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[PointRead])
async def list_points(
    user_id: int = Query(...),
    include_inactive: bool = Query(default=False),
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[PointRead]:
    """A user's point entries; by default only those still counting."""
    entries = await PointRepository(db).for_user(
        user_id, include_inactive=include_inactive, limit=limit, offset=offset
    )
    return [PointRead.model_validate(e) for e in entries]


@router.get("/users/{user_id}/total", response_model=PointTotalResponse)
async def user_total(user_id: int, db: AsyncSession = Depends(get_db)) -> PointTotalResponse:
    return await point_total(db, user_id)


@router.post("/{point_id}/excuse", response_model=PointRead)
async def excuse_point(
    point_id: int,
    body: ExcuseRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> PointRead:
    entry = await ExpirationService(db, config).excuse(point_id, actor_id, body.reason)
    return PointRead.model_validate(entry)


@router.post("/gbro", response_model=GbroBatchResponse)
async def apply_gbro(
    body: GbroRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    actor_id: int = Depends(get_acting_user_id),
) -> GbroBatchResponse:
    """Expire the GBRO-eligible points of the listed users under one batch id."""
    return await ExpirationService(db, config).apply_gbro(body.user_ids, actor_id, body.reason)


@router.post("/expire", response_model=SweepSummary)
async def run_sro_sweep(
    run_date: date | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
    _actor_id: int = Depends(get_acting_user_id),
) -> SweepSummary:
    return await ExpirationService(db, config).run_sro_sweep(run_date)
