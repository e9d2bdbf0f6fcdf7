"""
Upload ingestion endpoint — one biometric upload in, one summary out.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.api.v1.deps import get_db, get_engine_config
from attendance_engine.api.v1.limiter import limiter
from attendance_engine.core.config import EngineConfig, settings
from attendance_engine.schemas.scans import (IngestSummary, UploadRequest,
                                             validate_upload_id)
from attendance_engine.services.ingestion import ingest_upload

router = APIRouter(tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post("/uploads/{upload_id}/scans", response_model=IngestSummary)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def upload_scans(
    request: Request,
    upload_id: str,
    payload: UploadRequest,
    db: AsyncSession = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> IngestSummary:
    """Store the scans of one upload and reconcile every affected shift."""
    try:
        upload_id = validate_upload_id(upload_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    logger.info("Upload %s received with %d scan(s)", upload_id, len(payload.scans))
    return await ingest_upload(db, upload_id, payload.scans, config)
