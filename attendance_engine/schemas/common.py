"""Shared response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BatchSummary(BaseModel):
    """Outcome of a batch operation; one entry failing never aborts the rest."""

    requested: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    details: dict[int, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    db: bool
    redis: bool
