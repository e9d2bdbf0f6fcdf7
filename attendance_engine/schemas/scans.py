"""Pydantic schemas for biometric upload ingestion."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

_UPLOAD_ID_RE = re.compile(r"^[A-Za-z0-9:_.-]{1,64}$")


def validate_upload_id(value: str) -> str:
    value = value.strip()
    if not _UPLOAD_ID_RE.match(value):
        raise ValueError("Upload id must be 1-64 chars (letters, digits, ':', '_', '.', '-')")
    return value


# ── Request ─────────────────────────────────────────────────────────
class ScanIn(BaseModel):
    # None when the device id could not be matched to an employee
    user_id: int | None = None
    site_id: int | None = None
    scanned_at: datetime

    @field_validator("scanned_at")
    @classmethod
    def _wall_clock(cls, v: datetime) -> datetime:
        # device timestamps are local wall-clock; an offset is dropped, not converted
        return v.replace(tzinfo=None) if v.tzinfo is not None else v


class UploadRequest(BaseModel):
    scans: list[ScanIn] = Field(default_factory=list, max_length=50_000)


# ── Response ────────────────────────────────────────────────────────
class IngestSummary(BaseModel):
    upload_id: str
    scans_received: int = 0
    scans_stored: int = 0
    scans_skipped: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_unchanged: int = 0
    errors: int = 0
    error_details: list[str] = Field(default_factory=list)
