"""
Structured audit events for status changes and point mutations.

Every event is written as one JSON line to the ``attendance_engine.audit``
logger and handed to any in-process subscriber (the external activity log
adapter registers one at startup).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger("attendance_engine.audit")

AuditSubscriber = Callable[["AuditEvent"], None]

_subscribers: list[AuditSubscriber] = []


class AuditEvent(BaseModel):
    action: str
    entity: str  # attendance_record | point_entry
    entity_id: int | None = None
    actor_id: int | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    reason: str | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def subscribe(callback: AuditSubscriber) -> Callable[[], None]:
    """Register *callback*; returns a function that removes it again."""
    _subscribers.append(callback)

    def _unsubscribe() -> None:
        if callback in _subscribers:
            _subscribers.remove(callback)

    return _unsubscribe


def emit(
    action: str,
    entity: str,
    entity_id: int | None,
    *,
    actor_id: int | None = None,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    reason: str | None = None,
) -> AuditEvent:
    event = AuditEvent(
        action=action,
        entity=entity,
        entity_id=entity_id,
        actor_id=actor_id,
        before=before,
        after=after,
        reason=reason,
    )
    logger.info("%s", event.model_dump_json())
    for callback in list(_subscribers):
        try:
            callback(event)
        except Exception:
            logger.exception("Audit subscriber %r failed", callback)
    return event
