"""Notification schema for state-transition events broadcast to observers."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class NotificationEvent(str, Enum):
    POST_ANALYZED = "post_analyzed"
    VERIFICATION_COMPLETE = "verification_complete"
    VERIFICATION_FAILED = "verification_failed"
    RESPONSE_READY = "response_ready"
    RESPONSE_POSTED = "response_posted"
    RESPONSE_FAILED = "response_failed"
    JOB_FAILED = "job_failed"


class Notification(BaseModel):
    """Typed event carrying the affected entity id and a human-readable message.

    Delivery is at-most-once and best-effort; observers must tolerate gaps.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    event: NotificationEvent
    entity_id: Optional[str] = Field(default=None)
    message: str = Field(default="")
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
