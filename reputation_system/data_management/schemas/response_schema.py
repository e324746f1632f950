"""Response schema: the corrective artifact for one Threat.

Keyed by threat_id. Status starts PENDING and only moves to POSTED or
FAILED after an explicit publish attempt.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ResponseStatus(str, Enum):
    PENDING = "PENDING"
    POSTED = "POSTED"
    FAILED = "FAILED"


class Response(BaseModel):
    """Corrective reply synthesized for a FALSE or UNVERIFIED claim."""

    id: str = Field(default_factory=lambda: f"resp-{uuid.uuid4().hex[:12]}")
    threat_id: str = Field(..., description="Owning Threat (unique)")
    platform: str = Field(..., description="Platform the reply targets")
    content: str = Field(..., min_length=1, description="Final reply text")
    sources_used: list[str] = Field(default_factory=list, description="Cited evidence URLs")
    confidence: float = Field(..., ge=0.0, le=100.0, description="Inherited from verification")
    status: ResponseStatus = Field(default=ResponseStatus.PENDING)
    auto_generated: bool = Field(default=True)
    posted_at: Optional[datetime] = Field(default=None)
    last_error: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
