"""Threat schemas: severity, lifecycle, and the verification outcome.

A Threat is derived from exactly one DetectedPost and is keyed by its
detected_post_id. Verification fields live in a single nested
VerificationOutcome so they are either all absent (unverified) or all
present together; a partial verification cannot be represented.

Lifecycle:
    NEW -> VERIFYING -> RESPONDED | RESOLVED
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ThreatSeverity(str, Enum):
    """Severity band derived from the threat score.

    >= 80 CRITICAL, >= 60 HIGH, >= 40 MEDIUM, else LOW.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ThreatType(str, Enum):
    """Why a post triggered, by priority rule.

    NEGATIVE_SENTIMENT: sentiment and keyword triggers fired together.
    VIRAL_RISK: virality fired (without the sentiment+keyword pair).
    CRISIS: anything else.
    """

    NEGATIVE_SENTIMENT = "NEGATIVE_SENTIMENT"
    VIRAL_RISK = "VIRAL_RISK"
    CRISIS = "CRISIS"


class ThreatStatus(str, Enum):
    """Lifecycle status of a Threat."""

    NEW = "NEW"
    VERIFYING = "VERIFYING"
    RESPONDED = "RESPONDED"
    RESOLVED = "RESOLVED"


class Verdict(str, Enum):
    """Outcome of claim verification against the evidence corpus."""

    TRUE = "TRUE"
    FALSE = "FALSE"
    UNVERIFIED = "UNVERIFIED"


class VerificationOutcome(BaseModel):
    """Complete verification result recorded onto a Threat.

    evidence_ids holds every evidence item retrieved for the claim, not only
    the credible subset, in retrieval order.
    """

    status: Verdict = Field(..., description="Verdict for the claim")
    confidence: float = Field(..., ge=0.0, le=100.0, description="Confidence 0-100")
    summary: str = Field(..., description="Human-readable explanation")
    evidence_ids: list[str] = Field(default_factory=list)
    verified_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def decision_key(self) -> tuple:
        """Fields that must reproduce exactly on re-verification under stable evidence."""
        return (self.status, self.confidence, self.summary, tuple(self.evidence_ids))

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "FALSE",
                    "confidence": 80,
                    "summary": "No trusted outlet confirms this claim; appears unsubstantiated.",
                    "evidence_ids": ["ev-3f2a", "ev-91bc"],
                }
            ]
        }
    }


class Threat(BaseModel):
    """Reputational incident derived from one DetectedPost."""

    id: str = Field(default_factory=lambda: f"threat-{uuid.uuid4().hex[:12]}")
    detected_post_id: str = Field(..., description="Owning DetectedPost (unique)")
    brand_id: str = Field(...)
    monitor_id: str = Field(...)

    severity: ThreatSeverity = Field(...)
    threat_type: ThreatType = Field(...)
    threat_score: float = Field(..., ge=0.0, le=100.0)
    sentiment_impact: float = Field(default=0.0, ge=0.0, le=100.0)
    virality_impact: float = Field(default=0.0, ge=0.0, le=100.0)
    analysis_reasons: list[str] = Field(default_factory=list)
    predicted_reach: int = Field(default=0, ge=0)

    status: ThreatStatus = Field(default=ThreatStatus.NEW)
    verification: Optional[VerificationOutcome] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def verification_status(self) -> Optional[Verdict]:
        return self.verification.status if self.verification else None

    @property
    def is_verified(self) -> bool:
        return self.verification is not None

    @field_validator("analysis_reasons")
    @classmethod
    def drop_blank_reasons(cls, v: list[str]) -> list[str]:
        return [r for r in v if r and r.strip()]
