"""Brand and Monitor schemas: per-brand trigger policy.

Monitors are read-only configuration for the pipeline. A monitor defines
which posts are relevant (keywords minus exclusions) and which thresholds
turn a relevant post into a Threat.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class VerificationMode(str, Enum):
    """Whether corrective responses need human approval.

    MANUAL: responses wait as PENDING for an operator to publish.
    AUTOPILOT: responses are published right after synthesis.
    """

    MANUAL = "MANUAL"
    AUTOPILOT = "AUTOPILOT"


class Brand(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    verification_mode: VerificationMode = Field(default=VerificationMode.MANUAL)

    @property
    def autopost(self) -> bool:
        return self.verification_mode == VerificationMode.AUTOPILOT


class Monitor(BaseModel):
    """Trigger policy for one brand.

    sentiment_threshold: polarity at or below which the sentiment trigger fires.
    virality_threshold: virality score at or above which the virality trigger fires.
    engagement_threshold: minimum likes+retweets+replies before virality counts,
        so a post with one view and one like does not read as viral.
    """

    id: str = Field(..., min_length=1)
    brand_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    keywords: list[str] = Field(default_factory=list)
    exclude_keywords: list[str] = Field(default_factory=list)
    sentiment_threshold: float = Field(default=-0.3, ge=-1.0, le=1.0)
    virality_threshold: float = Field(default=60.0, ge=0.0, le=100.0)
    engagement_threshold: int = Field(default=0, ge=0)
    is_active: bool = Field(default=True)

    @field_validator("keywords", "exclude_keywords")
    @classmethod
    def strip_keywords(cls, v: list[str]) -> list[str]:
        return [k.strip() for k in v if k and k.strip()]

    def matched_keywords(self, content: str) -> list[str]:
        """Keywords appearing in content, case-insensitive substring match."""
        lower = content.lower()
        return [k for k in self.keywords if k.lower() in lower]

    def is_excluded(self, content: str) -> bool:
        lower = content.lower()
        return any(k.lower() in lower for k in self.exclude_keywords)
