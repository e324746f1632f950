"""Post schemas: the ingestion event and the scored, persisted DetectedPost.

A DetectedPost is keyed by the composite natural key
(external_post_id, platform). Re-ingesting the same external post updates
metrics on the existing record instead of creating a duplicate.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class IncomingPost(BaseModel):
    """Post event delivered by the ingestion adapter.

    Engagement counters default to 0 when the stream omits them.
    """

    external_post_id: str = Field(..., min_length=1, description="Platform-native post ID")
    platform: str = Field(default="X_CLONE", description="Source platform identifier")
    content: str = Field(..., description="Post text")
    author_handle: str = Field(default="unknown", description="Author handle without @")
    author_id: Optional[str] = Field(default=None, description="Platform-native author ID")
    like_count: int = Field(default=0, ge=0)
    retweet_count: int = Field(default=0, ge=0)
    reply_count: int = Field(default=0, ge=0)
    view_count: int = Field(default=0, ge=0)
    posted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the post was published on the platform",
    )

    @property
    def total_engagement(self) -> int:
        return self.like_count + self.retweet_count + self.reply_count

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.external_post_id, self.platform)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "external_post_id": "1849301",
                    "platform": "X_CLONE",
                    "content": "Zenith Bank app is down nationwide, nobody can transfer",
                    "author_handle": "angry_customer",
                    "like_count": 120,
                    "retweet_count": 45,
                    "reply_count": 30,
                    "view_count": 900,
                }
            ]
        }
    }


class DetectedPost(BaseModel):
    """Observed external post with computed sentiment and virality.

    Owned by the Scoring Engine. The flag_reason names the first trigger
    that fired, in priority order sentiment, virality, keywords.
    """

    id: str = Field(default_factory=lambda: f"post-{uuid.uuid4().hex[:12]}")
    external_post_id: str = Field(..., description="Reply target on the platform")
    platform: str = Field(...)
    monitor_id: str = Field(..., description="Monitor whose policy owns this post")
    brand_id: str = Field(..., description="Brand the post mentions")
    content: str = Field(...)
    author_handle: str = Field(default="unknown")
    author_id: Optional[str] = Field(default=None)

    like_count: int = Field(default=0, ge=0)
    retweet_count: int = Field(default=0, ge=0)
    reply_count: int = Field(default=0, ge=0)
    view_count: int = Field(default=0, ge=0)
    engagement_rate: float = Field(default=0.0, ge=0.0)

    sentiment_polarity: float = Field(default=0.0, ge=-1.0, le=1.0)
    emotional_tone: str = Field(default="neutral")
    sentiment_summary: str = Field(default="")
    virality_score: float = Field(default=0.0, ge=0.0, le=100.0)
    matched_keywords: list[str] = Field(default_factory=list)

    is_flagged: bool = Field(default=False)
    flag_reason: Optional[str] = Field(default=None)

    posted_at: Optional[datetime] = Field(default=None)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.external_post_id, self.platform)
