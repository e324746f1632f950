"""Evidence schema for the third-party document corpus.

Evidence items are collected by the external brand-intelligence scraper and
are immutable from the pipeline's point of view. The credibility score
follows the scraper's scale: 0.5 baseline, trusted outlets pushed to 0.8+.
"""

import hashlib
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, model_validator


class EvidenceItem(BaseModel):
    """Single timestamped, credibility-scored document about a brand."""

    id: str = Field(default="", description="Stable ID, derived from the URL when omitted")
    brand_id: str = Field(..., description="Brand the document was collected for")
    url: str = Field(..., min_length=1, description="Canonical document URL (unique)")
    title: Optional[str] = Field(default=None)
    content: str = Field(default="")
    published_at: Optional[datetime] = Field(default=None)
    credibility: float = Field(default=0.5, ge=0.0, le=1.0)
    collected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def derive_id(cls, data: dict) -> dict:
        """Derive a short content-addressed ID from the URL if none was given."""
        if isinstance(data, dict) and not data.get("id") and data.get("url"):
            digest = hashlib.sha256(data["url"].encode("utf-8")).hexdigest()
            data = {**data, "id": f"ev-{digest[:12]}"}
        return data

    @property
    def hostname(self) -> str:
        host = urlparse(self.url).netloc.lower()
        return host[4:] if host.startswith("www.") else host

    @property
    def headline(self) -> str:
        return self.title or self.url

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "brand_id": "brand-zenith",
                    "url": "https://www.reuters.com/business/zenith-bank-q3",
                    "title": "Zenith Bank reports steady digital uptime",
                    "content": "Zenith Bank said its mobile app served record volumes...",
                    "published_at": "2026-10-18T09:00:00Z",
                    "credibility": 0.9,
                }
            ]
        }
    }
