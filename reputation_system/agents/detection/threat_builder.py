"""Threat Builder: turns a triggered DetectedPost into a persisted Threat.

Scoring is deterministic:

    threat_score = min(100, |polarity| * 60 + virality * 0.8 + (keyword match ? 10 : 0))

Severity bands: >= 80 CRITICAL, >= 60 HIGH, >= 40 MEDIUM, else LOW.

Threat type priority rule:
    sentiment + keyword triggers together -> NEGATIVE_SENTIMENT
    virality trigger                      -> VIRAL_RISK
    anything else                         -> CRISIS

Usage:
    builder = ThreatBuilder(threat_store)
    threat, created = await builder.build(post, evaluation)
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from reputation_system.data_management.schemas import (
    DetectedPost,
    Monitor,
    Threat,
    ThreatSeverity,
    ThreatType,
)
from reputation_system.data_management.threat_store import ThreatStore


@dataclass
class TriggerEvaluation:
    """Outcome of evaluating one post against one Monitor."""

    monitor: Monitor
    matched_keywords: list[str] = field(default_factory=list)
    sentiment_fired: bool = False
    virality_fired: bool = False
    threat_score: float = 0.0

    @property
    def keyword_fired(self) -> bool:
        return bool(self.matched_keywords)

    @property
    def triggered(self) -> bool:
        return self.sentiment_fired or self.virality_fired or self.keyword_fired

    @property
    def flag_reason(self) -> Optional[str]:
        if self.sentiment_fired:
            return "Triggered by sentiment"
        if self.virality_fired:
            return "Triggered by virality"
        if self.keyword_fired:
            return "Triggered by keywords"
        return None


def compute_threat_score(polarity: float, virality: float, keyword_match: bool) -> float:
    score = abs(polarity) * 60 + virality * 0.8 + (10 if keyword_match else 0)
    return min(100.0, score)


def severity_for_score(score: float) -> ThreatSeverity:
    if score >= 80:
        return ThreatSeverity.CRITICAL
    if score >= 60:
        return ThreatSeverity.HIGH
    if score >= 40:
        return ThreatSeverity.MEDIUM
    return ThreatSeverity.LOW


def classify_threat_type(evaluation: TriggerEvaluation) -> ThreatType:
    if evaluation.sentiment_fired and evaluation.keyword_fired:
        return ThreatType.NEGATIVE_SENTIMENT
    if evaluation.virality_fired:
        return ThreatType.VIRAL_RISK
    return ThreatType.CRISIS


class ThreatBuilder:
    """Creates or refreshes the single Threat owned by a DetectedPost.

    A new Threat starts NEW. Re-triggering the same post refreshes the
    scoring fields and keeps whatever lifecycle status and verification
    the Threat already reached.
    """

    def __init__(self, threat_store: ThreatStore) -> None:
        self._threat_store = threat_store
        self._logger = structlog.get_logger().bind(component="ThreatBuilder")

    async def build(
        self,
        post: DetectedPost,
        evaluation: TriggerEvaluation,
    ) -> tuple[Threat, bool]:
        score = compute_threat_score(
            post.sentiment_polarity,
            post.virality_score,
            evaluation.keyword_fired,
        )

        reasons = [
            *evaluation.matched_keywords,
            f"{post.emotional_tone} tone detected",
            post.sentiment_summary,
        ]

        threat = Threat(
            detected_post_id=post.id,
            brand_id=post.brand_id,
            monitor_id=evaluation.monitor.id,
            severity=severity_for_score(score),
            threat_type=classify_threat_type(evaluation),
            threat_score=score,
            sentiment_impact=min(100.0, abs(post.sentiment_polarity) * 100),
            virality_impact=post.virality_score,
            analysis_reasons=reasons,
            predicted_reach=post.view_count,
        )

        stored, created = await self._threat_store.upsert_threat(threat)

        self._logger.info(
            "threat_built",
            threat_id=stored.id,
            detected_post_id=post.id,
            severity=stored.severity.value,
            threat_type=stored.threat_type.value,
            threat_score=round(score, 2),
            status=stored.status.value,
            created=created,
        )
        return stored, created
