"""Scoring Engine: sentiment, virality and trigger evaluation for incoming posts.

For each post the engine:
1. Computes sentiment once (oracle, with VADER fallback)
2. Computes virality from engagement counters
3. Evaluates every candidate Monitor's triggers
4. Upserts the DetectedPost under the strongest triggering Monitor
5. On trigger, builds the Threat and hands it to the on_threat callback
   (the orchestrator's verification enqueue)

Virality:
    engagement_rate = (likes + retweets + replies) / views   (0 when views == 0)
    virality = min(100, engagement_rate * 100 * (1 + retweets * retweet_weight))

Trigger (per Monitor):
    polarity <= sentiment_threshold
    OR (virality >= virality_threshold AND engagement >= engagement_threshold)
    OR any keyword appears in the content

Usage:
    engine = ScoringEngine(...)
    result = await engine.process_post(incoming_post)
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.agents.detection.sentiment import SentimentAnalyzer, SentimentReading
from reputation_system.agents.detection.threat_builder import (
    ThreatBuilder,
    TriggerEvaluation,
    compute_threat_score,
)
from reputation_system.config.settings import settings
from reputation_system.data_management.monitor_store import BrandStore, MonitorStore
from reputation_system.data_management.post_store import PostStore
from reputation_system.data_management.schemas import (
    DetectedPost,
    IncomingPost,
    Monitor,
    NotificationEvent,
    Threat,
)


ThreatCallback = Callable[[Threat, bool], Awaitable[Any]]


@dataclass
class ScoringResult:
    """What process_post did with one incoming post."""

    post: Optional[DetectedPost] = None
    created: bool = False
    evaluation: Optional[TriggerEvaluation] = None
    threat: Optional[Threat] = None
    autopost: bool = False

    @property
    def triggered(self) -> bool:
        return self.evaluation is not None and self.evaluation.triggered


def compute_engagement_rate(post: IncomingPost) -> float:
    if post.view_count <= 0:
        return 0.0
    return post.total_engagement / post.view_count


def compute_virality(post: IncomingPost, retweet_weight: float) -> float:
    rate = compute_engagement_rate(post)
    return min(100.0, rate * 100 * (1 + post.retweet_count * retweet_weight))


class ScoringEngine:
    """Scores posts against brand Monitors and raises Threats.

    Oracle failures degrade to the lexicon scorer; nothing in this component
    retries a network call.
    """

    def __init__(
        self,
        post_store: PostStore,
        monitor_store: MonitorStore,
        brand_store: BrandStore,
        threat_builder: ThreatBuilder,
        sentiment_analyzer: SentimentAnalyzer,
        notifications: NotificationChannel,
        on_threat: Optional[ThreatCallback] = None,
        retweet_weight: Optional[float] = None,
    ) -> None:
        self._post_store = post_store
        self._monitor_store = monitor_store
        self._brand_store = brand_store
        self._threat_builder = threat_builder
        self._sentiment = sentiment_analyzer
        self._notifications = notifications
        self.on_threat = on_threat
        self._retweet_weight = (
            retweet_weight if retweet_weight is not None else settings.retweet_weight
        )
        self._logger = structlog.get_logger().bind(component="ScoringEngine")

    async def _candidate_monitors(
        self,
        post: IncomingPost,
        monitors: Optional[list[Monitor]],
    ) -> list[Monitor]:
        """
        Monitors a post is evaluated against.

        With no explicit monitor set, a monitor is relevant only when one of
        its keywords appears in the post. Inactive monitors, monitors of an
        unknown brand and monitors whose exclusion keywords appear are skipped.
        """
        if monitors is None:
            monitors = [
                m for m in await self._monitor_store.list_active()
                if m.matched_keywords(post.content)
            ]

        candidates = []
        for monitor in monitors:
            if not monitor.is_active or monitor.is_excluded(post.content):
                continue
            if await self._brand_store.get_brand(monitor.brand_id) is None:
                self._logger.warning(
                    "monitor_brand_missing",
                    monitor_id=monitor.id,
                    brand_id=monitor.brand_id,
                )
                continue
            candidates.append(monitor)
        return candidates

    def evaluate(
        self,
        post: IncomingPost,
        monitor: Monitor,
        sentiment: SentimentReading,
        virality: float,
    ) -> TriggerEvaluation:
        """Evaluate one Monitor's triggers for a scored post."""
        matched = monitor.matched_keywords(post.content)
        evaluation = TriggerEvaluation(
            monitor=monitor,
            matched_keywords=matched,
            sentiment_fired=sentiment.polarity <= monitor.sentiment_threshold,
            virality_fired=(
                virality >= monitor.virality_threshold
                and post.total_engagement >= monitor.engagement_threshold
            ),
        )
        evaluation.threat_score = compute_threat_score(
            sentiment.polarity, virality, evaluation.keyword_fired
        )
        return evaluation

    @staticmethod
    def _select_owner(evaluations: list[TriggerEvaluation]) -> TriggerEvaluation:
        """Strongest triggering evaluation; the first one if none triggers."""
        triggering = [e for e in evaluations if e.triggered]
        if not triggering:
            return evaluations[0]
        # max() keeps the first of equal scores
        return max(triggering, key=lambda e: e.threat_score)

    async def process_post(
        self,
        post: IncomingPost,
        monitors: Optional[list[Monitor]] = None,
    ) -> ScoringResult:
        """
        Score one incoming post and raise a Threat if it triggers.

        Args:
            post: Post event from the ingestion adapter
            monitors: Explicit monitor set (e.g. one brand's); all active
                keyword-relevant monitors when None

        Returns:
            ScoringResult describing the stored post and any Threat
        """
        candidates = await self._candidate_monitors(post, monitors)
        if not candidates:
            self._logger.debug(
                "post_not_relevant",
                external_post_id=post.external_post_id,
                platform=post.platform,
            )
            return ScoringResult()

        sentiment = await self._sentiment.analyze(post.content)
        engagement_rate = compute_engagement_rate(post)
        virality = compute_virality(post, self._retweet_weight)

        evaluations = [self.evaluate(post, m, sentiment, virality) for m in candidates]
        owner = self._select_owner(evaluations)

        detected = DetectedPost(
            external_post_id=post.external_post_id,
            platform=post.platform,
            monitor_id=owner.monitor.id,
            brand_id=owner.monitor.brand_id,
            content=post.content,
            author_handle=post.author_handle,
            author_id=post.author_id,
            like_count=post.like_count,
            retweet_count=post.retweet_count,
            reply_count=post.reply_count,
            view_count=post.view_count,
            engagement_rate=engagement_rate,
            sentiment_polarity=sentiment.polarity,
            emotional_tone=sentiment.tone,
            sentiment_summary=sentiment.summary,
            virality_score=virality,
            matched_keywords=owner.matched_keywords,
            is_flagged=owner.triggered,
            flag_reason=owner.flag_reason,
            posted_at=post.posted_at,
        )
        stored, created = await self._post_store.upsert_post(detected)

        result = ScoringResult(post=stored, created=created, evaluation=owner)

        self._logger.info(
            "post_scored",
            post_id=stored.id,
            monitor_id=owner.monitor.id,
            polarity=round(sentiment.polarity, 3),
            sentiment_source=sentiment.source,
            virality=round(virality, 2),
            keywords=len(owner.matched_keywords),
            triggered=owner.triggered,
        )

        if owner.triggered:
            threat, _ = await self._threat_builder.build(stored, owner)
            brand = await self._brand_store.get_brand(owner.monitor.brand_id)
            result.threat = threat
            result.autopost = bool(brand and brand.autopost)

        await self._notifications.emit(
            NotificationEvent.POST_ANALYZED,
            stored.id,
            (
                f"Post by @{stored.author_handle} flagged: {owner.flag_reason}"
                if owner.triggered
                else f"Post by @{stored.author_handle} analyzed, no trigger"
            ),
            threat_id=result.threat.id if result.threat else None,
            virality=round(virality, 2),
            polarity=round(sentiment.polarity, 3),
        )

        if result.threat is not None and self.on_threat is not None:
            await self.on_threat(result.threat, result.autopost)

        return result
