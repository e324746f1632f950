"""Tests for the Scoring Engine.

Tests cover:
- Engagement rate and virality arithmetic
- Candidate monitor selection (keywords, exclusions, unknown brands)
- Trigger evaluation and owner selection
- Threat creation, on_threat hand-off and autopost from the brand mode
- Re-ingestion of the same external post
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.agents.detection.scoring_engine import (
    ScoringEngine,
    compute_engagement_rate,
    compute_virality,
)
from reputation_system.agents.detection.sentiment import SentimentAnalyzer
from reputation_system.agents.detection.threat_builder import ThreatBuilder
from reputation_system.data_management import BrandStore, MonitorStore, PostStore, ThreatStore
from reputation_system.data_management.schemas import (
    Brand,
    IncomingPost,
    Monitor,
    NotificationEvent,
    ThreatType,
    VerificationMode,
)


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def stores():
    brands = BrandStore()
    await brands.save_brand(Brand(id="brand-1", name="Zenith Bank"))
    await brands.save_brand(
        Brand(id="brand-2", name="Acme Air", verification_mode=VerificationMode.AUTOPILOT)
    )
    return {
        "posts": PostStore(),
        "threats": ThreatStore(),
        "monitors": MonitorStore(),
        "brands": brands,
    }


def build_engine(stores, oracle, on_threat=None, channel=None) -> ScoringEngine:
    return ScoringEngine(
        post_store=stores["posts"],
        monitor_store=stores["monitors"],
        brand_store=stores["brands"],
        threat_builder=ThreatBuilder(stores["threats"]),
        sentiment_analyzer=SentimentAnalyzer(oracle),
        notifications=channel or NotificationChannel(),
        on_threat=on_threat,
        retweet_weight=0.5,
    )


def angry(make_oracle):
    return make_oracle(sentiment={"sentimentScore": -0.8, "tone": "anger", "summary": "Claims outage"})


def happy(make_oracle):
    return make_oracle(sentiment={"sentimentScore": 0.6, "tone": "positive", "summary": "Praise"})


def post(content: str = "Zenith outage again, nobody can log in", **counters) -> IncomingPost:
    return IncomingPost(external_post_id="ext-1", content=content, author_handle="critic", **counters)


# ── Virality ──────────────────────────────────────────────────────────────


class TestVirality:
    def test_engagement_rate(self):
        p = post(like_count=10, retweet_count=2, reply_count=3, view_count=100)
        assert compute_engagement_rate(p) == pytest.approx(0.15)

    def test_zero_views(self):
        p = post(like_count=10, view_count=0)
        assert compute_engagement_rate(p) == 0.0
        assert compute_virality(p, 0.5) == 0.0

    def test_retweets_amplify(self):
        p = post(like_count=10, retweet_count=2, reply_count=3, view_count=100)
        assert compute_virality(p, 0.5) == pytest.approx(30.0)

    def test_capped_at_100(self):
        p = post(like_count=500, retweet_count=200, view_count=1000)
        assert compute_virality(p, 0.5) == 100.0


# ── Candidate monitors ────────────────────────────────────────────────────


class TestCandidates:
    @pytest.mark.asyncio
    async def test_post_without_relevant_monitor_is_ignored(self, stores, make_oracle):
        await stores["monitors"].save_monitor(Monitor(id="m1", brand_id="brand-1", keywords=["refund"]))
        engine = build_engine(stores, angry(make_oracle))

        result = await engine.process_post(post())

        assert result.post is None
        assert not result.triggered
        assert len(stores["posts"]) == 0

    @pytest.mark.asyncio
    async def test_excluded_monitor_is_skipped(self, stores, make_oracle):
        await stores["monitors"].save_monitor(
            Monitor(id="m1", brand_id="brand-1", keywords=["zenith"], exclude_keywords=["giveaway"])
        )
        engine = build_engine(stores, angry(make_oracle))

        result = await engine.process_post(post("Zenith giveaway is a scam"))

        assert result.post is None

    @pytest.mark.asyncio
    async def test_monitor_of_unknown_brand_is_skipped(self, stores, make_oracle):
        await stores["monitors"].save_monitor(Monitor(id="m1", brand_id="brand-x", keywords=["zenith"]))
        engine = build_engine(stores, angry(make_oracle))

        assert (await engine.process_post(post())).post is None


# ── Triggering ────────────────────────────────────────────────────────────


class TestProcessPost:
    @pytest.mark.asyncio
    async def test_keyword_and_sentiment_raise_threat(self, stores, make_oracle):
        await stores["monitors"].save_monitor(Monitor(id="m1", brand_id="brand-1", keywords=["outage"]))
        on_threat = AsyncMock()
        channel = NotificationChannel()
        engine = build_engine(stores, angry(make_oracle), on_threat, channel)

        result = await engine.process_post(post(view_count=1000, like_count=10))

        assert result.triggered
        assert result.post.is_flagged
        assert result.post.flag_reason == "Triggered by sentiment"
        assert result.post.matched_keywords == ["outage"]
        assert result.post.emotional_tone == "anger"
        assert result.threat.threat_type == ThreatType.NEGATIVE_SENTIMENT
        assert result.threat.detected_post_id == result.post.id
        on_threat.assert_awaited_once_with(result.threat, False)

        analyzed = channel.recent(event=NotificationEvent.POST_ANALYZED)
        assert len(analyzed) == 1
        assert analyzed[0].entity_id == result.post.id
        assert analyzed[0].data["threat_id"] == result.threat.id

    @pytest.mark.asyncio
    async def test_autopilot_brand_requests_autopost(self, stores, make_oracle):
        await stores["monitors"].save_monitor(Monitor(id="m2", brand_id="brand-2", keywords=["outage"]))
        on_threat = AsyncMock()
        engine = build_engine(stores, angry(make_oracle), on_threat)

        result = await engine.process_post(post())

        assert result.autopost
        on_threat.assert_awaited_once_with(result.threat, True)

    @pytest.mark.asyncio
    async def test_untriggered_post_is_stored_unflagged(self, stores, make_oracle):
        monitor = Monitor(id="m1", brand_id="brand-1", keywords=["refund"])
        on_threat = AsyncMock()
        engine = build_engine(stores, happy(make_oracle), on_threat)

        result = await engine.process_post(post("I love Zenith", view_count=1000, like_count=1), [monitor])

        assert result.post is not None
        assert not result.post.is_flagged
        assert result.post.flag_reason is None
        assert result.threat is None
        assert len(stores["threats"]) == 0
        on_threat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_engagement_threshold_gates_virality(self, stores, make_oracle):
        gated = Monitor(
            id="m1", brand_id="brand-1", keywords=["refund"],
            virality_threshold=40, engagement_threshold=100,
        )
        open_ = gated.model_copy(update={"id": "m2", "engagement_threshold": 0})
        engine = build_engine(stores, happy(make_oracle))
        tiny = post("Zenith", like_count=5, view_count=10)

        assert not (await engine.process_post(tiny, [gated])).triggered

        result = await engine.process_post(tiny, [open_])
        assert result.triggered
        assert result.threat.threat_type == ThreatType.VIRAL_RISK

    @pytest.mark.asyncio
    async def test_strongest_triggering_monitor_owns_post(self, stores, make_oracle):
        quiet = Monitor(id="m-quiet", brand_id="brand-1", keywords=["refund"], sentiment_threshold=-0.9)
        loud = Monitor(id="m-loud", brand_id="brand-2", keywords=["outage"], sentiment_threshold=-0.9)
        engine = build_engine(stores, angry(make_oracle))

        result = await engine.process_post(post(), [quiet, loud])

        assert result.post.monitor_id == "m-loud"
        assert result.post.brand_id == "brand-2"
        assert result.threat.monitor_id == "m-loud"

    @pytest.mark.asyncio
    async def test_first_candidate_owns_untriggered_post(self, stores, make_oracle):
        first = Monitor(id="m-a", brand_id="brand-1", keywords=["refund"])
        second = Monitor(id="m-b", brand_id="brand-2", keywords=["fees"])
        engine = build_engine(stores, happy(make_oracle))

        result = await engine.process_post(post("Zenith is great"), [first, second])

        assert result.post.monitor_id == "m-a"

    @pytest.mark.asyncio
    async def test_reingest_updates_metrics_without_duplicates(self, stores, make_oracle):
        await stores["monitors"].save_monitor(Monitor(id="m1", brand_id="brand-1", keywords=["outage"]))
        engine = build_engine(stores, angry(make_oracle))

        first = await engine.process_post(post(like_count=1, view_count=100))
        second = await engine.process_post(post(like_count=50, view_count=100))

        assert second.post.id == first.post.id
        assert second.post.like_count == 50
        assert second.threat.id == first.threat.id
        assert not second.created
        assert len(stores["posts"]) == 1
        assert len(stores["threats"]) == 1

    @pytest.mark.asyncio
    async def test_oracle_failure_uses_lexicon(self, stores, make_oracle):
        await stores["monitors"].save_monitor(Monitor(id="m1", brand_id="brand-1", keywords=["zenith"]))
        engine = build_engine(stores, make_oracle())

        result = await engine.process_post(post("Zenith is a terrible awful scam"))

        assert result.post.sentiment_summary.startswith("Lexicon fallback")
        assert result.post.sentiment_polarity < 0
