"""Tests for the record stores.

Tests cover:
- Natural-key upserts (posts by external id, threats by post, responses by threat)
- Threat upsert keeps lifecycle status and verification
- Posted responses are never rewritten
- Evidence query ordering and URL uniqueness
- JSON persistence round trip
- Job record pruning
"""

from datetime import datetime, timedelta, timezone

import pytest

from reputation_system.data_management import (
    BrandStore,
    EvidenceStore,
    JobStore,
    MonitorStore,
    PostStore,
    ResponseStore,
    ThreatStore,
)
from reputation_system.data_management.schemas import (
    Brand,
    DetectedPost,
    EvidenceItem,
    JobKind,
    JobRecord,
    JobStatus,
    Monitor,
    Response,
    ResponseStatus,
    Threat,
    ThreatSeverity,
    ThreatStatus,
    ThreatType,
    Verdict,
    VerificationOutcome,
)
from reputation_system.errors import NotFoundError


# ── Fixtures ──────────────────────────────────────────────────────────────


def make_post(external_id: str = "ext-1", likes: int = 10) -> DetectedPost:
    return DetectedPost(
        external_post_id=external_id,
        platform="X_CLONE",
        monitor_id="mon-1",
        brand_id="brand-1",
        content="Zenith app is down again",
        like_count=likes,
    )


def make_threat(post_id: str = "post-1", score: float = 50.0, **fields) -> Threat:
    return Threat(
        detected_post_id=post_id,
        brand_id="brand-1",
        monitor_id="mon-1",
        severity=ThreatSeverity.MEDIUM,
        threat_type=ThreatType.CRISIS,
        threat_score=score,
        **fields,
    )


def make_response(threat_id: str = "threat-1", content: str = "Correction") -> Response:
    return Response(threat_id=threat_id, platform="X_CLONE", content=content, confidence=80)


def outcome(status: Verdict = Verdict.FALSE) -> VerificationOutcome:
    return VerificationOutcome(status=status, confidence=80, summary="checked", evidence_ids=["ev-1"])


# ── PostStore ─────────────────────────────────────────────────────────────


class TestPostStore:
    @pytest.mark.asyncio
    async def test_upsert_creates_then_updates_by_natural_key(self):
        store = PostStore()
        first, created = await store.upsert_post(make_post(likes=10))
        assert created is True

        second, created = await store.upsert_post(make_post(likes=99))
        assert created is False
        assert second.id == first.id
        assert second.like_count == 99
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_same_external_id_on_other_platform_is_distinct(self):
        store = PostStore()
        await store.upsert_post(make_post())
        other = make_post().model_copy(update={"platform": "OTHER", "id": "post-other"})
        _, created = await store.upsert_post(other)

        assert created is True
        assert await store.get_by_external_id("ext-1", "OTHER") is not None
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_list_posts_flagged_only(self):
        store = PostStore()
        await store.upsert_post(make_post("a"))
        flagged = make_post("b").model_copy(update={"is_flagged": True})
        await store.upsert_post(flagged)

        posts = await store.list_posts(flagged_only=True)
        assert [p.external_post_id for p in posts] == ["b"]


# ── ThreatStore ───────────────────────────────────────────────────────────


class TestThreatStore:
    @pytest.mark.asyncio
    async def test_upsert_keeps_status_and_verification(self):
        store = ThreatStore()
        original, _ = await store.upsert_threat(make_threat(score=40))
        await store.record_verification(original.id, outcome())
        await store.set_status(original.id, ThreatStatus.RESPONDED)

        refreshed, created = await store.upsert_threat(make_threat(score=90))

        assert created is False
        assert refreshed.id == original.id
        assert refreshed.threat_score == 90
        assert refreshed.status == ThreatStatus.RESPONDED
        assert refreshed.verification_status == Verdict.FALSE
        assert refreshed.created_at == original.created_at

    @pytest.mark.asyncio
    async def test_one_threat_per_post(self):
        store = ThreatStore()
        await store.upsert_threat(make_threat("post-1"))
        await store.upsert_threat(make_threat("post-1"))
        await store.upsert_threat(make_threat("post-2"))

        assert len(store) == 2
        assert (await store.get_by_post("post-2")).detected_post_id == "post-2"

    @pytest.mark.asyncio
    async def test_record_verification_replaces_whole_outcome(self):
        store = ThreatStore()
        threat, _ = await store.upsert_threat(make_threat())
        await store.record_verification(threat.id, outcome(Verdict.FALSE))
        updated = await store.record_verification(threat.id, outcome(Verdict.UNVERIFIED))

        assert updated.verification.status == Verdict.UNVERIFIED
        assert updated.is_verified

    @pytest.mark.asyncio
    async def test_update_unknown_threat_raises(self):
        store = ThreatStore()
        with pytest.raises(NotFoundError):
            await store.set_status("threat-missing", ThreatStatus.RESOLVED)

    @pytest.mark.asyncio
    async def test_list_unverified_oldest_first_with_limit(self):
        store = ThreatStore()
        base = datetime.now(timezone.utc)
        for i, age in enumerate([1, 3, 2]):
            await store.upsert_threat(
                make_threat(f"post-{i}", created_at=base - timedelta(hours=age))
            )
        verified, _ = await store.upsert_threat(make_threat("post-v"))
        await store.record_verification(verified.id, outcome())

        pending = await store.list_unverified(limit=2)
        assert [t.detected_post_id for t in pending] == ["post-1", "post-2"]

    @pytest.mark.asyncio
    async def test_stats(self):
        store = ThreatStore()
        a, _ = await store.upsert_threat(make_threat("post-a"))
        await store.upsert_threat(make_threat("post-b"))
        await store.record_verification(a.id, outcome(Verdict.TRUE))

        stats = await store.get_stats()
        assert stats["total"] == 2
        assert stats["by_verdict"] == {"TRUE": 1, "PENDING": 1}
        assert stats["by_status"] == {"NEW": 2}


# ── ResponseStore ─────────────────────────────────────────────────────────


class TestResponseStore:
    @pytest.mark.asyncio
    async def test_replace_resets_failed_response_to_pending(self):
        store = ResponseStore()
        first, _ = await store.upsert_response(make_response(content="v1"))
        await store.mark_failed(first.id, "boom")

        second, created = await store.upsert_response(make_response(content="v2"))

        assert created is False
        assert second.id == first.id
        assert second.content == "v2"
        assert second.status == ResponseStatus.PENDING
        assert second.last_error is None

    @pytest.mark.asyncio
    async def test_posted_response_is_never_rewritten(self):
        store = ResponseStore()
        first, _ = await store.upsert_response(make_response(content="v1"))
        await store.mark_posted(first.id)

        kept, created = await store.upsert_response(make_response(content="v2"))

        assert created is False
        assert kept.content == "v1"
        assert kept.status == ResponseStatus.POSTED
        assert kept.posted_at is not None

    @pytest.mark.asyncio
    async def test_mark_unknown_response_raises(self):
        store = ResponseStore()
        with pytest.raises(NotFoundError):
            await store.mark_posted("resp-missing")

    @pytest.mark.asyncio
    async def test_list_by_status(self):
        store = ResponseStore()
        a, _ = await store.upsert_response(make_response("threat-a"))
        await store.upsert_response(make_response("threat-b"))
        await store.mark_failed(a.id, "rejected")

        failed = await store.list_responses(ResponseStatus.FAILED)
        assert [r.threat_id for r in failed] == ["threat-a"]


# ── EvidenceStore ─────────────────────────────────────────────────────────


class TestEvidenceStore:
    @pytest.fixture
    def items(self) -> list[EvidenceItem]:
        now = datetime.now(timezone.utc)
        return [
            EvidenceItem(
                brand_id="brand-1",
                url="https://old.example/outage",
                title="Outage reported last year",
                published_at=now - timedelta(days=300),
                credibility=0.9,
            ),
            EvidenceItem(
                brand_id="brand-1",
                url="https://new.example/outage",
                title="No OUTAGE today",
                published_at=now - timedelta(days=1),
                credibility=0.4,
            ),
            EvidenceItem(
                brand_id="brand-1",
                url="https://undated.example/a",
                content="An outage rumour spread",
                credibility=0.8,
            ),
            EvidenceItem(
                brand_id="brand-2",
                url="https://other.example/outage",
                title="Outage at another brand",
            ),
        ]

    @pytest.mark.asyncio
    async def test_query_matches_case_insensitive_newest_first(self, items):
        store = EvidenceStore()
        await store.add_items(items)

        results = await store.query_evidence("brand-1", "outage", limit=10)
        assert [r.url for r in results] == [
            "https://new.example/outage",
            "https://old.example/outage",
            "https://undated.example/a",
        ]

    @pytest.mark.asyncio
    async def test_query_respects_limit(self, items):
        store = EvidenceStore()
        await store.add_items(items)
        assert len(await store.query_evidence("brand-1", "outage", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_add_items_is_unique_by_url(self, items):
        store = EvidenceStore()
        assert await store.add_items(items) == {"added": 4, "updated": 0}

        revised = items[0].model_copy(update={"credibility": 0.1})
        assert await store.add_items([revised]) == {"added": 0, "updated": 1}
        assert len(store) == 4

    @pytest.mark.asyncio
    async def test_get_evidence_preserves_order_and_skips_unknown(self, items):
        store = EvidenceStore()
        await store.add_items(items)
        ids = [items[2].id, "ev-unknown", items[0].id]

        found = await store.get_evidence(ids)
        assert [e.id for e in found] == [items[2].id, items[0].id]


# ── Configuration stores ──────────────────────────────────────────────────


class TestMonitorStores:
    @pytest.mark.asyncio
    async def test_list_active_filters_inactive_and_brand(self):
        store = MonitorStore()
        await store.save_monitor(Monitor(id="m1", brand_id="b1", keywords=["zenith"]))
        await store.save_monitor(Monitor(id="m2", brand_id="b1", is_active=False))
        await store.save_monitor(Monitor(id="m3", brand_id="b2"))

        assert [m.id for m in await store.list_active()] == ["m1", "m3"]
        assert [m.id for m in await store.list_active("b1")] == ["m1"]

    @pytest.mark.asyncio
    async def test_brand_round_trip(self):
        store = BrandStore()
        await store.save_brand(Brand(id="b1", name="Zenith Bank"))
        assert (await store.get_brand("b1")).name == "Zenith Bank"
        assert await store.get_brand("b2") is None


# ── Persistence ───────────────────────────────────────────────────────────


class TestPersistence:
    @pytest.mark.asyncio
    async def test_threats_survive_reload(self, tmp_path):
        path = str(tmp_path / "threats.json")
        store = ThreatStore(path)
        threat, _ = await store.upsert_threat(make_threat("post-9"))
        await store.record_verification(threat.id, outcome())

        reloaded = ThreatStore(path)
        restored = await reloaded.get_by_post("post-9")
        assert restored.id == threat.id
        assert restored.verification.decision_key() == outcome().decision_key()

    @pytest.mark.asyncio
    async def test_invalid_records_are_skipped_on_load(self, tmp_path):
        path = tmp_path / "posts.json"
        store = PostStore(str(path))
        post, _ = await store.upsert_post(make_post())

        data = path.read_text().rstrip()
        path.write_text(data[:-1] + ', "broken": {"id": "broken"}}')

        reloaded = PostStore(str(path))
        assert len(reloaded) == 1
        assert await reloaded.get_by_external_id("ext-1", "X_CLONE") is not None
        assert (await reloaded.get_post(post.id)).id == post.id


# ── JobStore ──────────────────────────────────────────────────────────────


class TestJobStore:
    @pytest.mark.asyncio
    async def test_prune_keeps_failed_and_active_jobs(self):
        store = JobStore()
        await store.save_job(JobRecord(id="j1", kind=JobKind.VERIFY_ONE, status=JobStatus.COMPLETED))
        await store.save_job(JobRecord(id="j2", kind=JobKind.VERIFY_ONE, status=JobStatus.FAILED))
        await store.save_job(JobRecord(id="j3", kind=JobKind.DETECT_POST))

        assert await store.prune_finished() == 1
        assert [r.id for r in await store.list_active()] == ["j3"]
        assert await store.get_job("j2") is not None
