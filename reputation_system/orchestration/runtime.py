"""Process-level wiring of stores, oracle, engines and orchestrator.

The NotificationChannel is created here once and injected into every
component that emits events; close() tears it down with the rest.

Usage:
    runtime = build_runtime()
    await runtime.orchestrator.start()
    job_id = await runtime.orchestrator.submit_post(post)
    ...
    await runtime.close()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.agents.detection.scoring_engine import ScoringEngine
from reputation_system.agents.detection.sentiment import SentimentAnalyzer
from reputation_system.agents.detection.threat_builder import ThreatBuilder
from reputation_system.agents.response.publisher import PlatformClient, Publisher
from reputation_system.agents.response.synthesizer import ResponseSynthesizer
from reputation_system.agents.verification.verification_engine import VerificationEngine
from reputation_system.config.logging import get_logger
from reputation_system.config.settings import Settings, settings as default_settings
from reputation_system.data_management import (
    BrandStore,
    EvidenceStore,
    JobStore,
    MonitorStore,
    PostStore,
    ResponseStore,
    ThreatStore,
)
from reputation_system.llm.gemini_client import GeminiOracle
from reputation_system.llm.oracle import JudgmentOracle, UnavailableOracle
from reputation_system.llm.rate_limiter import RateLimiter
from reputation_system.orchestration.job_queue import JobQueue
from reputation_system.orchestration.orchestrator import JobOrchestrator
from reputation_system.pipeline.verification_pipeline import VerificationPipeline

logger = get_logger("runtime")


@dataclass
class Runtime:
    post_store: PostStore
    threat_store: ThreatStore
    response_store: ResponseStore
    evidence_store: EvidenceStore
    brand_store: BrandStore
    monitor_store: MonitorStore
    job_store: JobStore
    notifications: NotificationChannel
    oracle: JudgmentOracle
    platform_client: PlatformClient
    scoring_engine: ScoringEngine
    verification_engine: VerificationEngine
    synthesizer: ResponseSynthesizer
    publisher: Publisher
    pipeline: VerificationPipeline
    orchestrator: JobOrchestrator

    async def close(self) -> None:
        await self.orchestrator.stop()
        await self.platform_client.close()
        await self.notifications.shutdown()


def _store_path(config: Settings, name: str) -> Optional[str]:
    if not config.data_dir:
        return None
    return str(Path(config.data_dir) / f"{name}.json")


def build_oracle(config: Settings) -> JudgmentOracle:
    """Gemini oracle when a key is configured, otherwise an always-failing one."""
    if not config.gemini_api_key:
        logger.warning("GEMINI_API_KEY not configured; oracle calls will take their fallback")
        return UnavailableOracle(timeout_seconds=config.oracle_timeout_seconds)
    return GeminiOracle(
        api_key=config.gemini_api_key,
        model_name=config.gemini_model,
        rate_limiter=RateLimiter(max_rpm=config.max_rpm, max_tpm=config.max_tpm),
        timeout_seconds=config.oracle_timeout_seconds,
    )


def build_runtime(
    config: Optional[Settings] = None,
    oracle: Optional[JudgmentOracle] = None,
    platform_client: Optional[PlatformClient] = None,
    notifications: Optional[NotificationChannel] = None,
) -> Runtime:
    """Wire every component from settings; collaborators can be injected."""
    config = config or default_settings

    post_store = PostStore(_store_path(config, "posts"))
    threat_store = ThreatStore(_store_path(config, "threats"))
    response_store = ResponseStore(_store_path(config, "responses"))
    evidence_store = EvidenceStore(_store_path(config, "evidence"))
    brand_store = BrandStore(_store_path(config, "brands"))
    monitor_store = MonitorStore(_store_path(config, "monitors"))
    job_store = JobStore(_store_path(config, "jobs"))

    notifications = notifications or NotificationChannel()
    oracle = oracle or build_oracle(config)
    platform_client = platform_client or PlatformClient(
        base_url=config.platform_api_url,
        api_key=config.platform_api_key,
        timeout=config.publish_timeout_seconds,
    )

    scoring_engine = ScoringEngine(
        post_store=post_store,
        monitor_store=monitor_store,
        brand_store=brand_store,
        threat_builder=ThreatBuilder(threat_store),
        sentiment_analyzer=SentimentAnalyzer(oracle),
        notifications=notifications,
        retweet_weight=config.retweet_weight,
    )
    verification_engine = VerificationEngine(
        threat_store=threat_store,
        post_store=post_store,
        evidence_store=evidence_store,
        oracle=oracle,
        credibility_threshold=config.credibility_threshold,
        evidence_window=config.evidence_window,
        headline_count=config.judge_headline_count,
        evidence_timeout_seconds=config.evidence_timeout_seconds,
    )
    synthesizer = ResponseSynthesizer(
        threat_store=threat_store,
        post_store=post_store,
        brand_store=brand_store,
        evidence_store=evidence_store,
        response_store=response_store,
        oracle=oracle,
        notifications=notifications,
        correction_max_chars=config.correction_max_chars,
        response_max_chars=config.response_max_chars,
        citation_count=config.citation_count,
    )
    publisher = Publisher(
        response_store=response_store,
        threat_store=threat_store,
        post_store=post_store,
        platform_client=platform_client,
        notifications=notifications,
    )
    pipeline = VerificationPipeline(
        verification_engine=verification_engine,
        synthesizer=synthesizer,
        publisher=publisher,
        threat_store=threat_store,
        notifications=notifications,
    )
    orchestrator = JobOrchestrator(
        queue=JobQueue(job_store, history_size=config.job_history_size),
        scoring_engine=scoring_engine,
        pipeline=pipeline,
        publisher=publisher,
        threat_store=threat_store,
        brand_store=brand_store,
        notifications=notifications,
        concurrency=config.worker_concurrency,
        max_attempts=config.job_max_attempts,
        detection_max_attempts=config.detection_max_attempts,
        backoff_seconds=config.job_backoff_seconds,
        backoff_max_seconds=config.job_backoff_max_seconds,
        scan_interval_seconds=config.scan_interval_seconds,
        scan_batch_size=config.scan_batch_size,
        dedupe_verification_jobs=config.dedupe_verification_jobs,
    )

    return Runtime(
        post_store=post_store,
        threat_store=threat_store,
        response_store=response_store,
        evidence_store=evidence_store,
        brand_store=brand_store,
        monitor_store=monitor_store,
        job_store=job_store,
        notifications=notifications,
        oracle=oracle,
        platform_client=platform_client,
        scoring_engine=scoring_engine,
        verification_engine=verification_engine,
        synthesizer=synthesizer,
        publisher=publisher,
        pipeline=pipeline,
        orchestrator=orchestrator,
    )
