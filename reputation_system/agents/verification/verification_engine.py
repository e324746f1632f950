"""Verification Engine: judges a Threat's claim against the evidence corpus.

Decision table over the evidence retrieved for the claim's first
significant token (at most evidence_window items, newest first):

    no evidence at all          -> UNVERIFIED, 35, "No relevant coverage ..."
    evidence, none credible     -> FALSE, 80, "No trusted outlet confirms ..."
    credible evidence present   -> judgment oracle on the top credible
                                   headlines; UNVERIFIED, 60 on oracle failure

Credible means credibility >= credibility_threshold (0.7). The outcome,
including every retrieved evidence id, overwrites any prior verification
on the Threat. Re-running under the same evidence lands on the same branch.

Usage:
    engine = VerificationEngine(threat_store, post_store, evidence_store, oracle)
    outcome = await engine.verify(threat_id)
"""

import asyncio
import re
from typing import Optional

import structlog

from reputation_system.config.prompts import VERDICT_SYSTEM_PROMPT, VERDICT_USER_PROMPT
from reputation_system.config.settings import settings
from reputation_system.data_management.evidence_store import EvidenceStore
from reputation_system.data_management.post_store import PostStore
from reputation_system.data_management.schemas import (
    EvidenceItem,
    Verdict,
    VerificationOutcome,
)
from reputation_system.data_management.threat_store import ThreatStore
from reputation_system.errors import EvidenceUnavailableError, NotFoundError
from reputation_system.llm.oracle import JudgmentOracle, VerdictJudgment


NO_COVERAGE_CONFIDENCE = 35.0
NO_COVERAGE_SUMMARY = "No relevant coverage found among trusted sources."
UNCONFIRMED_CONFIDENCE = 80.0
UNCONFIRMED_SUMMARY = "No trusted outlet confirms this claim; appears unsubstantiated."
JUDGE_FALLBACK_CONFIDENCE = 60.0
JUDGE_FALLBACK_SUMMARY = "Judge fallback"
JUDGE_DEFAULT_SUMMARY = "Judgment oracle summary"

STOPWORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
        "had", "her", "was", "one", "our", "out", "has", "him", "his", "how",
        "its", "may", "new", "now", "see", "who", "did", "get", "let", "say",
        "she", "too", "use", "this", "that", "with", "have", "from", "they",
        "will", "just", "what", "when", "your", "been", "were", "their",
        "there", "about", "would", "these", "them", "then", "than", "into",
        "some", "only", "also", "very", "why", "yes", "omg", "lol",
    }
)

_TOKEN_EDGE = re.compile(r"^[^\w]+|[^\w]+$")


def first_significant_token(claim: str) -> str:
    """
    First word of the claim worth searching for.

    Skips URLs, @mentions, stopwords and tokens shorter than three
    characters; a leading '#' is dropped so hashtags count as words. Falls
    back to the first whitespace-delimited token, or "" for an empty claim.
    """
    raw_tokens = claim.split()
    for raw in raw_tokens:
        lowered = raw.lower()
        if lowered.startswith(("http://", "https://", "www.")) or raw.startswith("@"):
            continue
        token = _TOKEN_EDGE.sub("", raw.lstrip("#"))
        if len(token) < 3 or token.lower() in STOPWORDS:
            continue
        return token
    return raw_tokens[0] if raw_tokens else ""


class VerificationEngine:
    """Produces and persists a VerificationOutcome for one Threat."""

    def __init__(
        self,
        threat_store: ThreatStore,
        post_store: PostStore,
        evidence_store: EvidenceStore,
        oracle: JudgmentOracle,
        credibility_threshold: Optional[float] = None,
        evidence_window: Optional[int] = None,
        headline_count: Optional[int] = None,
        evidence_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._threat_store = threat_store
        self._post_store = post_store
        self._evidence_store = evidence_store
        self._oracle = oracle
        self.credibility_threshold = (
            credibility_threshold
            if credibility_threshold is not None
            else settings.credibility_threshold
        )
        self.evidence_window = evidence_window or settings.evidence_window
        self.headline_count = headline_count or settings.judge_headline_count
        self.evidence_timeout_seconds = (
            evidence_timeout_seconds
            if evidence_timeout_seconds is not None
            else settings.evidence_timeout_seconds
        )
        self._logger = structlog.get_logger().bind(component="VerificationEngine")

    async def verify(self, threat_id: str) -> VerificationOutcome:
        """
        Verify the claim behind a Threat and record the outcome on it.

        Raises:
            NotFoundError: Threat or its DetectedPost does not exist
            EvidenceUnavailableError: Evidence store failed or timed out
        """
        threat = await self._threat_store.get_threat(threat_id)
        if threat is None:
            raise NotFoundError("Threat", threat_id)

        post = await self._post_store.get_post(threat.detected_post_id)
        if post is None:
            raise NotFoundError("DetectedPost", threat.detected_post_id)

        claim = post.content
        keyword = first_significant_token(claim)
        evidence = await self._query_evidence(threat.brand_id, keyword, threat_id)
        credible = [e for e in evidence if e.credibility >= self.credibility_threshold]

        if not evidence:
            status, confidence, summary = (
                Verdict.UNVERIFIED, NO_COVERAGE_CONFIDENCE, NO_COVERAGE_SUMMARY
            )
        elif not credible:
            status, confidence, summary = (
                Verdict.FALSE, UNCONFIRMED_CONFIDENCE, UNCONFIRMED_SUMMARY
            )
        else:
            status, confidence, summary = await self._judge(claim, credible)

        outcome = VerificationOutcome(
            status=status,
            confidence=confidence,
            summary=summary,
            evidence_ids=[e.id for e in evidence],
        )
        await self._threat_store.record_verification(threat_id, outcome)

        self._logger.info(
            "threat_verified",
            threat_id=threat_id,
            keyword=keyword,
            evidence=len(evidence),
            credible=len(credible),
            status=status.value,
            confidence=confidence,
        )
        return outcome

    async def _query_evidence(
        self,
        brand_id: str,
        keyword: str,
        threat_id: str,
    ) -> list[EvidenceItem]:
        try:
            return await asyncio.wait_for(
                self._evidence_store.query_evidence(brand_id, keyword, self.evidence_window),
                timeout=self.evidence_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise EvidenceUnavailableError(
                f"evidence query timed out after {self.evidence_timeout_seconds}s",
                entity_id=threat_id,
            ) from e
        except Exception as e:
            raise EvidenceUnavailableError(
                f"evidence query failed: {e}",
                entity_id=threat_id,
            ) from e

    async def _judge(
        self,
        claim: str,
        credible: list[EvidenceItem],
    ) -> tuple[Verdict, float, str]:
        headlines = "\n".join(f"- {e.headline}" for e in credible[: self.headline_count])
        result = await self._oracle.judge(
            VERDICT_SYSTEM_PROMPT,
            VERDICT_USER_PROMPT.format(claim=claim, headlines=headlines),
            VerdictJudgment,
        )
        if not result.ok:
            self._logger.info("judge_fallback", reason=result.error)
            return Verdict.UNVERIFIED, JUDGE_FALLBACK_CONFIDENCE, JUDGE_FALLBACK_SUMMARY

        judgment = result.value
        return judgment.verdict, judgment.confidence, judgment.reason or JUDGE_DEFAULT_SUMMARY
