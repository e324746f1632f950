"""Response Synthesizer: corrective reply for FALSE or UNVERIFIED claims.

Layout of the stored content:

    <correction prose>

    <footer naming the brand>

    Sources:
    • <title> (<hostname>)
    ...

The correction prose comes from the judgment oracle (URLs stripped, capped
at correction_max_chars) or, when the oracle fails, from a fixed sentence
naming the brand. The whole content never exceeds response_max_chars; any
cut is marked with "…".
"""

import re
from typing import Optional

import structlog

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.config.prompts import CORRECTION_SYSTEM_PROMPT, CORRECTION_USER_PROMPT
from reputation_system.config.settings import settings
from reputation_system.data_management.evidence_store import EvidenceStore
from reputation_system.data_management.monitor_store import BrandStore
from reputation_system.data_management.post_store import PostStore
from reputation_system.data_management.response_store import ResponseStore
from reputation_system.data_management.schemas import (
    EvidenceItem,
    NotificationEvent,
    Response,
    ResponseStatus,
    Verdict,
)
from reputation_system.data_management.threat_store import ThreatStore
from reputation_system.errors import InvalidStateError, NotFoundError
from reputation_system.llm.oracle import CorrectionDraft, JudgmentOracle


TRUNCATION_MARKER = "…"
PREVIEW_CHARS = 240
NO_CITATIONS_LINE = "• No press references available yet."

FALLBACK_TEMPLATES = {
    Verdict.FALSE: "{brand}: This claim is incorrect. Operations remain normal.",
    Verdict.UNVERIFIED: (
        "{brand}: We have found no confirmation of this claim. "
        "Please rely on our official channels for updates."
    ),
}

FOOTER_TEMPLATE = "Official update from {brand}. Checked against trusted press coverage."

_URL_PATTERN = re.compile(r"(https?://\S+|www\.\S+)", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def truncate(text: str, limit: int) -> str:
    """Cut text to at most limit characters, marking any cut with an ellipsis."""
    if len(text) <= limit:
        return text
    if limit <= len(TRUNCATION_MARKER):
        return TRUNCATION_MARKER[:limit]
    return text[: limit - len(TRUNCATION_MARKER)].rstrip() + TRUNCATION_MARKER


def clean_correction(text: str) -> str:
    """Strip URLs and collapse whitespace in oracle prose."""
    return _WHITESPACE.sub(" ", _URL_PATTERN.sub("", text)).strip()


def select_citations(evidence: list[EvidenceItem], count: int) -> list[EvidenceItem]:
    """Highest-credibility items first, newer first among equals."""

    def rank(item: EvidenceItem) -> tuple[float, float]:
        published = item.published_at.timestamp() if item.published_at else float("-inf")
        return (item.credibility, published)

    return sorted(evidence, key=rank, reverse=True)[:count]


def render_citations(citations: list[EvidenceItem]) -> str:
    if not citations:
        return NO_CITATIONS_LINE
    return "\n".join(f"• {item.headline} ({item.hostname})" for item in citations)


class ResponseSynthesizer:
    """Builds, persists and announces the PENDING Response for a Threat."""

    def __init__(
        self,
        threat_store: ThreatStore,
        post_store: PostStore,
        brand_store: BrandStore,
        evidence_store: EvidenceStore,
        response_store: ResponseStore,
        oracle: JudgmentOracle,
        notifications: NotificationChannel,
        correction_max_chars: Optional[int] = None,
        response_max_chars: Optional[int] = None,
        citation_count: Optional[int] = None,
    ) -> None:
        self._threat_store = threat_store
        self._post_store = post_store
        self._brand_store = brand_store
        self._evidence_store = evidence_store
        self._response_store = response_store
        self._oracle = oracle
        self._notifications = notifications
        self.correction_max_chars = correction_max_chars or settings.correction_max_chars
        self.response_max_chars = response_max_chars or settings.response_max_chars
        self.citation_count = (
            citation_count if citation_count is not None else settings.citation_count
        )
        self._logger = structlog.get_logger().bind(component="ResponseSynthesizer")

    async def synthesize(self, threat_id: str) -> Response:
        """
        Create or replace the PENDING Response for a verified Threat.

        An already POSTED Response is returned unchanged.

        Raises:
            NotFoundError: Threat, DetectedPost or Brand does not exist
            InvalidStateError: Threat is unverified or verified TRUE
        """
        threat = await self._threat_store.get_threat(threat_id)
        if threat is None:
            raise NotFoundError("Threat", threat_id)

        verification = threat.verification
        if verification is None:
            raise InvalidStateError(f"Threat {threat_id} has not been verified", entity_id=threat_id)
        if verification.status == Verdict.TRUE:
            raise InvalidStateError(
                f"Threat {threat_id} was verified TRUE; no correction is warranted",
                entity_id=threat_id,
            )

        existing = await self._response_store.get_by_threat(threat_id)
        if existing is not None and existing.status == ResponseStatus.POSTED:
            self._logger.info(
                "posted_response_unchanged",
                threat_id=threat_id,
                response_id=existing.id,
            )
            return existing

        post = await self._post_store.get_post(threat.detected_post_id)
        if post is None:
            raise NotFoundError("DetectedPost", threat.detected_post_id)
        brand = await self._brand_store.get_brand(threat.brand_id)
        if brand is None:
            raise NotFoundError("Brand", threat.brand_id)

        evidence = await self._evidence_store.get_evidence(verification.evidence_ids)
        citations = select_citations(evidence, self.citation_count)

        body, source = await self._correction_text(
            brand.name, post.content, verification.status, verification.summary
        )
        content = self._compose(body, brand.name, citations)

        response, created = await self._response_store.upsert_response(
            Response(
                threat_id=threat_id,
                platform=post.platform,
                content=content,
                sources_used=[c.url for c in citations],
                confidence=verification.confidence,
                status=ResponseStatus.PENDING,
                auto_generated=True,
            )
        )

        self._logger.info(
            "response_synthesized",
            threat_id=threat_id,
            response_id=response.id,
            verdict=verification.status.value,
            text_source=source,
            citations=len(citations),
            chars=len(response.content),
            created=created,
        )

        await self._notifications.emit(
            NotificationEvent.RESPONSE_READY,
            response.id,
            f"Response ready for threat {threat_id}",
            threat_id=threat_id,
            preview=response.content[:PREVIEW_CHARS],
            confidence=response.confidence,
            sources_used=response.sources_used,
        )
        return response

    async def _correction_text(
        self,
        brand_name: str,
        claim: str,
        verdict: Verdict,
        summary: str,
    ) -> tuple[str, str]:
        """Correction prose and where it came from ("oracle" or "fallback")."""
        result = await self._oracle.judge(
            CORRECTION_SYSTEM_PROMPT.format(max_chars=self.correction_max_chars),
            CORRECTION_USER_PROMPT.format(
                brand=brand_name,
                claim=claim,
                verdict=verdict.value,
                summary=summary,
            ),
            CorrectionDraft,
        )
        if result.ok:
            text = clean_correction(result.value.correction)
            if text:
                return truncate(text, self.correction_max_chars), "oracle"
            self._logger.info("correction_empty_after_cleanup")
        else:
            self._logger.info("correction_fallback", reason=result.error)

        fallback = FALLBACK_TEMPLATES[verdict].format(brand=brand_name)
        return truncate(fallback, self.correction_max_chars), "fallback"

    def _compose(self, body: str, brand_name: str, citations: list[EvidenceItem]) -> str:
        suffix = (
            f"\n\n{FOOTER_TEMPLATE.format(brand=brand_name)}"
            f"\n\nSources:\n{render_citations(citations)}"
        )
        room = self.response_max_chars - len(suffix)
        if room > len(TRUNCATION_MARKER):
            return truncate(body, room) + suffix
        # Footer and citations alone overflow the budget
        return truncate(body + suffix, self.response_max_chars)
