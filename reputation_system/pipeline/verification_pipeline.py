"""Verify -> synthesize -> publish chain for one Threat.

Stages run sequentially inside one job, so synthesis always reads the
persisted verification and publication always reads the persisted Response.

Threat lifecycle driven here:
    NEW -> VERIFYING -> RESPONDED   (a Response was synthesized)
                     -> RESOLVED    (no correction warranted)

Response policy:
    FALSE                      -> respond
    UNVERIFIED with evidence   -> respond
    UNVERIFIED without evidence, TRUE -> resolve

Usage:
    from reputation_system.pipeline import VerificationPipeline

    pipeline = VerificationPipeline(engine, synthesizer, publisher, threat_store, notifications)
    summary = await pipeline.handle_threat("threat-1a2b", autopost=False)
"""

from typing import Any

import structlog

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.agents.response.publisher import Publisher
from reputation_system.agents.response.synthesizer import ResponseSynthesizer
from reputation_system.agents.verification.verification_engine import VerificationEngine
from reputation_system.data_management.schemas import (
    NotificationEvent,
    ResponseStatus,
    ThreatStatus,
    Verdict,
    VerificationOutcome,
)
from reputation_system.data_management.threat_store import ThreatStore
from reputation_system.errors import NotFoundError


VERDICT_MESSAGES = {
    Verdict.TRUE: "Verified as true, no response needed",
    Verdict.FALSE: "Claim appears false, preparing correction",
    Verdict.UNVERIFIED: "Could not verify with confidence",
}


def requires_response(outcome: VerificationOutcome) -> bool:
    if outcome.status == Verdict.FALSE:
        return True
    if outcome.status == Verdict.UNVERIFIED:
        return bool(outcome.evidence_ids)
    return False


class VerificationPipeline:
    """Runs the full per-Threat chain. Errors propagate to the orchestrator."""

    def __init__(
        self,
        verification_engine: VerificationEngine,
        synthesizer: ResponseSynthesizer,
        publisher: Publisher,
        threat_store: ThreatStore,
        notifications: NotificationChannel,
    ) -> None:
        self._engine = verification_engine
        self._synthesizer = synthesizer
        self._publisher = publisher
        self._threat_store = threat_store
        self._notifications = notifications
        self._logger = structlog.get_logger().bind(component="VerificationPipeline")

    async def handle_threat(self, threat_id: str, autopost: bool = False) -> dict[str, Any]:
        """
        Verify a Threat and, when warranted, synthesize and publish a correction.

        Args:
            threat_id: Threat to process
            autopost: Publish the Response right after synthesis

        Returns:
            Summary with the verdict and the action taken
        """
        threat = await self._threat_store.get_threat(threat_id)
        if threat is None:
            raise NotFoundError("Threat", threat_id)

        await self._threat_store.set_status(threat_id, ThreatStatus.VERIFYING)
        outcome = await self._engine.verify(threat_id)

        await self._notifications.emit(
            NotificationEvent.VERIFICATION_COMPLETE,
            threat_id,
            VERDICT_MESSAGES[outcome.status],
            status=outcome.status.value,
            confidence=outcome.confidence,
            summary=outcome.summary,
        )

        if not requires_response(outcome):
            await self._threat_store.set_status(threat_id, ThreatStatus.RESOLVED)
            self._logger.info(
                "threat_resolved",
                threat_id=threat_id,
                status=outcome.status.value,
            )
            return {
                "threat_id": threat_id,
                "action": "no_response_needed",
                "status": outcome.status.value,
            }

        response = await self._synthesizer.synthesize(threat_id)
        await self._threat_store.set_status(threat_id, ThreatStatus.RESPONDED)

        if autopost:
            response = await self._publisher.publish(response.id)
        posted = response.status == ResponseStatus.POSTED

        self._logger.info(
            "threat_responded",
            threat_id=threat_id,
            response_id=response.id,
            status=outcome.status.value,
            autopost=autopost,
        )
        return {
            "threat_id": threat_id,
            "action": "responded",
            "status": outcome.status.value,
            "response_id": response.id,
            "posted": posted,
        }
