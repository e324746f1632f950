"""Threat storage keyed by the owning DetectedPost.

Follows the same patterns as the other record stores:
- O(1) lookup by threat id and by detected_post_id
- Thread-safe operations with asyncio locks
- Optional JSON persistence

Usage:
    store = ThreatStore()
    threat, created = await store.upsert_threat(threat)
    await store.record_verification(threat.id, outcome)
"""

from datetime import datetime, timezone
from typing import Any, Optional

from reputation_system.data_management.base_store import RecordStore
from reputation_system.data_management.schemas import (
    Threat,
    ThreatStatus,
    VerificationOutcome,
)
from reputation_system.errors import NotFoundError


class ThreatStore(RecordStore[Threat]):
    """Storage for Threats with one record per DetectedPost."""

    model = Threat

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        self._post_index: dict[str, str] = {}
        super().__init__(persistence_path)

    def _rebuild_indexes(self) -> None:
        self._post_index = {t.detected_post_id: tid for tid, t in self._records.items()}

    async def upsert_threat(self, threat: Threat) -> tuple[Threat, bool]:
        """
        Insert a Threat or update the scoring of the existing one for its post.

        On update the stored id, creation time, lifecycle status and any
        recorded verification are kept; only scoring fields are replaced.

        Returns:
            (stored threat, True if a new record was created)
        """
        async with self._lock:
            existing_id = self._post_index.get(threat.detected_post_id)
            created = existing_id is None

            if created:
                stored = threat
            else:
                existing = self._records[existing_id]
                stored = threat.model_copy(
                    update={
                        "id": existing.id,
                        "created_at": existing.created_at,
                        "status": existing.status,
                        "verification": existing.verification,
                        "updated_at": datetime.now(timezone.utc),
                    }
                )

            self._records[stored.id] = stored
            self._post_index[stored.detected_post_id] = stored.id

            self._logger.debug(
                "threat_upserted",
                threat_id=stored.id,
                detected_post_id=stored.detected_post_id,
                severity=stored.severity.value,
                created=created,
            )
            self._persist()
            return stored, created

    async def record_verification(
        self,
        threat_id: str,
        outcome: VerificationOutcome,
    ) -> Threat:
        """Overwrite the Threat's verification with a complete outcome."""
        return await self._update(threat_id, verification=outcome)

    async def set_status(self, threat_id: str, status: ThreatStatus) -> Threat:
        return await self._update(threat_id, status=status)

    async def _update(self, threat_id: str, **fields: Any) -> Threat:
        async with self._lock:
            existing = self._records.get(threat_id)
            if existing is None:
                raise NotFoundError("Threat", threat_id)

            fields["updated_at"] = datetime.now(timezone.utc)
            updated = existing.model_copy(update=fields)
            self._records[threat_id] = updated

            self._logger.debug("threat_updated", threat_id=threat_id, fields=sorted(fields))
            self._persist()
            return updated

    async def get_threat(self, threat_id: str) -> Optional[Threat]:
        async with self._lock:
            return self._records.get(threat_id)

    async def get_by_post(self, detected_post_id: str) -> Optional[Threat]:
        async with self._lock:
            threat_id = self._post_index.get(detected_post_id)
            return self._records.get(threat_id) if threat_id else None

    async def list_unverified(self, limit: int) -> list[Threat]:
        """Threats with no verification recorded, oldest first."""
        async with self._lock:
            pending = [t for t in self._records.values() if t.verification is None]
        pending.sort(key=lambda t: t.created_at)
        return pending[:limit]

    async def list_threats(
        self,
        status: Optional[ThreatStatus] = None,
        limit: Optional[int] = None,
    ) -> list[Threat]:
        """Threats newest first, optionally filtered by lifecycle status."""
        async with self._lock:
            threats = list(self._records.values())
        if status is not None:
            threats = [t for t in threats if t.status == status]
        threats.sort(key=lambda t: t.created_at, reverse=True)
        return threats[:limit] if limit else threats

    async def get_stats(self) -> dict[str, Any]:
        async with self._lock:
            threats = list(self._records.values())
        by_status: dict[str, int] = {}
        by_verdict: dict[str, int] = {}
        for t in threats:
            by_status[t.status.value] = by_status.get(t.status.value, 0) + 1
            verdict = t.verification_status.value if t.verification_status else "PENDING"
            by_verdict[verdict] = by_verdict.get(verdict, 0) + 1
        return {"total": len(threats), "by_status": by_status, "by_verdict": by_verdict}
