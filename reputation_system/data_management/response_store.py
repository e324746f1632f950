"""Response storage keyed by the owning Threat."""

from datetime import datetime, timezone
from typing import Any, Optional

from reputation_system.data_management.base_store import RecordStore
from reputation_system.data_management.schemas import Response, ResponseStatus
from reputation_system.errors import NotFoundError


class ResponseStore(RecordStore[Response]):
    """Storage for corrective Responses, at most one per Threat.

    An upsert over a POSTED response is refused and the posted record is
    returned unchanged: a published reply is never silently rewritten.
    The same holds while a publisher has the response claimed.
    """

    model = Response

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        self._threat_index: dict[str, str] = {}
        self._claimed: set[str] = set()
        super().__init__(persistence_path)

    def _rebuild_indexes(self) -> None:
        self._threat_index = {r.threat_id: rid for rid, r in self._records.items()}

    async def upsert_response(self, response: Response) -> tuple[Response, bool]:
        """
        Insert or replace the Response for ``response.threat_id``.

        A replaced response keeps its id and creation time and returns to
        PENDING with the new content.

        Returns:
            (stored response, True if a new record was created)
        """
        async with self._lock:
            existing_id = self._threat_index.get(response.threat_id)
            created = existing_id is None

            if created:
                stored = response
            else:
                existing = self._records[existing_id]
                if existing.status == ResponseStatus.POSTED or existing.id in self._claimed:
                    self._logger.warning(
                        "posted_response_kept",
                        response_id=existing.id,
                        threat_id=existing.threat_id,
                        publishing=existing.id in self._claimed,
                    )
                    return existing, False

                stored = response.model_copy(
                    update={
                        "id": existing.id,
                        "created_at": existing.created_at,
                        "status": ResponseStatus.PENDING,
                        "posted_at": None,
                        "last_error": None,
                        "updated_at": datetime.now(timezone.utc),
                    }
                )

            self._records[stored.id] = stored
            self._threat_index[stored.threat_id] = stored.id

            self._logger.debug(
                "response_upserted",
                response_id=stored.id,
                threat_id=stored.threat_id,
                created=created,
            )
            self._persist()
            return stored, created

    async def claim_for_publish(self, response_id: str) -> tuple[Response, bool]:
        """
        Reserve a Response for one publisher.

        Returns:
            (response, True) when the caller now owns the publication;
            (response, False) when it is already POSTED or another
            publisher holds the claim

        Raises:
            NotFoundError: Response does not exist
        """
        async with self._lock:
            response = self._records.get(response_id)
            if response is None:
                raise NotFoundError("Response", response_id)
            if response.status == ResponseStatus.POSTED or response_id in self._claimed:
                return response, False
            self._claimed.add(response_id)
            return response, True

    async def release_claim(self, response_id: str) -> None:
        async with self._lock:
            self._claimed.discard(response_id)

    async def mark_posted(self, response_id: str, posted_at: Optional[datetime] = None) -> Response:
        return await self._update(
            response_id,
            status=ResponseStatus.POSTED,
            posted_at=posted_at or datetime.now(timezone.utc),
            last_error=None,
        )

    async def mark_failed(self, response_id: str, error: str) -> Response:
        return await self._update(response_id, status=ResponseStatus.FAILED, last_error=error)

    async def _update(self, response_id: str, **fields: Any) -> Response:
        async with self._lock:
            existing = self._records.get(response_id)
            if existing is None:
                raise NotFoundError("Response", response_id)

            fields["updated_at"] = datetime.now(timezone.utc)
            updated = existing.model_copy(update=fields)
            self._records[response_id] = updated

            self._logger.debug(
                "response_updated",
                response_id=response_id,
                status=updated.status.value,
            )
            self._persist()
            return updated

    async def get_response(self, response_id: str) -> Optional[Response]:
        async with self._lock:
            return self._records.get(response_id)

    async def get_by_threat(self, threat_id: str) -> Optional[Response]:
        async with self._lock:
            response_id = self._threat_index.get(threat_id)
            return self._records.get(response_id) if response_id else None

    async def list_responses(self, status: Optional[ResponseStatus] = None) -> list[Response]:
        async with self._lock:
            responses = list(self._records.values())
        if status is not None:
            responses = [r for r in responses if r.status == status]
        return sorted(responses, key=lambda r: r.created_at, reverse=True)
