"""Publisher: sends an approved Response to the target platform.

The Publisher makes exactly one attempt per call. Retry policy belongs to
the orchestrator, which re-runs the whole job on a PublicationError.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.config.settings import settings
from reputation_system.data_management.post_store import PostStore
from reputation_system.data_management.response_store import ResponseStore
from reputation_system.data_management.schemas import NotificationEvent, Response, ResponseStatus
from reputation_system.data_management.threat_store import ThreatStore
from reputation_system.errors import ConfigurationError, NotFoundError, PublicationError


@dataclass
class PlatformResult:
    ok: bool
    status_code: Optional[int]
    body: str


class PlatformClient:
    """
    HTTP client for the target platform's post endpoint.

    create_post() never raises for transport problems: connection errors and
    timeouts come back as a non-ok PlatformResult with no status code.

    Attributes:
        base_url: Platform API root, e.g. http://localhost:4000
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.platform_api_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.platform_api_key
        self.timeout = timeout or settings.publish_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def create_post(self, payload: dict[str, Any]) -> PlatformResult:
        try:
            client = await self._get_client()
            response = await client.post("/api/posts", json=payload)
            return PlatformResult(
                ok=response.is_success,
                status_code=response.status_code,
                body=response.text,
            )
        except httpx.TimeoutException as e:
            return PlatformResult(ok=False, status_code=None, body=f"Request timed out: {e}")
        except httpx.RequestError as e:
            return PlatformResult(ok=False, status_code=None, body=f"Request failed: {e}")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class Publisher:
    """Transitions a PENDING or FAILED Response to POSTED or FAILED."""

    def __init__(
        self,
        response_store: ResponseStore,
        threat_store: ThreatStore,
        post_store: PostStore,
        platform_client: PlatformClient,
        notifications: NotificationChannel,
    ) -> None:
        self._response_store = response_store
        self._threat_store = threat_store
        self._post_store = post_store
        self._client = platform_client
        self._notifications = notifications
        self._logger = structlog.get_logger().bind(component="Publisher")

    async def publish(self, response_id: str) -> Response:
        """
        Post a Response as a reply to the original external post.

        A POSTED Response, or one another publisher currently holds, is
        returned unchanged without a request.

        Raises:
            NotFoundError: Response, Threat or DetectedPost does not exist
            ConfigurationError: DetectedPost has no external id to reply to;
                raised before any network call, Response left untouched
            PublicationError: Platform rejected or did not answer the request;
                Response is marked FAILED first
        """
        response, claimed = await self._response_store.claim_for_publish(response_id)

        if response.status == ResponseStatus.POSTED:
            self._logger.info("already_posted", response_id=response_id)
            return response

        if not claimed:
            self._logger.info("publish_in_progress", response_id=response_id)
            return response

        try:
            return await self._publish_claimed(response)
        finally:
            await self._response_store.release_claim(response_id)

    async def _publish_claimed(self, response: Response) -> Response:
        response_id = response.id
        threat = await self._threat_store.get_threat(response.threat_id)
        if threat is None:
            raise NotFoundError("Threat", response.threat_id)
        post = await self._post_store.get_post(threat.detected_post_id)
        if post is None:
            raise NotFoundError("DetectedPost", threat.detected_post_id)

        if not post.external_post_id:
            raise ConfigurationError(
                f"DetectedPost {post.id} has no external post id to reply to",
                entity_id=response_id,
            )

        payload = {
            "content": f"@{post.author_handle} {response.content}",
            "in_reply_to": post.external_post_id,
            "platform": post.platform,
        }

        result = await self._client.create_post(payload)

        if not result.ok:
            status = result.status_code if result.status_code is not None else "no response"
            error = f"Platform rejected reply ({status}): {result.body[:200] or 'empty body'}"
            await self._response_store.mark_failed(response_id, error)
            self._logger.warning(
                "publish_failed",
                response_id=response_id,
                threat_id=response.threat_id,
                status_code=result.status_code,
            )
            await self._notifications.emit(
                NotificationEvent.RESPONSE_FAILED,
                response_id,
                f"Failed to post response {response_id}",
                threat_id=response.threat_id,
                error=error,
            )
            raise PublicationError(error, entity_id=response_id, status_code=result.status_code)

        posted = await self._response_store.mark_posted(response_id)
        self._logger.info(
            "response_posted",
            response_id=response_id,
            threat_id=response.threat_id,
            status_code=result.status_code,
        )
        await self._notifications.emit(
            NotificationEvent.RESPONSE_POSTED,
            response_id,
            f"Response {response_id} posted",
            threat_id=response.threat_id,
            posted_at=posted.posted_at.isoformat() if posted.posted_at else None,
        )
        return posted
