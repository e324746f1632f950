"""DetectedPost storage keyed by (external_post_id, platform).

Usage:
    store = PostStore()
    post, created = await store.upsert_post(detected_post)
"""

from datetime import datetime, timezone
from typing import Optional

from reputation_system.data_management.base_store import RecordStore
from reputation_system.data_management.schemas import DetectedPost


class PostStore(RecordStore[DetectedPost]):
    """Storage for scored posts.

    Re-ingesting the same external post replaces its metrics and scores but
    keeps the stored id, so an existing Threat still points at it.
    """

    model = DetectedPost

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        self._key_index: dict[tuple[str, str], str] = {}
        super().__init__(persistence_path)

    def _rebuild_indexes(self) -> None:
        self._key_index = {post.natural_key: pid for pid, post in self._records.items()}

    async def upsert_post(self, post: DetectedPost) -> tuple[DetectedPost, bool]:
        """
        Insert or update a post by its natural key.

        Returns:
            (stored post, True if a new record was created)
        """
        async with self._lock:
            existing_id = self._key_index.get(post.natural_key)
            created = existing_id is None

            if created:
                stored = post
            else:
                existing = self._records[existing_id]
                stored = post.model_copy(
                    update={
                        "id": existing.id,
                        "captured_at": datetime.now(timezone.utc),
                    }
                )

            self._records[stored.id] = stored
            self._key_index[stored.natural_key] = stored.id

            self._logger.debug(
                "post_upserted",
                post_id=stored.id,
                external_post_id=stored.external_post_id,
                platform=stored.platform,
                created=created,
            )
            self._persist()
            return stored, created

    async def get_post(self, post_id: str) -> Optional[DetectedPost]:
        async with self._lock:
            return self._records.get(post_id)

    async def get_by_external_id(
        self,
        external_post_id: str,
        platform: str,
    ) -> Optional[DetectedPost]:
        async with self._lock:
            post_id = self._key_index.get((external_post_id, platform))
            return self._records.get(post_id) if post_id else None

    async def list_posts(self, flagged_only: bool = False) -> list[DetectedPost]:
        async with self._lock:
            posts = list(self._records.values())
        if flagged_only:
            posts = [p for p in posts if p.is_flagged]
        return sorted(posts, key=lambda p: p.captured_at, reverse=True)
