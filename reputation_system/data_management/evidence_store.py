"""Evidence corpus storage: credibility-scored third-party documents per brand.

The corpus is filled by the external brand-intelligence scraper through
add_items() and is read-only to the pipeline.

Usage:
    store = EvidenceStore()
    await store.add_items(scraped_items)
    items = await store.query_evidence("brand-zenith", "outage", limit=15)
"""

from typing import Optional

from reputation_system.data_management.base_store import RecordStore
from reputation_system.data_management.schemas import EvidenceItem


def _recency_then_credibility(item: EvidenceItem) -> tuple[float, float]:
    published = item.published_at.timestamp() if item.published_at else float("-inf")
    return (published, item.credibility)


class EvidenceStore(RecordStore[EvidenceItem]):
    """Storage for evidence items with one record per URL."""

    model = EvidenceItem

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        self._url_index: dict[str, str] = {}
        super().__init__(persistence_path)

    def _rebuild_indexes(self) -> None:
        self._url_index = {item.url: iid for iid, item in self._records.items()}

    async def add_items(self, items: list[EvidenceItem]) -> dict[str, int]:
        """
        Add scraped items, replacing any item already stored for the same URL.

        Returns:
            Counts of added and updated items
        """
        added = 0
        updated = 0
        async with self._lock:
            for item in items:
                existing_id = self._url_index.get(item.url)
                if existing_id is not None:
                    item = item.model_copy(update={"id": existing_id})
                    updated += 1
                else:
                    added += 1
                self._records[item.id] = item
                self._url_index[item.url] = item.id

            self._logger.info("evidence_added", added=added, updated=updated)
            self._persist()
        return {"added": added, "updated": updated}

    async def query_evidence(
        self,
        brand_id: str,
        keyword: str,
        limit: int,
    ) -> list[EvidenceItem]:
        """
        Items for a brand whose title or content contains keyword.

        Matching is a case-insensitive substring test. Results are ordered by
        publication time (newest first, undated last) then credibility.
        """
        needle = keyword.lower()
        async with self._lock:
            matches = [
                item
                for item in self._records.values()
                if item.brand_id == brand_id
                and (needle in (item.title or "").lower() or needle in item.content.lower())
            ]
        matches.sort(key=_recency_then_credibility, reverse=True)
        return matches[:limit]

    async def get_evidence(self, ids: list[str]) -> list[EvidenceItem]:
        """Items for the given ids in the given order, skipping unknown ids."""
        async with self._lock:
            return [self._records[i] for i in ids if i in self._records]

