"""Shared persistence mechanics for the pipeline's record stores.

Every store keeps pydantic records in memory behind an asyncio lock and can
mirror them to a JSON file. Mutations are single-record upserts keyed by the
record's natural key, so two workers touching the same entity converge to
one record instead of duplicating it.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Generic, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class RecordStore(Generic[M]):
    """In-memory record store with optional JSON persistence.

    Data structure:
    {
        record_id: <model_dump(mode="json")>,
        ...
    }

    Subclasses set ``model`` and call ``_rebuild_indexes`` hooks for any
    secondary key they maintain.
    """

    model: Type[M]

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        """
        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._records: dict[str, M] = {}
        self._lock = asyncio.Lock()
        self._persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = structlog.get_logger().bind(component=type(self).__name__)

        if self._persistence_path and self._persistence_path.exists():
            self._load_from_file()

    def __len__(self) -> int:
        return len(self._records)

    def _rebuild_indexes(self) -> None:
        """Recompute secondary indexes from ``_records`` after a load."""

    def _persist(self) -> None:
        if self._persistence_path:
            self._save_to_file()

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        if not self._persistence_path:
            return
        try:
            self._persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data: dict[str, Any] = {
                rid: record.model_dump(mode="json")
                for rid, record in self._records.items()
            }
            with open(self._persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except Exception as e:
            self._logger.error("persistence_failed", error=str(e))

    def _load_from_file(self) -> None:
        """Load records from JSON file and rebuild indexes (synchronous)."""
        try:
            with open(self._persistence_path, "r") as f:
                data = json.load(f)

            self._records = {}
            for rid, raw in data.items():
                try:
                    self._records[rid] = self.model.model_validate(raw)
                except ValidationError as e:
                    self._logger.warning("record_skipped", record_id=rid, errors=e.error_count())

            self._rebuild_indexes()
            self._logger.info(
                "store_loaded",
                path=str(self._persistence_path),
                records=len(self._records),
            )
        except Exception as e:
            self._logger.error("load_failed", error=str(e))
            self._records = {}
            self._rebuild_indexes()
