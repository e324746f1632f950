"""Brand and Monitor configuration storage.

Monitors and brands are configured by operators and read by the Scoring
Engine and the sweep; the pipeline never mutates them.
"""

from typing import Optional

from reputation_system.data_management.base_store import RecordStore
from reputation_system.data_management.schemas import Brand, Monitor


class BrandStore(RecordStore[Brand]):
    model = Brand

    async def save_brand(self, brand: Brand) -> Brand:
        async with self._lock:
            self._records[brand.id] = brand
            self._persist()
        self._logger.info("brand_saved", brand_id=brand.id, mode=brand.verification_mode.value)
        return brand

    async def get_brand(self, brand_id: str) -> Optional[Brand]:
        async with self._lock:
            return self._records.get(brand_id)


class MonitorStore(RecordStore[Monitor]):
    model = Monitor

    async def save_monitor(self, monitor: Monitor) -> Monitor:
        async with self._lock:
            self._records[monitor.id] = monitor
            self._persist()
        self._logger.info(
            "monitor_saved",
            monitor_id=monitor.id,
            brand_id=monitor.brand_id,
            keywords=len(monitor.keywords),
        )
        return monitor

    async def list_active(self, brand_id: Optional[str] = None) -> list[Monitor]:
        """Active monitors in insertion order, optionally for one brand."""
        async with self._lock:
            monitors = [m for m in self._records.values() if m.is_active]
        if brand_id is not None:
            monitors = [m for m in monitors if m.brand_id == brand_id]
        return monitors
