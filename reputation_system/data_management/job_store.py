"""Durable job records for the orchestrator queue."""

from datetime import datetime, timezone
from typing import Optional

from reputation_system.data_management.base_store import RecordStore
from reputation_system.data_management.schemas import JobRecord, JobStatus


class JobStore(RecordStore[JobRecord]):
    """Storage for job records keyed by job id.

    Finished jobs are kept until pruned so operators can inspect failures.
    """

    model = JobRecord

    async def save_job(self, record: JobRecord) -> None:
        async with self._lock:
            self._records[record.id] = record.model_copy(
                update={"updated_at": datetime.now(timezone.utc)}
            )
            self._persist()

    async def get_job(self, job_id: str) -> Optional[JobRecord]:
        async with self._lock:
            return self._records.get(job_id)

    async def list_active(self) -> list[JobRecord]:
        """Jobs left pending, running or retrying, oldest first."""
        async with self._lock:
            active = [r for r in self._records.values() if r.status.is_active]
        return sorted(active, key=lambda r: r.created_at)

    async def list_jobs(self, status: Optional[JobStatus] = None) -> list[JobRecord]:
        async with self._lock:
            jobs = list(self._records.values())
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        return sorted(jobs, key=lambda r: r.created_at, reverse=True)

    async def prune_finished(self) -> int:
        """Drop completed jobs; failed jobs stay for inspection."""
        async with self._lock:
            finished = [jid for jid, r in self._records.items() if r.status == JobStatus.COMPLETED]
            for jid in finished:
                del self._records[jid]
            if finished:
                self._persist()
        self._logger.debug("jobs_pruned", count=len(finished))
        return len(finished)
