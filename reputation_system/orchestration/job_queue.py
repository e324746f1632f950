"""Durable priority job queue feeding the orchestrator's workers."""

import asyncio
import heapq
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from reputation_system.data_management.job_store import JobStore
from reputation_system.data_management.schemas import JobKind, JobRecord, JobStatus


SEVERITY_WEIGHTS = {
    "CRITICAL": 1.0,
    "HIGH": 0.75,
    "MEDIUM": 0.5,
    "LOW": 0.25,
}


@dataclass
class Job:
    """
    A unit of orchestrator work with priority ordering.

    Fields:
        id: Unique job identifier
        kind: detect-post, verify-one or scan-unverified
        payload: Kind-specific arguments (post fields, threat_id, autopost)
        priority: Priority score 0.0-1.0 (higher is more important)
        created_at: Timestamp when job was created
        status: Job execution status
        attempts: Attempts started so far
        max_attempts: Attempt budget before the job is abandoned
        last_error: Message of the most recent failure
        result: Summary returned by the last successful attempt
    """

    id: str
    kind: JobKind
    payload: Dict[str, Any]
    priority: float
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    last_error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    def __lt__(self, other: "Job") -> bool:
        """Higher priority first; older first for equal priority."""
        if self.priority != other.priority:
            return self.priority > other.priority
        return self.created_at < other.created_at

    @property
    def threat_id(self) -> Optional[str]:
        return self.payload.get("threat_id")

    def to_record(self) -> JobRecord:
        return JobRecord(
            id=self.id,
            kind=self.kind,
            payload=self.payload,
            priority=self.priority,
            status=self.status,
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            last_error=self.last_error,
            created_at=self.created_at,
        )

    @classmethod
    def from_record(cls, record: JobRecord) -> "Job":
        return cls(
            id=record.id,
            kind=record.kind,
            payload=dict(record.payload),
            priority=record.priority,
            created_at=record.created_at,
            status=record.status,
            attempts=record.attempts,
            max_attempts=record.max_attempts,
            last_error=record.last_error,
        )


class JobQueue:
    """
    Priority-based job queue with optional durable backing.

    Features:
    - Heap-based priority queue for efficient job retrieval
    - Automatic priority calculation from threat severity and urgency
    - Job status tracking, persisted through JobStore when given
    - Finished jobs leave the active table for a bounded history of the
      most recent ones, so memory stays flat under a steady stream of posts
    - Awaitable job hand-off to workers and drain detection via join()

    Priority Scoring Components:
    - Severity (0.5 weight): Threat severity carried in the payload
    - Urgency (0.3 weight): Manual triggers high, sweeps low
    - Retry penalty (0.2 weight): Decreases priority for attempts already spent
    """

    def __init__(self, job_store: Optional[JobStore] = None, history_size: int = 100):
        self._heap: List[Job] = []
        self._jobs: Dict[str, Job] = {}
        self._finished: "OrderedDict[str, Job]" = OrderedDict()
        self.history_size = history_size
        self._store = job_store
        self._available = asyncio.Event()
        self._drained = asyncio.Event()
        self._drained.set()
        self._unfinished = 0
        self.logger = logger.bind(component="JobQueue")

    async def add_job(
        self,
        kind: JobKind,
        payload: Optional[Dict[str, Any]] = None,
        priority: Optional[float] = None,
        max_attempts: int = 3,
        job_id: Optional[str] = None,
    ) -> Job:
        """
        Add a job with auto-calculated priority.

        Args:
            kind: Job kind
            payload: Kind-specific arguments
            priority: Manual priority override (0.0-1.0), auto-calculated if None
            max_attempts: Attempt budget
            job_id: Optional job ID (generated if not provided)

        Returns:
            The queued Job
        """
        payload = payload or {}
        if priority is None:
            priority = self._calculate_priority(payload)
        else:
            priority = max(0.0, min(1.0, priority))

        job = Job(
            id=job_id or f"JOB-{uuid.uuid4().hex[:8].upper()}",
            kind=kind,
            payload=payload,
            priority=priority,
            max_attempts=max_attempts,
        )
        await self._enqueue(job)

        self.logger.info(
            f"Job added: {job.id} ({kind.value})",
            priority=f"{priority:.3f}",
            threat_id=job.threat_id,
        )
        return job

    async def _enqueue(self, job: Job) -> None:
        heapq.heappush(self._heap, job)
        self._jobs[job.id] = job
        self._unfinished += 1
        self._drained.clear()
        self._available.set()
        await self._persist(job)

    def _calculate_priority(self, payload: Dict[str, Any], attempts: int = 0) -> float:
        """
        Calculate job priority using heuristic scoring.

        Components:
        - Severity: 0.5 weight
        - Urgency: 0.3 weight
        - Retry penalty: 0.2 weight
        """
        severity_score = SEVERITY_WEIGHTS.get(str(payload.get("severity", "")).upper(), 0.5)

        urgency = payload.get("urgency")
        if urgency == "high":
            urgency_score = 1.0
        elif urgency == "low":
            urgency_score = 0.3
        else:
            urgency_score = 0.5

        retry_penalty = max(0.0, 1.0 - (attempts * 0.2))

        priority = severity_score * 0.5 + urgency_score * 0.3 + retry_penalty * 0.2
        return max(0.0, min(1.0, priority))

    def get_next_job(self) -> Optional[Job]:
        """
        Pop the highest priority pending job and mark it running.

        Returns:
            Job if available, None if nothing is pending
        """
        while self._heap:
            job = heapq.heappop(self._heap)
            if job.id not in self._jobs or job.status != JobStatus.PENDING:
                continue
            job.status = JobStatus.RUNNING
            self.logger.debug(f"Job retrieved: {job.id}", priority=f"{job.priority:.3f}")
            return job
        return None

    async def wait_for_job(self) -> Job:
        """Block until a pending job is available and return it."""
        while True:
            job = self.get_next_job()
            if job is not None:
                return job
            self._available.clear()
            await self._available.wait()

    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        result: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Update job status; completed and failed jobs count as finished.

        Returns:
            True if updated, False if job not found
        """
        job = self._jobs.get(job_id)
        if job is None:
            self.logger.warning(f"Job not found for status update: {job_id}")
            return False

        old_status = job.status
        job.status = status
        if error is not None:
            job.last_error = error
        if result is not None:
            job.result = result

        if status in (JobStatus.COMPLETED, JobStatus.FAILED) and old_status.is_active:
            self._unfinished = max(0, self._unfinished - 1)
            if self._unfinished == 0:
                self._drained.set()
            self._retire(job)

        await self._persist(job)
        self.logger.debug(
            f"Job status updated: {job_id}",
            old_status=old_status.value,
            new_status=status.value,
        )
        return True

    def _retire(self, job: Job) -> None:
        del self._jobs[job.id]
        self._finished[job.id] = job
        while len(self._finished) > self.history_size:
            self._finished.popitem(last=False)

    async def _persist(self, job: Job) -> None:
        if self._store is not None:
            await self._store.save_job(job.to_record())

    def find_active(self, kind: JobKind, threat_id: str) -> Optional[Job]:
        """An unfinished job of the given kind for the given threat, if any."""
        for job in self._jobs.values():
            if job.kind == kind and job.threat_id == threat_id and job.status.is_active:
                return job
        return None

    async def restore(self) -> int:
        """
        Re-queue jobs a previous process left unfinished.

        Running and retrying jobs are reset to pending and keep their
        attempt count, so a restored job only gets its remaining budget.
        Its priority is recalculated with the retry penalty for the
        attempts already spent.

        Returns:
            Number of jobs restored
        """
        if self._store is None:
            return 0

        restored = 0
        for record in await self._store.list_active():
            if record.id in self._jobs:
                continue
            job = Job.from_record(record)
            job.status = JobStatus.PENDING
            if job.attempts >= job.max_attempts:
                job.attempts = job.max_attempts - 1
            job.priority = self._calculate_priority(job.payload, job.attempts)
            await self._enqueue(job)
            restored += 1

        if restored:
            self.logger.info(f"Restored {restored} unfinished jobs")
        return restored

    async def join(self) -> None:
        """Wait until every queued job has completed or failed."""
        await self._drained.wait()

    def get_job(self, job_id: str) -> Optional[Job]:
        """An active job, or a finished one still in the recent history."""
        return self._jobs.get(job_id) or self._finished.get(job_id)

    async def prune_store(self) -> int:
        """Drop completed records from the JobStore; failed ones are kept."""
        if self._store is None:
            return 0
        return await self._store.prune_finished()

    def get_pending_jobs(self, limit: Optional[int] = None) -> List[Job]:
        pending = sorted(j for j in self._jobs.values() if j.status == JobStatus.PENDING)
        return pending[:limit] if limit else pending

    def get_statistics(self) -> Dict[str, Any]:
        status_counts: Dict[str, int] = {}
        kind_counts: Dict[str, int] = {}
        jobs = list(self._jobs.values()) + list(self._finished.values())
        for job in jobs:
            status_counts[job.status.value] = status_counts.get(job.status.value, 0) + 1
            kind_counts[job.kind.value] = kind_counts.get(job.kind.value, 0) + 1

        return {
            "total_jobs": len(jobs),
            "pending_jobs": status_counts.get("pending", 0),
            "running_jobs": status_counts.get("running", 0),
            "retrying_jobs": status_counts.get("retrying", 0),
            "completed_jobs": status_counts.get("completed", 0),
            "failed_jobs": status_counts.get("failed", 0),
            "by_kind": kind_counts,
        }

    def __len__(self) -> int:
        """Number of unfinished jobs."""
        return len(self._jobs)
