"""Job orchestrator: worker pool, retries, periodic sweep and manual controls.

Job kinds:
- detect-post: score one incoming post (Scoring Engine); a triggered post
  enqueues a verify-one job through the engine's on_threat callback
- verify-one: run the VerificationPipeline for one Threat
- scan-unverified: queue catch-up verify-one jobs for Threats that never
  got a verification (jobs lost to a restart)

Each job attempt runs start to finish inside one worker. Transient errors
are retried with exponential backoff until the attempt budget is spent;
FatalErrors fail the job at once. Every terminal failure is reported as a
notification, never dropped.
"""

import asyncio
from typing import Any, Dict, List, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from reputation_system.agents.communication.notifications import NotificationChannel
from reputation_system.agents.detection.scoring_engine import ScoringEngine
from reputation_system.agents.response.publisher import Publisher
from reputation_system.config.logging import get_logger
from reputation_system.config.settings import settings
from reputation_system.data_management.monitor_store import BrandStore
from reputation_system.data_management.schemas import (
    IncomingPost,
    JobKind,
    JobStatus,
    NotificationEvent,
    Response,
    Threat,
)
from reputation_system.data_management.threat_store import ThreatStore
from reputation_system.errors import FatalError, NotFoundError
from reputation_system.orchestration.job_queue import Job, JobQueue
from reputation_system.pipeline.verification_pipeline import VerificationPipeline
from reputation_system.utils.logging import bind_job_context


def _is_retryable(error: BaseException) -> bool:
    # Cancellation must stop the job, not schedule another attempt
    return isinstance(error, Exception) and not isinstance(error, FatalError)


class JobOrchestrator:
    """
    Concurrency-bounded executor for pipeline jobs.

    Attributes:
        queue: Priority job queue shared by all workers
        concurrency: Number of worker coroutines
        max_attempts: Attempt budget for verify-one and scan-unverified jobs
        detection_max_attempts: Attempt budget for detect-post jobs
        dedupe_verification_jobs: Skip enqueueing a verify-one already in flight
    """

    def __init__(
        self,
        queue: JobQueue,
        scoring_engine: ScoringEngine,
        pipeline: VerificationPipeline,
        publisher: Publisher,
        threat_store: ThreatStore,
        brand_store: BrandStore,
        notifications: NotificationChannel,
        concurrency: Optional[int] = None,
        max_attempts: Optional[int] = None,
        detection_max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        scan_interval_seconds: Optional[float] = None,
        scan_batch_size: Optional[int] = None,
        dedupe_verification_jobs: Optional[bool] = None,
    ):
        self.queue = queue
        self._scoring_engine = scoring_engine
        self._pipeline = pipeline
        self._publisher = publisher
        self._threat_store = threat_store
        self._brand_store = brand_store
        self._notifications = notifications

        self.concurrency = concurrency or settings.worker_concurrency
        self.max_attempts = max_attempts or settings.job_max_attempts
        self.detection_max_attempts = detection_max_attempts or settings.detection_max_attempts
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.job_backoff_seconds
        )
        self.backoff_max_seconds = (
            backoff_max_seconds
            if backoff_max_seconds is not None
            else settings.job_backoff_max_seconds
        )
        self.scan_interval_seconds = (
            scan_interval_seconds
            if scan_interval_seconds is not None
            else settings.scan_interval_seconds
        )
        self.scan_batch_size = scan_batch_size or settings.scan_batch_size
        self.dedupe_verification_jobs = (
            dedupe_verification_jobs
            if dedupe_verification_jobs is not None
            else settings.dedupe_verification_jobs
        )

        self._workers: List[asyncio.Task] = []
        self._sweeper: Optional[asyncio.Task] = None
        self._running = False
        self.logger = get_logger("JobOrchestrator")

        # Triggered posts enqueue their verification directly
        self._scoring_engine.on_threat = self._on_threat

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Restore unfinished jobs, then start workers and the sweep loop."""
        if self._running:
            return
        self._running = True

        restored = await self.queue.restore()
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"job-worker-{i}")
            for i in range(self.concurrency)
        ]
        if self.scan_interval_seconds > 0:
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="job-sweeper")

        self.logger.info(
            f"Orchestrator started with {self.concurrency} workers",
            restored=restored,
            scan_interval=self.scan_interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel workers and the sweep loop. In-flight attempts are abandoned."""
        if not self._running:
            return
        self._running = False

        tasks = list(self._workers)
        if self._sweeper is not None:
            tasks.append(self._sweeper)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._workers = []
        self._sweeper = None
        self.logger.info("Orchestrator stopped")

    async def join(self) -> None:
        """Wait until the queue has drained."""
        await self.queue.join()

    # ── Enqueue operations ──

    async def submit_post(self, post: IncomingPost) -> str:
        """Ingestion entry point: queue one observed post for scoring."""
        job = await self.queue.add_job(
            JobKind.DETECT_POST,
            {"post": post.model_dump(mode="json")},
            max_attempts=self.detection_max_attempts,
        )
        return job.id

    async def enqueue_verification(
        self,
        threat_id: str,
        autopost: bool = False,
        severity: Optional[str] = None,
        urgency: Optional[str] = None,
    ) -> str:
        """
        Queue a verify-one job for a Threat.

        With dedupe_verification_jobs enabled, an already active job for
        the Threat is returned instead of queueing a duplicate.

        Returns:
            ID of the queued (or already active) job
        """
        if self.dedupe_verification_jobs:
            active = self.queue.find_active(JobKind.VERIFY_ONE, threat_id)
            if active is not None:
                self.logger.debug(f"Verification already queued for {threat_id}: {active.id}")
                return active.id

        payload: Dict[str, Any] = {"threat_id": threat_id, "autopost": autopost}
        if severity:
            payload["severity"] = severity
        if urgency:
            payload["urgency"] = urgency

        job = await self.queue.add_job(
            JobKind.VERIFY_ONE,
            payload,
            max_attempts=self.max_attempts,
        )
        return job.id

    async def _on_threat(self, threat: Threat, autopost: bool) -> None:
        await self.enqueue_verification(
            threat.id,
            autopost=autopost,
            severity=threat.severity.value,
        )

    async def schedule_sweep(self) -> str:
        job = await self.queue.add_job(
            JobKind.SCAN_UNVERIFIED,
            {"urgency": "low"},
            max_attempts=self.max_attempts,
        )
        return job.id

    # ── Manual controls ──

    async def force_verify(self, threat_id: str, autopost: bool = False) -> str:
        """
        Operator trigger: queue verification for a Threat and return at once.

        Raises:
            NotFoundError: Threat does not exist
        """
        threat = await self._threat_store.get_threat(threat_id)
        if threat is None:
            raise NotFoundError("Threat", threat_id)
        return await self.enqueue_verification(
            threat_id,
            autopost=autopost,
            severity=threat.severity.value,
            urgency="high",
        )

    async def force_publish(self, response_id: str) -> Response:
        """Operator trigger: publish a Response and wait for the outcome."""
        return await self._publisher.publish(response_id)

    async def sweep(self) -> List[str]:
        """
        Queue verify-one jobs for unverified Threats without an active job,
        then drop completed job records from the JobStore.

        Returns:
            IDs of the jobs queued by this sweep
        """
        threats = await self._threat_store.list_unverified(self.scan_batch_size)
        job_ids: List[str] = []
        for threat in threats:
            if self.queue.find_active(JobKind.VERIFY_ONE, threat.id) is not None:
                continue
            brand = await self._brand_store.get_brand(threat.brand_id)
            job_ids.append(
                await self.enqueue_verification(
                    threat.id,
                    autopost=bool(brand and brand.autopost),
                    severity=threat.severity.value,
                    urgency="low",
                )
            )

        pruned = await self.queue.prune_store()
        self.logger.info(
            f"Sweep queued {len(job_ids)} of {len(threats)} unverified threats, "
            f"pruned {pruned} completed job records"
        )
        return job_ids

    # ── Execution ──

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.scan_interval_seconds)
            try:
                await self.schedule_sweep()
            except Exception:
                self.logger.opt(exception=True).error("Could not schedule sweep, retrying next interval")

    async def _worker(self, worker_id: int) -> None:
        log = self.logger.bind(worker=worker_id)
        log.debug("Worker started")
        while True:
            job = await self.queue.wait_for_job()
            await self.execute(job)

    async def execute(self, job: Job) -> None:
        """
        Run one job to a terminal state. Never raises.

        The attempt budget counts attempts made before a restart, so a
        restored job only gets what is left of it.
        """
        bind_job_context(job.id)
        remaining = max(1, job.max_attempts - job.attempts)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(remaining),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_max_seconds),
            retry=retry_if_exception(_is_retryable),
            before_sleep=lambda state: self._before_retry(job, state),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    job.attempts += 1
                    await self.queue.update_job_status(job.id, JobStatus.RUNNING)
                    result = await self._dispatch(job)
        except Exception as e:
            await self._fail(job, e)
            return

        await self.queue.update_job_status(job.id, JobStatus.COMPLETED, result=result)
        self.logger.info(
            f"Job completed: {job.id} ({job.kind.value})",
            attempts=job.attempts,
        )

    def _before_retry(self, job: Job, state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        job.status = JobStatus.RETRYING
        job.last_error = str(error) if error else None
        delay = state.next_action.sleep if state.next_action else 0
        self.logger.warning(
            f"Job {job.id} attempt {job.attempts}/{job.max_attempts} failed, "
            f"retrying in {delay:.1f}s: {error}"
        )

    async def _dispatch(self, job: Job) -> Dict[str, Any]:
        if job.kind == JobKind.DETECT_POST:
            post = IncomingPost.model_validate(job.payload["post"])
            result = await self._scoring_engine.process_post(post)
            return {
                "post_id": result.post.id if result.post else None,
                "triggered": result.triggered,
                "threat_id": result.threat.id if result.threat else None,
            }

        if job.kind == JobKind.VERIFY_ONE:
            return await self._pipeline.handle_threat(
                job.payload["threat_id"],
                autopost=bool(job.payload.get("autopost", False)),
            )

        if job.kind == JobKind.SCAN_UNVERIFIED:
            job_ids = await self.sweep()
            return {"enqueued": len(job_ids)}

        raise ValueError(f"Unknown job kind: {job.kind}")

    async def _fail(self, job: Job, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        fatal = isinstance(error, FatalError)
        await self.queue.update_job_status(job.id, JobStatus.FAILED, error=message)

        self.logger.bind(fatal=fatal, error_type=type(error).__name__).error(
            f"Job failed: {job.id} ({job.kind.value}) after {job.attempts} attempt(s): {message}"
        )

        await self._notifications.emit(
            NotificationEvent.JOB_FAILED,
            job.id,
            f"{job.kind.value} job failed: {message}",
            kind=job.kind.value,
            threat_id=job.threat_id,
            attempts=job.attempts,
            fatal=fatal,
            error=message,
        )
        if job.kind == JobKind.VERIFY_ONE and await self._still_unverified(job.threat_id):
            await self._notifications.emit(
                NotificationEvent.VERIFICATION_FAILED,
                job.threat_id,
                f"Verification failed for threat {job.threat_id}: {message}",
                job_id=job.id,
                error=message,
            )

    async def _still_unverified(self, threat_id: Optional[str]) -> bool:
        # Failures after the verdict was recorded, such as at publication, are job failures only
        if not threat_id:
            return True
        threat = await self._threat_store.get_threat(threat_id)
        return threat is None or threat.verification is None
