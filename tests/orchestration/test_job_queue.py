"""Tests for the durable priority job queue."""

import asyncio

import pytest

from reputation_system.data_management.job_store import JobStore
from reputation_system.data_management.schemas import JobKind, JobRecord, JobStatus
from reputation_system.orchestration.job_queue import JobQueue


class TestJobQueue:
    """Test JobQueue priority-based job management."""

    @pytest.mark.asyncio
    async def test_add_job_with_manual_priority(self):
        queue = JobQueue()
        job = await queue.add_job(JobKind.VERIFY_ONE, {"threat_id": "threat-1"}, priority=0.8)

        assert job.id.startswith("JOB-")
        assert len(queue) == 1
        assert job.priority == 0.8
        assert job.status == JobStatus.PENDING
        assert job.threat_id == "threat-1"

    @pytest.mark.asyncio
    async def test_priority_clamped(self):
        queue = JobQueue()
        job = await queue.add_job(JobKind.VERIFY_ONE, priority=3.0)
        assert job.priority == 1.0

    @pytest.mark.asyncio
    async def test_auto_priority_from_severity_and_urgency(self):
        queue = JobQueue()
        critical = await queue.add_job(JobKind.VERIFY_ONE, {"severity": "CRITICAL", "urgency": "high"})
        default = await queue.add_job(JobKind.DETECT_POST, {})
        sweep = await queue.add_job(JobKind.VERIFY_ONE, {"severity": "LOW", "urgency": "low"})

        assert critical.priority == pytest.approx(1.0 * 0.5 + 1.0 * 0.3 + 0.2)
        assert default.priority == pytest.approx(0.5 * 0.5 + 0.5 * 0.3 + 0.2)
        assert sweep.priority == pytest.approx(0.25 * 0.5 + 0.3 * 0.3 + 0.2)

    @pytest.mark.asyncio
    async def test_get_next_job_priority_order(self):
        queue = JobQueue()
        await queue.add_job(JobKind.VERIFY_ONE, priority=0.3, job_id="low")
        await queue.add_job(JobKind.VERIFY_ONE, priority=0.9, job_id="high")
        await queue.add_job(JobKind.VERIFY_ONE, priority=0.6, job_id="middle")

        assert queue.get_next_job().id == "high"
        assert queue.get_next_job().id == "middle"
        assert queue.get_next_job().id == "low"
        assert queue.get_next_job() is None

    @pytest.mark.asyncio
    async def test_retrieved_job_is_running(self):
        queue = JobQueue()
        await queue.add_job(JobKind.VERIFY_ONE, job_id="j1")
        job = queue.get_next_job()

        assert job.status == JobStatus.RUNNING
        assert queue.get_pending_jobs() == []

    @pytest.mark.asyncio
    async def test_wait_for_job_wakes_on_add(self):
        queue = JobQueue()
        waiter = asyncio.create_task(queue.wait_for_job())
        await asyncio.sleep(0)
        assert not waiter.done()

        await queue.add_job(JobKind.SCAN_UNVERIFIED, job_id="scan")
        job = await asyncio.wait_for(waiter, timeout=1)
        assert job.id == "scan"

    @pytest.mark.asyncio
    async def test_join_waits_for_terminal_status(self):
        queue = JobQueue()
        await queue.add_job(JobKind.VERIFY_ONE, job_id="j1")
        await queue.add_job(JobKind.VERIFY_ONE, job_id="j2")

        joiner = asyncio.create_task(queue.join())
        await queue.update_job_status("j1", JobStatus.COMPLETED, result={"ok": True})
        await asyncio.sleep(0)
        assert not joiner.done()

        await queue.update_job_status("j2", JobStatus.FAILED, error="boom")
        await asyncio.wait_for(joiner, timeout=1)

        assert queue.get_job("j1").result == {"ok": True}
        assert queue.get_job("j2").last_error == "boom"

    @pytest.mark.asyncio
    async def test_update_unknown_job(self):
        assert await JobQueue().update_job_status("nope", JobStatus.COMPLETED) is False

    @pytest.mark.asyncio
    async def test_find_active(self):
        queue = JobQueue()
        await queue.add_job(JobKind.VERIFY_ONE, {"threat_id": "t1"}, job_id="j1")

        assert queue.find_active(JobKind.VERIFY_ONE, "t1").id == "j1"
        assert queue.find_active(JobKind.VERIFY_ONE, "t2") is None

        await queue.update_job_status("j1", JobStatus.COMPLETED)
        assert queue.find_active(JobKind.VERIFY_ONE, "t1") is None

    @pytest.mark.asyncio
    async def test_statistics(self):
        queue = JobQueue()
        await queue.add_job(JobKind.VERIFY_ONE, job_id="a")
        await queue.add_job(JobKind.DETECT_POST, job_id="b")
        await queue.update_job_status("a", JobStatus.FAILED)

        stats = queue.get_statistics()
        assert stats["total_jobs"] == 2
        assert stats["pending_jobs"] == 1
        assert stats["failed_jobs"] == 1
        assert stats["by_kind"] == {"verify-one": 1, "detect-post": 1}

    @pytest.mark.asyncio
    async def test_finished_jobs_leave_the_active_table(self):
        queue = JobQueue(history_size=5)
        for i in range(200):
            await queue.add_job(JobKind.DETECT_POST, {"post": {"n": i}}, job_id=f"j{i}")
            queue.get_next_job()
            await queue.update_job_status(f"j{i}", JobStatus.COMPLETED)

        await asyncio.wait_for(queue.join(), timeout=1)

        assert len(queue) == 0
        assert queue.get_job("j199").status == JobStatus.COMPLETED
        assert queue.get_job("j194") is None
        assert queue.get_statistics()["total_jobs"] == 5

    @pytest.mark.asyncio
    async def test_retry_penalty_from_attempts(self):
        queue = JobQueue()
        payload = {"severity": "HIGH"}

        fresh = queue._calculate_priority(payload)
        retried = queue._calculate_priority(payload, attempts=2)

        assert fresh - retried == pytest.approx(0.2 * 0.4)
        assert queue._calculate_priority(payload, attempts=9) == pytest.approx(0.75 * 0.5 + 0.5 * 0.3)


class TestDurability:
    @pytest.mark.asyncio
    async def test_status_changes_are_persisted(self):
        store = JobStore()
        queue = JobQueue(store)
        await queue.add_job(JobKind.VERIFY_ONE, {"threat_id": "t1"}, job_id="j1")
        await queue.update_job_status("j1", JobStatus.FAILED, error="boom")

        record = await store.get_job("j1")
        assert record.status == JobStatus.FAILED
        assert record.last_error == "boom"

    @pytest.mark.asyncio
    async def test_restore_requeues_unfinished_jobs(self):
        store = JobStore()
        await store.save_job(
            JobRecord(id="running", kind=JobKind.VERIFY_ONE, status=JobStatus.RUNNING, attempts=1)
        )
        await store.save_job(
            JobRecord(id="spent", kind=JobKind.VERIFY_ONE, status=JobStatus.RETRYING, attempts=3, max_attempts=3)
        )
        await store.save_job(JobRecord(id="done", kind=JobKind.VERIFY_ONE, status=JobStatus.COMPLETED))

        queue = JobQueue(store)
        assert await queue.restore() == 2

        running = queue.get_job("running")
        assert running.status == JobStatus.PENDING
        assert running.attempts == 1
        assert queue.get_job("spent").attempts == 2
        assert queue.get_job("done") is None

        assert await queue.restore() == 0

    @pytest.mark.asyncio
    async def test_restored_job_priority_carries_retry_penalty(self):
        store = JobStore()
        payload = {"threat_id": "t1", "severity": "HIGH"}
        await store.save_job(
            JobRecord(id="fresh", kind=JobKind.VERIFY_ONE, payload=payload, status=JobStatus.PENDING, priority=0.9)
        )
        await store.save_job(
            JobRecord(
                id="retried",
                kind=JobKind.VERIFY_ONE,
                payload=payload,
                status=JobStatus.RETRYING,
                attempts=2,
                priority=0.9,
            )
        )

        queue = JobQueue(store)
        await queue.restore()

        assert queue.get_job("retried").priority < queue.get_job("fresh").priority
        assert queue.get_next_job().id == "fresh"

    @pytest.mark.asyncio
    async def test_prune_store_drops_completed_records(self):
        store = JobStore()
        queue = JobQueue(store)
        await queue.add_job(JobKind.VERIFY_ONE, job_id="ok")
        await queue.add_job(JobKind.VERIFY_ONE, job_id="bad")
        await queue.update_job_status("ok", JobStatus.COMPLETED)
        await queue.update_job_status("bad", JobStatus.FAILED, error="boom")

        assert await queue.prune_store() == 1
        assert await store.get_job("ok") is None
        assert (await store.get_job("bad")).status == JobStatus.FAILED
        assert await JobQueue().prune_store() == 0
