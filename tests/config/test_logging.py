"""Tests for the loguru setup and its job-context patcher."""

import structlog
from typer.testing import CliRunner

from reputation_system.cli import main
from reputation_system.config.logging import attach_job_context, get_logger, logger
from reputation_system.utils.logging import bind_job_context


# ── Fixtures ──────────────────────────────────────────────────────────────


def capture(records):
    """Sink id collecting every patched loguru record."""
    return logger.add(lambda message: records.append(message.record), level="DEBUG")


# ── Tests ─────────────────────────────────────────────────────────────────


class TestJobContext:
    def test_bound_job_id_reaches_loguru_records(self):
        records = []
        sink = capture(records)
        try:
            bind_job_context("job-42", correlation_id="corr-1")
            get_logger("JobOrchestrator").info("Job completed")
        finally:
            structlog.contextvars.clear_contextvars()
            logger.remove(sink)

        assert records[-1]["extra"]["job_id"] == "job-42"
        assert records[-1]["extra"]["component"] == "JobOrchestrator"

    def test_placeholder_outside_a_job(self):
        structlog.contextvars.clear_contextvars()
        record = {"extra": {}}

        attach_job_context(record)

        assert record["extra"] == {"job_id": "-", "component": "-"}

    def test_explicit_job_id_wins(self):
        bind_job_context("job-running")
        try:
            record = {"extra": {"job_id": "job-explicit"}}
            attach_job_context(record)
        finally:
            structlog.contextvars.clear_contextvars()

        assert record["extra"]["job_id"] == "job-explicit"


class TestLogLevelOption:
    def test_cli_option_reconfigures_level(self, monkeypatch):
        calls = []
        monkeypatch.setattr(main, "configure_logging", lambda **kwargs: calls.append(kwargs))

        result = CliRunner().invoke(main.app, ["--log-level", "debug", "version"])

        assert result.exit_code == 0
        assert calls == [{"level": "debug"}]

