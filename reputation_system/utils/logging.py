"""Structured logging utilities using structlog for component context and tracing."""

import os
import sys
import uuid
from typing import Optional
import structlog
from structlog.processors import JSONRenderer
from structlog.contextvars import merge_contextvars

IS_TTY = sys.stderr.isatty()
LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_structured_logging() -> None:
    """
    Configure structured logging with appropriate processors and renderers.

    Uses:
    - Console renderer for development (colorized, human-readable)
    - JSON renderer for production (structured, machine-readable)
    - Context binding for job_id and threat_id via contextvars
    """
    processors = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if IS_TTY and LOG_FORMAT == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_correlation_id() -> str:
    """
    Generate a correlation ID for tracing one job across components.

    Returns:
        UUID string for correlation
    """
    return str(uuid.uuid4())


def bind_job_context(job_id: str, correlation_id: Optional[str] = None) -> None:
    """
    Bind job context into structlog contextvars for the current task.

    Every structlog call made while the job runs carries the job_id, which
    ties stage logs back to the orchestrator's job record.

    Args:
        job_id: Job being executed
        correlation_id: Optional correlation ID for tracing
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        job_id=job_id,
        correlation_id=correlation_id or get_correlation_id(),
    )


configure_structured_logging()


__all__ = [
    "get_correlation_id",
    "bind_job_context",
    "configure_structured_logging",
]
