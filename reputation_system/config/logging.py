"""Loguru configuration for the queue, orchestrator, oracle and CLI.

Pipeline stages log through structlog (utils/logging.py) and the orchestrator
binds the running job there. The patcher below copies that job id into every
loguru record too, so a job's queue, retry and failure lines carry the same
job_id as its stage events.
"""

import sys
from typing import Optional

import structlog
from loguru import logger

from reputation_system.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <magenta>{extra[job_id]}</magenta> | "
    "<level>{message}</level>"
)


def attach_job_context(record: dict) -> None:
    """Loguru patcher: add the structlog-bound job id (or "-") to the record."""
    context = structlog.contextvars.get_contextvars()
    record["extra"].setdefault("job_id", context.get("job_id", "-"))
    record["extra"].setdefault("component", "-")


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Install the single loguru sink.

    Console format on an interactive terminal, JSON lines on stdout otherwise.

    Args:
        level: Overrides LOG_LEVEL (the CLI's --log-level)
        log_format: Overrides LOG_FORMAT ("console" or "json")
    """
    level = (level or settings.log_level).upper()
    use_console = (log_format or settings.log_format).lower() == "console"

    logger.remove()
    logger.configure(patcher=attach_job_context)

    if use_console and sys.stderr.isatty():
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    else:
        logger.add(
            sys.stdout,
            format="{message}",
            level=level,
            serialize=True,
            diagnose=False,
        )


def get_logger(component: str):
    """
    Loguru logger bound to a component name.

    Example:
        >>> log = get_logger("JobOrchestrator")
        >>> log.info("Job completed")
    """
    return logger.bind(component=component)


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging", "attach_job_context"]
