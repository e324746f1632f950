"""Application settings using Pydantic BaseSettings for environment variable management."""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        gemini_api_key: Google Gemini API key (oracle falls back when empty)
        gemini_model: Gemini model used as the judgment oracle
        max_rpm: Maximum oracle requests per minute
        max_tpm: Maximum oracle tokens per minute
        oracle_timeout_seconds: Per-call timeout for the judgment oracle
        evidence_timeout_seconds: Per-call timeout for evidence store queries
        publish_timeout_seconds: Per-call timeout for the target platform
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        platform_api_url: Base URL of the target platform API
        platform_api_key: Bearer token for the target platform API
        worker_concurrency: Number of jobs processed in parallel
        job_max_attempts: Attempts per verification job before abandoning it
        detection_max_attempts: Attempts per detection job before abandoning it
        job_backoff_seconds: Base delay of the exponential retry backoff
        job_backoff_max_seconds: Upper bound of a single retry delay
        scan_interval_seconds: Period of the unverified-threat sweep (0 disables)
        scan_batch_size: Maximum threats queued by one sweep
        dedupe_verification_jobs: Skip enqueueing a verification already in flight
        job_history_size: Finished jobs kept in memory for inspection
        credibility_threshold: Minimum credibility for evidence to count as credible
        evidence_window: Maximum evidence items considered per claim
        judge_headline_count: Credible headlines shown to the oracle
        citation_count: Evidence items cited in a response
        correction_max_chars: Character budget for oracle-written correction prose
        response_max_chars: Character budget for the full response content
        retweet_weight: Per-retweet multiplier in the virality score
        data_dir: Directory for JSON persistence (memory-only when empty)
    """

    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key"
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Default Gemini model identifier"
    )
    max_rpm: int = Field(
        default=15,
        description="Maximum requests per minute (free tier limit)"
    )
    max_tpm: int = Field(
        default=1_000_000,
        description="Maximum tokens per minute"
    )
    oracle_timeout_seconds: float = Field(
        default=20.0,
        description="Timeout for a single oracle call"
    )
    evidence_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single evidence store query"
    )
    publish_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single platform publish call"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    platform_api_url: str = Field(
        default="http://localhost:4000",
        description="Base URL of the platform receiving corrective replies"
    )
    platform_api_key: str = Field(
        default="",
        description="Bearer token for the platform API"
    )
    worker_concurrency: int = Field(
        default=10,
        ge=1,
        description="Concurrent jobs processed by the orchestrator"
    )
    job_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per verification job"
    )
    detection_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts per detection job"
    )
    job_backoff_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Base delay for exponential job backoff"
    )
    job_backoff_max_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Maximum delay between job attempts"
    )
    scan_interval_seconds: float = Field(
        default=600.0,
        ge=0.0,
        description="Interval of the unverified-threat sweep, 0 disables it"
    )
    scan_batch_size: int = Field(
        default=25,
        ge=1,
        description="Threats queued per sweep"
    )
    dedupe_verification_jobs: bool = Field(
        default=False,
        description="Skip enqueueing a verify job when one is already active"
    )
    job_history_size: int = Field(
        default=100,
        ge=0,
        description="Most recent finished jobs kept in memory"
    )
    credibility_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Credibility at or above which evidence is trusted"
    )
    evidence_window: int = Field(
        default=15,
        ge=1,
        description="Evidence items retrieved per claim"
    )
    judge_headline_count: int = Field(
        default=5,
        ge=1,
        description="Credible headlines passed to the oracle"
    )
    citation_count: int = Field(
        default=3,
        ge=0,
        description="Evidence items cited in a corrective response"
    )
    correction_max_chars: int = Field(
        default=280,
        ge=20,
        description="Character budget for correction prose"
    )
    response_max_chars: int = Field(
        default=700,
        ge=40,
        description="Character budget for full response content"
    )
    retweet_weight: float = Field(
        default=0.5,
        ge=0.0,
        description="Retweet amplification weight in the virality score"
    )
    data_dir: str = Field(
        default="",
        description="Directory for JSON persistence of stores"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance - import this throughout the application
settings = Settings()
