"""Judgment oracle contract: fallible transport plus strict schema-validated decode.

The oracle is an external natural-language reasoning service. It may fail,
time out, or return malformed output, so callers never see its exceptions:
JudgmentOracle.judge() always returns an OracleResult carrying either a
validated pydantic value or an error string, and the caller takes its
deterministic fallback on error.

Usage:
    result = await oracle.judge(VERDICT_SYSTEM_PROMPT, prompt, VerdictJudgment)
    if result.ok:
        verdict = result.value.verdict
    else:
        ...  # fallback branch
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from reputation_system.config.logging import get_logger
from reputation_system.config.settings import settings
from reputation_system.data_management.schemas import Verdict
from reputation_system.errors import OracleError

T = TypeVar("T", bound=BaseModel)


class SentimentJudgment(BaseModel):
    """Oracle reply for post sentiment: {sentimentScore, tone, summary}."""

    model_config = ConfigDict(populate_by_name=True)

    sentiment_score: float = Field(..., alias="sentimentScore")
    tone: str = Field(default="neutral")
    summary: str = Field(default="")

    @field_validator("sentiment_score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return max(-1.0, min(1.0, v))

    @field_validator("tone")
    @classmethod
    def normalize_tone(cls, v: str) -> str:
        return v.strip().lower() or "neutral"


class VerdictJudgment(BaseModel):
    """Oracle reply for claim verification: {verdict, confidence, reason}."""

    verdict: Verdict = Field(default=Verdict.UNVERIFIED)
    confidence: float = Field(default=60.0)
    reason: str = Field(default="")

    @field_validator("verdict", mode="before")
    @classmethod
    def normalize_verdict(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(100.0, v))


class CorrectionDraft(BaseModel):
    """Oracle reply for correction prose: {correction}."""

    correction: str = Field(..., min_length=1)


@dataclass
class OracleResult(Generic[T]):
    """Typed result-or-error of one oracle call."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


def decode_judgment(raw: str, schema: Type[T]) -> OracleResult[T]:
    """
    Decode raw oracle text into a validated schema instance.

    Handles replies wrapped in markdown code blocks (```json ... ```) or
    surrounded by prose by extracting the outermost JSON object.

    Args:
        raw: Raw oracle reply text
        schema: Pydantic model the reply must satisfy

    Returns:
        OracleResult with the validated value, or with a decode error
    """
    text = (raw or "").strip()
    if not text:
        return OracleResult(error="empty oracle reply")

    fence_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fence_match:
        text = fence_match.group(1).strip()

    object_match = re.search(r"\{[\s\S]*\}", text)
    if not object_match:
        return OracleResult(error="no JSON object in oracle reply")

    try:
        data = json.loads(object_match.group(0))
    except json.JSONDecodeError as e:
        return OracleResult(error=f"malformed JSON: {e}")

    if not isinstance(data, dict):
        return OracleResult(error="oracle reply is not a JSON object")

    try:
        return OracleResult(value=schema.model_validate(data))
    except ValidationError as e:
        return OracleResult(
            error=f"{schema.__name__} validation failed: {e.error_count()} error(s)"
        )


class JudgmentOracle(ABC):
    """
    Base class for judgment oracles.

    Subclasses implement complete(), the raw text transport, and may raise
    anything. judge() is the only entry point used by the pipeline and
    never raises.
    """

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.oracle_timeout_seconds
        )
        self.logger = get_logger(type(self).__name__)

    @abstractmethod
    async def complete(self, system_prompt: str, prompt: str) -> str:
        """Send one prompt and return the raw reply text."""

    async def judge(
        self,
        system_prompt: str,
        prompt: str,
        schema: Type[T],
    ) -> OracleResult[T]:
        """
        Call the oracle with a timeout and decode the reply against schema.

        Timeouts, transport errors and malformed replies all come back as
        an error result.
        """
        try:
            raw = await asyncio.wait_for(
                self.complete(system_prompt, prompt),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Oracle timed out after {self.timeout_seconds}s ({schema.__name__})"
            )
            return OracleResult(error=f"oracle timed out after {self.timeout_seconds}s")
        except OracleError as e:
            self.logger.warning(f"Oracle unavailable ({schema.__name__}): {e.message}")
            return OracleResult(error=e.message)
        except Exception as e:
            self.logger.warning(f"Oracle call failed ({schema.__name__}): {e}")
            return OracleResult(error=f"oracle call failed: {e}")

        result = decode_judgment(raw, schema)
        if not result.ok:
            self.logger.warning(f"Oracle reply rejected: {result.error}")
        return result


class UnavailableOracle(JudgmentOracle):
    """Oracle used when no provider is configured; every call takes the fallback."""

    async def complete(self, system_prompt: str, prompt: str) -> str:
        raise OracleError("no judgment oracle configured")
