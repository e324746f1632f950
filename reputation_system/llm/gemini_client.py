"""Gemini-backed judgment oracle with rate limiting."""

from typing import Optional

import google.generativeai as genai
from google.generativeai.types.generation_types import BlockedPromptException

from reputation_system.config.settings import settings
from reputation_system.errors import ConfigurationError, OracleError
from reputation_system.llm.oracle import JudgmentOracle
from reputation_system.llm.rate_limiter import RateLimiter, estimate_tokens


def reported_tokens(response) -> Optional[int]:
    """Total tokens Gemini billed for a reply, None when it sent no usage."""
    usage = getattr(response, "usage_metadata", None)
    total = getattr(usage, "total_token_count", None)
    return total if isinstance(total, int) and total > 0 else None


class GeminiOracle(JudgmentOracle):
    """
    Judgment oracle backed by Google Gemini.

    Requests JSON output at low temperature. No retries happen here: a
    throttled, blocked or failed call surfaces as an OracleError, which
    judge() turns into an error result for the caller's fallback.

    Attributes:
        model_name: Gemini model identifier
        temperature: Sampling temperature for every call
        rate_limiter: RPM/TPM limiter shared by all calls on this oracle
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.2,
        rate_limiter: Optional[RateLimiter] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Raises:
            ConfigurationError: If no API key is configured
        """
        super().__init__(timeout_seconds=timeout_seconds)
        key = api_key or settings.gemini_api_key
        if not key:
            raise ConfigurationError("GEMINI_API_KEY not configured in environment")

        genai.configure(api_key=key)
        self.model_name = model_name or settings.gemini_model
        self.temperature = temperature
        self.rate_limiter = rate_limiter or RateLimiter()

        self.logger.info(f"Gemini oracle initialized with model {self.model_name}")

    async def complete(self, system_prompt: str, prompt: str) -> str:
        reservation = self.rate_limiter.reserve(estimate_tokens(system_prompt, prompt))
        if reservation is None:
            raise OracleError("oracle rate limit reached")

        model = genai.GenerativeModel(
            self.model_name,
            system_instruction=system_prompt,
        )
        try:
            response = await model.generate_content_async(
                prompt,
                generation_config=genai.types.GenerationConfig(
                    temperature=self.temperature,
                    response_mime_type="application/json",
                ),
            )
        except BlockedPromptException as e:
            raise OracleError(f"prompt blocked by safety filters: {e}") from e

        self.rate_limiter.settle(reservation, reported_tokens(response))

        try:
            return response.text
        except ValueError as e:
            # Raised by the SDK when the candidate carries no text parts
            raise OracleError(f"oracle returned no text: {e}") from e
