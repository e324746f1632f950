"""Request and token budgets for the judgment oracle.

Gemini enforces per-minute quotas on both requests and tokens. The oracle
cannot know a call's token cost until Gemini reports it, so a call first
reserves an estimate and then settles the reservation against the usage
metadata of the reply. An under-estimate leaves the token budget in debt,
which throttles the following calls until the budget refills.

A throttled call is rejected, never delayed: the oracle raises and the
caller takes its fallback branch.
"""

import time
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from reputation_system.config.settings import settings

# Rough prompt cost when no usage is known yet
CHARS_PER_TOKEN = 4

# Allowance for the JSON verdicts, sentiment readings and correction drafts
REPLY_TOKEN_ALLOWANCE = 256


def estimate_tokens(system_prompt: str, prompt: str) -> int:
    return (len(system_prompt) + len(prompt)) // CHARS_PER_TOKEN + REPLY_TOKEN_ALLOWANCE


class TokenBucket:
    """
    Continuously refilling budget.

    The level may go negative when a settled call cost more than it
    reserved; nothing can be taken again until the debt is refilled.
    Buckets are only touched from the event loop, so no lock is held.
    """

    def __init__(self, capacity: int, refill_rate: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.level = float(capacity)
        self.last_refill = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        self.level = min(self.capacity, self.level + (now - self.last_refill) * self.refill_rate)
        self.last_refill = now

    def has(self, amount: int) -> bool:
        self._refill()
        return self.level >= amount

    def take(self, amount: int) -> None:
        self._refill()
        self.level -= amount

    def give_back(self, amount: int) -> None:
        self._refill()
        self.level = min(self.capacity, self.level + amount)

    def seconds_until(self, amount: int) -> float:
        """Time until ``amount`` is available, inf if it never fits."""
        self._refill()
        if amount > self.capacity:
            return float("inf")
        if self.level >= amount:
            return 0.0
        if self.refill_rate <= 0:
            return float("inf")
        return (amount - self.level) / self.refill_rate


@dataclass
class Reservation:
    """Budget taken for one oracle call, settled once Gemini reports usage."""

    estimated_tokens: int
    settled: bool = False


class RateLimiter:
    """
    Requests-per-minute and tokens-per-minute budgets shared by one oracle.

    Attributes:
        requests: Bucket holding the RPM budget
        tokens: Bucket holding the TPM budget
    """

    def __init__(
        self,
        max_rpm: Optional[int] = None,
        max_tpm: Optional[int] = None,
    ):
        rpm = max_rpm or settings.max_rpm
        tpm = max_tpm or settings.max_tpm

        self.requests = TokenBucket(capacity=rpm, refill_rate=rpm / 60.0)
        self.tokens = TokenBucket(capacity=tpm, refill_rate=tpm / 60.0)
        self.logger = logger.bind(component="RateLimiter")
        self.logger.info(f"Oracle budget: {rpm} requests/min, {tpm:,} tokens/min")

    def reserve(self, estimated_tokens: int) -> Optional[Reservation]:
        """
        Take one request and the estimated tokens, or nothing at all.

        Returns:
            The reservation, or None when either budget is exhausted
        """
        if not self.requests.has(1):
            self.logger.warning(
                f"Request budget exhausted, next slot in {self.requests.seconds_until(1):.1f}s"
            )
            return None

        if not self.tokens.has(estimated_tokens):
            self.logger.warning(
                f"Token budget exhausted (need {estimated_tokens}, "
                f"next fit in {self.tokens.seconds_until(estimated_tokens):.1f}s)"
            )
            return None

        self.requests.take(1)
        self.tokens.take(estimated_tokens)
        return Reservation(estimated_tokens=estimated_tokens)

    def settle(self, reservation: Reservation, actual_tokens: Optional[int]) -> None:
        """
        Correct the token budget with the usage Gemini reported.

        Unknown usage keeps the estimate. Settling twice is a no-op.
        """
        if reservation.settled or actual_tokens is None:
            reservation.settled = True
            return
        reservation.settled = True

        difference = actual_tokens - reservation.estimated_tokens
        if difference > 0:
            self.tokens.take(difference)
        elif difference < 0:
            self.tokens.give_back(-difference)

        if difference:
            self.logger.debug(
                f"Settled oracle call: estimated {reservation.estimated_tokens}, "
                f"used {actual_tokens} tokens"
            )

