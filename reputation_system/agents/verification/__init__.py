"""Verification stage: evidence-backed verdicts for Threats."""

from reputation_system.agents.verification.verification_engine import (
    VerificationEngine,
    first_significant_token,
)

__all__ = ["VerificationEngine", "first_significant_token"]
