"""Pipeline orchestration for the per-Threat verification flow.

- VerificationPipeline: verify -> synthesize -> publish for one Threat
"""

from reputation_system.pipeline.verification_pipeline import VerificationPipeline

__all__ = ["VerificationPipeline"]
