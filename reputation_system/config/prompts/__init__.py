"""Prompt templates for the judgment oracle.

Only the input/output contract of each prompt matters to the pipeline:
every prompt asks for one JSON object validated by a schema in
reputation_system.llm.oracle.

Modules:
    judgment_prompts: sentiment, verdict and correction prompts
"""

from reputation_system.config.prompts.judgment_prompts import (
    SENTIMENT_SYSTEM_PROMPT,
    SENTIMENT_USER_PROMPT,
    VERDICT_SYSTEM_PROMPT,
    VERDICT_USER_PROMPT,
    CORRECTION_SYSTEM_PROMPT,
    CORRECTION_USER_PROMPT,
)

__all__ = [
    "SENTIMENT_SYSTEM_PROMPT",
    "SENTIMENT_USER_PROMPT",
    "VERDICT_SYSTEM_PROMPT",
    "VERDICT_USER_PROMPT",
    "CORRECTION_SYSTEM_PROMPT",
    "CORRECTION_USER_PROMPT",
]
