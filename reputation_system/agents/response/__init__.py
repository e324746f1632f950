"""Response stage: corrective reply synthesis and publication.

- ResponseSynthesizer: correction prose, footer and citations for a verified Threat
- Publisher: posts a Response as a reply on the target platform
"""

from reputation_system.agents.response.publisher import (
    PlatformClient,
    PlatformResult,
    Publisher,
)
from reputation_system.agents.response.synthesizer import ResponseSynthesizer

__all__ = [
    "PlatformClient",
    "PlatformResult",
    "Publisher",
    "ResponseSynthesizer",
]
