"""Schema package for posts, threats, evidence, responses and monitor policy.

All models are pydantic v2 and round-trip through model_dump(mode="json")
for the stores' JSON persistence.

Primary exports:
- IncomingPost / DetectedPost: ingestion event and scored post
- Threat / VerificationOutcome: incident record and its verdict
- EvidenceItem: credibility-scored third-party document
- Response: corrective reply
- Brand / Monitor: trigger policy
- Notification: state-transition event
- JobRecord: persisted orchestrator job

Usage:
    from reputation_system.data_management.schemas import Threat, Verdict
    if threat.verification_status == Verdict.FALSE: ...
"""

from reputation_system.data_management.schemas.post_schema import (
    IncomingPost,
    DetectedPost,
)
from reputation_system.data_management.schemas.threat_schema import (
    Threat,
    ThreatSeverity,
    ThreatStatus,
    ThreatType,
    Verdict,
    VerificationOutcome,
)
from reputation_system.data_management.schemas.evidence_schema import EvidenceItem
from reputation_system.data_management.schemas.response_schema import (
    Response,
    ResponseStatus,
)
from reputation_system.data_management.schemas.monitor_schema import (
    Brand,
    Monitor,
    VerificationMode,
)
from reputation_system.data_management.schemas.notification_schema import (
    Notification,
    NotificationEvent,
)
from reputation_system.data_management.schemas.job_schema import (
    JobKind,
    JobRecord,
    JobStatus,
)

__all__ = [
    # Posts
    "IncomingPost",
    "DetectedPost",
    # Threats
    "Threat",
    "ThreatSeverity",
    "ThreatStatus",
    "ThreatType",
    "Verdict",
    "VerificationOutcome",
    # Evidence
    "EvidenceItem",
    # Responses
    "Response",
    "ResponseStatus",
    # Policy
    "Brand",
    "Monitor",
    "VerificationMode",
    # Notifications
    "Notification",
    "NotificationEvent",
    # Jobs
    "JobKind",
    "JobRecord",
    "JobStatus",
]
