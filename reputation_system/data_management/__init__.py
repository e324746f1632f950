"""Data management package for the reputation pipeline.

Provides storage adapters and schemas for:
- DetectedPosts - scored posts, keyed by (external_post_id, platform)
- Threats - incidents, keyed by their DetectedPost
- Responses - corrective replies, keyed by their Threat
- Evidence - the read-only third-party document corpus
- Brands / Monitors - trigger policy
- Jobs - durable orchestrator queue records

Storage adapters:
- PostStore, ThreatStore, ResponseStore: single-record upserts on natural keys
- EvidenceStore: query_evidence / get_evidence over the corpus
- BrandStore, MonitorStore: operator configuration
- JobStore: queue durability
"""

from reputation_system.data_management.post_store import PostStore
from reputation_system.data_management.threat_store import ThreatStore
from reputation_system.data_management.response_store import ResponseStore
from reputation_system.data_management.evidence_store import EvidenceStore
from reputation_system.data_management.monitor_store import BrandStore, MonitorStore
from reputation_system.data_management.job_store import JobStore

__all__ = [
    "PostStore",
    "ThreatStore",
    "ResponseStore",
    "EvidenceStore",
    "BrandStore",
    "MonitorStore",
    "JobStore",
]
