"""Detection stage: sentiment, virality and keyword triggers for observed posts.

Core workflow:
1. SentimentAnalyzer reads polarity and tone (oracle first, lexicon fallback)
2. ScoringEngine evaluates every candidate monitor and upserts the DetectedPost
3. ThreatBuilder turns the owning monitor's evaluation into a Threat
"""

from reputation_system.agents.detection.scoring_engine import (
    ScoringEngine,
    ScoringResult,
    compute_engagement_rate,
    compute_virality,
)
from reputation_system.agents.detection.sentiment import (
    LexiconSentimentScorer,
    SentimentAnalyzer,
    SentimentReading,
    tone_for_polarity,
)
from reputation_system.agents.detection.threat_builder import (
    ThreatBuilder,
    TriggerEvaluation,
    classify_threat_type,
    compute_threat_score,
    severity_for_score,
)

__all__ = [
    "ScoringEngine",
    "ScoringResult",
    "compute_engagement_rate",
    "compute_virality",
    "LexiconSentimentScorer",
    "SentimentAnalyzer",
    "SentimentReading",
    "tone_for_polarity",
    "ThreatBuilder",
    "TriggerEvaluation",
    "classify_threat_type",
    "compute_threat_score",
    "severity_for_score",
]
