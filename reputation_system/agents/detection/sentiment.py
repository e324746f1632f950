"""Post sentiment: judgment oracle first, VADER lexicon as the fallback.

The oracle returns {sentimentScore, tone, summary}. When it fails, times out
or replies with malformed JSON, the VADER compound score stands in for the
polarity and the tone is derived from fixed bands:

    polarity <= -0.4 -> anger
    polarity <= -0.2 -> concern
    polarity <=  0.2 -> neutral
    otherwise        -> positive
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from reputation_system.config.prompts import SENTIMENT_SYSTEM_PROMPT, SENTIMENT_USER_PROMPT
from reputation_system.llm.oracle import JudgmentOracle, SentimentJudgment


@dataclass(frozen=True)
class SentimentReading:
    polarity: float
    tone: str
    summary: str
    source: str  # "oracle" or "lexicon"


def tone_for_polarity(polarity: float) -> str:
    if polarity <= -0.4:
        return "anger"
    if polarity <= -0.2:
        return "concern"
    if polarity <= 0.2:
        return "neutral"
    return "positive"


class LexiconSentimentScorer:
    """Local polarity scorer wrapping VADER's compound score (-1 to 1)."""

    def __init__(self, analyzer: Optional[SentimentIntensityAnalyzer] = None) -> None:
        self._analyzer = analyzer or SentimentIntensityAnalyzer()

    def score(self, text: str) -> float:
        if not text.strip():
            return 0.0
        return float(self._analyzer.polarity_scores(text)["compound"])


class SentimentAnalyzer:
    """Computes one SentimentReading per post. Never raises on oracle failure."""

    def __init__(
        self,
        oracle: JudgmentOracle,
        lexicon: Optional[LexiconSentimentScorer] = None,
    ) -> None:
        self._oracle = oracle
        self._lexicon = lexicon or LexiconSentimentScorer()
        self._logger = structlog.get_logger().bind(component="SentimentAnalyzer")

    async def analyze(self, content: str) -> SentimentReading:
        result = await self._oracle.judge(
            SENTIMENT_SYSTEM_PROMPT,
            SENTIMENT_USER_PROMPT.format(content=content),
            SentimentJudgment,
        )
        if result.ok:
            judgment = result.value
            return SentimentReading(
                polarity=judgment.sentiment_score,
                tone=judgment.tone,
                summary=judgment.summary,
                source="oracle",
            )

        polarity = self._lexicon.score(content)
        tone = tone_for_polarity(polarity)
        self._logger.info(
            "sentiment_fallback",
            reason=result.error,
            polarity=round(polarity, 3),
            tone=tone,
        )
        return SentimentReading(
            polarity=polarity,
            tone=tone,
            summary=f"Lexicon fallback: {tone} sentiment",
            source="lexicon",
        )
