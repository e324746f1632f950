"""Tests for oracle-first sentiment with lexicon fallback."""

from unittest.mock import Mock

import pytest

from reputation_system.agents.detection.sentiment import (
    LexiconSentimentScorer,
    SentimentAnalyzer,
    tone_for_polarity,
)


@pytest.mark.parametrize(
    "polarity,tone",
    [
        (-0.9, "anger"),
        (-0.4, "anger"),
        (-0.3, "concern"),
        (-0.2, "concern"),
        (0.0, "neutral"),
        (0.2, "neutral"),
        (0.5, "positive"),
    ],
)
def test_tone_bands(polarity, tone):
    assert tone_for_polarity(polarity) == tone


class TestLexiconSentimentScorer:
    def test_negative_text_scores_negative(self):
        scorer = LexiconSentimentScorer()
        assert scorer.score("This bank is terrible, awful and a scam") < -0.4

    def test_blank_text_is_neutral(self):
        assert LexiconSentimentScorer().score("   ") == 0.0


class TestSentimentAnalyzer:
    @pytest.mark.asyncio
    async def test_uses_oracle_reply(self, make_oracle):
        oracle = make_oracle(
            sentiment={"sentimentScore": -0.8, "tone": "Anger", "summary": "Claims outage"}
        )
        reading = await SentimentAnalyzer(oracle).analyze("App down for everyone")

        assert reading.polarity == -0.8
        assert reading.tone == "anger"
        assert reading.summary == "Claims outage"
        assert reading.source == "oracle"
        assert "App down for everyone" in oracle.calls_of("sentiment")[0]

    @pytest.mark.asyncio
    async def test_falls_back_to_lexicon_when_oracle_fails(self, make_oracle):
        lexicon = Mock(spec=LexiconSentimentScorer)
        lexicon.score.return_value = -0.3

        reading = await SentimentAnalyzer(make_oracle(), lexicon).analyze("meh")

        assert reading.polarity == -0.3
        assert reading.tone == "concern"
        assert reading.summary == "Lexicon fallback: concern sentiment"
        assert reading.source == "lexicon"
        lexicon.score.assert_called_once_with("meh")

    @pytest.mark.asyncio
    async def test_malformed_reply_falls_back(self, make_oracle):
        lexicon = Mock(spec=LexiconSentimentScorer)
        lexicon.score.return_value = 0.6

        reading = await SentimentAnalyzer(make_oracle(sentiment="not json"), lexicon).analyze("great")

        assert reading.source == "lexicon"
        assert reading.tone == "positive"
