"""Unit tests for SentimentScorer."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from services.sentiment_scorer import SentimentScorer
from models.conversation import SentimentResult


class TestSentimentScorer:
    """Test suite for SentimentScorer class."""

    @pytest.fixture
    def scorer(self):
        """Create a SentimentScorer instance."""
        return SentimentScorer()

    def test_negative_message(self, scorer):
        """Test that a clearly negative message is labeled negative."""
        result = scorer.score("I hate this, it's awful")

        assert result.emotion == "negative"
        assert result.score == -1.0
        assert result.confidence > 0

    def test_positive_message(self, scorer):
        """Test that a clearly positive message is labeled positive."""
        result = scorer.score("This is great, I love it!")

        assert result.emotion == "positive"
        assert result.score > 0.1
        assert 0 < result.confidence <= 1

    def test_no_lexicon_hits_is_neutral(self, scorer):
        """Test that text without recognizable words is neutral."""
        result = scorer.score("hello")

        assert result == SentimentResult(score=0.0, emotion="neutral", confidence=0.0)

    def test_mixed_message_uses_word_weights(self, scorer):
        """Test that mixed messages are scored by their weighted balance."""
        result = scorer.score("good but bad")

        # good=+3, bad=-2 -> 1/5 = 0.2
        assert result.score == pytest.approx(0.2)
        assert result.emotion == "positive"

        result = scorer.score("love and hate")
        assert result.score == 0.0
        assert result.emotion == "neutral"

    def test_negation_flips_next_word(self, scorer):
        """Test that a negation word flips the polarity of the next scored word."""
        assert scorer.score("this is not good").emotion == "negative"
        assert scorer.score("I don't hate it").emotion == "positive"

    def test_negation_skips_short_gap(self, scorer):
        """Test that a negation still reaches a scored word a couple of words later."""
        assert scorer.score("this is not really good").emotion == "negative"

    def test_negation_does_not_cross_clauses(self, scorer):
        """Test that a negation lapses at punctuation and after a few unscored words."""
        result = scorer.score("I'm not sure what to do, but this is great, thanks!")

        assert result.emotion == "positive"
        assert result.score == 1.0

        assert scorer.score("not sure what to do but this is great").emotion == "positive"

    def test_score_stays_in_range(self, scorer):
        """Test that scores and confidences are bounded."""
        result = scorer.score("awful awful awful terrible horrible worst hate")

        assert -1.0 <= result.score <= 1.0
        assert result.confidence == 1.0

    @pytest.mark.parametrize("value", ["", "   ", None, 42, ["hate"]])
    def test_never_raises(self, scorer, value):
        """Test that empty or non-text input returns neutral instead of raising."""
        result = scorer.score(value)

        assert result.emotion == "neutral"
        assert result.confidence == 0.0

    def test_deterministic(self, scorer):
        """Test that the same text always scores the same."""
        text = "I'm frustrated, nothing works and it's slow"
        assert scorer.score(text) == scorer.score(text)
