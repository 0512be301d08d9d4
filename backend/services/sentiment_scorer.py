"""
Sentiment Scorer for the Ollama conversational relay.

This module implements deterministic lexicon-based polarity scoring. Each
recognized word carries a weight in [-5, 5]; a negation word flips the sign of
the next scored word if it follows within a short window in the same clause.
The weighted sum is normalized into [-1, 1] and mapped to
an emotion label by threshold.
"""

import logging
import re
from typing import Dict

from models.conversation import SentimentResult, NEGATIVE, NEUTRAL, POSITIVE

logger = logging.getLogger(__name__)


class SentimentScorer:
    """
    Lexicon-based sentiment scorer.

    Scoring never raises: text without any lexicon hits (or input that is not
    text at all) yields a neutral result with zero confidence.
    """

    # Emotion thresholds on the normalized score
    POSITIVE_THRESHOLD = 0.1
    NEGATIVE_THRESHOLD = -0.1

    # Absolute weighted sum at which confidence saturates
    CONFIDENCE_SCALE = 5.0

    LEXICON: Dict[str, int] = {
        # Negative
        "hate": -3, "hated": -3, "hates": -3, "awful": -3, "terrible": -3,
        "horrible": -3, "worst": -3, "bad": -2, "worse": -2, "angry": -3,
        "annoyed": -2, "annoying": -2, "frustrated": -2, "frustrating": -2,
        "sad": -2, "upset": -2, "disappointed": -2, "disappointing": -2,
        "broken": -2, "fail": -2, "failed": -2, "fails": -2, "failing": -2,
        "wrong": -2, "useless": -2, "stupid": -3, "confused": -2,
        "confusing": -2, "problem": -2, "problems": -2, "bug": -1,
        "error": -2, "stuck": -2, "sucks": -3, "ugly": -3, "slow": -1,
        "tired": -2, "worried": -3, "afraid": -2, "scared": -2, "pain": -2,
        "difficult": -1, "hard": -1, "lost": -3, "cry": -1, "unhappy": -2,
        # Positive
        "love": 3, "loved": 3, "loves": 3, "like": 2, "liked": 2, "good": 3,
        "great": 3, "awesome": 4, "amazing": 4, "excellent": 3,
        "fantastic": 4, "wonderful": 4, "happy": 3, "glad": 3, "thanks": 2,
        "thank": 2, "cool": 1, "nice": 3, "perfect": 3, "fun": 4,
        "excited": 3, "exciting": 3, "brilliant": 4, "helpful": 2,
        "beautiful": 3, "best": 3, "better": 2, "enjoy": 2, "enjoyed": 2,
        "works": 1, "worked": 1, "yay": 2, "wow": 4, "interesting": 2,
        "pleased": 3, "appreciate": 2, "clear": 1, "easy": 1,
    }

    NEGATIONS = {
        "not", "no", "never", "don't", "dont", "doesn't", "doesnt", "isn't",
        "isnt", "wasn't", "wasnt", "can't", "cant", "won't", "wont",
        "didn't", "didnt", "aren't", "arent"
    }

    # Unscored words a negation may skip before it lapses
    NEGATION_WINDOW = 2
    CLAUSE_BREAKS = {".", ",", ";", ":", "!", "?"}

    TOKEN_PATTERN = re.compile(r"[a-z']+|[.,;:!?]")

    def score(self, text) -> SentimentResult:
        """
        Score the polarity of a piece of text.

        Args:
            text: Text to score

        Returns:
            SentimentResult with normalized score, emotion and confidence
        """
        if not isinstance(text, str) or not text.strip():
            return SentimentResult()

        total = 0
        magnitude = 0
        negation_left = 0
        for token in self.TOKEN_PATTERN.findall(text.lower()):
            if token in self.CLAUSE_BREAKS:
                negation_left = 0
                continue
            token = token.strip("'")
            if token in self.NEGATIONS:
                negation_left = self.NEGATION_WINDOW + 1
                continue
            weight = self.LEXICON.get(token)
            if weight is None:
                negation_left = max(0, negation_left - 1)
                continue
            if negation_left:
                weight = -weight
                negation_left = 0
            total += weight
            magnitude += abs(weight)

        if magnitude == 0:
            return SentimentResult()

        normalized = round(total / magnitude, 3)
        confidence = round(min(1.0, abs(total) / self.CONFIDENCE_SCALE), 3)

        if normalized > self.POSITIVE_THRESHOLD:
            emotion = POSITIVE
        elif normalized < self.NEGATIVE_THRESHOLD:
            emotion = NEGATIVE
        else:
            emotion = NEUTRAL

        logger.debug(f"Sentiment: {emotion} (score={normalized}, confidence={confidence})")
        return SentimentResult(score=normalized, emotion=emotion, confidence=confidence)
