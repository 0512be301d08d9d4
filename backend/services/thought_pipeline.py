"""Thought and reflection annotations for outgoing prompts."""
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from config import REFLECTION_THRESHOLD, MAX_REFLECTIONS, LEARNING_INDEX_SIZE, REVIEW_FREQUENCY
from models.conversation import Turn
from models.thought import (
    Thought, ThoughtReview, ANALYSIS, REFLECTION, LEARNING, HIGH_QUALITY, LOW_QUALITY
)

logger = logging.getLogger(__name__)

Annotations = Tuple[List[Thought], List[Thought]]


class ThoughtPipeline(ABC):
    """Interface for generators of short contextual annotations."""

    @abstractmethod
    def generate_annotations(self, context: Dict[str, Any]) -> Annotations:
        """
        Produce thoughts and reflections for one orchestration cycle.

        Args:
            context: Mapping with "message" (the new user message) and
                "turns" (the conversation's turns before this message)

        Returns:
            Tuple of (thoughts, reflections)
        """
        pass


class NoThoughts(ThoughtPipeline):
    """Pipeline that never annotates."""

    def generate_annotations(self, context: Dict[str, Any]) -> Annotations:
        return [], []


class SelfReviewSystem:
    """
    Rates annotations by priority and attaches recommendations.

    Only every review_frequency-th annotation offered to maybe_review() is
    reviewed.
    """

    HIGH_QUALITY_PRIORITY = 5

    RECOMMENDATIONS = {
        HIGH_QUALITY: ["Continue this line of thinking."],
        LOW_QUALITY: ["Consider deeper analysis.", "Reflect further."],
    }

    def __init__(self, review_frequency: int = REVIEW_FREQUENCY):
        self.review_frequency = max(1, review_frequency)
        self._offered = 0

    def review(self, thought: Thought) -> ThoughtReview:
        quality = HIGH_QUALITY if thought.priority > self.HIGH_QUALITY_PRIORITY else LOW_QUALITY
        return ThoughtReview(quality=quality, recommendations=list(self.RECOMMENDATIONS[quality]))

    def maybe_review(self, thought: Thought) -> Optional[ThoughtReview]:
        self._offered += 1
        if self._offered % self.review_frequency:
            return None
        return self.review(thought)


class RuleBasedThoughtPipeline(ThoughtPipeline):
    """
    Keyword-driven annotation generator.

    Every generated annotation is also recorded into a private knowledge index
    that lives for the lifetime of the pipeline instance. The index keeps the
    newest learning_index_size entries per kind.
    """

    THOUGHT_TEXT = {
        REFLECTION: "Reflecting on recent conversation.",
        LEARNING: "Learning from user feedback.",
        ANALYSIS: "Analyzing user input.",
    }

    REFLECTION_KEYWORDS = ("why", "reason")
    LEARNING_KEYWORDS = ("learn",)

    def __init__(
        self,
        reflection_threshold: int = REFLECTION_THRESHOLD,
        max_reflections: int = MAX_REFLECTIONS,
        learning_index_size: int = LEARNING_INDEX_SIZE,
        reviewer: Optional[SelfReviewSystem] = None
    ):
        self.reflection_threshold = reflection_threshold
        self.max_reflections = max_reflections
        self.reviewer = reviewer
        self._knowledge: Dict[str, Deque[Any]] = {
            kind: deque(maxlen=learning_index_size) for kind in (ANALYSIS, REFLECTION, LEARNING)
        }

    def generate_annotations(self, context: Dict[str, Any]) -> Annotations:
        message = context.get("message") or ""
        turns: Sequence[Turn] = context.get("turns") or []

        thoughts = [self._generate_thought(message, turns)]
        reflections = self._reflect(turns)

        for annotation in thoughts + reflections:
            self._learn(annotation)
            if self.reviewer is not None:
                annotation.review = self.reviewer.maybe_review(annotation)

        return thoughts, reflections

    def knowledge_for(self, kind: str) -> List[Any]:
        """Return a copy of what has been learned for one annotation kind."""
        return list(self._knowledge.get(kind, ()))

    def _generate_thought(self, message: str, turns: Sequence[Turn]) -> Thought:
        kind = self._thought_kind(message)
        return Thought(
            kind=kind,
            text=self.THOUGHT_TEXT[kind],
            priority=self._thought_priority(message, turns)
        )

    def _thought_kind(self, message: str) -> str:
        lowered = message.lower()
        if any(keyword in lowered for keyword in self.REFLECTION_KEYWORDS):
            return REFLECTION
        if any(keyword in lowered for keyword in self.LEARNING_KEYWORDS):
            return LEARNING
        return ANALYSIS

    def _thought_priority(self, message: str, turns: Sequence[Turn]) -> int:
        """Priority in 1..10 from the shape of the message and the history size."""
        priority = 3
        if "?" in message:
            priority += 2
        if len(message.split()) > 15:
            priority += 2
        if turns:
            priority += min(3, len(turns) // 4)
        return max(1, min(10, priority))

    def _reflect(self, turns: Sequence[Turn]) -> List[Thought]:
        if not turns:
            return []

        reflection = Thought(
            kind=REFLECTION,
            text=f"Self-reflection on conversation: {turns[-1].content}",
            priority=min(10, 1 + len(turns))
        )
        if reflection.priority <= self.reflection_threshold:
            return []
        return [reflection][:self.max_reflections]

    def _learn(self, annotation: Thought) -> None:
        if annotation.kind == ANALYSIS:
            self._knowledge[ANALYSIS].append(annotation.text)
        elif annotation.kind == REFLECTION:
            self._knowledge[REFLECTION].append((annotation.text, annotation.priority))
        else:
            self._knowledge[LEARNING].append(annotation.text)
