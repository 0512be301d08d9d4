"""Conversation data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, List

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
ROLES = (USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE)

NEGATIVE = "negative"
NEUTRAL = "neutral"
POSITIVE = "positive"


@dataclass
class Turn:
    """Represents a single message in a conversation."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        if not isinstance(data, dict):
            raise ValueError("Turn record must be an object")
        role = data["role"]
        if role not in ROLES:
            raise ValueError(f"Unknown turn role: {role!r}")
        content = data["content"]
        if not isinstance(content, str):
            raise ValueError("Turn content must be a string")
        return cls(role=role, content=content)


@dataclass
class SentimentResult:
    """
    Polarity signal derived from a piece of text.

    Attributes:
        score: Normalized polarity in [-1, 1]
        emotion: One of "negative", "neutral" or "positive"
        confidence: Strength of the signal in [0, 1]
    """
    score: float = 0.0
    emotion: str = NEUTRAL
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "emotion": self.emotion, "confidence": self.confidence}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SentimentResult":
        if not isinstance(data, dict):
            raise ValueError("Sentiment record must be an object")
        return cls(
            score=float(data.get("score", 0.0)),
            emotion=data.get("emotion", NEUTRAL),
            confidence=float(data.get("confidence", 0.0))
        )


@dataclass
class Conversation:
    """Represents a multi-turn conversation."""
    conversation_id: str
    turns: List[Turn] = field(default_factory=list)
    sentiment_history: List[SentimentResult] = field(default_factory=list)

    def truncate(self, max_turns: int) -> None:
        """Drop the oldest turns and sentiment samples beyond max_turns."""
        if len(self.turns) > max_turns:
            self.turns = self.turns[-max_turns:]
        if len(self.sentiment_history) > max_turns:
            self.sentiment_history = self.sentiment_history[-max_turns:]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted layout."""
        return {
            "id": self.conversation_id,
            "messages": [turn.to_dict() for turn in self.turns],
            "sentimentHistory": [sample.to_dict() for sample in self.sentiment_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        """
        Deserialize from the persisted layout.

        Raises:
            ValueError, KeyError, TypeError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Conversation record must be an object")
        conversation_id = data["id"]
        if not isinstance(conversation_id, str) or not conversation_id:
            raise ValueError("Conversation id must be a non-empty string")
        messages = data.get("messages") or []
        samples = data.get("sentimentHistory") or []
        if not isinstance(messages, list) or not isinstance(samples, list):
            raise ValueError("Conversation messages and sentimentHistory must be lists")
        return cls(
            conversation_id=conversation_id,
            turns=[Turn.from_dict(t) for t in messages],
            sentiment_history=[SentimentResult.from_dict(s) for s in samples]
        )
