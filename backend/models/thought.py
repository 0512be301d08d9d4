"""Thought annotation models."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ANALYSIS = "analysis"
REFLECTION = "reflection"
LEARNING = "learning"

HIGH_QUALITY = "high"
LOW_QUALITY = "low"


@dataclass
class ThoughtReview:
    """Quality rating of one annotation with follow-up recommendations."""
    quality: str
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"quality": self.quality, "recommendations": list(self.recommendations)}


@dataclass
class Thought:
    """
    Short diagnostic annotation produced for a single orchestration cycle.

    Thoughts are surfaced to the caller for display only and are never
    written into conversation history.
    """
    kind: str
    text: str
    priority: int
    review: Optional[ThoughtReview] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"kind": self.kind, "text": self.text, "priority": self.priority}
        if self.review is not None:
            data["review"] = self.review.to_dict()
        return data


@dataclass
class ThoughtRecord:
    """A short thought posted through the thoughts API."""
    id: int
    sender: Optional[str]
    content: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "sender": self.sender, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThoughtRecord":
        if not isinstance(data, dict):
            raise ValueError("Thought record must be an object")
        thought_id = data["id"]
        content = data["content"]
        if not isinstance(thought_id, int) or not isinstance(content, str):
            raise ValueError("Thought record needs an integer id and string content")
        return cls(id=thought_id, sender=data.get("sender"), content=content, timestamp=str(data["timestamp"]))
