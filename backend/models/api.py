"""Request and response models for the HTTP API."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Body of POST /api/chat, /api/chat/stream and /api/ollama."""
    model_config = ConfigDict(populate_by_name=True)

    message: Any = None
    mode: Optional[str] = None
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    preferences: Optional[Dict[str, Any]] = Field(default=None, alias="userPrefs")
    stream: bool = False


class ReviewPayload(BaseModel):
    quality: str
    recommendations: List[str]


class ThoughtPayload(BaseModel):
    kind: str
    text: str
    priority: int
    review: Optional[ReviewPayload] = None


class SentimentPayload(BaseModel):
    score: float
    emotion: str
    confidence: float


class ChatResponse(BaseModel):
    """Aggregated (non-streaming) reply."""
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    thoughts: List[ThoughtPayload]
    conversation_id: str = Field(alias="conversationId")
    sentiment: SentimentPayload


class LogEventRequest(BaseModel):
    """Body of POST /api/log."""
    type: str
    content: Any = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class ThoughtCreateRequest(BaseModel):
    """Body of POST /api/thoughts; content is validated by the thought store."""
    sender: Optional[str] = None
    content: Any = None
