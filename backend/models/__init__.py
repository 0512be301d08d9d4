"""Data models for the Ollama conversational relay."""
from .conversation import Conversation, Turn, SentimentResult
from .thought import Thought, ThoughtReview, ThoughtRecord
from .events import ContentEvent, DoneEvent, ErrorEvent, StreamEvent
from .api import (
    ChatRequest, ChatResponse, LogEventRequest, ReviewPayload, SentimentPayload, ThoughtPayload,
    ThoughtCreateRequest
)

__all__ = [
    "Conversation",
    "Turn",
    "SentimentResult",
    "Thought",
    "ThoughtReview",
    "ThoughtRecord",
    "ContentEvent",
    "DoneEvent",
    "ErrorEvent",
    "StreamEvent",
    "ChatRequest",
    "ChatResponse",
    "LogEventRequest",
    "ReviewPayload",
    "SentimentPayload",
    "ThoughtPayload",
    "ThoughtCreateRequest",
]
