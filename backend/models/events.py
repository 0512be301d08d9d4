"""Normalized events produced by transcoding the backend stream."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from models.conversation import SentimentResult

# Error codes carried by ErrorEvent and BackendError
BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
BACKEND_TIMEOUT = "BACKEND_TIMEOUT"
BACKEND_PROTOCOL_ERROR = "BACKEND_PROTOCOL_ERROR"


@dataclass
class ContentEvent:
    """An incremental assistant content fragment."""
    text: str


@dataclass
class DoneEvent:
    """Completion sentinel carrying the cumulative assistant text."""
    text: str
    sentiment: Optional[SentimentResult] = None


@dataclass
class ErrorEvent:
    """Terminal error sentinel."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


StreamEvent = Union[ContentEvent, DoneEvent, ErrorEvent]
