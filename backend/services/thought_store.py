"""File-backed store for thoughts posted through the thoughts API."""
import asyncio
import inspect
import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from config import THOUGHTS_FILE, THOUGHT_MAX_CHARS
from models.thought import ThoughtRecord
from services.conversation_store import atomic_write, timestamped_path

logger = logging.getLogger(__name__)

CREATED_EVENT = "thoughts:created"
PROFANITY_PATTERN = re.compile(r"profanity", re.IGNORECASE)

EventCallback = Callable[[str, Dict[str, Any]], Union[None, Awaitable[None]]]


class InvalidThoughtError(ValueError):
    """Raised when posted thought content fails validation."""
    pass


def validate_thought_content(content: Any, max_chars: int = THOUGHT_MAX_CHARS) -> str:
    """
    Check posted content in order: presence, length, language.

    Raises:
        InvalidThoughtError: With the first failing check's message
    """
    if not isinstance(content, str) or not content:
        raise InvalidThoughtError("Content is required")
    if len(content) > max_chars:
        raise InvalidThoughtError("Message too long")
    if PROFANITY_PATTERN.search(content):
        raise InvalidThoughtError("Profane language detected")
    return content


class ThoughtStore:
    """
    Owns the list of posted thoughts and its JSON file on disk.

    Unlike conversation saves, a failed write on create() is raised to the
    caller and the new record is dropped from memory.
    """

    def __init__(
        self,
        file_path: str = THOUGHTS_FILE,
        max_chars: int = THOUGHT_MAX_CHARS,
        on_event: Optional[EventCallback] = None
    ):
        self.file_path = Path(file_path)
        self.max_chars = max_chars
        self.on_event = on_event
        self._thoughts: List[ThoughtRecord] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._thoughts)

    def load(self) -> None:
        """Populate the store from disk; a corrupt file is moved aside."""
        if not self.file_path.exists():
            logger.info(f"No thoughts file at {self.file_path}, starting empty")
            self._thoughts = []
            return

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("Thoughts file must contain a list")
            thoughts = [ThoughtRecord.from_dict(record) for record in data]
        except (ValueError, KeyError, TypeError, AttributeError, RecursionError, UnicodeDecodeError) as e:
            backup_path = timestamped_path(self.file_path, "corrupt")
            logger.error(f"Thoughts file {self.file_path} is unreadable ({e}); moving it to {backup_path}")
            try:
                os.replace(self.file_path, backup_path)
            except OSError:
                logger.error(f"Failed to back up corrupt thoughts file {self.file_path}", exc_info=True)
            self._thoughts = []
            return
        except OSError:
            logger.error(f"Failed to read thoughts file {self.file_path}", exc_info=True)
            self._thoughts = []
            return

        self._thoughts = thoughts
        logger.info(f"Loaded {len(thoughts)} thoughts from {self.file_path}")

    def get_all(self, sender: Optional[str] = None) -> List[ThoughtRecord]:
        """Return thoughts newest first, optionally only those from one sender."""
        thoughts = [t for t in self._thoughts if sender is None or t.sender == sender]
        return sorted(thoughts, key=lambda t: (t.timestamp, t.id), reverse=True)

    async def create(self, sender: Optional[str], content: Any) -> ThoughtRecord:
        """
        Validate, store and announce a new thought.

        Raises:
            InvalidThoughtError: If content fails validation
            OSError: If the thoughts file cannot be written
        """
        content = validate_thought_content(content, self.max_chars)

        async with self._lock:
            record = ThoughtRecord(
                id=max((t.id for t in self._thoughts), default=0) + 1,
                sender=sender,
                content=content,
                timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            )
            self._thoughts.append(record)
            snapshot = json.dumps([t.to_dict() for t in self._thoughts], ensure_ascii=False, indent=2)
            try:
                await asyncio.to_thread(atomic_write, self.file_path, snapshot)
            except OSError:
                self._thoughts.remove(record)
                logger.error(f"Failed to save thought to {self.file_path}", exc_info=True)
                raise

        logger.info(f"Created thought {record.id} for sender: {sender}")
        await self._publish(CREATED_EVENT, record.to_dict())
        return record

    async def _publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.on_event is None:
            return
        try:
            result = self.on_event(event_type, payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Event observer failed for {event_type}")
