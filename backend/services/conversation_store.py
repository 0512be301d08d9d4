"""Durable, crash-tolerant persistence of conversation records."""
import asyncio
import json
import logging
import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from config import CONVERSATIONS_FILE, MAX_TURNS
from models.conversation import Conversation

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: str) -> None:
    """Write content to a temporary file beside path, fsync it, then rename it over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def timestamped_path(path: Path, label: str) -> Path:
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    return path.with_name(f"{path.name}.{label}-{timestamp}")


class ConversationStore:
    """
    Owns the in-memory conversation index and its JSON file on disk.

    The file holds one ordered list of conversation records. It is read once by
    load() and rewritten in full by save(). Persistence failures are logged and
    absorbed; the in-memory index stays authoritative for the process lifetime.
    """

    def __init__(self, file_path: str = CONVERSATIONS_FILE, max_turns: int = MAX_TURNS):
        """
        Initialize the store.

        Args:
            file_path: Path of the JSON file backing the store
            max_turns: Hard cap on persisted turns per conversation
        """
        self.file_path = Path(file_path)
        self.max_turns = max_turns
        self._conversations: List[Conversation] = []
        self._locks: Dict[str, asyncio.Lock] = {}
        self._save_lock = asyncio.Lock()

    @property
    def conversations(self) -> List[Conversation]:
        return list(self._conversations)

    def __len__(self) -> int:
        return len(self._conversations)

    def load(self) -> None:
        """
        Populate the in-memory index from disk.

        A missing file yields an empty index. A corrupt file is moved aside to a
        timestamped backup path and an empty index is used instead.
        """
        if not self.file_path.exists():
            logger.info(f"No conversation file at {self.file_path}, starting empty")
            self._conversations = []
            return

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("Conversation file must contain a list")
            conversations = [Conversation.from_dict(record) for record in data]
        except (ValueError, KeyError, TypeError, AttributeError, RecursionError, UnicodeDecodeError) as e:
            backup_path = self._timestamped_path("corrupt")
            logger.error(f"Conversation file {self.file_path} is unreadable ({e}); moving it to {backup_path}")
            try:
                os.replace(self.file_path, backup_path)
            except OSError:
                logger.error(f"Failed to back up corrupt conversation file {self.file_path}", exc_info=True)
            self._conversations = []
            return
        except OSError:
            logger.error(f"Failed to read conversation file {self.file_path}", exc_info=True)
            self._conversations = []
            return

        for conversation in conversations:
            conversation.truncate(self.max_turns)
        self._conversations = conversations
        logger.info(f"Loaded {len(conversations)} conversations from {self.file_path}")

    def get(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        """Return the conversation with this id, or None."""
        if not conversation_id:
            return None
        for conversation in self._conversations:
            if conversation.conversation_id == conversation_id:
                return conversation
        return None

    def resolve(self, conversation_id: Optional[str] = None) -> Conversation:
        """
        Get existing conversation or create new one.

        Args:
            conversation_id: Optional conversation ID

        Returns:
            The existing conversation, or a new empty one that adopts the given
            ID (or a generated one when no ID is supplied)
        """
        conversation, _ = self.resolve_with_status(conversation_id)
        return conversation

    def resolve_with_status(self, conversation_id: Optional[str] = None) -> Tuple[Conversation, bool]:
        """Like resolve(), also reporting whether the conversation was created."""
        existing = self.get(conversation_id)
        if existing is not None:
            logger.debug(f"Retrieved existing conversation: {conversation_id} with {len(existing.turns)} turns")
            return existing, False

        conversation = Conversation(conversation_id=conversation_id or self._generate_conversation_id())
        self._conversations.append(conversation)
        logger.info(f"Created new conversation: {conversation.conversation_id}")
        return conversation, True

    def lock_for(self, conversation_id: str) -> asyncio.Lock:
        """Lock serializing orchestration cycles on one conversation."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        return lock

    async def save(self) -> bool:
        """
        Persist the full index.

        Writes go to a temporary file that atomically replaces the durable one.
        On failure one fallback write to a timestamped backup path is attempted.

        Returns:
            True if the primary write succeeded
        """
        async with self._save_lock:
            for conversation in self._conversations:
                conversation.truncate(self.max_turns)
            snapshot = json.dumps(
                [conversation.to_dict() for conversation in self._conversations],
                ensure_ascii=False,
                indent=2
            )

            try:
                await asyncio.to_thread(self._atomic_write, self.file_path, snapshot)
                logger.debug(f"Saved {len(self._conversations)} conversations to {self.file_path}")
                return True
            except OSError:
                logger.error(f"Failed to save conversations to {self.file_path}", exc_info=True)

            backup_path = self._timestamped_path("backup")
            try:
                await asyncio.to_thread(self._atomic_write, backup_path, snapshot)
                logger.warning(f"Saved conversations to fallback path {backup_path}")
            except OSError:
                logger.error(
                    f"Fallback save to {backup_path} failed; continuing with in-memory state only",
                    exc_info=True
                )
            return False

    _atomic_write = staticmethod(atomic_write)

    def _timestamped_path(self, label: str) -> Path:
        return timestamped_path(self.file_path, label)

    def _generate_conversation_id(self) -> str:
        """
        Generate a unique conversation ID.

        Returns:
            Unique conversation ID string
        """
        return str(uuid.uuid4())
