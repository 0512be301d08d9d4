"""Append-only JSON Lines log of agent events."""
import asyncio
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from config import AGENT_LOG_FILE

logger = logging.getLogger(__name__)


class AgentEventLog:
    """
    Writes one JSON object per line: {timestamp, type, content, meta}.

    Serves both the POST /api/log route and, through notify(), the
    orchestrator's lifecycle notifications.
    """

    def __init__(self, log_file_path: str = AGENT_LOG_FILE):
        self.log_file_path = Path(log_file_path)
        self._lock = threading.Lock()

    def record(self, event_type: str, content: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Append an event to the log.

        Returns:
            The entry as written

        Raises:
            OSError: If the log file cannot be written
        """
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": event_type,
            "content": content,
            "meta": meta or {},
        }
        line = json.dumps(entry, default=str) + "\n"
        with self._lock:
            self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file_path, "a", encoding="utf-8") as f:
                f.write(line)
        return entry

    async def arecord(self, event_type: str, content: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Like record(), with the file write run in a worker thread."""
        return await asyncio.to_thread(self.record, event_type, content, meta)

    async def notify(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Observer callback for the orchestrator; never raises."""
        try:
            await self.arecord(event_type, content=payload.get("conversationId"), meta=payload)
        except OSError:
            logger.error(f"Failed to write agent event {event_type}", exc_info=True)

    def close(self) -> None:
        """Nothing is held open between writes."""
        pass
