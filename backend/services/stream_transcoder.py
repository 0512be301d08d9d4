"""
Stream Transcoder for the backend's line-delimited JSON protocol.

The backend streams one JSON object per line, for example::

    {"message": {"role": "assistant", "content": "Hel"}, "done": false}
    {"message": {"role": "assistant", "content": "lo"}, "done": false}
    {"message": {"role": "assistant", "content": ""}, "done": true}

Network reads do not respect line boundaries, so bytes are buffered until a
newline is seen. Lines that fail to parse are logged and skipped.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from models.conversation import ASSISTANT_ROLE
from models.events import (
    ContentEvent, DoneEvent, ErrorEvent, StreamEvent, BACKEND_PROTOCOL_ERROR
)

logger = logging.getLogger(__name__)


class NDJSONLineBuffer:
    """Incremental newline-delimited JSON decoder."""

    def __init__(self):
        self._buffer = b""

    def feed(self, chunk: Union[bytes, str]) -> List[Dict[str, Any]]:
        """
        Add a chunk of raw data and return every object completed by it.

        Args:
            chunk: Raw bytes (or text) as read from the network

        Returns:
            Parsed objects for each complete, valid line
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer += chunk

        *lines, self._buffer = self._buffer.split(b"\n")
        objects = []
        for line in lines:
            obj = self._parse(line)
            if obj is not None:
                objects.append(obj)
        return objects

    def flush(self) -> List[Dict[str, Any]]:
        """Parse whatever is left once the stream has ended."""
        line, self._buffer = self._buffer, b""
        obj = self._parse(line)
        return [obj] if obj is not None else []

    @staticmethod
    def _parse(line: bytes) -> Optional[Dict[str, Any]]:
        line = line.strip()
        if not line:
            return None
        try:
            obj = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping unparseable backend line: {line[:200]!r} ({e})")
            return None
        if not isinstance(obj, dict):
            logger.warning(f"Skipping non-object backend line: {line[:200]!r}")
            return None
        return obj


class StreamTranscoder:
    """Turns a raw backend byte stream into ContentEvent/DoneEvent/ErrorEvent."""

    async def transcode(
        self,
        chunks: AsyncIterator[Union[bytes, str]]
    ) -> AsyncIterator[StreamEvent]:
        """
        Transcode a backend stream.

        Yields one ContentEvent per assistant fragment, then exactly one
        terminal DoneEvent (carrying the cumulative text) or ErrorEvent.

        Args:
            chunks: Async iterator of raw response chunks

        Yields:
            Normalized stream events
        """
        buffer = NDJSONLineBuffer()
        parts: List[str] = []

        try:
            async for chunk in chunks:
                for obj in buffer.feed(chunk):
                    for event in self._translate(obj, parts):
                        yield event
                        if isinstance(event, (DoneEvent, ErrorEvent)):
                            return

            for obj in buffer.flush():
                for event in self._translate(obj, parts):
                    yield event
                    if isinstance(event, (DoneEvent, ErrorEvent)):
                        return

            logger.warning("Backend stream ended without a completion marker")
            yield ErrorEvent(
                code=BACKEND_PROTOCOL_ERROR,
                message="Backend stream ended before completion.",
                details={"received_chars": len("".join(parts))}
            )
        finally:
            close = getattr(chunks, "aclose", None)
            if close is not None:
                await close()

    @staticmethod
    def _translate(obj: Dict[str, Any], parts: List[str]) -> List[StreamEvent]:
        if obj.get("error"):
            return [ErrorEvent(
                code=BACKEND_PROTOCOL_ERROR,
                message="Backend reported an error.",
                details={"original_error": str(obj["error"])}
            )]

        events: List[StreamEvent] = []
        message = obj.get("message")
        if isinstance(message, dict) and message.get("role", ASSISTANT_ROLE) == ASSISTANT_ROLE:
            content = message.get("content")
            if isinstance(content, str) and content:
                parts.append(content)
                events.append(ContentEvent(text=content))

        if obj.get("done"):
            events.append(DoneEvent(text="".join(parts)))
        return events
