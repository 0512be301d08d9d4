"""Async client for an Ollama-compatible chat backend."""
import json
import time
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from config import OLLAMA_HOST, OLLAMA_MODEL, BACKEND_TIMEOUT_SECONDS
from models.conversation import ASSISTANT_ROLE
from models.events import BACKEND_UNAVAILABLE, BACKEND_TIMEOUT, BACKEND_PROTOCOL_ERROR
from services.stream_transcoder import NDJSONLineBuffer

logger = logging.getLogger(__name__)


@dataclass
class BackendReply:
    """Aggregated reply from a non-streaming backend call."""
    text: str
    model_used: str
    latency_ms: int


@dataclass
class BackendError:
    """Structured error response from backend operations."""
    code: str
    message: str
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class BackendClientError(Exception):
    """Custom exception for backend errors with structured error information."""

    def __init__(self, error: BackendError):
        self.error = error
        super().__init__(error.message)


class OllamaClient:
    """Client for the backend's /api/chat endpoint."""

    def __init__(
        self,
        host: str = OLLAMA_HOST,
        model: str = OLLAMA_MODEL,
        timeout: float = BACKEND_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the backend client.

        Args:
            host: Base URL of the backend (default: OLLAMA_HOST)
            model: Model name sent with every request (default: OLLAMA_MODEL)
            timeout: Request timeout in seconds
            http_client: Optional shared httpx.AsyncClient; one is created
                lazily (and owned by this client) when omitted
        """
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None
        logger.info(f"OllamaClient initialized: host={self.host}, model={self.model}")

    @property
    def chat_url(self) -> str:
        return f"{self.host}/api/chat"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def build_payload(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        stream: bool
    ) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "temperature": temperature,
            "options": {"temperature": temperature},
        }

    async def chat(self, messages: List[Dict[str, str]], temperature: float) -> BackendReply:
        """
        Send messages and wait for the whole reply.

        Args:
            messages: Ordered list of {"role", "content"} dicts
            temperature: Sampling temperature

        Returns:
            BackendReply with the assistant text and latency

        Raises:
            BackendClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        payload = self.build_payload(messages, temperature, stream=False)
        logger.debug(f"Sending {len(messages)} messages to backend (non-streaming)")

        try:
            response = await self._get_client().post(self.chat_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._translate_error(e, start_time)

        text = self._parse_reply(response.text, start_time)
        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Backend reply received: model={self.model}, chars={len(text)}, latency={latency_ms}ms")
        return BackendReply(text=text, model_used=self.model, latency_ms=latency_ms)

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float
    ) -> AsyncIterator[bytes]:
        """
        Send messages and yield the raw response body as it arrives.

        Closing the returned iterator releases the backend connection.

        Args:
            messages: Ordered list of {"role", "content"} dicts
            temperature: Sampling temperature

        Yields:
            Raw byte chunks of the NDJSON response body

        Raises:
            BackendClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        payload = self.build_payload(messages, temperature, stream=True)
        logger.debug(f"Sending {len(messages)} messages to backend (streaming)")

        try:
            async with self._get_client().stream("POST", self.chat_url, json=payload) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise self._status_error(
                        response.status_code,
                        body.decode("utf-8", errors="replace"),
                        start_time
                    )
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            raise self._translate_error(e, start_time)

    async def aclose(self) -> None:
        """Close HTTP client if owned."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _parse_reply(self, body: str, start_time: float) -> str:
        """Extract assistant text from a JSON object or, if the backend streamed anyway, NDJSON."""
        try:
            objects = [json.loads(body)]
        except json.JSONDecodeError:
            buffer = NDJSONLineBuffer()
            objects = buffer.feed(body) + buffer.flush()

        if not objects or not all(isinstance(obj, dict) for obj in objects):
            raise self._protocol_error("Backend returned an unparseable response.", body, start_time)

        parts = []
        for obj in objects:
            if obj.get("error"):
                raise self._protocol_error(f"Backend error: {obj['error']}", body, start_time)
            message = obj.get("message")
            if isinstance(message, dict) and message.get("role", ASSISTANT_ROLE) == ASSISTANT_ROLE:
                content = message.get("content")
                if isinstance(content, str):
                    parts.append(content)
        return "".join(parts)

    def _translate_error(self, e: httpx.HTTPError, start_time: float) -> BackendClientError:
        latency_ms = int((time.time() - start_time) * 1000)

        if isinstance(e, httpx.TimeoutException):
            error = BackendError(
                code=BACKEND_TIMEOUT,
                message="Backend request timed out. Please try again.",
                details={
                    "model": self.model,
                    "timeout_seconds": self.timeout,
                    "latency_ms": latency_ms,
                    "original_error": str(e)
                }
            )
        elif isinstance(e, httpx.HTTPStatusError):
            return self._status_error(e.response.status_code, e.response.text, start_time)
        else:
            error = BackendError(
                code=BACKEND_UNAVAILABLE,
                message="Failed to communicate with the backend.",
                details={
                    "model": self.model,
                    "host": self.host,
                    "latency_ms": latency_ms,
                    "original_error": str(e),
                    "error_type": type(e).__name__
                }
            )

        logger.error(
            f"Backend error: code={error.code}, latency={latency_ms}ms, error={e}",
            extra={"error_code": error.code, "error_details": error.details}
        )
        return BackendClientError(error)

    def _status_error(self, status_code: int, body: str, start_time: float) -> BackendClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = BackendError(
            code=BACKEND_UNAVAILABLE,
            message=f"Backend responded with HTTP {status_code}.",
            details={
                "model": self.model,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "response_body": body[:1000]
            }
        )
        logger.error(
            f"Backend HTTP error: status={status_code}, latency={latency_ms}ms",
            extra={"error_code": error.code, "error_details": error.details}
        )
        return BackendClientError(error)

    def _protocol_error(self, message: str, body: str, start_time: float) -> BackendClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = BackendError(
            code=BACKEND_PROTOCOL_ERROR,
            message=message,
            details={
                "model": self.model,
                "latency_ms": latency_ms,
                "response_body": body[:1000]
            }
        )
        logger.error(
            f"Backend protocol error: {message}",
            extra={"error_code": error.code, "error_details": error.details}
        )
        return BackendClientError(error)
