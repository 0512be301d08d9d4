"""
Conversation Orchestrator for the Ollama conversational relay.

Coordinates one chat cycle: resolve the conversation, score sentiment, gather
thought annotations, build the prompt, record the user turn, call the backend
and record the assistant turn. Results are returned whole (chat) or as a
sequence of stream payloads (stream_chat).
"""

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from models.conversation import Conversation, SentimentResult, Turn, USER_ROLE, ASSISTANT_ROLE
from models.events import ContentEvent, DoneEvent, ErrorEvent, StreamEvent
from models.thought import Thought, ANALYSIS
from services.conversation_store import ConversationStore
from services.ollama_client import BackendClientError, OllamaClient
from services.prompt_builder import PromptBuilder, temperature_for
from services.sentiment_scorer import SentimentScorer
from services.stream_transcoder import StreamTranscoder
from services.thought_pipeline import RuleBasedThoughtPipeline, ThoughtPipeline

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
NO_RESPONSE_PLACEHOLDER = "[No response from backend]"
THOUGHT_TAG_PATTERN = re.compile(r"<thought>([\s\S]*?)</thought>", re.IGNORECASE)

EventCallback = Callable[[str, Dict[str, Any]], Union[None, Awaitable[None]]]


class InvalidInputError(ValueError):
    """Raised for an empty or malformed user message."""
    pass


@dataclass
class ChatResult:
    """Result of a non-streaming chat cycle."""
    reply: str
    thoughts: List[Thought]
    conversation_id: str
    sentiment: SentimentResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "thoughts": [thought.to_dict() for thought in self.thoughts],
            "conversationId": self.conversation_id,
            "sentiment": self.sentiment.to_dict(),
        }


def extract_thought_tags(text: str) -> Tuple[str, List[str]]:
    """
    Split inline <thought>...</thought> blocks out of a reply.

    Returns:
        Tuple of (reply without thought blocks, list of thought texts)
    """
    thoughts = [match.strip() for match in THOUGHT_TAG_PATTERN.findall(text)]
    cleaned = THOUGHT_TAG_PATTERN.sub("", text).strip()
    return cleaned, [t for t in thoughts if t]


def tagged_thoughts(texts: List[str]) -> List[Thought]:
    """Inline thought blocks become lowest-priority analysis thoughts."""
    return [Thought(kind=ANALYSIS, text=t, priority=1) for t in texts]


def event_payload(event: StreamEvent, conversation_id: str, thoughts: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Render a stream event as the dict sent to the caller."""
    if isinstance(event, ContentEvent):
        return {
            "type": "content",
            "content": event.text,
            "thoughts": thoughts,
            "conversationId": conversation_id,
        }
    if isinstance(event, DoneEvent):
        return {
            "type": "done",
            "content": DONE_SENTINEL,
            "done": True,
            "thoughts": thoughts,
            "sentiment": event.sentiment.to_dict() if event.sentiment else None,
            "conversationId": conversation_id,
        }
    return {
        "type": "error",
        "error": {"code": event.code, "message": event.message, "details": event.details},
        "conversationId": conversation_id,
    }


class ChatOrchestrator:
    """
    Top-level coordinator for chat cycles.

    At most one cycle runs per conversation id at a time; a second request for
    the same id waits for the first to finish. Cycles on different ids run
    concurrently.
    """

    def __init__(
        self,
        store: ConversationStore,
        backend: OllamaClient,
        scorer: Optional[SentimentScorer] = None,
        thought_pipeline: Optional[ThoughtPipeline] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        transcoder: Optional[StreamTranscoder] = None,
        on_event: Optional[EventCallback] = None
    ):
        """
        Initialize the orchestrator with its collaborators.

        Args:
            store: Conversation store (already loaded)
            backend: Generation backend client
            scorer: Sentiment scorer
            thought_pipeline: Annotation generator
            prompt_builder: Prompt builder
            transcoder: Stream transcoder
            on_event: Optional observer called as on_event(event_type, payload);
                may be a plain function or a coroutine function. Called
                for conversation_created, turn_completed, turn_failed and
                stream_cancelled
        """
        self.store = store
        self.backend = backend
        self.scorer = scorer or SentimentScorer()
        self.thought_pipeline = thought_pipeline or RuleBasedThoughtPipeline()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.transcoder = transcoder or StreamTranscoder()
        self.on_event = on_event

    def orchestrate(
        self,
        message: str,
        mode: str = "general",
        conversation_id: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None,
        wants_stream: bool = False
    ):
        """
        Run one chat cycle.

        The message is validated immediately, before anything is scheduled.

        Returns:
            An awaitable ChatResult when wants_stream is False, otherwise an
            async iterator of stream payload dicts

        Raises:
            InvalidInputError: If message is not a non-empty string
        """
        self._validate(message)
        if wants_stream:
            return self.stream_chat(message, mode, conversation_id, preferences)
        return self.chat(message, mode, conversation_id, preferences)

    async def chat(
        self,
        message: str,
        mode: str = "general",
        conversation_id: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None
    ) -> ChatResult:
        """
        Run a non-streaming chat cycle.

        Raises:
            InvalidInputError: If message is not a non-empty string
            BackendClientError: If the backend call fails; the user turn stays
                recorded and no assistant turn is added
        """
        self._validate(message)
        conversation, lock, created = await self._resolve_locked(conversation_id)
        try:
            if created:
                await self._publish("conversation_created", {"conversationId": conversation.conversation_id})
            sentiment, annotations, prompt = await self._begin_turn(message, mode, conversation, preferences)

            try:
                reply = await self.backend.chat(prompt, temperature_for(mode))
            except BackendClientError as e:
                await self._fail(conversation, e.error.code, e.error.message)
                raise

            text, tagged = extract_thought_tags(reply.text)
            text = text or NO_RESPONSE_PLACEHOLDER
            annotations = annotations + tagged_thoughts(tagged)

            await self._complete(conversation, text)
            return ChatResult(
                reply=text,
                thoughts=annotations,
                conversation_id=conversation.conversation_id,
                sentiment=sentiment
            )
        finally:
            lock.release()

    async def stream_chat(
        self,
        message: str,
        mode: str = "general",
        conversation_id: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Run a streaming chat cycle.

        Yields a "content" payload per backend fragment as soon as it arrives,
        then one terminal "done" or "error" payload. Fragments are forwarded
        verbatim, inline <thought> blocks included; the "done" payload lists
        their text among its thoughts and the stored reply omits them. If the
        consumer stops iterating early, the backend connection is released and
        the partial reply is discarded.
        """
        self._validate(message)
        conversation, lock, created = await self._resolve_locked(conversation_id)
        conversation_id = conversation.conversation_id
        finished = False
        try:
            if created:
                await self._publish("conversation_created", {"conversationId": conversation_id})
            sentiment, annotations, prompt = await self._begin_turn(message, mode, conversation, preferences)
            thoughts = [thought.to_dict() for thought in annotations]
            parts: List[str] = []

            events = self.transcoder.transcode(
                self.backend.stream_chat(prompt, temperature_for(mode))
            )
            try:
                async for event in events:
                    if isinstance(event, ContentEvent):
                        parts.append(event.text)
                        yield event_payload(event, conversation_id, thoughts)
                    elif isinstance(event, DoneEvent):
                        text, tagged = extract_thought_tags("".join(parts))
                        await self._complete(conversation, text or NO_RESPONSE_PLACEHOLDER)
                        finished = True
                        thoughts = thoughts + [thought.to_dict() for thought in tagged_thoughts(tagged)]
                        yield event_payload(
                            DoneEvent(text=text, sentiment=sentiment), conversation_id, thoughts
                        )
                        return
                    elif isinstance(event, ErrorEvent):
                        await self._fail(conversation, event.code, event.message)
                        finished = True
                        yield event_payload(event, conversation_id, thoughts)
                        return
            except BackendClientError as e:
                await self._fail(conversation, e.error.code, e.error.message)
                finished = True
                yield event_payload(
                    ErrorEvent(code=e.error.code, message=e.error.message, details=e.error.details),
                    conversation_id,
                    thoughts
                )
            finally:
                await events.aclose()
        finally:
            lock.release()
            if not finished:
                logger.info(
                    f"Stream for conversation {conversation_id} stopped before completion; partial reply discarded",
                    extra={"conversation_id": conversation_id}
                )
                await self._publish("stream_cancelled", {"conversationId": conversation_id})

    @staticmethod
    def _validate(message: Any) -> None:
        if not isinstance(message, str) or not message.strip():
            raise InvalidInputError("Invalid message: must be a non-empty string")

    async def _resolve_locked(self, conversation_id: Optional[str]) -> Tuple[Conversation, asyncio.Lock, bool]:
        """Resolve the conversation and acquire its lock; also report whether it was created."""
        if conversation_id:
            lock = self.store.lock_for(conversation_id)
            await lock.acquire()
            conversation, created = self.store.resolve_with_status(conversation_id)
        else:
            conversation, created = self.store.resolve_with_status(None)
            lock = self.store.lock_for(conversation.conversation_id)
            await lock.acquire()

        return conversation, lock, created

    async def _begin_turn(
        self,
        message: str,
        mode: str,
        conversation: Conversation,
        preferences: Optional[Dict[str, Any]]
    ) -> Tuple[SentimentResult, List[Thought], List[Dict[str, str]]]:
        """Score, annotate and build the prompt, then record the user turn."""
        sentiment = self.scorer.score(message)
        thoughts, reflections = self._annotate(message, conversation)
        prompt = self.prompt_builder.build(
            mode, message, conversation, sentiment, thoughts, reflections, preferences
        )

        conversation.turns.append(Turn(role=USER_ROLE, content=message))
        conversation.sentiment_history.append(sentiment)
        # Persist the user turn before calling the backend
        await self.store.save()

        logger.info(
            f"Dispatching turn for conversation {conversation.conversation_id}: "
            f"mode={mode}, sentiment={sentiment.emotion}, prompt_messages={len(prompt)}",
            extra={"conversation_id": conversation.conversation_id}
        )
        return sentiment, thoughts + reflections, prompt

    def _annotate(self, message: str, conversation: Conversation) -> Tuple[List[Thought], List[Thought]]:
        try:
            thoughts, reflections = self.thought_pipeline.generate_annotations(
                {"message": message, "turns": list(conversation.turns)}
            )
            return list(thoughts), list(reflections)
        except Exception:
            logger.exception(
                f"Thought pipeline failed for conversation {conversation.conversation_id}; continuing without annotations",
                extra={"conversation_id": conversation.conversation_id}
            )
            return [], []

    async def _complete(self, conversation: Conversation, text: str) -> None:
        conversation.turns.append(Turn(role=ASSISTANT_ROLE, content=text))
        await self.store.save()
        logger.info(
            f"Completed turn for conversation {conversation.conversation_id} ({len(text)} chars)",
            extra={"conversation_id": conversation.conversation_id}
        )
        await self._publish("turn_completed", {
            "conversationId": conversation.conversation_id,
            "turns": len(conversation.turns),
        })

    async def _fail(self, conversation: Conversation, code: str, message: str) -> None:
        logger.error(
            f"Backend failure for conversation {conversation.conversation_id}: {code} {message}",
            extra={"conversation_id": conversation.conversation_id, "error_code": code}
        )
        await self._publish("turn_failed", {
            "conversationId": conversation.conversation_id,
            "code": code,
            "message": message,
        })

    async def _publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.on_event is None:
            return
        try:
            result = self.on_event(event_type, payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Event observer failed for {event_type}")
