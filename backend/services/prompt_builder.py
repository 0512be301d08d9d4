"""Composes the outgoing message list sent to the generation backend."""
import logging
from typing import Any, Dict, List, Optional, Sequence

from config import RECENT_WINDOW, ENABLE_DEEP_THINKING
from models.conversation import (
    Conversation, SentimentResult, SYSTEM_ROLE, USER_ROLE, NEGATIVE, POSITIVE
)
from models.thought import Thought
from services.history_summarizer import HistorySummarizer

logger = logging.getLogger(__name__)

GENERAL = "general"
CREATIVE = "creative"
CODE = "code"

SYSTEM_PROMPTS = {
    GENERAL: "You are a knowledgeable and friendly assistant. Answer clearly and accurately.",
    CREATIVE: "You are a creative and imaginative assistant. Respond with originality and flair.",
    CODE: "You are a helpful coding assistant. Generate and explain code clearly.",
}
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

DEEP_THINKING_DIRECTIVE = "Enable deep thinking subroutine."
EMPATHY_CLAUSE = (
    "The user seems to be having a hard time. Respond with empathy and "
    "acknowledge their feelings before helping."
)
ENTHUSIASM_CLAUSE = "The user is in a positive mood. Match their enthusiasm."

MODE_TEMPERATURES = {
    CREATIVE: 0.9,
    CODE: 0.2,
    GENERAL: 0.7,
}
DEFAULT_TEMPERATURE = 0.7


def temperature_for(mode: Optional[str]) -> float:
    """Sampling temperature for a chat mode."""
    return MODE_TEMPERATURES.get((mode or "").lower(), DEFAULT_TEMPERATURE)


class PromptBuilder:
    """
    Builds the ordered message list for one backend request.

    Order of the output is fixed: the system instruction, an optional summary
    of older history, the most recent turns verbatim, then the new user
    message.
    """

    def __init__(
        self,
        summarizer: Optional[HistorySummarizer] = None,
        recent_window: int = RECENT_WINDOW,
        deep_thinking: bool = ENABLE_DEEP_THINKING
    ):
        self.summarizer = summarizer or HistorySummarizer()
        self.recent_window = recent_window
        self.deep_thinking = deep_thinking

    def build(
        self,
        mode: Optional[str],
        user_message: str,
        conversation: Conversation,
        sentiment: SentimentResult,
        thoughts: Sequence[Thought] = (),
        reflections: Sequence[Thought] = (),
        preferences: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, str]]:
        """
        Build the outgoing message list.

        Args:
            mode: Chat mode ("general", "creative" or "code")
            user_message: The new user message
            conversation: Conversation whose turns precede the new message
            sentiment: Sentiment of the new user message
            thoughts: Thought annotations for this cycle
            reflections: Reflection annotations for this cycle
            preferences: Caller preferences; only "responseStyle" is read

        Returns:
            List of {"role", "content"} dicts
        """
        messages = [{
            "role": SYSTEM_ROLE,
            "content": self.build_system_instruction(
                mode, sentiment, thoughts, reflections, preferences
            )
        }]

        turns = conversation.turns
        if len(turns) > self.recent_window:
            older = turns[:-self.recent_window] if self.recent_window else turns
            recent = turns[-self.recent_window:] if self.recent_window else []
            messages.append({"role": SYSTEM_ROLE, "content": self.summarizer.summarize(older)})
            logger.debug(
                f"Summarized {len(older)} older turns for conversation {conversation.conversation_id}"
            )
        else:
            recent = turns

        messages.extend(turn.to_dict() for turn in recent)
        messages.append({"role": USER_ROLE, "content": user_message})
        return messages

    def build_system_instruction(
        self,
        mode: Optional[str],
        sentiment: SentimentResult,
        thoughts: Sequence[Thought] = (),
        reflections: Sequence[Thought] = (),
        preferences: Optional[Dict[str, Any]] = None
    ) -> str:
        """Compose the system instruction text for a request."""
        sections = []
        if self.deep_thinking:
            sections.append(DEEP_THINKING_DIRECTIVE)

        sections.append(SYSTEM_PROMPTS.get((mode or "").lower(), DEFAULT_SYSTEM_PROMPT))

        if sentiment.emotion == NEGATIVE:
            sections.append(EMPATHY_CLAUSE)
        elif sentiment.emotion == POSITIVE:
            sections.append(ENTHUSIASM_CLAUSE)

        style = (preferences or {}).get("responseStyle")
        if style:
            sections.append(f"Respond in a {style} style.")

        if thoughts or reflections:
            lines = ["Agent thoughts (debug):"]
            lines.extend(f"- [{t.kind}] {t.text}" for t in thoughts)
            lines.extend(f"- [{r.kind}] {r.text}" for r in reflections)
            sections.append("\n".join(lines))

        return "\n\n".join(sections)
