"""Condenses older conversation turns into one synthetic context line."""
from typing import Sequence

from config import SUMMARY_SNIPPET_CHARS
from models.conversation import Turn, USER_ROLE, ASSISTANT_ROLE

NO_PRIOR_CONTEXT = "No prior context."


class HistorySummarizer:
    """Deterministic extractive summarizer over user and assistant turns."""

    def __init__(self, snippet_chars: int = SUMMARY_SNIPPET_CHARS):
        self.snippet_chars = snippet_chars

    def summarize(self, turns: Sequence[Turn]) -> str:
        """
        Summarize a sequence of older turns.

        Args:
            turns: Turns older than the verbatim window, oldest first

        Returns:
            A single sentence, or the fixed "no prior context" sentence when
            there is nothing to summarize
        """
        parts = []
        for turn in turns:
            if turn.role == USER_ROLE:
                parts.append(f'the user said "{self._snippet(turn.content)}"')
            elif turn.role == ASSISTANT_ROLE:
                parts.append(f'the assistant replied "{self._snippet(turn.content)}"')

        if not parts:
            return NO_PRIOR_CONTEXT

        return "Summary of earlier conversation: " + "; ".join(parts) + "."

    def _snippet(self, content: str) -> str:
        text = " ".join(content.split())
        if len(text) > self.snippet_chars:
            return text[:self.snippet_chars].rstrip() + "..."
        return text
