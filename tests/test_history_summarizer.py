"""Unit tests for HistorySummarizer."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from models.conversation import Turn
from services.history_summarizer import HistorySummarizer, NO_PRIOR_CONTEXT


class TestHistorySummarizer:
    """Test suite for HistorySummarizer."""

    def test_empty_history(self):
        """Test that an empty history returns the fixed sentence."""
        assert HistorySummarizer().summarize([]) == NO_PRIOR_CONTEXT
        assert NO_PRIOR_CONTEXT == "No prior context."

    def test_references_both_roles(self):
        """Test that user and assistant content both appear in the summary."""
        turns = [
            Turn(role="user", content="What is the capital of France?"),
            Turn(role="assistant", content="The capital of France is Paris."),
        ]

        summary = HistorySummarizer().summarize(turns)

        assert summary.startswith("Summary of earlier conversation:")
        assert 'the user said "What is the capital of France?"' in summary
        assert 'the assistant replied "The capital of France is Paris."' in summary
        assert "\n" not in summary

    def test_truncates_long_content(self):
        """Test that only the first N characters of each turn are quoted."""
        summarizer = HistorySummarizer(snippet_chars=10)
        turns = [Turn(role="user", content="abcdefghijklmnopqrstuvwxyz")]

        summary = summarizer.summarize(turns)

        assert '"abcdefghij..."' in summary
        assert "klm" not in summary

    def test_skips_system_turns(self):
        """Test that system turns are not quoted."""
        turns = [Turn(role="system", content="Be concise.")]

        assert HistorySummarizer().summarize(turns) == NO_PRIOR_CONTEXT

    def test_deterministic(self):
        """Test that identical input produces identical output."""
        turns = [Turn(role="user", content="one"), Turn(role="assistant", content="two")]

        assert HistorySummarizer().summarize(turns) == HistorySummarizer().summarize(list(turns))
