"""Unit tests for ConversationStore."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import asyncio
import json
import pytest
from unittest.mock import patch
from models.conversation import Conversation, SentimentResult, Turn
from services.conversation_store import ConversationStore


def write_records(path, records):
    path.write_text(json.dumps(records), encoding="utf-8")


class TestConversationModel:
    """Test Conversation serialization."""

    def test_round_trip_layout(self):
        """Test that the persisted layout uses id/messages/sentimentHistory."""
        conversation = Conversation(
            conversation_id="abc",
            turns=[Turn(role="user", content="hi"), Turn(role="assistant", content="hello")],
            sentiment_history=[SentimentResult(score=0.5, emotion="positive", confidence=0.4)]
        )

        data = conversation.to_dict()

        assert data == {
            "id": "abc",
            "messages": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            "sentimentHistory": [{"score": 0.5, "emotion": "positive", "confidence": 0.4}],
        }
        assert Conversation.from_dict(data) == conversation

    def test_rejects_unknown_role(self):
        """Test that malformed turns are rejected."""
        with pytest.raises(ValueError):
            Conversation.from_dict({"id": "x", "messages": [{"role": "robot", "content": "hi"}]})

    @pytest.mark.parametrize("sample", [-2, None, "positive", [0.5]])
    def test_rejects_non_object_sentiment(self, sample):
        """Test that sentiment samples must be objects."""
        with pytest.raises(ValueError):
            Conversation.from_dict({"id": "x", "messages": [], "sentimentHistory": [sample]})

    def test_truncate_keeps_newest(self):
        """Test that truncation drops the oldest turns first."""
        conversation = Conversation(
            conversation_id="x",
            turns=[Turn(role="user", content=str(i)) for i in range(5)]
        )

        conversation.truncate(3)

        assert [t.content for t in conversation.turns] == ["2", "3", "4"]


class TestConversationStore:
    """Test suite for ConversationStore."""

    @pytest.fixture
    def store_path(self, tmp_path):
        return tmp_path / "data" / "conversations.json"

    @pytest.fixture
    def store(self, store_path):
        store = ConversationStore(str(store_path), max_turns=4)
        store.load()
        return store

    def test_load_missing_file(self, store):
        """Test that a missing file gives an empty index."""
        assert len(store) == 0

    def test_load_existing_file(self, tmp_path):
        """Test that persisted conversations are loaded in order."""
        path = tmp_path / "conversations.json"
        write_records(path, [
            {"id": "one", "messages": [{"role": "user", "content": "hi"}], "sentimentHistory": []},
            {"id": "two", "messages": [], "sentimentHistory": []},
        ])

        store = ConversationStore(str(path))
        store.load()

        assert [c.conversation_id for c in store.conversations] == ["one", "two"]
        assert store.get("one").turns == [Turn(role="user", content="hi")]

    def test_load_truncates_to_max_turns(self, tmp_path):
        """Test that loaded conversations are capped at max_turns."""
        path = tmp_path / "conversations.json"
        messages = [{"role": "user", "content": str(i)} for i in range(10)]
        write_records(path, [{"id": "long", "messages": messages, "sentimentHistory": []}])

        store = ConversationStore(str(path), max_turns=3)
        store.load()

        assert [t.content for t in store.get("long").turns] == ["7", "8", "9"]

    @pytest.mark.parametrize("content", [
        "{not valid json",
        '{"id": "not a list"}',
        '[{"messages": []}]',
        '[{"id": "x", "messages": [{"role": "user"}]}]',
        '[{"id": "a", "messages": [], "sentimentHistory": [-2]}]',
        '[{"id": "a", "messages": [], "sentimentHistory": [null]}]',
        '[{"id": "a", "messages": ["hi"]}]',
        '[{"id": "a", "messages": {"role": "user"}}]',
        '["not a record"]',
    ])
    def test_load_corrupt_file(self, tmp_path, content):
        """Test that a corrupt file is moved to a backup path and the index starts empty."""
        path = tmp_path / "conversations.json"
        path.write_text(content, encoding="utf-8")

        store = ConversationStore(str(path))
        store.load()

        assert len(store) == 0
        assert not path.exists()
        backups = list(tmp_path.glob("conversations.json.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_text(encoding="utf-8") == content

    def test_resolve_without_id_creates(self, store):
        """Test that resolving without an id creates a conversation with a fresh id."""
        first = store.resolve()
        second = store.resolve()

        assert first.conversation_id
        assert first.conversation_id != second.conversation_id
        assert first.turns == [] and first.sentiment_history == []
        assert len(store) == 2

    def test_resolve_unknown_id_adopts_it(self, store):
        """Test that an unseen id is adopted for the new conversation."""
        conversation, created = store.resolve_with_status("client-chosen-id")

        assert created
        assert conversation.conversation_id == "client-chosen-id"
        assert store.resolve("client-chosen-id") is conversation

    def test_resolve_existing(self, store):
        """Test that resolving a known id returns the same instance."""
        conversation = store.resolve("abc")
        conversation.turns.append(Turn(role="user", content="hi"))

        again, created = store.resolve_with_status("abc")

        assert again is conversation
        assert not created
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_save_and_reload(self, store, store_path):
        """Test that saved conversations survive a reload."""
        conversation = store.resolve("abc")
        conversation.turns.append(Turn(role="user", content="hi"))
        conversation.sentiment_history.append(SentimentResult())

        assert await store.save() is True

        reloaded = ConversationStore(str(store_path))
        reloaded.load()
        assert reloaded.get("abc") == conversation

    @pytest.mark.asyncio
    async def test_save_caps_turns(self, store, store_path):
        """Test that no conversation exceeds max_turns after save."""
        conversation = store.resolve("abc")
        for i in range(10):
            conversation.turns.append(Turn(role="user", content=str(i)))

        await store.save()

        assert len(conversation.turns) == 4
        persisted = json.loads(store_path.read_text(encoding="utf-8"))
        assert [m["content"] for m in persisted[0]["messages"]] == ["6", "7", "8", "9"]

    @pytest.mark.asyncio
    async def test_save_leaves_no_temp_files(self, store, store_path):
        """Test that the atomic write cleans up after itself."""
        store.resolve("abc")

        await store.save()
        await store.save()

        assert [p.name for p in store_path.parent.iterdir()] == ["conversations.json"]

    @pytest.mark.asyncio
    async def test_save_falls_back_to_backup_path(self, store, store_path):
        """Test that a failed primary write is retried once at a backup path."""
        store.resolve("abc")
        real_write = ConversationStore._atomic_write
        calls = []

        def failing_primary(path, content):
            calls.append(path)
            if path == store_path:
                raise OSError("disk full")
            real_write(path, content)

        with patch.object(ConversationStore, "_atomic_write", side_effect=failing_primary):
            assert await store.save() is False

        assert len(calls) == 2
        assert calls[1].name.startswith("conversations.json.backup-")
        assert json.loads(calls[1].read_text(encoding="utf-8"))[0]["id"] == "abc"

    @pytest.mark.asyncio
    async def test_save_swallows_double_failure(self, store):
        """Test that persistence failures never propagate."""
        store.resolve("abc")

        with patch.object(ConversationStore, "_atomic_write", side_effect=OSError("read-only")):
            assert await store.save() is False

        assert store.get("abc") is not None

    @pytest.mark.asyncio
    async def test_concurrent_saves_produce_valid_file(self, store, store_path):
        """Test that concurrent saves never leave a torn file."""
        for i in range(20):
            store.resolve(f"conv-{i}").turns.append(Turn(role="user", content="x" * 100))

        results = await asyncio.gather(*(store.save() for _ in range(10)))

        assert all(results)
        assert len(json.loads(store_path.read_text(encoding="utf-8"))) == 20

    def test_lock_for_is_per_id(self, store):
        """Test that each conversation id has its own lock."""
        assert store.lock_for("a") is store.lock_for("a")
        assert store.lock_for("a") is not store.lock_for("b")
