"""Unit tests for ThoughtStore."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import json
import pytest
from unittest.mock import Mock, patch
from services.thought_store import (
    ThoughtStore,
    InvalidThoughtError,
    validate_thought_content,
    CREATED_EVENT,
)


@pytest.fixture
def thoughts_file(tmp_path):
    return tmp_path / "data" / "thoughts.json"


@pytest.fixture
def store(thoughts_file):
    store = ThoughtStore(str(thoughts_file))
    store.load()
    return store


class TestValidation:
    """Test posted content checks."""

    @pytest.mark.parametrize("content", [None, "", 7, ["hi"]])
    def test_content_required(self, content):
        with pytest.raises(InvalidThoughtError, match="Content is required"):
            validate_thought_content(content)

    def test_too_long(self):
        with pytest.raises(InvalidThoughtError, match="Message too long"):
            validate_thought_content("x" * 281)

    def test_custom_limit(self):
        with pytest.raises(InvalidThoughtError, match="Message too long"):
            validate_thought_content("abcdef", max_chars=5)

    def test_profanity(self):
        with pytest.raises(InvalidThoughtError, match="Profane language detected"):
            validate_thought_content("no Profanity please")

    def test_length_checked_before_language(self):
        with pytest.raises(InvalidThoughtError, match="Message too long"):
            validate_thought_content("profanity " * 40)

    def test_valid_content_returned(self):
        assert validate_thought_content("x" * 280) == "x" * 280


class TestLoad:
    """Test reading the thoughts file."""

    def test_missing_file_starts_empty(self, store):
        assert len(store) == 0
        assert store.get_all() == []

    @pytest.mark.asyncio
    async def test_round_trip_through_disk(self, store, thoughts_file):
        await store.create("ada", "first")

        reloaded = ThoughtStore(str(thoughts_file))
        reloaded.load()

        assert [t.to_dict() for t in reloaded.get_all()] == [t.to_dict() for t in store.get_all()]

    @pytest.mark.parametrize("content", [
        "{not json",
        '{"id": 1}',
        '[{"id": "1", "content": "x", "timestamp": "t"}]',
        '[{"id": 1, "content": 5, "timestamp": "t"}]',
        '[{"content": "x"}]',
        '["just text"]',
    ])
    def test_corrupt_file_moved_aside(self, thoughts_file, content):
        thoughts_file.parent.mkdir(parents=True)
        thoughts_file.write_text(content, encoding="utf-8")
        store = ThoughtStore(str(thoughts_file))

        store.load()

        assert len(store) == 0
        assert not thoughts_file.exists()
        backups = list(thoughts_file.parent.glob("thoughts.json.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_text(encoding="utf-8") == content


class TestCreate:
    """Test posting thoughts."""

    @pytest.mark.asyncio
    async def test_create_assigns_ids_and_persists(self, store, thoughts_file):
        first = await store.create("ada", "hello")
        second = await store.create(None, "again")

        assert (first.id, second.id) == (1, 2)
        assert first.timestamp.endswith("Z")
        assert second.sender is None
        stored = json.loads(thoughts_file.read_text(encoding="utf-8"))
        assert [t["content"] for t in stored] == ["hello", "again"]

    @pytest.mark.asyncio
    async def test_invalid_content_not_stored(self, store, thoughts_file):
        with pytest.raises(InvalidThoughtError):
            await store.create("ada", "")

        assert len(store) == 0
        assert not thoughts_file.exists()

    @pytest.mark.asyncio
    async def test_write_failure_drops_record(self, store):
        with patch("services.thought_store.atomic_write", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                await store.create("ada", "hello")

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_get_all_newest_first_with_sender_filter(self, store):
        await store.create("ada", "one")
        await store.create("bob", "two")
        await store.create("ada", "three")

        assert [t.content for t in store.get_all()] == ["three", "two", "one"]
        assert [t.content for t in store.get_all("ada")] == ["three", "one"]
        assert store.get_all("eve") == []


class TestCreatedEvent:
    """Test the creation observer."""

    @pytest.mark.asyncio
    async def test_plain_observer(self, thoughts_file):
        observer = Mock()
        store = ThoughtStore(str(thoughts_file), on_event=observer)

        record = await store.create("ada", "hello")

        observer.assert_called_once_with(CREATED_EVENT, record.to_dict())

    @pytest.mark.asyncio
    async def test_coroutine_observer(self, thoughts_file):
        received = []

        async def observer(event_type, payload):
            received.append((event_type, payload["id"]))

        store = ThoughtStore(str(thoughts_file), on_event=observer)

        await store.create("ada", "hello")

        assert received == [(CREATED_EVENT, 1)]

    @pytest.mark.asyncio
    async def test_observer_failure_is_ignored(self, thoughts_file):
        store = ThoughtStore(str(thoughts_file), on_event=Mock(side_effect=RuntimeError("down")))

        record = await store.create("ada", "hello")

        assert record.id == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_no_event_on_write_failure(self, thoughts_file):
        observer = Mock()
        store = ThoughtStore(str(thoughts_file), on_event=observer)

        with patch("services.thought_store.atomic_write", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                await store.create("ada", "hello")

        observer.assert_not_called()
