"""Tests for multi_ai/context/store.py against a real SQLite file."""

import sqlite3

import pytest

from multi_ai.context.store import ContextStore, StorageError
from multi_ai.models import ConversationHandle


async def test_initialize_creates_default_conversation(store):
    handle = await store.initialize()
    assert handle.title == "Default conversation"
    summary = await store.get_summary(handle)
    assert summary.total_conversations == 1
    assert summary.current_conversation_id == handle.id


async def test_initialize_resumes_latest_conversation(tmp_path):
    path = tmp_path / "ctx.sqlite3"
    first = ContextStore(path)
    await first.initialize()
    newest = await first.start_new_conversation("Planning")

    reopened = ContextStore(path)
    handle = await reopened.initialize()

    assert handle == newest


async def test_history_is_oldest_first(store, conversation):
    for i in range(3):
        await store.add_message(conversation, "user", f"message {i}")

    history = await store.get_conversation_history(conversation)
    assert [m.content for m in history] == ["message 0", "message 1", "message 2"]


async def test_history_limit_keeps_most_recent(store, conversation):
    for i in range(5):
        await store.add_message(conversation, "user", f"message {i}")

    history = await store.get_conversation_history(conversation, limit=2)
    assert [m.content for m in history] == ["message 3", "message 4"]


async def test_add_message_round_trips_fields(store, conversation):
    saved = await store.add_message(
        conversation, "assistant", "hello", model="a/model", metadata={"reason": "test"},
    )

    fresh = ContextStore(store._database_path)
    [loaded] = await fresh.get_conversation_history(conversation)

    assert loaded.id == saved.id
    assert loaded.conversation_id == conversation.id
    assert loaded.role == "assistant"
    assert loaded.model == "a/model"
    assert loaded.metadata == {"reason": "test"}
    assert loaded.timestamp == saved.timestamp


async def test_conversations_are_isolated(store, conversation):
    await store.add_message(conversation, "user", "in the first")
    second = await store.start_new_conversation("Second")
    await store.add_message(second, "user", "in the second")

    assert [m.content for m in await store.get_conversation_history(conversation)] == ["in the first"]
    assert [m.content for m in await store.get_conversation_history(second)] == ["in the second"]


async def test_new_conversation_default_title(store, conversation):
    handle = await store.start_new_conversation()
    assert handle.title == "New Conversation"
    assert handle.id != conversation.id


async def test_history_served_from_cache_after_first_read(store, conversation):
    await store.add_message(conversation, "user", "cached")
    await store.get_conversation_history(conversation)

    # Remove the row behind the cache's back.
    conn = sqlite3.connect(store._database_path)
    with conn:
        conn.execute("DELETE FROM messages")
    conn.close()

    assert [m.content for m in await store.get_conversation_history(conversation)] == ["cached"]


async def test_append_extends_cached_history(store, conversation):
    await store.add_message(conversation, "user", "one")
    await store.get_conversation_history(conversation)
    await store.add_message(conversation, "assistant", "two", model="a/model")

    assert [m.content for m in await store.get_conversation_history(conversation)] == ["one", "two"]


async def test_append_does_not_create_partial_cache_entry(store, conversation):
    await store.add_message(conversation, "user", "one")
    assert await store.cache.get(conversation.id) is None


async def test_summary_counts_and_model_usage(store, conversation):
    await store.add_message(conversation, "user", "q")
    await store.add_message(conversation, "assistant", "a1", model="a/model")
    await store.add_message(conversation, "assistant", "a2", model="a/model")
    await store.add_message(conversation, "assistant", "s", model="synthesis")

    summary = await store.get_summary(conversation)

    assert summary.total_conversations == 1
    assert summary.total_messages == 4
    assert [(u.model, u.count) for u in summary.model_usage] == [("a/model", 2), ("synthesis", 1)]


async def test_summary_without_handle(store, conversation):
    summary = await store.get_summary()
    assert summary.current_conversation_id is None


async def test_recent_conversations_by_last_update(store, conversation):
    second = await store.start_new_conversation("Second")
    await store.add_message(conversation, "user", "bump the first")

    recent = await store.get_recent_conversations()

    assert [c.id for c in recent] == [conversation.id, second.id]


async def test_invalid_role_rejected(store, conversation):
    with pytest.raises(StorageError, match="role"):
        await store.add_message(conversation, "narrator", "once upon a time")


async def test_unknown_conversation_rejected(store, conversation):
    with pytest.raises(StorageError):
        await store.add_message(ConversationHandle(id="missing"), "user", "hello?")


async def test_reads_on_fresh_store_create_no_conversation(tmp_path):
    store = ContextStore(tmp_path / "nested" / "empty.sqlite3")

    summary = await store.get_summary()

    assert summary.total_conversations == 0
    assert summary.total_messages == 0
    assert await store.get_recent_conversations() == []


async def test_unopenable_database_raises_storage_error(tmp_path):
    store = ContextStore(tmp_path)  # a directory, not a database file
    with pytest.raises(StorageError, match="Context store failure"):
        await store.get_summary()


async def test_clear_all(store, conversation):
    await store.add_message(conversation, "user", "gone soon")
    await store.get_conversation_history(conversation)

    await store.clear_all()

    summary = await store.get_summary()
    assert summary.total_conversations == 0
    assert summary.total_messages == 0
    assert await store.get_conversation_history(conversation) == []
