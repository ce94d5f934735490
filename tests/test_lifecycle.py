"""Tests for turn handling and the conversation lifecycle."""

import asyncio

import pytest

from app.exceptions import (
    CompletionError,
    CompletionTimeoutError,
    ConversationNotFoundError,
)
from app.memory import ConversationManager
from app.memory.lifecycle import DEFAULT_TITLE, title_from_first_user_message

SYSTEM_PROMPT = "You are a shopping assistant."


def test_fallback_title_collapses_whitespace_and_truncates():
    assert title_from_first_user_message("  Find   cheap\nchicken  ") == "Find cheap chicken"
    assert title_from_first_user_message("x" * 100, max_chars=60) == "x" * 60
    assert title_from_first_user_message("   ") == DEFAULT_TITLE


@pytest.mark.asyncio
async def test_first_turn_creates_conversation_and_records_messages(manager, store, completion):
    result = await manager.handle_turn("user-1", None, "Find cheap chicken", SYSTEM_PROMPT)
    await manager.tasks.drain()

    assert result.reply == "Reply #1"
    assert result.memory_persisted is True
    assert result.usage.input_tokens == 120
    assert result.usage.output_tokens == 40

    [context] = completion.reply_calls
    assert [(m.role, m.content) for m in context] == [
        ("system", SYSTEM_PROMPT),
        ("user", "Find cheap chicken"),
    ]

    record = store.conversations[result.conversation_id]
    assert record.user_id == "user-1"
    assert record.title == "Budget Chicken Shopping"
    assert completion.title_requests == ["Find cheap chicken"]

    user_msg, assistant_msg = store.messages[result.conversation_id]
    assert (user_msg.role, user_msg.content) == ("user", "Find cheap chicken")
    assert (assistant_msg.role, assistant_msg.content) == ("assistant", "Reply #1")
    assert assistant_msg.metadata == {"input_tokens": 120, "output_tokens": 40}
    assert user_msg.created_at <= assistant_msg.created_at


@pytest.mark.asyncio
async def test_follow_up_turn_sends_previous_messages(manager, store, completion):
    first = await manager.handle_turn("user-1", None, "Find cheap chicken", SYSTEM_PROMPT)
    second = await manager.handle_turn(
        "user-1", first.conversation_id, "Add it to my list", SYSTEM_PROMPT, metadata={"model": "gpt-4.1"}
    )
    await manager.tasks.drain()

    assert second.conversation_id == first.conversation_id
    context = completion.reply_calls[1]
    assert [m.content for m in context] == [
        SYSTEM_PROMPT,
        "Find cheap chicken",
        "Reply #1",
        "Add it to my list",
    ]
    stored = store.messages[first.conversation_id]
    assert len(stored) == 4
    assert stored[-1].metadata["model"] == "gpt-4.1"
    # Only the creating turn generates a title
    assert len(completion.title_requests) == 1


@pytest.mark.asyncio
async def test_long_conversation_gets_summary_and_window(manager, store, completion):
    conversation_id = store.add_conversation()
    store.seed_messages(conversation_id, 20)

    result = await manager.handle_turn("user-1", conversation_id, "What about chicken?", SYSTEM_PROMPT)
    await manager.tasks.drain()

    assert result.memory_persisted is True
    [context] = completion.reply_calls
    assert len(context) == 13
    assert context[1].role == "system"
    assert context[1].content.startswith("Previous conversation summary (10 older messages):")
    assert [m.content for m in context[2:12]] == [f"message {i}" for i in range(10, 20)]
    assert context[-1].content == "What about chicken?"

    # 22 stored messages: 12 older vs. 10 summarized is not enough to refresh
    assert len(store.messages[conversation_id]) == 22
    assert len(completion.summary_calls) == 1


@pytest.mark.asyncio
async def test_background_refresh_after_window_advances(manager, store, completion):
    conversation_id = store.add_conversation()
    store.seed_messages(conversation_id, 20)

    for text in ("one", "two", "three"):
        await manager.handle_turn("user-1", conversation_id, text, SYSTEM_PROMPT)
        await manager.tasks.drain()

    # 26 messages, 16 older; the stored summary covered 10
    assert len(completion.summary_calls) == 2
    assert store.context[(conversation_id, "summary")].message_count == 16


@pytest.mark.asyncio
async def test_unknown_conversation_is_not_found(manager, store, completion):
    with pytest.raises(ConversationNotFoundError):
        await manager.handle_turn("user-1", "missing-id", "Hello", SYSTEM_PROMPT)

    assert completion.calls == []


@pytest.mark.asyncio
async def test_other_users_conversation_is_not_found(manager, store, completion):
    conversation_id = store.add_conversation(user_id="user-2")
    store.seed_messages(conversation_id, 4)

    with pytest.raises(ConversationNotFoundError):
        await manager.handle_turn("user-1", conversation_id, "Hello", SYSTEM_PROMPT)

    assert completion.calls == []
    assert len(store.messages[conversation_id]) == 4


@pytest.mark.asyncio
async def test_completion_failure_persists_nothing(manager, store, completion):
    completion.fail_replies = True

    with pytest.raises(CompletionError) as exc_info:
        await manager.handle_turn("user-1", None, "Hello", SYSTEM_PROMPT, client_ref="ref-1")

    assert isinstance(exc_info.value.original_error, RuntimeError)
    assert store.conversations == {}
    assert "insert_messages" not in store.calls


@pytest.mark.asyncio
async def test_completion_timeout(store, completion):
    manager = ConversationManager(store, completion, completion_timeout_seconds=0.05)
    completion.reply_delay = 1.0
    conversation_id = store.add_conversation()

    with pytest.raises(CompletionTimeoutError) as exc_info:
        await manager.handle_turn("user-1", conversation_id, "Hello", SYSTEM_PROMPT)

    assert exc_info.value.timeout_seconds == 0.05
    assert store.messages[conversation_id] == []


@pytest.mark.asyncio
async def test_memory_load_failure_still_answers(manager, store, completion):
    conversation_id = store.add_conversation()
    store.seed_messages(conversation_id, 6)
    store.fail("list_messages")

    result = await manager.handle_turn("user-1", conversation_id, "Hello", SYSTEM_PROMPT)
    await manager.tasks.drain()

    [context] = completion.reply_calls
    assert [m.role for m in context] == ["system", "user"]
    assert result.memory_persisted is True
    assert len(store.messages[conversation_id]) == 8


@pytest.mark.asyncio
async def test_concurrent_first_turns_share_one_conversation(manager, store, completion):
    first, second = await asyncio.gather(
        manager.handle_turn("user-1", None, "Find cheap chicken", SYSTEM_PROMPT, client_ref="tab-1"),
        manager.handle_turn("user-1", None, "Find cheap chicken", SYSTEM_PROMPT, client_ref="tab-1"),
    )
    await manager.tasks.drain()

    assert first.conversation_id == second.conversation_id
    assert len(store.conversations) == 1
    assert len(store.messages[first.conversation_id]) == 4
    assert first.memory_persisted and second.memory_persisted
    assert len(completion.title_requests) == 1


@pytest.mark.asyncio
async def test_create_falls_back_to_direct_insert(manager, store):
    store.fail("insert_conversation")

    result = await manager.handle_turn("user-1", None, "Hello", SYSTEM_PROMPT)
    await manager.tasks.drain()

    assert result.conversation_id in store.conversations
    assert result.memory_persisted is True
    assert store.calls.count("insert_conversation_direct") == 1


@pytest.mark.asyncio
async def test_create_retry_after_lost_commit_keeps_one_conversation(manager, store, completion):
    store.fail_after_commit("insert_conversation")

    result = await manager.handle_turn("user-1", None, "Hello", SYSTEM_PROMPT, client_ref="tab-1")
    await manager.tasks.drain()

    assert list(store.conversations) == [result.conversation_id]
    assert store.calls.count("insert_conversation_direct") == 1
    assert result.memory_persisted is True
    assert len(store.messages[result.conversation_id]) == 2
    assert completion.title_requests == ["Hello"]


@pytest.mark.asyncio
async def test_create_failure_returns_reply_without_memory(manager, store, completion):
    store.fail("insert_conversation")
    store.fail("insert_conversation_direct")

    result = await manager.handle_turn("user-1", None, "Hello", SYSTEM_PROMPT)
    await manager.tasks.drain()

    assert result.reply == "Reply #1"
    assert result.conversation_id is None
    assert result.memory_persisted is False
    assert completion.title_requests == []
    assert len(manager.tasks) == 0


@pytest.mark.asyncio
async def test_direct_create_conflict_reuses_existing(manager, store):
    existing = await manager.create_conversation("user-1", "Hello", client_ref="tab-9")
    store.fail("insert_conversation")

    conversation_id = await manager.create_conversation("user-1", "Hello", client_ref="tab-9")

    assert conversation_id == existing
    assert len(store.conversations) == 1


@pytest.mark.asyncio
async def test_record_turn_falls_back_once(manager, store):
    conversation_id = store.add_conversation()
    store.fail("insert_messages")

    assert await manager.record_turn(conversation_id, "hi", "hello") is True
    assert store.calls.count("insert_messages_direct") == 1
    assert len(store.messages[conversation_id]) == 2


@pytest.mark.asyncio
async def test_record_turn_gives_up_after_direct_failure(manager, store):
    conversation_id = store.add_conversation()
    store.fail("insert_messages")
    store.fail("insert_messages_direct")

    result = await manager.handle_turn("user-1", conversation_id, "hi", SYSTEM_PROMPT)
    await manager.tasks.drain()

    assert result.reply == "Reply #1"
    assert result.memory_persisted is False
    assert store.calls.count("insert_messages_direct") == 1
    assert store.messages[conversation_id] == []
    assert "list_messages" not in store.calls[store.calls.index("insert_messages_direct"):]


@pytest.mark.asyncio
async def test_overlapping_turns_are_stored_in_completion_order(manager, store, completion):
    conversation_id = store.add_conversation()
    completion.replies = ["fast answer", "slow answer"]
    completion.delays["slow question"] = 0.05

    await asyncio.gather(
        manager.handle_turn("user-1", conversation_id, "slow question", SYSTEM_PROMPT),
        manager.handle_turn("user-1", conversation_id, "fast question", SYSTEM_PROMPT),
    )
    await manager.tasks.drain()

    stored = await store.list_messages(conversation_id)
    assert [(m.role, m.content) for m in stored] == [
        ("user", "fast question"),
        ("assistant", "fast answer"),
        ("user", "slow question"),
        ("assistant", "slow answer"),
    ]


@pytest.mark.asyncio
async def test_touch_failure_does_not_lose_turn(manager, store):
    conversation_id = store.add_conversation()
    store.fail("touch_conversation")

    assert await manager.record_turn(conversation_id, "hi", "hello") is True
    assert len(store.messages[conversation_id]) == 2


@pytest.mark.asyncio
async def test_title_failure_keeps_fallback(manager, store, completion):
    completion.fail_titles = True

    result = await manager.handle_turn("user-1", None, "Find cheap chicken", SYSTEM_PROMPT)
    await manager.tasks.drain()

    assert store.conversations[result.conversation_id].title == "Find cheap chicken"


@pytest.mark.asyncio
async def test_blank_generated_title_is_ignored(manager, store, completion):
    completion.title = "   "
    conversation_id = store.add_conversation(title="Fallback")

    assert await manager.generate_title(conversation_id, "hello") is None
    assert store.conversations[conversation_id].title == "Fallback"


@pytest.mark.asyncio
async def test_shutdown_waits_for_background_work(manager, store, completion):
    result = await manager.handle_turn("user-1", None, "Find cheap chicken", SYSTEM_PROMPT)

    await manager.shutdown(timeout=5)

    assert len(manager.tasks) == 0
    assert store.conversations[result.conversation_id].title == "Budget Chicken Shopping"
