"""
Test configuration and shared fakes for pytest.
"""

import asyncio
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from app.exceptions import ConversationConflictError
from app.memory import ConversationManager
from app.memory.prompts import SUMMARY_CONFIG
from app.memory.schemas import (
    ChatTurn,
    CompletionOptions,
    CompletionResult,
    ContextRecord,
    ConversationRecord,
    NewMessage,
    StoredMessage,
)

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryConversationStore:
    """In-memory stand-in for ConversationStore with failure injection.

    ``fail(method)`` makes every later call to that method raise until
    ``recover(method)``. ``fail_after_commit(method)`` applies the write and
    then raises once, like a connection lost before the acknowledgement.
    Calls are recorded in order in ``calls``.
    """

    def __init__(self):
        self.conversations: Dict[str, ConversationRecord] = {}
        self.messages: Dict[str, List[StoredMessage]] = defaultdict(list)
        self.context: Dict[Tuple[str, str], ContextRecord] = {}
        self.failures: Dict[str, Exception] = {}
        self.commit_failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.upserts = 0
        self._next_message_id = 1

    def fail(self, method: str, error: Optional[Exception] = None) -> None:
        self.failures[method] = error or RuntimeError(f"{method} unavailable")

    def fail_after_commit(self, method: str, error: Optional[Exception] = None) -> None:
        self.commit_failures[method] = error or ConnectionResetError(f"{method} connection lost")

    def recover(self, method: str) -> None:
        self.failures.pop(method, None)
        self.commit_failures.pop(method, None)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]

    def _committed(self, method: str) -> None:
        if method in self.commit_failures:
            raise self.commit_failures.pop(method)

    # --- Seeding helpers ---

    def add_conversation(self, user_id: str = "user-1", title: str = "Seeded") -> str:
        conversation_id = str(uuid.uuid4())
        self.conversations[conversation_id] = ConversationRecord(
            conversation_id=conversation_id,
            user_id=user_id,
            title=title,
            created_at=BASE_TIME,
            last_activity_at=BASE_TIME,
        )
        return conversation_id

    def seed_messages(self, conversation_id: str, count: int, roles: Optional[List[str]] = None) -> None:
        """Append ``count`` messages alternating user/assistant (or the given roles)."""
        existing = len(self.messages[conversation_id])
        for i in range(count):
            index = existing + i
            role = roles[i] if roles else ("user" if index % 2 == 0 else "assistant")
            self._append(
                conversation_id,
                NewMessage.model_construct(
                    role=role,
                    content=f"message {index}",
                    created_at=BASE_TIME + timedelta(minutes=index),
                    metadata=None,
                ),
            )

    def _append(self, conversation_id: str, msg: NewMessage) -> None:
        self.messages[conversation_id].append(
            StoredMessage(
                message_id=self._next_message_id,
                conversation_id=conversation_id,
                role=msg.role,
                content=msg.content,
                created_at=msg.created_at,
                metadata=msg.metadata,
            )
        )
        self._next_message_id += 1

    # --- Conversations ---

    def _insert_conversation(
        self, conversation_id: str, user_id: str, title: str, client_ref: Optional[str]
    ) -> str:
        if conversation_id in self.conversations:
            return conversation_id
        if client_ref is not None:
            for record in self.conversations.values():
                if record.user_id == user_id and record.client_ref == client_ref:
                    raise ConversationConflictError(user_id, client_ref)
        now = datetime.now(timezone.utc)
        self.conversations[conversation_id] = ConversationRecord(
            conversation_id=conversation_id,
            user_id=user_id,
            title=title,
            client_ref=client_ref,
            created_at=now,
            last_activity_at=now,
        )
        return conversation_id

    async def insert_conversation(self, conversation_id, user_id, title, client_ref=None):
        self._enter("insert_conversation")
        self._insert_conversation(conversation_id, user_id, title, client_ref)
        self._committed("insert_conversation")
        return conversation_id

    async def insert_conversation_direct(self, conversation_id, user_id, title, client_ref=None):
        self._enter("insert_conversation_direct")
        self._insert_conversation(conversation_id, user_id, title, client_ref)
        self._committed("insert_conversation_direct")
        return conversation_id

    async def find_conversation(self, user_id, client_ref):
        self._enter("find_conversation")
        for record in self.conversations.values():
            if record.user_id == user_id and record.client_ref == client_ref:
                return record.conversation_id
        return None

    async def get_conversation(self, conversation_id, user_id):
        self._enter("get_conversation")
        record = self.conversations.get(conversation_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def update_conversation_title(self, conversation_id, title):
        self._enter("update_conversation_title")
        self.conversations[conversation_id] = self.conversations[conversation_id].model_copy(
            update={"title": title}
        )

    async def touch_conversation(self, conversation_id):
        self._enter("touch_conversation")
        self.conversations[conversation_id] = self.conversations[conversation_id].model_copy(
            update={"last_activity_at": datetime.now(timezone.utc)}
        )

    # --- Messages ---

    async def list_messages(self, conversation_id):
        self._enter("list_messages")
        return sorted(
            self.messages.get(conversation_id, []),
            key=lambda m: (m.created_at, m.message_id),
        )

    def _insert_messages(self, conversation_id, messages):
        if conversation_id not in self.conversations:
            raise RuntimeError(f"foreign key violation: conversation {conversation_id} does not exist")
        for msg in messages:
            self._append(conversation_id, msg)

    async def insert_messages(self, conversation_id, messages):
        self._enter("insert_messages")
        self._insert_messages(conversation_id, messages)

    async def insert_messages_direct(self, conversation_id, messages):
        self._enter("insert_messages_direct")
        self._insert_messages(conversation_id, messages)

    # --- Context records ---

    async def get_context_record(self, conversation_id, context_type="summary"):
        self._enter("get_context_record")
        return self.context.get((conversation_id, context_type))

    async def upsert_context_record(self, record):
        self._enter("upsert_context_record")
        self.upserts += 1
        self.context[(record.conversation_id, record.context_type)] = record


class FakeCompletionService:
    """Deterministic completion service that records every call.

    Summary requests are recognised by the summarizer's system instructions.
    """

    def __init__(
        self,
        replies: Optional[List[str]] = None,
        summary: str = "The user is planning budget meals and prefers chicken.",
        title: Optional[str] = "Budget Chicken Shopping",
    ):
        self.replies = list(replies or [])
        self.summary_text = summary
        self.title = title
        self.calls: List[List[ChatTurn]] = []
        self.options: List[Optional[CompletionOptions]] = []
        self.title_requests: List[str] = []
        self.fail_replies = False
        self.fail_summaries = False
        self.fail_titles = False
        self.reply_delay = 0.0
        # Extra reply delay keyed by the user message text
        self.delays: Dict[str, float] = {}

    @staticmethod
    def _is_summary_request(messages: List[ChatTurn]) -> bool:
        return bool(messages) and messages[0].content == SUMMARY_CONFIG.instructions

    @property
    def reply_calls(self) -> List[List[ChatTurn]]:
        return [c for c in self.calls if not self._is_summary_request(c)]

    @property
    def summary_calls(self) -> List[List[ChatTurn]]:
        return [c for c in self.calls if self._is_summary_request(c)]

    async def complete(self, messages, options=None):
        self.calls.append(list(messages))
        self.options.append(options)
        await asyncio.sleep(0)

        if self._is_summary_request(messages):
            if self.fail_summaries:
                raise RuntimeError("summary provider unavailable")
            return CompletionResult(text=self.summary_text, input_tokens=80, output_tokens=30)

        delay = self.reply_delay + self.delays.get(messages[-1].content, 0.0)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_replies:
            raise RuntimeError("provider unavailable")
        text = self.replies.pop(0) if self.replies else f"Reply #{len(self.reply_calls)}"
        return CompletionResult(text=text, input_tokens=120, output_tokens=40)

    async def generate_title(self, text):
        self.title_requests.append(text)
        await asyncio.sleep(0)
        if self.fail_titles:
            raise RuntimeError("title provider unavailable")
        return self.title


@pytest.fixture
def store():
    """Provide an empty in-memory conversation store."""
    return InMemoryConversationStore()


@pytest.fixture
def completion():
    """Provide a fake completion service with default replies."""
    return FakeCompletionService()


@pytest.fixture
def manager(store, completion):
    """Provide a ConversationManager with K=10, T=15 over the fakes."""
    return ConversationManager(
        store=store,
        completion=completion,
        rolling_window_size=10,
        summarize_threshold=15,
        completion_timeout_seconds=2.0,
    )
