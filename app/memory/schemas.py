"""Conversation memory schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

# Role inside assembled context; storage keeps role as an open string
ChatRole = Literal["system", "user", "assistant"]
MessageRole = Literal["user", "assistant"]

SUMMARY_CONTEXT_TYPE = "summary"


class ChatTurn(BaseModel):
    """One role-tagged entry sent to the completion service."""

    role: ChatRole
    content: str


class ConversationRecord(BaseModel):
    """Conversation row from database."""

    conversation_id: str
    user_id: str
    title: str
    client_ref: Optional[str] = None  # Client idempotency reference for first turns
    created_at: datetime
    last_activity_at: datetime


class StoredMessage(BaseModel):
    """Message row from database."""

    message_id: int
    conversation_id: str
    role: str  # Not validated: unexpected roles are filtered by the loader
    content: str
    created_at: datetime
    metadata: Optional[Dict[str, Any]] = None


class NewMessage(BaseModel):
    """Message to be inserted."""

    role: MessageRole
    content: str
    created_at: datetime
    metadata: Optional[Dict[str, Any]] = None


class ContextRecord(BaseModel):
    """Compressed synopsis standing in for older messages."""

    conversation_id: str
    context_type: str = SUMMARY_CONTEXT_TYPE
    summary: str
    message_count: int  # Number of older messages the summary covers
    generated_at: datetime


class ConversationMemory(BaseModel):
    """Memory loaded for a turn: optional summary plus the recent window."""

    conversation_id: Optional[str] = None
    summary: Optional[str] = None
    recent_messages: List[ChatTurn] = Field(default_factory=list)
    total_message_count: int = 0

    @property
    def older_message_count(self) -> int:
        """Number of persisted messages not sent verbatim."""
        return self.total_message_count - len(self.recent_messages)


class CompletionOptions(BaseModel):
    """Per-call completion options."""

    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None


class CompletionResult(BaseModel):
    """Completion output with token usage."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class TurnUsage(BaseModel):
    """Token usage of the user-facing completion call."""

    input_tokens: int = 0
    output_tokens: int = 0


class TurnResult(BaseModel):
    """Outcome of one handled turn."""

    reply: str
    conversation_id: Optional[str] = None  # None when the conversation could not be created
    usage: TurnUsage = Field(default_factory=TurnUsage)
    memory_persisted: bool = False
