"""Pydantic schemas for chat turn API endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SendMessageRequest(BaseModel):
    """Schema for sending a user message (one turn)."""

    message: str = Field(..., min_length=1, description="User message content")
    conversation_id: Optional[str] = Field(
        None, description="Existing conversation ID; omit to start a new conversation"
    )
    system_prompt: Optional[str] = Field(
        None, description="Assistant instructions; defaults to the configured prompt"
    )
    client_ref: Optional[str] = Field(
        None,
        max_length=128,
        description="Client idempotency reference so retried first turns reuse one conversation",
    )

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace before validation."""
        return v.strip() if isinstance(v, str) else v


class UsageSchema(BaseModel):
    """Token usage of the reply."""

    input_tokens: int = Field(0, description="Prompt tokens")
    output_tokens: int = Field(0, description="Completion tokens")


class SendMessageResponse(BaseModel):
    """Schema for the assistant reply to a turn."""

    reply: str = Field(..., description="Assistant reply")
    conversation_id: Optional[str] = Field(
        None, description="Conversation ID (null if the conversation could not be stored)"
    )
    usage: UsageSchema = Field(default_factory=UsageSchema)
    memory_persisted: bool = Field(
        ..., description="False when the turn was answered but could not be remembered"
    )


class MemoryMessageSchema(BaseModel):
    """A message in the recent window."""

    role: str
    content: str


class MemoryResponse(BaseModel):
    """Diagnostic view of the memory loaded for a conversation."""

    conversation_id: str
    summary: Optional[str] = None
    older_message_count: int = 0
    total_message_count: int = 0
    recent_messages: List[MemoryMessageSchema] = Field(default_factory=list)
