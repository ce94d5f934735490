"""Pydantic schemas for API requests and responses."""

from .message import (
    MemoryMessageSchema,
    MemoryResponse,
    SendMessageRequest,
    SendMessageResponse,
    UsageSchema,
)
from .user import UserInfo

__all__ = [
    # Message schemas
    "SendMessageRequest",
    "SendMessageResponse",
    "UsageSchema",
    "MemoryMessageSchema",
    "MemoryResponse",
    # User schemas
    "UserInfo",
]
