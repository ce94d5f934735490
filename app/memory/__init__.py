"""Conversation memory: what context is sent per turn and how history is compressed.

Main components:
- MemoryLoader: Reads recent window + summary, summarizes on first threshold crossing
- build_turn_context: Assembles the ordered message list for the completion call
- Summarizer: Compresses older messages and upserts the summary context record
- ConversationManager: Handles a turn, creates/titles conversations, records messages
"""

from .schemas import (
    ChatTurn,
    CompletionOptions,
    CompletionResult,
    ContextRecord,
    ConversationMemory,
    ConversationRecord,
    NewMessage,
    StoredMessage,
    TurnResult,
    TurnUsage,
)
from .assembler import build_turn_context
from .summarizer import Summarizer
from .loader import MemoryLoader
from .lifecycle import ConversationManager

__all__ = [
    "ChatTurn",
    "CompletionOptions",
    "CompletionResult",
    "ContextRecord",
    "ConversationManager",
    "ConversationMemory",
    "ConversationRecord",
    "MemoryLoader",
    "NewMessage",
    "StoredMessage",
    "Summarizer",
    "TurnResult",
    "TurnUsage",
    "build_turn_context",
]
