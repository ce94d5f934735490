"""Load a conversation's summary and recent message window."""

import logging
from typing import TYPE_CHECKING

from .schemas import SUMMARY_CONTEXT_TYPE, ChatTurn, ConversationMemory
from .summarizer import Summarizer

if TYPE_CHECKING:
    from app.infrastructure.manager import ConversationStore

logger = logging.getLogger(__name__)

_CONTEXT_ROLES = ("user", "assistant")


class MemoryLoader:
    """Reads history and summary for a conversation.

    The first load that finds the conversation above the summarization
    threshold without a summary summarizes synchronously and pays that
    latency; later loads read the stored summary.
    """

    def __init__(self, store: "ConversationStore", summarizer: Summarizer):
        self.store = store
        self.summarizer = summarizer

    @property
    def rolling_window_size(self) -> int:
        return self.summarizer.rolling_window_size

    async def load_memory(self, conversation_id: str, user_id: str) -> ConversationMemory:
        """Load memory for a turn.

        Args:
            conversation_id: Conversation ID
            user_id: Owning user ID (passed through to summarization)

        Returns:
            ConversationMemory with summary, recent window and total count
        """
        messages = await self.store.list_messages(conversation_id)
        total_message_count = len(messages)

        if total_message_count == 0:
            return ConversationMemory(conversation_id=conversation_id)

        record = await self.store.get_context_record(conversation_id, SUMMARY_CONTEXT_TYPE)
        summary = record.summary if record else None

        # Slice first, then filter: the window is the last K stored rows
        recent_messages = [
            ChatTurn(role=msg.role, content=msg.content)
            for msg in messages[-self.rolling_window_size:]
            if msg.role in _CONTEXT_ROLES
        ]

        if self.summarizer.exceeds_threshold(total_message_count) and not summary:
            older = self.summarizer.older_messages(messages)
            if older:
                logger.info(
                    f"Conversation {conversation_id} crossed the summary threshold "
                    f"({total_message_count} messages), summarizing {len(older)}"
                )
                summary = await self.summarizer.summarize(conversation_id, older, user_id) or None

        return ConversationMemory(
            conversation_id=conversation_id,
            summary=summary,
            recent_messages=recent_messages,
            total_message_count=total_message_count,
        )
