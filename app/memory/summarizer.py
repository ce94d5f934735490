"""Compress older conversation messages into a stored synopsis."""

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from .prompts import SUMMARY_CONFIG
from .schemas import (
    SUMMARY_CONTEXT_TYPE,
    ChatTurn,
    CompletionOptions,
    ContextRecord,
    StoredMessage,
)

if TYPE_CHECKING:
    from app.infrastructure.manager import ConversationStore
    from app.llm.base import CompletionService

logger = logging.getLogger(__name__)

_SPEAKERS = {"user": "User", "assistant": "Assistant"}


def build_transcript(messages: List[StoredMessage]) -> str:
    """Render messages as 'User: ...' / 'Assistant: ...' lines, skipping other roles."""
    return "\n".join(
        f"{_SPEAKERS[msg.role]}: {msg.content}"
        for msg in messages
        if msg.role in _SPEAKERS
    )


class Summarizer:
    """Summarizes older messages and upserts the summary context record.

    Configuration:
    - rolling_window_size (K): Messages always sent verbatim (default: 10)
    - summarize_threshold (T): Summarize once total messages exceed this (default: 15)

    The minimum batch worth summarizing is T - K messages; it is also how far
    the window must advance past an existing summary before a background
    refresh runs.
    """

    def __init__(
        self,
        store: "ConversationStore",
        completion: "CompletionService",
        rolling_window_size: int = 10,
        summarize_threshold: int = 15,
        max_output_tokens: int = 300,
        temperature: float = 0.3,
    ):
        """Initialize summarizer.

        Args:
            store: Conversation store
            completion: Completion service used for summaries
            rolling_window_size: Number of recent messages kept verbatim
            summarize_threshold: Message count above which history is compressed
            max_output_tokens: Output token cap for the summary
            temperature: Sampling temperature for the summary

        Raises:
            ValueError: If the window/threshold combination is invalid
        """
        if rolling_window_size < 1:
            raise ValueError("rolling_window_size must be at least 1")
        if summarize_threshold <= rolling_window_size:
            raise ValueError("summarize_threshold must be greater than rolling_window_size")

        self.store = store
        self.completion = completion
        self.rolling_window_size = rolling_window_size
        self.summarize_threshold = summarize_threshold
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    @property
    def min_batch_size(self) -> int:
        return self.summarize_threshold - self.rolling_window_size

    def older_messages(self, messages: List[StoredMessage]) -> List[StoredMessage]:
        """Messages outside the rolling window."""
        return messages[: -self.rolling_window_size]

    def exceeds_threshold(self, total_message_count: int) -> bool:
        """True when history must be compressed (exclusive boundary)."""
        return total_message_count > self.summarize_threshold

    async def summarize(
        self,
        conversation_id: str,
        older_messages: List[StoredMessage],
        user_id: str,
    ) -> str:
        """Summarize older messages and persist the summary.

        Args:
            conversation_id: Conversation ID
            older_messages: Messages preceding the rolling window, oldest first
            user_id: Owning user ID

        Returns:
            The summary, or an empty string if none could be generated
        """
        transcript = build_transcript(older_messages)
        if not transcript:
            logger.debug(f"No user/assistant messages to summarize for {conversation_id}")
            return ""

        start_time = time.monotonic()
        try:
            result = await self.completion.complete(
                [
                    ChatTurn(role="system", content=SUMMARY_CONFIG.instructions),
                    ChatTurn(role="user", content=transcript),
                ],
                CompletionOptions(
                    max_output_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                ),
            )
        except Exception as e:
            logger.error(f"Failed to generate summary for {conversation_id}: {e}")
            return ""

        summary = result.text.strip()
        if not summary:
            logger.warning(f"Empty summary generated for {conversation_id}")
            return ""

        generation_time_ms = int((time.monotonic() - start_time) * 1000)

        try:
            await self.store.upsert_context_record(
                ContextRecord(
                    conversation_id=conversation_id,
                    context_type=SUMMARY_CONTEXT_TYPE,
                    summary=summary,
                    message_count=len(older_messages),
                    generated_at=datetime.now(timezone.utc),
                )
            )
        except Exception as e:
            logger.error(f"Failed to store summary for {conversation_id}: {e}")
            return summary

        logger.info(
            f"Summarized {len(older_messages)} messages for {conversation_id} "
            f"(user {user_id}) in {generation_time_ms}ms"
        )
        return summary

    def needs_refresh(
        self, older_count: int, existing: Optional[ContextRecord]
    ) -> bool:
        """Decide whether a background run should (re)generate the summary.

        Args:
            older_count: Number of messages outside the rolling window
            existing: Current summary record, if any

        Returns:
            True if there is no summary yet, or the window has advanced at
            least ``min_batch_size`` messages past the existing one
        """
        if older_count < self.min_batch_size:
            return False
        if existing is None:
            return True
        return older_count - existing.message_count >= self.min_batch_size

    async def refresh_if_needed(self, conversation_id: str, user_id: str) -> Optional[str]:
        """Background check run after a turn is recorded.

        Returns:
            The new summary if one was generated, None if skipped
        """
        messages = await self.store.list_messages(conversation_id)

        if not self.exceeds_threshold(len(messages)):
            logger.debug(
                f"Not enough messages to summarize for {conversation_id}: "
                f"{len(messages)} <= threshold {self.summarize_threshold}"
            )
            return None

        older = self.older_messages(messages)
        existing = await self.store.get_context_record(conversation_id, SUMMARY_CONTEXT_TYPE)
        if not self.needs_refresh(len(older), existing):
            logger.debug(f"Summary for {conversation_id} is current")
            return None

        return await self.summarize(conversation_id, older, user_id)
