"""Conversation lifecycle: turn handling, creation, titles and turn recording."""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from app.exceptions import (
    CompletionError,
    CompletionTimeoutError,
    ConversationConflictError,
    ConversationNotFoundError,
)
from app.utils.tasks import TaskSupervisor

from .assembler import build_turn_context
from .loader import MemoryLoader
from .schemas import (
    ChatTurn,
    CompletionOptions,
    CompletionResult,
    ConversationMemory,
    NewMessage,
    TurnResult,
    TurnUsage,
)
from .summarizer import Summarizer

if TYPE_CHECKING:
    from app.infrastructure.manager import ConversationStore
    from app.llm.base import CompletionService

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
MAX_TITLE_LENGTH = 255


def title_from_first_user_message(msg: str, max_chars: int = 60) -> str:
    """Derive a short, single-line fallback title from the user's first message.

    Args:
        msg: The user's message
        max_chars: Character budget for the title

    Returns:
        Whitespace-collapsed, truncated message, or DEFAULT_TITLE if empty
    """
    collapsed = " ".join((msg or "").split())
    return collapsed[:max_chars].strip() or DEFAULT_TITLE


class ConversationManager:
    """Handles one turn end to end and owns the conversation lifecycle.

    Lifecycle per conversation: absent -> created (fallback title) ->
    titled (generated title, best effort).

    Only a failed completion call for the current turn is surfaced to the
    caller. Every memory failure (create, record, summarize, title) is
    logged and degrades instead.
    """

    def __init__(
        self,
        store: "ConversationStore",
        completion: "CompletionService",
        memory_completion: Optional["CompletionService"] = None,
        rolling_window_size: int = 10,
        summarize_threshold: int = 15,
        summary_max_tokens: int = 300,
        summary_temperature: float = 0.3,
        completion_timeout_seconds: Optional[float] = 60.0,
        reply_options: Optional[CompletionOptions] = None,
        title_max_chars: int = 60,
        tasks: Optional[TaskSupervisor] = None,
    ):
        """Initialize conversation manager.

        Args:
            store: Conversation store
            completion: Completion service for user-facing replies
            memory_completion: Completion service for summaries and titles
                (defaults to ``completion``)
            rolling_window_size: Number of recent messages sent verbatim
            summarize_threshold: Message count above which history is compressed
            summary_max_tokens: Output token cap for summaries
            summary_temperature: Temperature for summaries
            completion_timeout_seconds: Time budget for the reply call (None = no limit)
            reply_options: Options for the reply call
            title_max_chars: Character budget for fallback titles
            tasks: Background task supervisor
        """
        self.store = store
        self.completion = completion
        self.memory_completion = memory_completion or completion
        self.summarizer = Summarizer(
            store,
            self.memory_completion,
            rolling_window_size=rolling_window_size,
            summarize_threshold=summarize_threshold,
            max_output_tokens=summary_max_tokens,
            temperature=summary_temperature,
        )
        self.loader = MemoryLoader(store, self.summarizer)
        self.completion_timeout_seconds = completion_timeout_seconds
        self.reply_options = reply_options or CompletionOptions()
        self.title_max_chars = title_max_chars
        self.tasks = tasks or TaskSupervisor()

    async def handle_turn(
        self,
        user_id: str,
        conversation_id: Optional[str],
        user_text: str,
        system_prompt: str,
        client_ref: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TurnResult:
        """Answer a user message with memory and record the exchange.

        Args:
            user_id: Owning user ID
            conversation_id: Existing conversation, or None to start one
            user_text: The user's message
            system_prompt: Instructions for the assistant
            client_ref: Client idempotency reference for a new conversation
            metadata: Extra metadata stored on the assistant message

        Returns:
            TurnResult with reply, conversation ID, usage and persistence flag

        Raises:
            ConversationNotFoundError: If conversation_id is not the user's
            CompletionError: If the reply could not be generated (nothing persisted)
        """
        if conversation_id is not None:
            memory = await self._load_memory(conversation_id, user_id)
        else:
            memory = ConversationMemory()

        messages = build_turn_context(system_prompt, memory, user_text)
        result = await self._complete(messages)

        is_new = False
        if conversation_id is None:
            conversation_id, is_new = await self._create_conversation(user_id, user_text, client_ref)

        memory_persisted = False
        if conversation_id is not None:
            assistant_metadata = {
                "input_tokens": result.input_tokens,
                "output_tokens": result.output_tokens,
                **(metadata or {}),
            }
            memory_persisted = await self.record_turn(
                conversation_id,
                user_text,
                result.text,
                metadata=assistant_metadata,
            )
            if memory_persisted:
                self.tasks.spawn(
                    self.summarizer.refresh_if_needed(conversation_id, user_id),
                    name=f"summarize:{conversation_id}",
                )
            if is_new:
                self.tasks.spawn(
                    self.generate_title(conversation_id, user_text),
                    name=f"title:{conversation_id}",
                )
        else:
            logger.error(f"Memory not persisted for user {user_id}: conversation could not be created")

        return TurnResult(
            reply=result.text,
            conversation_id=conversation_id,
            usage=TurnUsage(
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
            ),
            memory_persisted=memory_persisted,
        )

    async def _load_memory(self, conversation_id: str, user_id: str) -> ConversationMemory:
        """Ownership check plus memory load; storage errors degrade to no memory."""
        try:
            conversation = await self.store.get_conversation(conversation_id, user_id)
        except Exception as e:
            logger.warning(f"Ownership check failed for {conversation_id}, continuing without memory: {e}")
            return ConversationMemory(conversation_id=conversation_id)

        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        try:
            return await self.loader.load_memory(conversation_id, user_id)
        except Exception as e:
            logger.warning(f"Failed to load memory for {conversation_id}, continuing without memory: {e}")
            return ConversationMemory(conversation_id=conversation_id)

    async def _complete(self, messages: List[ChatTurn]) -> CompletionResult:
        try:
            return await asyncio.wait_for(
                self.completion.complete(messages, self.reply_options),
                timeout=self.completion_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Completion timed out after {self.completion_timeout_seconds}s")
            raise CompletionTimeoutError(self.completion_timeout_seconds)
        except CompletionError:
            raise
        except Exception as e:
            logger.error(f"Completion failed: {e}")
            raise CompletionError(e) from e

    async def create_conversation(
        self, user_id: str, first_message: str, client_ref: Optional[str] = None
    ) -> Optional[str]:
        """Create a conversation with a fallback title.

        Tries the pooled insert, then one direct insert. A conflict on
        (user_id, client_ref) on either path resolves to the existing row.

        Returns:
            Conversation ID, or None if it could not be created
        """
        conversation_id, _ = await self._create_conversation(user_id, first_message, client_ref)
        return conversation_id

    async def _create_conversation(
        self, user_id: str, first_message: str, client_ref: Optional[str]
    ) -> Tuple[Optional[str], bool]:
        """Returns (conversation_id, created_by_this_call)."""
        title = title_from_first_user_message(first_message, self.title_max_chars)
        # One ID for both paths; the insert is idempotent on it
        conversation_id = str(uuid.uuid4())

        try:
            await self.store.insert_conversation(conversation_id, user_id, title, client_ref)
            return conversation_id, True
        except ConversationConflictError:
            return await self._find_existing(user_id, client_ref), False
        except Exception as e:
            logger.warning(f"Failed to create conversation for user {user_id}, retrying direct insert: {e}")

        try:
            await self.store.insert_conversation_direct(conversation_id, user_id, title, client_ref)
            return conversation_id, True
        except ConversationConflictError:
            return await self._find_existing(user_id, client_ref), False
        except Exception as e:
            logger.error(f"Direct conversation insert failed for user {user_id}: {e}")
            return None, False

    async def _find_existing(self, user_id: str, client_ref: Optional[str]) -> Optional[str]:
        if client_ref is None:
            return None
        try:
            conversation_id = await self.store.find_conversation(user_id, client_ref)
        except Exception as e:
            logger.error(f"Failed to re-read conversation for user {user_id}: {e}")
            return None
        if conversation_id:
            logger.info(f"Reusing conversation {conversation_id} created concurrently for {client_ref}")
        return conversation_id

    async def record_turn(
        self,
        conversation_id: str,
        user_text: str,
        assistant_text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Persist the user and assistant messages of a turn.

        Both rows are stamped at insert time, user before assistant, so
        overlapping turns on one conversation keep their commit order.
        One fallback attempt through the direct path; never more.

        Returns:
            True if both messages were stored
        """
        now = datetime.now(timezone.utc)
        messages = [
            NewMessage(role="user", content=user_text, created_at=now),
            NewMessage(role="assistant", content=assistant_text, created_at=now, metadata=metadata),
        ]

        try:
            await self.store.insert_messages(conversation_id, messages)
        except Exception as e:
            logger.warning(f"Failed to record turn for {conversation_id}, retrying direct insert: {e}")
            try:
                await self.store.insert_messages_direct(conversation_id, messages)
            except Exception as e:
                logger.error(f"Turn not recorded for {conversation_id}: {e}")
                return False

        try:
            await self.store.touch_conversation(conversation_id)
        except Exception as e:
            logger.warning(f"Failed to bump last activity for {conversation_id}: {e}")

        return True

    async def generate_title(self, conversation_id: str, first_message: str) -> Optional[str]:
        """Replace the fallback title with a generated one (best effort, never raises)."""
        try:
            title = await self.memory_completion.generate_title(first_message)
            if not title or not title.strip():
                return None
            title = title.strip()[:MAX_TITLE_LENGTH]
            await self.store.update_conversation_title(conversation_id, title)
            logger.info(f"Titled conversation {conversation_id}")
            return title
        except Exception as e:
            logger.debug(f"Keeping fallback title for {conversation_id}: {e}")
            return None

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Wait for background work before the store is closed."""
        await self.tasks.drain(timeout=timeout)
