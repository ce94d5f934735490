"""Exceptions raised by the conversation memory service."""

from typing import Optional


class MemoryServiceError(Exception):
    """Base exception for conversation memory errors."""

    pass


class CompletionError(MemoryServiceError):
    """Raised when the completion service fails for the current turn."""

    def __init__(self, original_error: Exception):
        """Wrap the provider error.

        Args:
            original_error: Exception raised by the completion client
        """
        self.original_error = original_error
        super().__init__(f"Completion request failed: {original_error}")


class CompletionTimeoutError(CompletionError):
    """Raised when the completion call exceeds its time budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(TimeoutError(f"no response after {timeout_seconds}s"))


class ConversationConflictError(MemoryServiceError):
    """Raised when a conversation with the same identifying attributes exists."""

    def __init__(self, user_id: str, client_ref: Optional[str]):
        self.user_id = user_id
        self.client_ref = client_ref
        super().__init__(
            f"Conversation already exists for user {user_id} (client_ref={client_ref})"
        )


class ConversationNotFoundError(MemoryServiceError):
    """Raised when a conversation does not exist or belongs to another user."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")
