"""Completion service contract consumed by the memory components."""

from typing import List, Optional, Protocol

from app.memory.schemas import ChatTurn, CompletionOptions, CompletionResult


class CompletionService(Protocol):
    """Stateless request/response language completion service.

    Implementations raise on provider or network failure; callers decide
    whether a failure is fatal (user-facing reply) or degradable
    (summaries, titles).
    """

    async def complete(
        self,
        messages: List[ChatTurn],
        options: Optional[CompletionOptions] = None,
    ) -> CompletionResult:
        """Generate a reply for an ordered list of role-tagged messages."""
        ...

    async def generate_title(self, text: str) -> Optional[str]:
        """Generate a short conversation title, or None if nothing usable came back."""
        ...
