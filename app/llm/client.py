"""Completion service backed by an agent-framework chat client."""

import logging
from typing import Any, Dict, List, Optional

from agent_framework import ChatMessage, Role

from app.memory.prompts import TITLE_CONFIG
from app.memory.schemas import ChatTurn, CompletionOptions, CompletionResult

logger = logging.getLogger(__name__)

_ROLES = {
    "system": Role.SYSTEM,
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
}


def clean_title(raw: Optional[str], max_length: int = 255) -> Optional[str]:
    """Normalize a generated title: first line, no quotes, bounded length."""
    if not raw:
        return None
    lines = raw.strip().splitlines()
    title = lines[0].strip().strip("\"'").strip() if lines else ""
    return title[:max_length] or None


class AgentFrameworkCompletionClient:
    """CompletionService implementation over an agent-framework chat client.

    Provider errors are not caught here; callers decide whether a failure
    fails the turn or only degrades memory.
    """

    def __init__(self, chat_client: Any, title_max_tokens: int = 20):
        """Initialize completion client.

        Args:
            chat_client: agent-framework chat client (e.g. AzureOpenAIChatClient)
            title_max_tokens: Output token cap for title generation
        """
        self.chat_client = chat_client
        self.title_max_tokens = title_max_tokens

    async def complete(
        self,
        messages: List[ChatTurn],
        options: Optional[CompletionOptions] = None,
    ) -> CompletionResult:
        """Send an ordered message list and return text plus token usage."""
        options = options or CompletionOptions()

        kwargs: Dict[str, Any] = {}
        if options.max_output_tokens is not None:
            kwargs["max_tokens"] = options.max_output_tokens
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature

        response = await self.chat_client.get_response(
            [ChatMessage(role=_ROLES[m.role], text=m.content) for m in messages],
            **kwargs,
        )

        usage = getattr(response, "usage_details", None)
        return CompletionResult(
            text=response.text or "",
            input_tokens=getattr(usage, "input_token_count", None) or 0,
            output_tokens=getattr(usage, "output_token_count", None) or 0,
        )

    async def generate_title(self, text: str) -> Optional[str]:
        """Ask the model for a short title describing the first user message."""
        result = await self.complete(
            [
                ChatTurn(role="system", content=TITLE_CONFIG.instructions),
                ChatTurn(role="user", content=text),
            ],
            CompletionOptions(
                max_output_tokens=self.title_max_tokens,
                temperature=TITLE_CONFIG.temperature,
            ),
        )
        title = clean_title(result.text)
        logger.debug(f"Generated title: {title!r}")
        return title
