"""Build the ordered message list sent to the completion service for a turn."""

from typing import List

from .schemas import ChatTurn, ConversationMemory


def format_summary(summary: str, older_message_count: int) -> str:
    """Label a summary with the number of older messages it stands in for."""
    return f"Previous conversation summary ({older_message_count} older messages):\n{summary}"


def build_turn_context(
    system_prompt: str,
    memory: ConversationMemory,
    current_user_text: str,
) -> List[ChatTurn]:
    """Assemble the context for the current turn.

    Order: system prompt, optional summary (as a second system entry),
    the recent window verbatim, then the new user message. The result holds
    at most ``len(memory.recent_messages) + 3`` entries however long the
    conversation is.

    Args:
        system_prompt: Instructions for the assistant
        memory: Memory loaded for the conversation
        current_user_text: The live user message

    Returns:
        Ordered list of ChatTurn
    """
    messages = [ChatTurn(role="system", content=system_prompt)]

    if memory.summary:
        messages.append(
            ChatTurn(
                role="system",
                content=format_summary(memory.summary, memory.older_message_count),
            )
        )

    messages.extend(memory.recent_messages)
    messages.append(ChatTurn(role="user", content=current_user_text))

    return messages
