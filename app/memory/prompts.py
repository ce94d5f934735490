"""Instructions for the summary and title completion calls."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SummaryPromptConfig:
    """Configuration for conversation summarization."""

    name: str = "conversation-summarizer"
    instructions: str = """You are a conversation summarizer. Summarize the following conversation between a user and an assistant.

Focus on:
- Key topics discussed
- User preferences discovered (needs, constraints, likes and dislikes)
- Actions taken (items added, reminders set, comparisons made)
- Any unresolved questions or ongoing plans

Keep the summary concise (2-4 sentences). Use present tense."""


@dataclass(frozen=True)
class TitlePromptConfig:
    """Configuration for conversation title generation."""

    name: str = "conversation-titler"
    instructions: str = """Write a short title (at most 6 words) for a conversation that starts with the user's message below.

Reply with the title only: no quotes, no punctuation at the end."""
    temperature: float = 0.5


SUMMARY_CONFIG = SummaryPromptConfig()
TITLE_CONFIG = TitlePromptConfig()
