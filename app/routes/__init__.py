"""FastAPI route modules."""

from . import conversations, messages, user

__all__ = ["conversations", "messages", "user"]
