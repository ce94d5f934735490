"""Infrastructure layer for external service integrations."""

from .keyvault import AKV
from .manager import ConversationStore
from .postgresql import AsyncPostgreSQLBackend
from .redis import AsyncRedisBackend
from .tracing import configure_tracing

__all__ = [
    "AKV",
    "AsyncPostgreSQLBackend",
    "AsyncRedisBackend",
    "ConversationStore",
    "configure_tracing",
]
