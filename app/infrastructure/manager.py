"""Conversation store with PostgreSQL storage and an optional Redis message cache."""

from __future__ import annotations

import logging
from typing import List, Optional

from app.memory.schemas import (
    SUMMARY_CONTEXT_TYPE,
    ContextRecord,
    ConversationRecord,
    NewMessage,
    StoredMessage,
)

from .postgresql import AsyncPostgreSQLBackend
from .redis import AsyncRedisBackend

logger = logging.getLogger(__name__)


class ConversationStore:
    """Storage adapter used by the memory components.

    This store orchestrates PostgreSQL (source of truth) and Redis (cache):
    - Cache-aside reads for message lists: try Redis first, fallback to PostgreSQL
    - Every message write invalidates the cached list after the database commit
    """

    def __init__(self) -> None:
        self.backend: Optional[AsyncPostgreSQLBackend] = None
        self.cache: Optional[AsyncRedisBackend] = None
        self._use_cache: bool = False

    async def initialize(
        self,
        postgres_connection_string: str,
        redis_host: Optional[str] = None,
        redis_password: Optional[str] = None,
        redis_port: int = 6380,
        redis_ssl: bool = True,
        redis_ttl: int = 1800,
    ) -> None:
        """Initialize database connections.

        Args:
            postgres_connection_string: PostgreSQL connection string
            redis_host: Redis server hostname (optional, for caching)
            redis_password: Redis password (optional)
            redis_port: Redis port (default: 6380)
            redis_ssl: Enable SSL/TLS (default: True)
            redis_ttl: TTL for Redis keys in seconds (default: 1800)
        """
        # Initialize PostgreSQL (required)
        self.backend = AsyncPostgreSQLBackend()
        await self.backend.connect(postgres_connection_string)

        # Initialize Redis (optional cache)
        if redis_host and redis_password:
            try:
                self.cache = AsyncRedisBackend()
                await self.cache.connect(
                    redis_host=redis_host,
                    redis_password=redis_password,
                    redis_port=redis_port,
                    redis_ssl=redis_ssl,
                    redis_ttl=redis_ttl,
                )
                self._use_cache = True
                logger.info("Redis message cache enabled")
            except Exception as e:
                logger.warning(f"Redis cache unavailable, continuing without cache: {e}")
                self.cache = None
                self._use_cache = False
        else:
            logger.info("Redis not configured, running without cache")

    async def close(self) -> None:
        """Close all database connections."""
        if self.backend:
            await self.backend.close()
        if self.cache:
            await self.cache.close()

    def _require_backend(self) -> AsyncPostgreSQLBackend:
        if not self.backend:
            raise RuntimeError("Database not initialized")
        return self.backend

    def _cache_ready(self) -> bool:
        return bool(self._use_cache and self.cache and self.cache.is_available())

    async def create_schema(self) -> None:
        """Create storage tables if missing."""
        await self._require_backend().create_schema()

    # --- Conversations ---

    async def insert_conversation(
        self,
        conversation_id: str,
        user_id: str,
        title: str,
        client_ref: Optional[str] = None,
    ) -> str:
        """Create a conversation through the pooled path.

        Inserting an existing conversation_id is a no-op, so a retry of a
        committed insert does not create a second conversation.

        Raises:
            ConversationConflictError: If (user_id, client_ref) already exists
        """
        return await self._require_backend().insert_conversation(
            conversation_id, user_id, title, client_ref
        )

    async def insert_conversation_direct(
        self,
        conversation_id: str,
        user_id: str,
        title: str,
        client_ref: Optional[str] = None,
    ) -> str:
        """Create a conversation over a dedicated connection (fallback path).

        Raises:
            ConversationConflictError: If (user_id, client_ref) already exists
        """
        return await self._require_backend().insert_conversation_direct(
            conversation_id, user_id, title, client_ref
        )

    async def find_conversation(self, user_id: str, client_ref: str) -> Optional[str]:
        """Find an existing conversation by its identifying attributes."""
        return await self._require_backend().find_conversation(user_id, client_ref)

    async def get_conversation(
        self, conversation_id: str, user_id: str
    ) -> Optional[ConversationRecord]:
        """Load conversation metadata owned by user_id, or None."""
        return await self._require_backend().get_conversation(conversation_id, user_id)

    async def update_conversation_title(self, conversation_id: str, title: str) -> None:
        await self._require_backend().update_conversation_title(conversation_id, title)

    async def touch_conversation(self, conversation_id: str) -> None:
        await self._require_backend().touch_conversation(conversation_id)

    # --- Messages ---

    async def list_messages(self, conversation_id: str) -> List[StoredMessage]:
        """Return all messages in creation order.

        Cache-aside read: Try Redis first, fallback to PostgreSQL on miss.
        """
        backend = self._require_backend()

        version: Optional[int] = None
        if self._cache_ready():
            version = await self.cache.get_version(conversation_id)
            if version is not None:
                cached = await self.cache.get_messages(conversation_id, version)
                if cached is not None:
                    return cached
                logger.debug(f"Cache miss for messages of {conversation_id}")

        messages = await backend.list_messages(conversation_id)

        # Populate cache under the version read before the database query
        if version is not None and self._cache_ready():
            await self.cache.set_messages(conversation_id, version, messages)

        return messages

    async def insert_messages(
        self, conversation_id: str, messages: List[NewMessage]
    ) -> None:
        """Append messages through the pooled path, then invalidate the cache."""
        await self._require_backend().insert_messages(conversation_id, messages)
        await self._invalidate(conversation_id)

    async def insert_messages_direct(
        self, conversation_id: str, messages: List[NewMessage]
    ) -> None:
        """Append messages over a dedicated connection (fallback path)."""
        await self._require_backend().insert_messages_direct(conversation_id, messages)
        await self._invalidate(conversation_id)

    async def _invalidate(self, conversation_id: str) -> None:
        if self._cache_ready():
            await self.cache.invalidate_messages(conversation_id)

    # --- Context records ---

    async def get_context_record(
        self, conversation_id: str, context_type: str = SUMMARY_CONTEXT_TYPE
    ) -> Optional[ContextRecord]:
        return await self._require_backend().get_context_record(
            conversation_id, context_type
        )

    async def upsert_context_record(self, record: ContextRecord) -> None:
        await self._require_backend().upsert_context_record(record)
