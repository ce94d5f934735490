"""Async Redis cache backend for conversation message lists."""

import json
import logging
from typing import List, Optional

import redis.asyncio as redis

from app.memory.schemas import StoredMessage

logger = logging.getLogger(__name__)


class AsyncRedisBackend:
    """Async Redis cache for per-conversation message lists.

    Lists are cached under a per-conversation version number. Writers bump
    the version after committing to PostgreSQL, so a list read from the
    database before a write can only ever be cached under a version nobody
    reads again. If the bump fails the current list is deleted instead.
    Hits do not extend the TTL, so a list that survives both is still
    dropped once it expires.
    """

    def __init__(self) -> None:
        """Initialize Redis backend (connection created via connect())."""
        self.redis_client: Optional[redis.Redis] = None
        self.redis_ttl: int = 1800  # Default 30 minutes

    async def connect(
        self,
        redis_host: str,
        redis_password: str,
        redis_port: int = 6380,
        redis_ssl: bool = True,
        redis_ttl: int = 1800,
    ) -> None:
        """Create async Redis connection.

        Args:
            redis_host: Redis server hostname
            redis_password: Redis password/access key
            redis_port: Redis port (default: 6380 for Azure SSL)
            redis_ssl: Enable SSL/TLS connection (default: True for Azure)
            redis_ttl: TTL for Redis keys in seconds (default: 1800 = 30 minutes)
        """
        self.redis_ttl = redis_ttl

        try:
            self.redis_client = redis.Redis(
                host=redis_host,
                port=redis_port,
                password=redis_password,
                ssl=redis_ssl,
                ssl_cert_reqs="required" if redis_ssl else None,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                max_connections=10,
            )
            # Test connection
            await self.redis_client.ping()
            logger.info(f"Redis connection successful: {redis_host}:{redis_port}")
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            self.redis_client = None
            raise RuntimeError(f"Failed to connect to Redis: {e}")

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Redis connection closed")

    def is_available(self) -> bool:
        """Check if Redis is available."""
        return self.redis_client is not None

    @staticmethod
    def _version_key(conversation_id: str) -> str:
        return f"memory:{conversation_id}:version"

    @staticmethod
    def _messages_key(conversation_id: str, version: int) -> str:
        return f"memory:{conversation_id}:messages:{version}"

    async def get_version(self, conversation_id: str) -> Optional[int]:
        """Get the current message-list version, or None on error."""
        if not self.redis_client:
            return None

        try:
            raw = await self.redis_client.get(self._version_key(conversation_id))
            return int(raw) if raw else 0
        except redis.RedisError as e:
            logger.warning(f"Redis error in get_version: {e}")
            return None

    async def get_messages(
        self, conversation_id: str, version: int
    ) -> Optional[List[StoredMessage]]:
        """Get cached messages for a version. Returns None if cache miss.

        Args:
            conversation_id: Conversation ID
            version: Version returned by get_version()

        Returns:
            Ordered list of StoredMessage or None
        """
        if not self.redis_client:
            return None

        msg_key = self._messages_key(conversation_id, version)

        try:
            raw = await self.redis_client.get(msg_key)
            if raw is not None:
                logger.debug(f"Redis cache hit for messages of {conversation_id}")
                return [StoredMessage.model_validate(item) for item in json.loads(raw)]
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis error in get_messages: {e}")

        return None  # Cache miss or error

    async def set_messages(
        self, conversation_id: str, version: int, messages: List[StoredMessage]
    ) -> bool:
        """Cache messages under a version.

        Returns:
            True if successful, False otherwise
        """
        if not self.redis_client:
            return False

        payload = json.dumps([msg.model_dump(mode="json") for msg in messages])

        try:
            await self.redis_client.set(
                self._messages_key(conversation_id, version), payload, ex=self.redis_ttl
            )
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis write error in set_messages: {e}")
            return False

    async def invalidate_messages(self, conversation_id: str) -> bool:
        """Bump the version so previously cached lists are never read again.

        Returns:
            True if successful, False otherwise
        """
        if not self.redis_client:
            return False

        version_key = self._version_key(conversation_id)

        try:
            # No TTL on the version key: a reset to 0 could resurrect an old list
            await self.redis_client.incr(version_key)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis error in invalidate_messages: {e}")

        # Version bump failed: drop the list readers would otherwise still hit
        try:
            raw = await self.redis_client.get(version_key)
            version = int(raw) if raw else 0
            await self.redis_client.delete(self._messages_key(conversation_id, version))
        except redis.RedisError as e:
            logger.error(f"Cached messages for {conversation_id} may be stale until expiry: {e}")
        return False
