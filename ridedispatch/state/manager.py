"""Redis-based state manager backing the ride store and driver directory."""

import json
from typing import Any, AsyncIterator

import redis.asyncio as redis

from ridedispatch.config import get_settings
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)


class StateManager:
    """Centralized state management using Redis."""

    def __init__(self, redis_url: str | None = None) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = None
        self.redis_url = redis_url or settings.redis_url

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = await redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.close()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def client(self) -> redis.Redis:
        """Return the connected client, connecting on first use."""
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> None:
        """Set a value in Redis with optional TTL."""
        client = await self.client()

        # Serialize complex objects to JSON
        if isinstance(value, (dict, list)):
            value = json.dumps(value)

        await client.set(key, value, ex=ttl)

        logger.debug("state_set", key=key, ttl=ttl)

    async def get(self, key: str) -> Any:
        """Get a value from Redis."""
        client = await self.client()

        value = await client.get(key)

        if value:
            # Try to deserialize JSON
            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                return value

        return None

    async def delete(self, key: str) -> None:
        """Delete a key from Redis."""
        client = await self.client()

        await client.delete(key)
        logger.debug("state_deleted", key=key)

    async def scan_keys(self, pattern: str) -> AsyncIterator[str]:
        """Iterate keys matching a pattern without blocking the server."""
        client = await self.client()

        async for key in client.scan_iter(match=pattern):
            yield key


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager instance."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
        await _state_manager.connect()
    return _state_manager
