"""
Online presence flags in Redis.

``ws:presence:{user_id}`` is set with a TTL while the user holds at least
one connection and refreshed before it runs out. Redis being unavailable
never blocks a connection: errors are logged and the call reports failure.
"""

import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from mercadito_backend.redis_cache import get_redis_client
from mercadito_backend.settings import settings

logger = logging.getLogger(__name__)

PRESENCE_PREFIX = "ws:presence:"


class PresenceTracker:

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis_client,
        ttl: Optional[int] = None,
    ):
        self._client_factory = client_factory
        self._ttl = ttl if ttl is not None else settings.WS_PRESENCE_TTL

    @property
    def ttl(self) -> int:
        return self._ttl

    @staticmethod
    def key(user_id: int) -> str:
        return f"{PRESENCE_PREFIX}{user_id}"

    async def mark_online(self, user_id: int) -> bool:
        try:
            client = await self._client_factory()
            await client.setex(self.key(user_id), self._ttl, "online")
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Presence update failed for user {user_id}: {e}")
            return False

    async def refresh(self, user_id: int) -> bool:
        """Push the TTL of a connected user's flag forward."""
        try:
            client = await self._client_factory()
            await client.setex(self.key(user_id), self._ttl, "online")
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Presence refresh failed for user {user_id}: {e}")
            return False

    async def mark_offline(self, user_id: int) -> bool:
        try:
            client = await self._client_factory()
            await client.delete(self.key(user_id))
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Presence cleanup failed for user {user_id}: {e}")
            return False

    async def is_online(self, user_id: int) -> bool:
        client = await self._client_factory()
        return bool(await client.exists(self.key(user_id)))
