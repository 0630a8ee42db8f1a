"""
Redis client dependency.

The relay only uses Redis for presence flags; the client is created lazily
by redis-py on first command, so importing this module never connects.
"""

import os
import redis.asyncio as aioredis

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = int(os.environ.get('REDIS_PORT', '6379'))
REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD', '')
REDIS_DB = int(os.environ.get('REDIS_DB', '0'))

_async_redis_client = aioredis.Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD if REDIS_PASSWORD else None,
    db=REDIS_DB,
    decode_responses=True,
    socket_connect_timeout=5,
    socket_timeout=5,
    retry_on_timeout=True,
)


async def get_redis_client() -> aioredis.Redis:
    """
    Get async Redis client for direct access.

    Example:
        >>> redis = await get_redis_client()
        >>> await redis.set("key", "value", ex=3600)
    """
    return _async_redis_client
