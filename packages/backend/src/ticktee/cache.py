"""Redis connection pool.

Redis is optional: it backs the rate limiter and shows up in /health.
When it is unreachable at startup the app runs without it.
"""

from typing import Optional

import redis.asyncio as aioredis

from ticktee.config import settings

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Create the pool and verify the server answers."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """The shared pool. Raises RuntimeError before init_redis() succeeded."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
