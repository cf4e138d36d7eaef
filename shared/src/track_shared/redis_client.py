from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.asyncio import Redis

from track_shared.settings import settings

_pool: aioredis.ConnectionPool | None = None


def _get_pool(redis_url: str | None = None) -> aioredis.ConnectionPool:
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            redis_url or settings.redis_url,
            max_connections=10,
            decode_responses=False,  # publisher/read_group handle bytes themselves
        )
    return _pool


def get_redis(redis_url: str | None = None) -> Redis:
    """Return a Redis client backed by the shared connection pool.

    The pool is created on first use from ``redis_url`` (or the configured
    default); later calls reuse it. Call .aclose() on the client when done,
    or use get_redis_ctx() for automatic cleanup.
    """
    return aioredis.Redis(connection_pool=_get_pool(redis_url))


@asynccontextmanager
async def get_redis_ctx(redis_url: str | None = None) -> AsyncGenerator[Redis, None]:
    """Async context manager that yields a pooled Redis client."""
    client = get_redis(redis_url)
    try:
        yield client
    finally:
        await client.aclose()


async def close_redis() -> None:
    """Close the shared connection pool. Call on service shutdown."""
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
