"""Redis client shared by the activity change feed and per-user push channels.

Engagement WebSockets each hold a pub/sub connection on the change feed for as
long as they watch deals, so the pool is sized from settings and idle
subscriptions are health-checked.
"""

import redis.asyncio as redis

from dealflow.config import Settings

_pool: redis.Redis | None = None


async def init_redis(settings: Settings) -> None:
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        health_check_interval=settings.redis_health_check_interval,
        client_name="dealflow-engagement",
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Client for change-feed subscriptions. Raises if the pool is not up."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def get_optional_redis() -> redis.Redis | None:
    """Client for publishing inserts and pushes, or None. Publishing is best-effort."""
    return _pool
