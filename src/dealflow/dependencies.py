"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from dealflow.redis_client import get_optional_redis


async def get_redis_dep() -> AsyncGenerator[object | None, None]:
    """Yield the Redis client, or None when it is not initialized."""
    yield get_optional_redis()
