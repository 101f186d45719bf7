"""Liveness, readiness and version endpoints.

Readiness distinguishes the two backends the engagement pipeline leans on:
without the activity store nothing can be scored, while without the change
feed scores are still served but live refreshes stop.
"""

from typing import Any

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.config import get_settings
from dealflow.database import get_session
from dealflow.dependencies import get_redis_dep

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


async def _check_activity_store(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1 FROM activity_logs LIMIT 1"))
    except SQLAlchemyError as exc:
        return f"error: {exc}"
    return "ok"


async def _check_change_feed(redis: Any | None, channel: str) -> dict[str, object]:
    feed: dict[str, object] = {"channel": channel}
    if redis is None:
        feed["status"] = "error: redis not initialized"
        return feed
    try:
        await redis.ping()
        counts = await redis.pubsub_numsub(channel)
    except (RedisError, OSError) as exc:
        feed["status"] = f"error: {exc}"
        return feed
    feed["status"] = "ok"
    feed["subscribers"] = int(counts[0][1]) if counts else 0
    return feed


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any | None = Depends(get_redis_dep),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe.

    ``not_ready`` when the activity store is unreachable, ``degraded`` when only
    the change feed is down.
    """
    settings = get_settings()
    store = await _check_activity_store(db)
    feed = await _check_change_feed(redis, settings.activity_channel)

    if store != "ok":
        status = "not_ready"
    elif feed["status"] != "ok":
        status = "degraded"
    else:
        status = "ready"
    return {"status": status, "checks": {"activity_store": store, "change_feed": feed}}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "activity_channel": settings.activity_channel,
    }
