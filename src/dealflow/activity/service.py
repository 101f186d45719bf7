"""Activity store writes and the insert change feed.

Rows are only ever appended. After the surrounding transaction commits, the
caller publishes each new row on the activity channel so live engagement
views can recompute.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from dealflow.config import get_settings
from dealflow.db.models import ActivityLog

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def record_activity(
    db: AsyncSession,
    deal_id: str,
    activity_type: str,
    description: str = "",
    metadata: dict[str, Any] | None = None,
    user_id: str | None = None,
    user_display_name: str | None = None,
    created_at: datetime | None = None,
) -> ActivityLog:
    """Append an activity event for a deal."""
    activity = ActivityLog(
        deal_id=deal_id,
        activity_type=activity_type,
        description=description,
        activity_metadata=metadata or {},
        user_id=user_id,
        user_display_name=user_display_name,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(activity)
    await db.flush()
    return activity


def insert_notification(activity: ActivityLog) -> dict[str, Any]:
    """Change-feed payload for one inserted row."""
    return {
        "id": str(activity.id),
        "deal_id": str(activity.deal_id),
        "activity_type": activity.activity_type,
        "created_at": activity.created_at.isoformat() if activity.created_at else None,
    }


async def publish_inserted(redis: Any | None, activities: Sequence[ActivityLog]) -> int:
    """Publish committed rows on the activity channel. Returns how many were sent."""
    if redis is None or not activities:
        return 0
    channel = get_settings().activity_channel
    sent = 0
    for activity in activities:
        try:
            await redis.publish(channel, json.dumps(insert_notification(activity)))
            sent += 1
        except Exception:
            logger.warning("Failed to publish activity %s on %s", activity.id, channel, exc_info=True)
    return sent


async def get_recent_activity(
    db: AsyncSession,
    deal_ids: Sequence[str],
    limit: int = 50,
) -> list[ActivityLog]:
    """Most recent activity across ``deal_ids``, newest first."""
    if not deal_ids:
        return []
    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.deal_id.in_(list(deal_ids)))
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
