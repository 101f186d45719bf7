"""Push a flex alert over Redis pub/sub for per-user WebSocket delivery."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dealflow.db.models import FlexAlert

logger = logging.getLogger(__name__)


def alert_payload(alert: FlexAlert) -> dict:
    return {
        "event": "flex_alert",
        "data": {
            "id": str(alert.id),
            "deal_id": str(alert.deal_id),
            "alert_type": alert.alert_type,
            "title": alert.title,
            "message": alert.message,
            "lender_name": alert.lender_name,
            "engagement_score": alert.engagement_score,
            "timestamp": alert.created_at.isoformat() if alert.created_at else None,
            "read": alert.read_at is not None,
        },
    }


async def push_alert_to_user(redis: object | None, alert: FlexAlert) -> bool:
    """Publish the alert to ``ws:user:{user_id}``. Failures are logged, not raised.

    The alert must already be flushed (have an ``id``).
    """
    if redis is None:
        return False
    try:
        await redis.publish(  # type: ignore[attr-defined]
            f"ws:user:{alert.user_id}",
            json.dumps(alert_payload(alert)),
        )
    except Exception:
        logger.warning("Failed to push flex alert via ws:user:%s", alert.user_id, exc_info=True)
        return False
    return True
