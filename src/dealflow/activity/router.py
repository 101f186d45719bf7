"""FLEx activity webhook endpoint."""

from __future__ import annotations

import hmac

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.activity.ingest import ingest_events
from dealflow.activity.schemas import FlexActivityPayload, IngestResponse
from dealflow.activity.service import publish_inserted
from dealflow.config import get_settings
from dealflow.database import get_session
from dealflow.dependencies import get_redis_dep
from dealflow.notifications.push import push_alert_to_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/flex", tags=["FLEx"])


def verify_flex_api_key(x_flex_api_key: str | None = Header(None)) -> None:
    """Reject requests without the shared FLEx key."""
    expected = get_settings().flex_api_key
    if not expected or not x_flex_api_key or not hmac.compare_digest(x_flex_api_key, expected):
        logger.warning("flex_api_key_rejected")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/activity", response_model=IngestResponse, dependencies=[Depends(verify_flex_api_key)])
async def receive_activity(
    payload: FlexActivityPayload,
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Ingest one or more FLEx events."""
    events = payload.all_events()
    if not events:
        raise HTTPException(status_code=400, detail="No events provided")

    outcome = await ingest_events(db, events)
    await db.commit()

    await publish_inserted(redis, outcome.activities)
    for alert in outcome.alerts:
        await push_alert_to_user(redis, alert)

    logger.info(
        "flex_activity_ingested",
        processed=outcome.processed,
        failed=outcome.failed,
        alerts=outcome.alert_count,
    )
    return IngestResponse(
        success=outcome.failed == 0,
        message=outcome.summary(),
        processed=outcome.processed,
        failed=outcome.failed,
        alerts=outcome.alert_count,
        results=outcome.results,
    )
