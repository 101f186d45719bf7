"""Notification API endpoints: preferences, feed, info requests, alerts."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.activity.service import get_recent_activity
from dealflow.auth.dependencies import get_current_user
from dealflow.auth.jwt import CurrentUser
from dealflow.config import get_settings
from dealflow.database import get_session
from dealflow.dependencies import get_redis_dep
from dealflow.notifications.alerts import list_alerts, mark_alert_read, mark_all_alerts_read
from dealflow.notifications.info_requests import (
    decide_info_request,
    get_info_request,
    list_info_requests,
    mark_info_request_read,
)
from dealflow.notifications.preferences import (
    NotificationPreferences,
    get_notification_preferences,
    should_show_activity,
    should_show_flex_alerts,
    should_show_stale_alerts,
    update_notification_preferences,
)
from dealflow.notifications.schemas import (
    ActivityNotificationResponse,
    DecisionResponse,
    FlexAlertListResponse,
    FlexAlertResponse,
    InfoRequestListResponse,
    InfoRequestResponse,
    NotificationFeedResponse,
)
from dealflow.notifications.stale import find_stale_deals, get_user_deals
from dealflow.notifications.webhook import DecisionWebhookClient, get_decision_webhook

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


# --- Preferences ---


@router.get("/notification-preferences", response_model=NotificationPreferences)
async def read_preferences(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current toggles, defaults filled in."""
    return await get_notification_preferences(db, user.id)


@router.patch("/notification-preferences", response_model=NotificationPreferences)
async def patch_preferences(
    changes: dict[str, bool] = Body(...),  # noqa: B008
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Update only the toggles provided."""
    try:
        prefs = await update_notification_preferences(db, user.id, changes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    return prefs


# --- Feed ---


@router.get("/notifications/feed", response_model=NotificationFeedResponse)
async def notification_feed(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Activity, stale-deal and FLEx alerts the user has chosen to see."""
    settings = get_settings()
    prefs = await get_notification_preferences(db, user.id)
    deals = await get_user_deals(db, user.id)

    activity = await get_recent_activity(db, [d.id for d in deals], limit=settings.notification_feed_limit)
    visible = [a for a in activity if should_show_activity(prefs, a.activity_type)]

    stale = find_stale_deals(deals, settings.stale_lender_days) if should_show_stale_alerts(prefs) else []
    alerts = (
        await list_alerts(db, user.id, limit=settings.notification_feed_limit)
        if should_show_flex_alerts(prefs)
        else []
    )

    return NotificationFeedResponse(
        activities=[ActivityNotificationResponse.from_row(a) for a in visible],
        stale_alerts=stale,
        flex_alerts=[FlexAlertResponse.from_row(a) for a in alerts],
    )


# --- Info requests ---


@router.get("/notifications/info-requests", response_model=InfoRequestListResponse)
async def info_requests(
    status: str | None = Query(None, pattern="^(pending|read|approved|denied)$"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Lender info requests on the user's deals."""
    rows = await list_info_requests(db, user.id, status=status)
    return InfoRequestListResponse(
        notifications=[InfoRequestResponse.from_row(r) for r in rows],
        total=len(rows),
    )


@router.post("/notifications/info-requests/{notification_id}/read", response_model=InfoRequestResponse)
async def read_info_request(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark a pending info request as read."""
    notification = await get_info_request(db, user.id, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    if await mark_info_request_read(db, notification):
        await db.commit()
    return InfoRequestResponse.from_row(notification)


async def _decide(
    notification_id: str,
    decision: str,
    user: CurrentUser,
    db: AsyncSession,
    redis: object | None,
    webhook: DecisionWebhookClient,
) -> DecisionResponse:
    notification = await get_info_request(db, user.id, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    try:
        notification, delivered = await decide_info_request(
            db, notification, decision, user, webhook, redis=redis,  # type: ignore[arg-type]
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return DecisionResponse(
        notification=InfoRequestResponse.from_row(notification),
        webhook_delivered=delivered,
    )


@router.post("/notifications/info-requests/{notification_id}/approve", response_model=DecisionResponse)
async def approve_info_request(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
    webhook: DecisionWebhookClient = Depends(get_decision_webhook),
):
    """Approve a pending info request. 409 once it has left ``pending``."""
    return await _decide(notification_id, "approved", user, db, redis, webhook)


@router.post("/notifications/info-requests/{notification_id}/deny", response_model=DecisionResponse)
async def deny_info_request(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
    webhook: DecisionWebhookClient = Depends(get_decision_webhook),
):
    """Deny a pending info request. 409 once it has left ``pending``."""
    return await _decide(notification_id, "denied", user, db, redis, webhook)


# --- Flex alerts ---


@router.get("/notifications/alerts", response_model=FlexAlertListResponse)
async def flex_alerts(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await list_alerts(db, user.id, unread_only=unread_only, limit=limit)
    return FlexAlertListResponse(alerts=[FlexAlertResponse.from_row(r) for r in rows], total=len(rows))


@router.post("/notifications/alerts/{alert_id}/read", status_code=200)
async def read_flex_alert(
    alert_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark a FLEx alert as read."""
    found = await mark_alert_read(db, user.id, alert_id)
    if not found:
        raise HTTPException(status_code=404, detail="Alert not found")
    await db.commit()
    return {"detail": "Alert marked as read"}


@router.post("/notifications/alerts/read-all", status_code=200)
async def read_all_flex_alerts(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark all FLEx alerts as read."""
    count = await mark_all_alerts_read(db, user.id)
    await db.commit()
    return {"detail": f"Marked {count} alerts as read"}
