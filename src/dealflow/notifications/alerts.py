"""FLEx engagement alerts for deal owners.

High-value lender requests raise an alert immediately. A deal whose score
over the last ``hot_alert_window_days`` days reaches ``hot_alert_threshold``
raises one ``hot_engagement`` alert per cooldown period; the cooldown is
tracked with a ``flex_hot_alert_sent`` event in the activity store.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select, update

from dealflow.activity.service import record_activity
from dealflow.config import get_settings
from dealflow.db.models import ActivityLog, FlexAlert
from dealflow.engagement.scoring import calculate_score
from dealflow.engagement.service import fetch_events

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from dealflow.db.models import Deal

logger = structlog.get_logger()

# Activity subtype -> alert type raised immediately
ALERT_TRIGGERS: dict[str, str] = {
    "flex_term_sheet_requested": "term_sheet_request",
    "flex_nda_requested": "nda_request",
    "flex_info_requested": "info_request",
}

HOT_ALERT_MARKER = "flex_hot_alert_sent"


def alert_content(
    alert_type: str,
    deal_name: str,
    lender_name: str | None = None,
    message: str | None = None,
    engagement_score: int | None = None,
) -> tuple[str, str]:
    """Title and body for an alert."""
    lender = lender_name or "A lender"

    if alert_type == "term_sheet_request":
        return (
            "Term Sheet Requested",
            f"{lender} has requested a term sheet for {deal_name}. This is a strong signal of interest!",
        )
    if alert_type == "nda_request":
        return (
            "NDA Requested",
            f"{lender} has requested an NDA for {deal_name}. They want to proceed with due diligence.",
        )
    if alert_type == "info_request":
        if message:
            excerpt = message[:100] + ("..." if len(message) > 100 else "")
            return "Information Requested", f'{lender} is asking about {deal_name}: "{excerpt}"'
        return "Information Requested", f"{lender} has requested more information about {deal_name}."
    if alert_type == "hot_engagement":
        return (
            "Hot Engagement",
            f"{deal_name} is getting significant lender interest with an engagement score of {engagement_score}!",
        )
    return "FLEx Activity", f"New activity on {deal_name} from FLEx."


async def create_flex_alert(
    db: AsyncSession,
    deal: Deal,
    alert_type: str,
    lender_name: str | None = None,
    lender_email: str | None = None,
    message: str | None = None,
    engagement_score: int | None = None,
) -> FlexAlert:
    """Persist an alert for the deal owner."""
    title, body = alert_content(alert_type, deal.company, lender_name, message, engagement_score)
    alert = FlexAlert(
        user_id=deal.user_id,
        deal_id=deal.id,
        alert_type=alert_type,
        title=title,
        message=body,
        lender_name=lender_name,
        lender_email=lender_email,
        engagement_score=engagement_score,
        created_at=datetime.now(timezone.utc),
    )
    db.add(alert)
    await db.flush()
    logger.info("flex_alert_created", deal_id=deal.id, alert_type=alert_type)
    return alert


async def check_hot_engagement(
    db: AsyncSession,
    deal: Deal,
    now: datetime | None = None,
) -> tuple[FlexAlert, ActivityLog] | None:
    """Raise a hot-engagement alert if the deal crossed the threshold.

    Returns the alert and its cooldown marker event, or None.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)

    events = await fetch_events(db, [deal.id], since=now - timedelta(days=settings.hot_alert_window_days))
    score = calculate_score(events)
    if score < settings.hot_alert_threshold:
        return None

    cooldown_start = now - timedelta(hours=settings.hot_alert_cooldown_hours)
    if any(e.subtype == HOT_ALERT_MARKER and e.timestamp >= cooldown_start for e in events):
        logger.debug("hot_alert_suppressed", deal_id=deal.id, score=score)
        return None

    alert = await create_flex_alert(db, deal, "hot_engagement", engagement_score=score)
    marker = await record_activity(
        db,
        deal_id=deal.id,
        activity_type=HOT_ALERT_MARKER,
        description=f"Hot engagement alert sent (score {score})",
        metadata={"source": "dealflow", "engagement_score": score, "alert_id": str(alert.id)},
        created_at=now,
    )
    return alert, marker


async def list_alerts(
    db: AsyncSession,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50,
) -> list[FlexAlert]:
    stmt = select(FlexAlert).where(FlexAlert.user_id == user_id)
    if unread_only:
        stmt = stmt.where(FlexAlert.read_at.is_(None))
    result = await db.execute(stmt.order_by(FlexAlert.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def mark_alert_read(db: AsyncSession, user_id: str, alert_id: str) -> bool:
    """Mark one alert read. Returns True if the alert exists; re-reading is a no-op."""
    result = await db.execute(
        select(FlexAlert).where(FlexAlert.id == alert_id, FlexAlert.user_id == user_id)
    )
    alert = result.scalar_one_or_none()
    if alert is None:
        return False
    if alert.read_at is None:
        alert.read_at = datetime.now(timezone.utc)
        await db.flush()
    return True


async def mark_all_alerts_read(db: AsyncSession, user_id: str) -> int:
    """Mark every unread alert read. Returns count updated."""
    result = await db.execute(
        update(FlexAlert)
        .where(FlexAlert.user_id == user_id, FlexAlert.read_at.is_(None))
        .values(read_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount
