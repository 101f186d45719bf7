"""Actionable lender info-request notifications.

Status moves one way only:

    pending -> read
    pending -> approved
    pending -> denied

Approving or denying commits locally first, then notifies FLEx through the
decision webhook. A webhook failure is logged and never undoes the decision.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

import structlog
from sqlalchemy import select, update

from dealflow.activity.service import publish_inserted, record_activity
from dealflow.db.models import Deal, InfoRequestNotification
from dealflow.notifications.webhook import DecisionPayload, DecisionWebhookClient

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from dealflow.auth.jwt import CurrentUser

logger = structlog.get_logger()

Decision = Literal["approved", "denied"]

VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["read", "approved", "denied"],
    "read": [],
    "approved": [],
    "denied": [],
}


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a status change. Raises ValueError if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        msg = f"Invalid transition: {current_status} -> {target_status}. Valid transitions: {valid}"
        raise ValueError(msg)


async def list_info_requests(
    db: AsyncSession,
    user_id: str,
    status: str | None = None,
) -> list[InfoRequestNotification]:
    """Info requests on the user's deals, newest first."""
    stmt = (
        select(InfoRequestNotification)
        .join(Deal, Deal.id == InfoRequestNotification.deal_id)
        .where(Deal.user_id == user_id)
    )
    if status is not None:
        stmt = stmt.where(InfoRequestNotification.status == status)
    result = await db.execute(stmt.order_by(InfoRequestNotification.created_at.desc()))
    return list(result.scalars().all())


async def get_info_request(
    db: AsyncSession,
    user_id: str,
    notification_id: str,
) -> InfoRequestNotification | None:
    """A single info request, or None if missing or on someone else's deal."""
    result = await db.execute(
        select(InfoRequestNotification)
        .join(Deal, Deal.id == InfoRequestNotification.deal_id)
        .where(InfoRequestNotification.id == notification_id, Deal.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def create_info_request(
    db: AsyncSession,
    deal_id: str,
    message: str,
    lender_name: str | None = None,
    user_email: str | None = None,
    company_name: str | None = None,
) -> InfoRequestNotification:
    notification = InfoRequestNotification(
        deal_id=deal_id,
        type="info_request",
        status="pending",
        message=message,
        lender_name=lender_name,
        user_email=user_email,
        company_name=company_name,
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()
    return notification


async def _claim_pending(db: AsyncSession, notification: InfoRequestNotification, **values: Any) -> bool:
    """Move a row out of pending only if it is still pending in the database."""
    result = await db.execute(
        update(InfoRequestNotification)
        .where(
            InfoRequestNotification.id == notification.id,
            InfoRequestNotification.status == "pending",
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount != 0


async def mark_info_request_read(db: AsyncSession, notification: InfoRequestNotification) -> bool:
    """Mark a pending request read. Already-terminal requests are left as is.

    Returns True if the status changed.
    """
    if notification.status != "pending":
        return False
    validate_transition(notification.status, "read")
    if not await _claim_pending(db, notification, status="read"):
        await db.refresh(notification)
        return False
    notification.status = "read"
    return True


async def decide_info_request(
    db: AsyncSession,
    notification: InfoRequestNotification,
    decision: Decision,
    actor: CurrentUser,
    webhook: DecisionWebhookClient,
    redis: Any | None = None,
) -> tuple[InfoRequestNotification, bool]:
    """
    Approve or deny a pending info request and commit.

    Returns:
        Tuple of (notification, webhook_delivered).

    Raises:
        ValueError: If the request is no longer pending. Nothing is changed.
    """
    validate_transition(notification.status, decision)

    decided_at = datetime.now(timezone.utc)
    if not await _claim_pending(db, notification, status=decision, decided_at=decided_at):
        await db.rollback()
        await db.refresh(notification)
        raise ValueError(f"Invalid transition: {notification.status} -> {decision}. Request was already decided")
    notification.status = decision
    notification.decided_at = decided_at
    actor_name = actor.name or actor.email or "Team Member"
    related_name = notification.lender_name or notification.user_email or "lender"
    activity = await record_activity(
        db,
        deal_id=notification.deal_id,
        activity_type=f"flex_info_request_{decision}",
        description=f"{actor_name} {decision} info request from {related_name}",
        user_id=actor.id,
        user_display_name=actor_name,
        metadata={
            "source": "dealflow",
            "notification_id": str(notification.id),
            "status": decision,
            "lender_name": notification.lender_name,
            "user_email": notification.user_email,
            "company_name": notification.company_name,
            "responder_name": actor_name,
            "responder_email": actor.email,
        },
    )
    await db.commit()
    logger.info(
        "info_request_decided",
        notification_id=str(notification.id),
        deal_id=notification.deal_id,
        decision=decision,
    )

    await publish_inserted(redis, [activity])

    delivered = await webhook.send_decision(
        DecisionPayload(
            notification_id=str(notification.id),
            entity_id=notification.deal_id,
            decision=decision,
            actor_email=actor.email,
            actor_name=actor_name,
            related_name=related_name,
        )
    )
    return notification, delivered
