"""Pydantic schemas for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from dealflow.notifications.stale import StaleDeal

if TYPE_CHECKING:
    from dealflow.db.models import ActivityLog, FlexAlert, InfoRequestNotification


# --- Activity feed ---


class ActivityNotificationResponse(BaseModel):
    id: str
    deal_id: str
    activity_type: str
    description: str
    user_display_name: str | None = None
    timestamp: datetime
    metadata: dict[str, Any] = {}

    @classmethod
    def from_row(cls, row: ActivityLog) -> ActivityNotificationResponse:
        return cls(
            id=str(row.id),
            deal_id=str(row.deal_id),
            activity_type=row.activity_type,
            description=row.description or "",
            user_display_name=row.user_display_name,
            timestamp=row.created_at,
            metadata=row.activity_metadata if isinstance(row.activity_metadata, dict) else {},
        )


class FlexAlertResponse(BaseModel):
    id: str
    deal_id: str
    alert_type: str
    title: str
    message: str
    lender_name: str | None = None
    lender_email: str | None = None
    engagement_score: int | None = None
    timestamp: datetime
    read: bool

    @classmethod
    def from_row(cls, row: FlexAlert) -> FlexAlertResponse:
        return cls(
            id=str(row.id),
            deal_id=str(row.deal_id),
            alert_type=row.alert_type,
            title=row.title,
            message=row.message,
            lender_name=row.lender_name,
            lender_email=row.lender_email,
            engagement_score=row.engagement_score,
            timestamp=row.created_at,
            read=row.read_at is not None,
        )


class NotificationFeedResponse(BaseModel):
    activities: list[ActivityNotificationResponse]
    stale_alerts: list[StaleDeal]
    flex_alerts: list[FlexAlertResponse]


class FlexAlertListResponse(BaseModel):
    alerts: list[FlexAlertResponse]
    total: int


# --- Info requests ---


class InfoRequestResponse(BaseModel):
    id: str
    deal_id: str
    type: str
    status: str
    message: str
    lender_name: str | None = None
    user_email: str | None = None
    company_name: str | None = None
    timestamp: datetime
    decided_at: datetime | None = None

    @classmethod
    def from_row(cls, row: InfoRequestNotification) -> InfoRequestResponse:
        return cls(
            id=str(row.id),
            deal_id=str(row.deal_id),
            type=row.type,
            status=row.status,
            message=row.message,
            lender_name=row.lender_name,
            user_email=row.user_email,
            company_name=row.company_name,
            timestamp=row.created_at,
            decided_at=row.decided_at,
        )


class InfoRequestListResponse(BaseModel):
    notifications: list[InfoRequestResponse]
    total: int


class DecisionResponse(BaseModel):
    notification: InfoRequestResponse
    webhook_delivered: bool
