"""ORM models for the deal pipeline tables this service reads and writes.

Users live in the managed auth backend; ``user_id`` columns hold its UUIDs
and carry no foreign key here.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealflow.db.base import Base


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------


class Deal(Base):
    """Maps to the 'deals' table (owned by the CRM front end)."""

    __tablename__ = "deals"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    company: Mapped[str] = mapped_column(String(256), nullable=False)
    stage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    lenders: Mapped[list[DealLender]] = relationship("DealLender", back_populates="deal")


class DealLender(Base):
    """A lender tracked against a deal. Read only for this service."""

    __tablename__ = "deal_lenders"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    deal_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    tracking_status: Mapped[str] = mapped_column(String(32), nullable=False, server_default="active")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    deal: Mapped[Deal] = relationship("Deal", back_populates="lenders")


# ---------------------------------------------------------------------------
# Event store
# ---------------------------------------------------------------------------


class ActivityLog(Base):
    """Append-only activity events. Rows are never updated or deleted here."""

    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("idx_activity_logs_deal_type", "deal_id", "activity_type"),
        Index("idx_activity_logs_created", "created_at"),
        {"extend_existing": True},
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    deal_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False
    )
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    user_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    user_display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    activity_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class UserSettings(Base):
    """Per-user settings stored as JSONB, one flat boolean map for notifications."""

    __tablename__ = "user_settings"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    notifications: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, server_default="{}")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class InfoRequestNotification(Base):
    """Actionable lender info request: pending -> read | approved | denied."""

    __tablename__ = "flex_info_notifications"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    deal_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False, server_default="info_request")
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="pending")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    lender_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class FlexAlert(Base):
    """Informational engagement alert for a deal owner."""

    __tablename__ = "flex_notifications"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    deal_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    lender_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    lender_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    engagement_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
