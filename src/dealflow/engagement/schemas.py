"""Pydantic schemas for engagement endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from dealflow.engagement.scoring import Tier

if TYPE_CHECKING:
    from dealflow.db.models import ActivityLog


class ActivityEvent(BaseModel):
    """One immutable event from the activity store."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    deal_id: str
    subtype: str
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: ActivityLog) -> ActivityEvent:
        metadata = row.activity_metadata if isinstance(row.activity_metadata, dict) else {}
        return cls(
            id=str(row.id),
            deal_id=str(row.deal_id),
            subtype=row.activity_type,
            timestamp=row.created_at,
            metadata=metadata,
        )


# --- Aggregates ---


class DealEngagement(BaseModel):
    deal_id: str
    score: int = 0
    tier: Tier = Tier.NONE
    lender_count: int = 0
    counts: dict[str, int] = Field(default_factory=dict)
    last_activity: datetime | None = None
    flags: dict[str, bool] = Field(default_factory=dict)

    @property
    def has_term_sheet_request(self) -> bool:
        return self.flags.get("has_term_sheet_request", False)

    @property
    def has_nda_request(self) -> bool:
        return self.flags.get("has_nda_request", False)


class LenderEngagement(BaseModel):
    lender_name: str
    lender_email: str | None = None
    total_actions: int = 0
    views: int = 0
    downloads: int = 0
    info_requests: int = 0
    saves: int = 0
    shares: int = 0
    nda_requests: int = 0
    term_sheet_requests: int = 0
    last_activity: datetime | None = None
    score: int = 0
    tier: Tier = Tier.NONE
    downloaded_files: list[str] = Field(default_factory=list)


class DailyEngagement(BaseModel):
    day: date
    views: int = 0
    downloads: int = 0
    info_requests: int = 0
    nda_requests: int = 0
    term_sheet_requests: int = 0
    unique_lenders: int = 0
    score: int = 0


# --- Responses ---


class DealEngagementResponse(BaseModel):
    deals: dict[str, DealEngagement]


class LenderEngagementResponse(BaseModel):
    deal_id: str
    lenders: list[LenderEngagement]


class EngagementTrendsResponse(BaseModel):
    deal_id: str
    days: int
    trends: list[DailyEngagement]
