"""Engagement API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.auth.dependencies import get_current_user
from dealflow.auth.jwt import CurrentUser
from dealflow.config import get_settings
from dealflow.database import get_session
from dealflow.engagement.schemas import (
    DealEngagementResponse,
    EngagementTrendsResponse,
    LenderEngagementResponse,
)
from dealflow.engagement.service import (
    filter_owned_deals,
    get_deal_engagement,
    get_engagement_trends,
    get_lender_engagement,
)

router = APIRouter(prefix="/api/v1", tags=["Engagement"])


async def _require_deal(db: AsyncSession, user: CurrentUser, deal_id: str) -> None:
    if not await filter_owned_deals(db, user.id, [deal_id]):
        raise HTTPException(status_code=404, detail="Deal not found")


@router.get("/engagement/deals", response_model=DealEngagementResponse)
async def deal_engagement_scores(
    deal_id: list[str] | None = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Engagement score and tier per deal. Deals the caller cannot see are omitted."""
    owned = await filter_owned_deals(db, user.id, deal_id or [])
    scores = await get_deal_engagement(db, owned)
    return DealEngagementResponse(deals=scores)


@router.get("/deals/{deal_id}/lender-engagement", response_model=LenderEngagementResponse)
async def lender_engagement(
    deal_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Per-lender engagement for one deal, highest score first."""
    await _require_deal(db, user, deal_id)
    lenders = await get_lender_engagement(db, deal_id)
    return LenderEngagementResponse(deal_id=deal_id, lenders=lenders)


@router.get("/deals/{deal_id}/engagement-trends", response_model=EngagementTrendsResponse)
async def engagement_trends(
    deal_id: str,
    days: int = Query(30, ge=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Daily engagement buckets for the last ``days`` days."""
    max_days = get_settings().engagement_trend_max_days
    if days > max_days:
        raise HTTPException(status_code=422, detail=f"days must be at most {max_days}")
    await _require_deal(db, user, deal_id)
    trends = await get_engagement_trends(db, deal_id, days)
    return EngagementTrendsResponse(deal_id=deal_id, days=days, trends=trends)
