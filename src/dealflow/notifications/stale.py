"""Stale-deal alerts: deals whose active lenders have gone quiet."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from dealflow.db.models import Deal

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class StaleDeal(BaseModel):
    deal_id: str
    company_name: str
    lender_count: int
    max_days_since_update: int


def _days_between(earlier: datetime, later: datetime) -> int:
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    return (later - earlier).days


def find_stale_deals(deals: Iterable[Any], threshold_days: int, now: datetime | None = None) -> list[StaleDeal]:
    """Deals with at least one active lender untouched for ``threshold_days`` or more.

    Lenders without an ``updated_at`` or not actively tracked are ignored.
    """
    now = now or datetime.now(timezone.utc)
    stale: list[StaleDeal] = []

    for deal in deals:
        max_days = 0
        stale_lenders = 0
        for lender in deal.lenders or []:
            if lender.tracking_status != "active" or lender.updated_at is None:
                continue
            days = _days_between(lender.updated_at, now)
            if days >= threshold_days:
                stale_lenders += 1
                max_days = max(max_days, days)

        if stale_lenders:
            stale.append(
                StaleDeal(
                    deal_id=str(deal.id),
                    company_name=deal.company,
                    lender_count=stale_lenders,
                    max_days_since_update=max_days,
                )
            )

    return stale


async def get_user_deals(db: AsyncSession, user_id: str) -> list[Deal]:
    """The user's deals with lenders loaded."""
    result = await db.execute(
        select(Deal).where(Deal.user_id == user_id).options(selectinload(Deal.lenders))
    )
    return list(result.scalars().all())
