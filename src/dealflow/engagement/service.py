"""Engagement queries against the activity store."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from dealflow.config import get_settings
from dealflow.db.models import ActivityLog, Deal
from dealflow.engagement.aggregator import (
    aggregate_deal_engagement,
    aggregate_engagement_trends,
    aggregate_lender_engagement,
)
from dealflow.engagement.schemas import (
    ActivityEvent,
    DailyEngagement,
    DealEngagement,
    LenderEngagement,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class EventStoreError(RuntimeError):
    """The activity store could not be read. Callers keep their last-known view."""


async def fetch_events(
    db: AsyncSession,
    deal_ids: Sequence[str],
    *,
    prefix: str | None = None,
    since: datetime | None = None,
) -> list[ActivityEvent]:
    """Read the events of ``deal_ids`` whose subtype starts with ``prefix``.

    Raises:
        EventStoreError: on any database failure. Partial results are never returned.
    """
    if not deal_ids:
        return []
    prefix = get_settings().flex_subtype_prefix if prefix is None else prefix

    stmt = select(ActivityLog).where(
        ActivityLog.deal_id.in_(list(deal_ids)),
        ActivityLog.activity_type.like(f"{prefix}%"),
    )
    if since is not None:
        stmt = stmt.where(ActivityLog.created_at >= since)
    stmt = stmt.order_by(ActivityLog.created_at.desc())

    try:
        result = await db.execute(stmt)
        rows = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.warning("event_store_read_failed", deal_count=len(deal_ids), error=str(e))
        msg = "Could not read activity events"
        raise EventStoreError(msg) from e

    return [ActivityEvent.from_row(row) for row in rows]


async def filter_owned_deals(db: AsyncSession, user_id: str, deal_ids: Sequence[str]) -> list[str]:
    """Keep only the deals owned by ``user_id``, in request order."""
    wanted = list(dict.fromkeys(deal_ids))
    if not wanted:
        return []
    try:
        result = await db.execute(
            select(Deal.id).where(Deal.id.in_(wanted), Deal.user_id == user_id)
        )
        owned = {str(row[0]) for row in result}
    except SQLAlchemyError as e:
        msg = "Could not read deals"
        raise EventStoreError(msg) from e
    return [deal_id for deal_id in wanted if deal_id in owned]


async def get_deal_engagement(db: AsyncSession, deal_ids: Sequence[str]) -> dict[str, DealEngagement]:
    """Score every requested deal. An empty request returns {} without a query."""
    if not deal_ids:
        return {}
    events = await fetch_events(db, deal_ids)
    return aggregate_deal_engagement(deal_ids, events)


async def get_lender_engagement(db: AsyncSession, deal_id: str) -> list[LenderEngagement]:
    """Per-lender breakdown for one deal, highest score first."""
    events = await fetch_events(db, [deal_id])
    return aggregate_lender_engagement(events)


async def get_engagement_trends(
    db: AsyncSession,
    deal_id: str,
    days: int = 30,
    today: date | None = None,
) -> list[DailyEngagement]:
    """Daily engagement for the last ``days`` days."""
    today = today or datetime.now(timezone.utc).date()
    start = datetime.combine(today - timedelta(days=days - 1), datetime.min.time(), tzinfo=timezone.utc)
    events = await fetch_events(db, [deal_id], since=start)
    return aggregate_engagement_trends(events, days, today=today)
