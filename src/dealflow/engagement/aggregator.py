"""Per-deal and per-lender engagement aggregation.

Pure functions over an event slice. Aggregates are rebuilt from scratch on
every call and never patched incrementally, so the same events always give
the same output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, timezone
from typing import Any

from dealflow.engagement.schemas import (
    ActivityEvent,
    DailyEngagement,
    DealEngagement,
    LenderEngagement,
)
from dealflow.engagement.scoring import KNOWN_SUBTYPES, classify_tier, subtype_weight

UNKNOWN_LENDER = "Unknown Lender"

# Subtype -> LenderEngagement counter field
LENDER_COUNTERS: dict[str, str] = {
    "flex_deal_viewed": "views",
    "flex_file_downloaded": "downloads",
    "flex_info_requested": "info_requests",
    "flex_deal_saved": "saves",
    "flex_deal_shared": "shares",
    "flex_nda_requested": "nda_requests",
    "flex_term_sheet_requested": "term_sheet_requests",
}

# Subtype -> flag raised on the deal aggregate
DEAL_FLAGS: dict[str, str] = {
    "flex_term_sheet_requested": "has_term_sheet_request",
    "flex_nda_requested": "has_nda_request",
}

TREND_COUNTERS: dict[str, str] = {
    "flex_deal_viewed": "views",
    "flex_file_downloaded": "downloads",
    "flex_info_requested": "info_requests",
    "flex_nda_requested": "nda_requests",
    "flex_term_sheet_requested": "term_sheet_requests",
}


def _metadata(event: ActivityEvent) -> dict[str, Any]:
    return event.metadata if isinstance(event.metadata, dict) else {}


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def actor_key(metadata: dict[str, Any]) -> str | None:
    """Distinct-lender key for deal and daily counts: the display name, else the email."""
    return _text(metadata.get("lender_name")) or _text(metadata.get("lender_email"))


def aggregate_deal_engagement(
    deal_ids: Iterable[str],
    events: Iterable[ActivityEvent],
) -> dict[str, DealEngagement]:
    """Build one aggregate per requested deal, including deals with no events.

    Events for deals outside ``deal_ids`` are ignored.
    """
    aggregates: dict[str, DealEngagement] = {}
    lenders: dict[str, set[str]] = {}
    for deal_id in deal_ids:
        if deal_id in aggregates:
            continue
        aggregates[deal_id] = DealEngagement(
            deal_id=deal_id,
            flags={flag: False for flag in DEAL_FLAGS.values()},
        )
        lenders[deal_id] = set()

    for event in events:
        agg = aggregates.get(event.deal_id)
        if agg is None:
            continue

        agg.score += subtype_weight(event.subtype)
        if event.subtype in KNOWN_SUBTYPES:
            agg.counts[event.subtype] = agg.counts.get(event.subtype, 0) + 1
        if agg.last_activity is None or event.timestamp > agg.last_activity:
            agg.last_activity = event.timestamp

        key = actor_key(_metadata(event))
        if key:
            lenders[event.deal_id].add(key)

        flag = DEAL_FLAGS.get(event.subtype)
        if flag:
            agg.flags[flag] = True

    for deal_id, agg in aggregates.items():
        agg.tier = classify_tier(agg.score)
        agg.lender_count = len(lenders[deal_id])

    return aggregates


def aggregate_lender_engagement(events: Iterable[ActivityEvent]) -> list[LenderEngagement]:
    """Group one deal's events by lender and score each lender.

    Returned highest score first. Ties keep no guaranteed order.
    """
    by_lender: dict[str, LenderEngagement] = {}

    for event in events:
        metadata = _metadata(event)
        name = _text(metadata.get("lender_name")) or UNKNOWN_LENDER
        email = _text(metadata.get("lender_email"))
        key = email or name

        row = by_lender.get(key)
        if row is None:
            row = LenderEngagement(lender_name=name, lender_email=email)
            by_lender[key] = row

        row.total_actions += 1
        row.score += subtype_weight(event.subtype)
        if row.last_activity is None or event.timestamp > row.last_activity:
            row.last_activity = event.timestamp

        counter = LENDER_COUNTERS.get(event.subtype)
        if counter:
            setattr(row, counter, getattr(row, counter) + 1)

        if event.subtype == "flex_file_downloaded":
            file_name = _text(metadata.get("file_name"))
            if file_name and file_name not in row.downloaded_files:
                row.downloaded_files.append(file_name)

    for row in by_lender.values():
        row.tier = classify_tier(row.score)

    return sorted(by_lender.values(), key=lambda r: r.score, reverse=True)


def _event_day(ts: datetime) -> date:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).date()


def aggregate_engagement_trends(
    events: Sequence[ActivityEvent],
    days: int,
    today: date | None = None,
) -> list[DailyEngagement]:
    """Daily buckets for the last ``days`` days, oldest first.

    Every day in the window gets a bucket; events outside it are dropped.
    """
    if days <= 0:
        return []
    today = today or datetime.now(timezone.utc).date()
    start = today - timedelta(days=days - 1)

    buckets: dict[date, DailyEngagement] = {
        start + timedelta(days=i): DailyEngagement(day=start + timedelta(days=i))
        for i in range(days)
    }
    lenders: dict[date, set[str]] = {day: set() for day in buckets}

    for event in events:
        day = _event_day(event.timestamp)
        bucket = buckets.get(day)
        if bucket is None:
            continue

        bucket.score += subtype_weight(event.subtype)
        counter = TREND_COUNTERS.get(event.subtype)
        if counter:
            setattr(bucket, counter, getattr(bucket, counter) + 1)

        key = actor_key(_metadata(event))
        if key:
            lenders[day].add(key)

    for day, bucket in buckets.items():
        bucket.unique_lenders = len(lenders[day])

    return list(buckets.values())
