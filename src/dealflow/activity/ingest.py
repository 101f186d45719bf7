"""FLEx activity ingestion.

Each incoming event is mapped to a ``flex_*`` activity subtype and appended to
the activity store. High-value requests raise an alert for the deal owner and
every event re-checks the deal for hot engagement. Publishing to Redis is left
to the caller so it only happens after commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from dealflow.activity.schemas import EventResult, FlexActivityEvent
from dealflow.activity.service import record_activity
from dealflow.db.models import Deal
from dealflow.notifications.alerts import ALERT_TRIGGERS, check_hot_engagement, create_flex_alert
from dealflow.notifications.info_requests import create_info_request

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from dealflow.db.models import ActivityLog, FlexAlert

logger = structlog.get_logger()

FLEX_EVENT_SUBTYPES: dict[str, str] = {
    "view": "flex_deal_viewed",
    "download": "flex_file_downloaded",
    "info_request": "flex_info_requested",
    "save": "flex_deal_saved",
    "share": "flex_deal_shared",
    "nda_request": "flex_nda_requested",
    "term_sheet_request": "flex_term_sheet_requested",
}


@dataclass
class IngestOutcome:
    results: list[EventResult] = field(default_factory=list)
    activities: list[ActivityLog] = field(default_factory=list)
    alerts: list[FlexAlert] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def alert_count(self) -> int:
        return sum(1 for r in self.results if r.alert_sent)

    def summary(self) -> str:
        message = f"Processed {self.processed} events successfully"
        if self.failed:
            message += f", {self.failed} failed"
        if self.alert_count:
            message += f", {self.alert_count} alerts sent"
        return message


def subtype_for(event_type: str) -> str:
    return FLEX_EVENT_SUBTYPES.get(event_type, f"flex_{event_type}")


def _excerpt(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def describe_event(event: FlexActivityEvent) -> str:
    """Human-readable activity line for a FLEx event."""
    lender = event.lender_name or event.lender_email or "A lender"

    if event.event_type == "view":
        return f"{lender} viewed this deal on FLEx"
    if event.event_type == "download":
        if event.file_name:
            return f'{lender} downloaded "{event.file_name}" from FLEx'
        return f"{lender} downloaded a file from FLEx"
    if event.event_type == "info_request":
        if event.message:
            return f'{lender} requested information: "{_excerpt(event.message)}"'
        return f"{lender} requested more information on FLEx"
    if event.event_type == "save":
        return f"{lender} saved this deal on FLEx"
    if event.event_type == "share":
        return f"{lender} shared this deal on FLEx"
    if event.event_type == "nda_request":
        return f"{lender} requested an NDA on FLEx"
    if event.event_type == "term_sheet_request":
        return f"{lender} requested a term sheet on FLEx"
    return f'{lender} performed action "{event.event_type}" on FLEx'


def event_metadata(event: FlexActivityEvent) -> dict[str, Any]:
    """Stored metadata. Caller-supplied keys override the standard ones."""
    metadata: dict[str, Any] = {
        "source": "flex",
        "flex_deal_id": event.flex_deal_id,
        "lender_name": event.lender_name,
        "lender_email": event.lender_email,
        "file_name": event.file_name,
        "file_category": event.file_category,
        "message": event.message,
        "original_timestamp": event.timestamp,
    }
    metadata = {k: v for k, v in metadata.items() if v is not None}
    metadata.update(event.metadata)
    return metadata


async def _load_deal(db: AsyncSession, deal_id: str) -> Deal | None:
    result = await db.execute(select(Deal).where(Deal.id == deal_id))
    return result.scalar_one_or_none()


async def ingest_event(db: AsyncSession, event: FlexActivityEvent, outcome: IngestOutcome) -> None:
    """Record one event and any alerts it raises into ``outcome``."""
    if not event.deal_id:
        logger.warning("flex_event_unresolved", event_type=event.event_type, flex_deal_id=event.flex_deal_id)
        outcome.results.append(
            EventResult(success=False, event_type=event.event_type, error="Could not resolve deal_id")
        )
        return

    deal = await _load_deal(db, event.deal_id)
    if deal is None:
        logger.warning("flex_event_unknown_deal", event_type=event.event_type, deal_id=event.deal_id)
        outcome.results.append(
            EventResult(success=False, event_type=event.event_type, deal_id=event.deal_id, error="Deal not found")
        )
        return

    subtype = subtype_for(event.event_type)
    activity = await record_activity(
        db,
        deal_id=deal.id,
        activity_type=subtype,
        description=describe_event(event),
        metadata=event_metadata(event),
        user_display_name=event.lender_name,
    )
    outcome.activities.append(activity)
    logger.info("flex_activity_recorded", deal_id=deal.id, activity_type=subtype)

    if event.event_type == "info_request":
        await create_info_request(
            db,
            deal_id=deal.id,
            message=event.message or "",
            lender_name=event.lender_name,
            user_email=event.lender_email,
            company_name=deal.company,
        )

    alert_sent = False
    alert_type = ALERT_TRIGGERS.get(subtype)
    if alert_type:
        alert = await create_flex_alert(
            db,
            deal,
            alert_type,
            lender_name=event.lender_name,
            lender_email=event.lender_email,
            message=event.message,
        )
        outcome.alerts.append(alert)
        alert_sent = True

    hot = await check_hot_engagement(db, deal)
    if hot is not None:
        alert, marker = hot
        outcome.alerts.append(alert)
        outcome.activities.append(marker)

    outcome.results.append(
        EventResult(success=True, event_type=event.event_type, deal_id=deal.id, alert_sent=alert_sent)
    )


async def ingest_events(db: AsyncSession, events: list[FlexActivityEvent]) -> IngestOutcome:
    """Ingest a batch. Unresolvable events are reported, not raised."""
    outcome = IngestOutcome()
    for event in events:
        await ingest_event(db, event, outcome)
    return outcome
