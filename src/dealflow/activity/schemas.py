"""Pydantic schemas for the FLEx activity webhook."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

FlexEventType = Literal[
    "view",
    "download",
    "info_request",
    "save",
    "share",
    "nda_request",
    "term_sheet_request",
]


class FlexActivityEvent(BaseModel):
    event_type: FlexEventType
    deal_id: str | None = None
    flex_deal_id: str | None = None
    lender_name: str | None = None
    lender_email: str | None = None
    file_name: str | None = None
    file_category: str | None = None
    message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | None = None


class FlexActivityPayload(BaseModel):
    """Either a batch in ``events`` or a single ``event``."""

    events: list[FlexActivityEvent] | None = None
    event: FlexActivityEvent | None = None

    def all_events(self) -> list[FlexActivityEvent]:
        if self.events:
            return list(self.events)
        return [self.event] if self.event is not None else []


class EventResult(BaseModel):
    success: bool
    event_type: str
    deal_id: str | None = None
    error: str | None = None
    alert_sent: bool = False


class IngestResponse(BaseModel):
    success: bool
    message: str
    processed: int
    failed: int
    alerts: int
    results: list[EventResult]
