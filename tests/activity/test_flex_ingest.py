"""Tests for FLEx activity ingestion."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import DEAL_A

from dealflow.activity import ingest
from dealflow.activity.ingest import (
    FLEX_EVENT_SUBTYPES,
    IngestOutcome,
    describe_event,
    event_metadata,
    ingest_event,
    subtype_for,
)
from dealflow.activity.schemas import FlexActivityEvent, FlexActivityPayload
from dealflow.db.models import ActivityLog, InfoRequestNotification
from dealflow.engagement.scoring import KNOWN_SUBTYPES

DEAL = SimpleNamespace(id=DEAL_A, user_id="user-1", company="Acme Corp")


def _deal_result(deal) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = deal
    return result


class TestEventMapping:
    def test_every_flex_event_maps_to_a_scored_subtype(self):
        assert set(FLEX_EVENT_SUBTYPES.values()) == KNOWN_SUBTYPES

    def test_unmapped_event_gets_prefix(self):
        assert subtype_for("bookmark") == "flex_bookmark"

    def test_payload_single_or_batch(self):
        single = FlexActivityPayload(event=FlexActivityEvent(event_type="view", deal_id=DEAL_A))
        batch = FlexActivityPayload(
            events=[FlexActivityEvent(event_type="view"), FlexActivityEvent(event_type="save")]
        )
        assert len(single.all_events()) == 1
        assert len(batch.all_events()) == 2
        assert FlexActivityPayload().all_events() == []


class TestDescriptions:
    def test_download_with_file(self):
        event = FlexActivityEvent(event_type="download", lender_name="Alpha Bank", file_name="cim.pdf")
        assert describe_event(event) == 'Alpha Bank downloaded "cim.pdf" from FLEx'

    def test_falls_back_to_email_then_generic(self):
        assert describe_event(FlexActivityEvent(event_type="view", lender_email="a@bank.com")).startswith("a@bank.com")
        assert describe_event(FlexActivityEvent(event_type="save")) == "A lender saved this deal on FLEx"

    def test_metadata_keeps_extra_keys(self):
        event = FlexActivityEvent(
            event_type="download",
            lender_email="a@bank.com",
            file_name="cim.pdf",
            metadata={"ip_country": "US"},
        )
        metadata = event_metadata(event)
        assert metadata["source"] == "flex"
        assert metadata["file_name"] == "cim.pdf"
        assert metadata["ip_country"] == "US"
        assert "message" not in metadata


class TestIngestEvent:
    @pytest.fixture(autouse=True)
    def _no_hot_check(self, monkeypatch):
        self.hot_check = AsyncMock(return_value=None)
        monkeypatch.setattr(ingest, "check_hot_engagement", self.hot_check)

    @pytest.mark.asyncio
    async def test_missing_deal_id_reported(self, mock_db):
        outcome = IngestOutcome()
        await ingest_event(mock_db, FlexActivityEvent(event_type="view", flex_deal_id="fx-9"), outcome)
        assert outcome.failed == 1
        assert outcome.results[0].error == "Could not resolve deal_id"
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_deal_reported(self, mock_db):
        mock_db.execute.return_value = _deal_result(None)
        outcome = IngestOutcome()
        await ingest_event(mock_db, FlexActivityEvent(event_type="view", deal_id=DEAL_A), outcome)
        assert outcome.failed == 1
        assert outcome.activities == []

    @pytest.mark.asyncio
    async def test_view_recorded_without_alert(self, mock_db):
        mock_db.execute.return_value = _deal_result(DEAL)
        outcome = IngestOutcome()
        await ingest_event(mock_db, FlexActivityEvent(event_type="view", deal_id=DEAL_A), outcome)

        assert outcome.processed == 1
        assert outcome.alerts == []
        (activity,) = outcome.activities
        assert isinstance(activity, ActivityLog)
        assert activity.activity_type == "flex_deal_viewed"
        self.hot_check.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_info_request_creates_request_and_alert(self, mock_db):
        mock_db.execute.return_value = _deal_result(DEAL)
        outcome = IngestOutcome()
        event = FlexActivityEvent(
            event_type="info_request",
            deal_id=DEAL_A,
            lender_name="Alpha Bank",
            message="Latest financials?",
        )
        await ingest_event(mock_db, event, outcome)

        added = [call.args[0] for call in mock_db.add.call_args_list]
        requests = [obj for obj in added if isinstance(obj, InfoRequestNotification)]
        assert len(requests) == 1
        assert requests[0].status == "pending"
        assert requests[0].company_name == "Acme Corp"
        assert len(outcome.alerts) == 1
        assert outcome.alerts[0].alert_type == "info_request"
        assert outcome.alert_count == 1

    @pytest.mark.asyncio
    async def test_hot_alert_collected(self, mock_db):
        mock_db.execute.return_value = _deal_result(DEAL)
        alert, marker = MagicMock(), MagicMock()
        self.hot_check.return_value = (alert, marker)
        outcome = IngestOutcome()
        await ingest_event(mock_db, FlexActivityEvent(event_type="save", deal_id=DEAL_A), outcome)
        assert outcome.alerts == [alert]
        assert outcome.activities[-1] is marker

    def test_summary(self):
        outcome = IngestOutcome()
        outcome.results = [
            ingest.EventResult(success=True, event_type="view", alert_sent=True),
            ingest.EventResult(success=False, event_type="save"),
        ]
        assert outcome.summary() == "Processed 1 events successfully, 1 failed, 1 alerts sent"
