"""Tests for engagement queries against the activity store."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest
from conftest import DEAL_A, DEAL_B
from sqlalchemy.exc import OperationalError

from dealflow.db.models import ActivityLog
from dealflow.engagement.scoring import Tier
from dealflow.engagement.service import (
    EventStoreError,
    fetch_events,
    filter_owned_deals,
    get_deal_engagement,
    get_engagement_trends,
)

pytestmark = pytest.mark.asyncio


def _row(deal_id: str, activity_type: str, **metadata) -> ActivityLog:
    return ActivityLog(
        id="evt",
        deal_id=deal_id,
        activity_type=activity_type,
        activity_metadata=metadata,
        created_at=datetime(2026, 10, 5, 9, 0, tzinfo=timezone.utc),
    )


def _rows_result(rows: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


class TestFetchEvents:
    async def test_empty_ids_skip_query(self, mock_db):
        assert await fetch_events(mock_db, []) == []
        mock_db.execute.assert_not_awaited()

    async def test_rows_mapped_to_events(self, mock_db):
        mock_db.execute.return_value = _rows_result([_row(DEAL_A, "flex_deal_viewed", lender_email="a@bank.com")])
        (event,) = await fetch_events(mock_db, [DEAL_A])
        assert event.deal_id == DEAL_A
        assert event.subtype == "flex_deal_viewed"
        assert event.metadata == {"lender_email": "a@bank.com"}

    async def test_query_filters_by_prefix(self, mock_db):
        mock_db.execute.return_value = _rows_result([])
        await fetch_events(mock_db, [DEAL_A])
        stmt = mock_db.execute.call_args.args[0]
        compiled = stmt.compile()
        assert "LIKE" in str(compiled)
        assert "flex_%" in compiled.params.values()

    async def test_database_error_wrapped(self, mock_db):
        mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        with pytest.raises(EventStoreError):
            await fetch_events(mock_db, [DEAL_A])


class TestDealEngagement:
    async def test_empty_request_no_query(self, mock_db):
        assert await get_deal_engagement(mock_db, []) == {}
        mock_db.execute.assert_not_awaited()

    async def test_entry_per_requested_deal(self, mock_db):
        mock_db.execute.return_value = _rows_result(
            [_row(DEAL_A, "flex_nda_requested"), _row(DEAL_A, "flex_file_downloaded")]
        )
        result = await get_deal_engagement(mock_db, [DEAL_A, DEAL_B])
        assert result[DEAL_A].score == 60
        assert result[DEAL_A].tier == Tier.HOT
        assert result[DEAL_B].score == 0
        assert result[DEAL_B].tier == Tier.NONE

    async def test_malformed_metadata_tolerated(self, mock_db):
        row = _row(DEAL_A, "flex_file_downloaded")
        row.activity_metadata = None
        mock_db.execute.return_value = _rows_result([row])
        result = await get_deal_engagement(mock_db, [DEAL_A])
        assert result[DEAL_A].score == 10
        assert result[DEAL_A].lender_count == 0


class TestOwnership:
    async def test_keeps_request_order(self, mock_db):
        mock_db.execute.return_value = iter([(DEAL_B,), (DEAL_A,)])
        assert await filter_owned_deals(mock_db, "user-1", [DEAL_A, "other", DEAL_B]) == [DEAL_A, DEAL_B]

    async def test_empty(self, mock_db):
        assert await filter_owned_deals(mock_db, "user-1", []) == []
        mock_db.execute.assert_not_awaited()


class TestTrends:
    async def test_window_length(self, mock_db):
        mock_db.execute.return_value = _rows_result([_row(DEAL_A, "flex_deal_viewed")])
        trends = await get_engagement_trends(mock_db, DEAL_A, days=10, today=date(2026, 10, 10))
        assert len(trends) == 10
        assert trends[4].day == date(2026, 10, 5)
        assert trends[4].views == 1
