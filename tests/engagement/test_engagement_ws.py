"""Tests for the /ws/engagement WebSocket protocol."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from conftest import DEAL_A, make_token
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from dealflow.engagement import ws_router
from dealflow.engagement.live import EngagementRefreshController


@pytest.fixture
def ws_client(app):
    async def recompute(deal_ids):
        return {deal_id: {"deal_id": deal_id, "score": 0, "tier": "none"} for deal_id in deal_ids}

    async def no_listen(self):
        self._subscribed.set()

    with (
        patch.object(ws_router, "get_redis", return_value=MagicMock()),
        patch.object(ws_router, "make_recompute", return_value=recompute),
        patch.object(EngagementRefreshController, "_listen", no_listen),
    ):
        yield TestClient(app)


class TestEngagementSocket:
    def test_bad_token_closes_4001(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect("/ws/engagement?token=garbage") as ws:
                ws.receive_json()
        assert exc_info.value.code == 4001

    def test_ping(self, ws_client):
        with ws_client.websocket_connect(f"/ws/engagement?token={make_token()}") as ws:
            ws.send_text('{"action": "ping"}')
            assert ws.receive_json() == {"type": "pong"}

    def test_watch_pushes_snapshot(self, ws_client):
        with ws_client.websocket_connect(f"/ws/engagement?token={make_token()}") as ws:
            ws.send_json({"action": "watch", "deal_ids": [DEAL_A]})
            assert ws.receive_json() == {"type": "watching", "deal_ids": [DEAL_A]}
            snapshot = ws.receive_json()
            assert snapshot["type"] == "engagement"
            assert snapshot["stale"] is False
            assert snapshot["data"][DEAL_A]["tier"] == "none"

    def test_invalid_deal_ids(self, ws_client):
        with ws_client.websocket_connect(f"/ws/engagement?token={make_token()}") as ws:
            ws.send_json({"action": "watch", "deal_ids": "not-a-list"})
            assert ws.receive_json()["type"] == "error"

    def test_unknown_action(self, ws_client):
        with ws_client.websocket_connect(f"/ws/engagement?token={make_token()}") as ws:
            ws.send_json({"action": "explode"})
            assert ws.receive_json() == {"type": "error", "message": "Unknown action: explode"}
