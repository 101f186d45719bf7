"""WebSocket endpoint streaming live engagement for a watched set of deals."""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from dealflow.auth.jwt import user_from_claims, verify_token
from dealflow.database import get_session_factory
from dealflow.engagement.live import EngagementRefreshController, Recompute
from dealflow.engagement.service import filter_owned_deals, get_deal_engagement
from dealflow.redis_client import get_redis

logger = structlog.get_logger()

router = APIRouter()


def make_recompute(user_id: str) -> Recompute:
    """Recompute bound to a fresh session per call, scoped to the user's deals."""

    async def recompute(deal_ids: list[str]) -> dict[str, Any]:
        async with get_session_factory()() as db:
            owned = await filter_owned_deals(db, user_id, deal_ids)
            scores = await get_deal_engagement(db, owned)
        return {deal_id: agg.model_dump(mode="json") for deal_id, agg in scores.items()}

    return recompute


def snapshot(controller: EngagementRefreshController) -> dict[str, Any]:
    return {
        "type": "engagement",
        "stale": controller.stale,
        "error": controller.last_error,
        "refreshed_at": controller.last_refreshed.isoformat() if controller.last_refreshed else None,
        "data": controller.aggregates,
    }


@router.websocket("/ws/engagement")
async def engagement_socket(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Live engagement scores.

    Protocol:
        Client -> Server:
            {"action": "watch", "deal_ids": ["..."]}
            {"action": "unwatch"}
            {"action": "refresh"}
            {"action": "ping"}

        Server -> Client:
            {"type": "engagement", "stale": false, "data": {deal_id: {...}}}
            {"type": "watching", "deal_ids": [...]}
            {"type": "pong"}
            {"type": "error", "message": "..."}
    """
    try:
        user = user_from_claims(verify_token(token))
    except Exception as e:  # noqa: BLE001
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return

    await websocket.accept()

    async def push(controller: EngagementRefreshController) -> None:
        await websocket.send_json(snapshot(controller))

    controller = EngagementRefreshController(
        get_redis(),
        make_recompute(user.id),
        on_update=push,
    )
    logger.info("engagement_ws_connected", user_id=user.id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = msg.get("action") if isinstance(msg, dict) else None

            if action == "watch":
                deal_ids = msg.get("deal_ids") or []
                if not isinstance(deal_ids, list) or not all(isinstance(d, str) for d in deal_ids):
                    await websocket.send_json({"type": "error", "message": "deal_ids must be a list of strings"})
                    continue
                await websocket.send_json({"type": "watching", "deal_ids": deal_ids})
                await controller.watch(deal_ids)

            elif action == "unwatch":
                await controller.unwatch()
                await websocket.send_json({"type": "watching", "deal_ids": []})

            elif action == "refresh":
                await controller.refresh()

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Unknown action: {action}",
                })

    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("engagement_ws_error", user_id=user.id)
    finally:
        await controller.stop()
        logger.info("engagement_ws_disconnected", user_id=user.id)
