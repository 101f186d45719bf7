"""Outbound decision webhook.

Tells the FLEx side that an info request was approved or denied. Delivery is
best-effort: every failure is logged and reported as ``False``, never raised,
so the local status change always stands.
"""

from __future__ import annotations

from typing import Any, Literal

import httpx
import structlog
from pydantic import BaseModel

from dealflow.config import get_settings

logger = structlog.get_logger()


class DecisionPayload(BaseModel):
    notification_id: str
    entity_id: str
    decision: Literal["approved", "denied"]
    actor_email: str | None = None
    actor_name: str | None = None
    related_name: str | None = None


class DecisionWebhookClient:
    """Fire-and-forget POST of a decision to the configured endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send_decision(self, payload: DecisionPayload) -> bool:
        """POST the decision. Returns True only on a 2xx response."""
        if not self.enabled:
            logger.info(
                "decision_webhook_skipped",
                reason="not_configured",
                notification_id=payload.notification_id,
            )
            return False

        headers: dict[str, Any] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(self.url, headers=headers, json=payload.model_dump())
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "decision_webhook_failed",
                notification_id=payload.notification_id,
                status=e.response.status_code,
                body=e.response.text[:500],
            )
            return False
        except Exception:
            logger.exception("decision_webhook_failed", notification_id=payload.notification_id)
            return False

        logger.info(
            "decision_webhook_sent",
            notification_id=payload.notification_id,
            decision=payload.decision,
            status=response.status_code,
        )
        return True


def get_decision_webhook() -> DecisionWebhookClient:
    """Client built from settings (FastAPI dependency)."""
    settings = get_settings()
    return DecisionWebhookClient(
        url=settings.decision_webhook_url,
        api_key=settings.decision_webhook_api_key,
        timeout=settings.decision_webhook_timeout_seconds,
    )
