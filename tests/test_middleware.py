"""Tests for middleware and health endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock

from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from dealflow.config import Settings, get_settings
from dealflow.database import engine_options
from dealflow.dependencies import get_redis_dep
from dealflow.middleware.logging import redact_secrets, service_context


class TestRequestId:
    async def test_generated_when_missing(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert len(response.headers["X-Request-Id"]) == 36

    async def test_propagated(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})
        assert response.headers["X-Request-Id"] == "req-123"


class TestErrorHandlers:
    async def test_404_is_json(self, client: AsyncClient):
        response = await client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        assert "detail" in response.json()

    async def test_validation_error_shape(self, client: AsyncClient):
        response = await client.get("/api/v1/deals/d-1/engagement-trends", params={"days": 0})
        assert response.status_code == 422
        body = response.json()
        assert body["detail"] == "Validation error"
        assert body["errors"]

    async def test_cors_preflight(self, client: AsyncClient):
        response = await client.options(
            "/api/v1/engagement/deals",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}

    async def test_version(self, client: AsyncClient):
        response = await client.get("/version")
        data = response.json()
        assert data["version"] == "0.1.0"
        assert "environment" in data

    async def test_version_names_activity_channel(self, client: AsyncClient):
        response = await client.get("/version")
        assert response.json()["activity_channel"] == "activity:inserted"

    async def test_ready_reports_change_feed_subscribers(self, client: AsyncClient, mock_db, mock_redis):
        mock_redis.pubsub_numsub = AsyncMock(return_value=[("activity:inserted", 2)])
        response = await client.get("/ready")
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["activity_store"] == "ok"
        assert data["checks"]["change_feed"] == {"channel": "activity:inserted", "status": "ok", "subscribers": 2}
        mock_redis.pubsub_numsub.assert_awaited_once_with("activity:inserted")

    async def test_ready_degraded_when_feed_unreachable(self, client: AsyncClient, mock_redis):
        mock_redis.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        response = await client.get("/ready")
        data = response.json()
        assert data["status"] == "degraded"
        assert data["checks"]["activity_store"] == "ok"
        assert data["checks"]["change_feed"]["status"] == "error: refused"

    async def test_ready_degraded_without_redis(self, app, client: AsyncClient):
        async def _no_redis():
            yield None

        app.dependency_overrides[get_redis_dep] = _no_redis
        response = await client.get("/ready")
        data = response.json()
        assert data["status"] == "degraded"
        assert data["checks"]["change_feed"]["status"].startswith("error")

    async def test_not_ready_when_activity_store_down(self, client: AsyncClient, mock_db, mock_redis):
        mock_redis.pubsub_numsub = AsyncMock(return_value=[("activity:inserted", 0)])
        mock_db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        response = await client.get("/ready")
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["activity_store"].startswith("error")


class TestLoggingProcessors:
    def test_secrets_redacted(self):
        event = redact_secrets(None, "info", {"event": "flex_key_rejected", "api_key": "sk-live", "deal_id": "d-1"})
        assert event["api_key"] == "[redacted]"
        assert event["deal_id"] == "d-1"

    def test_service_context_stamped(self):
        add = service_context(get_settings())
        event = add(None, "info", {"event": "engagement_ws_connected"})
        assert event["service"] == "dealflow-engagement"
        assert event["version"] == "0.1.0"


class TestEngineOptions:
    def test_statement_timeout_and_application_name(self):
        settings = Settings(db_statement_timeout_ms=2500, db_pool_size=4)
        options = engine_options(settings)
        server_settings = options["connect_args"]["server_settings"]
        assert server_settings["statement_timeout"] == "2500"
        assert server_settings["application_name"] == "dealflow-engagement"
        assert options["pool_size"] == 4
        assert options["pool_pre_ping"] is True
