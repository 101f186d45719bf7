"""Shared test fixtures.

API tests run the real app over ASGITransport (no lifespan, so no Postgres or
Redis connection) with auth, session, Redis and webhook dependencies overridden.
"""

from __future__ import annotations

import os
import time
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ["DEALFLOW_JWT_SECRET"] = "test-secret-with-enough-bytes-for-hs256"
os.environ["DEALFLOW_FLEX_API_KEY"] = "test-flex-key"
os.environ["DEALFLOW_LOG_FORMAT"] = "console"
os.environ["DEALFLOW_DECISION_WEBHOOK_URL"] = ""

from dealflow.auth.dependencies import get_current_user  # noqa: E402
from dealflow.auth.jwt import CurrentUser  # noqa: E402
from dealflow.config import get_settings  # noqa: E402
from dealflow.database import get_session  # noqa: E402
from dealflow.dependencies import get_redis_dep  # noqa: E402
from dealflow.engagement.schemas import ActivityEvent  # noqa: E402
from dealflow.main import create_app  # noqa: E402
from dealflow.notifications.webhook import get_decision_webhook  # noqa: E402

get_settings.cache_clear()

USER_ID = "8c6f1a2e-4b7d-4e0a-9f3c-2d5e6a7b8c90"
DEAL_A = "11111111-1111-1111-1111-111111111111"
DEAL_B = "22222222-2222-2222-2222-222222222222"
DEAL_C = "33333333-3333-3333-3333-333333333333"


def make_event(
    subtype: str,
    deal_id: str = DEAL_A,
    timestamp: datetime | None = None,
    **metadata: Any,
) -> ActivityEvent:
    return ActivityEvent(
        deal_id=deal_id,
        subtype=subtype,
        timestamp=timestamp or datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
        metadata=metadata,
    )


def make_token(sub: str = USER_ID, expires_in: int = 3600, **claims: Any) -> str:
    settings = get_settings()
    payload = {
        "sub": sub,
        "aud": settings.jwt_audience,
        "exp": int(time.time()) + expires_in,
        "email": "owner@example.com",
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def current_user() -> CurrentUser:
    return CurrentUser(id=USER_ID, email="owner@example.com", name="Dana Owner")


@pytest.fixture
def mock_db() -> MagicMock:
    """AsyncSession stand-in. Tests set ``execute.return_value`` as needed."""
    db = MagicMock()
    db.execute = AsyncMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def mock_webhook() -> MagicMock:
    webhook = MagicMock()
    webhook.send_decision = AsyncMock(return_value=True)
    return webhook


@pytest.fixture
def app(current_user: CurrentUser, mock_db: MagicMock, mock_redis: AsyncMock, mock_webhook: MagicMock):
    application = create_app()

    async def _session() -> AsyncGenerator[MagicMock, None]:
        yield mock_db

    async def _redis() -> AsyncGenerator[AsyncMock, None]:
        yield mock_redis

    application.dependency_overrides[get_current_user] = lambda: current_user
    application.dependency_overrides[get_session] = _session
    application.dependency_overrides[get_redis_dep] = _redis
    application.dependency_overrides[get_decision_webhook] = lambda: mock_webhook
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, authenticated as ``current_user``."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
