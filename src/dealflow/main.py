"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dealflow.activity.router import router as activity_router
from dealflow.config import get_settings
from dealflow.database import close_db, init_db
from dealflow.engagement.router import router as engagement_router
from dealflow.engagement.ws_router import router as engagement_ws_router
from dealflow.health.router import router as health_router
from dealflow.middleware import setup_middleware
from dealflow.notifications.router import router as notifications_router
from dealflow.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings)
    await init_redis(settings)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Dealflow Engagement API",
        description="Lender engagement scoring and notification aggregation for the deal CRM",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(engagement_router)
    app.include_router(notifications_router)
    app.include_router(activity_router)
    app.include_router(engagement_ws_router)

    return app


app = create_app()
