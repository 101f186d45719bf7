"""Async SQLAlchemy engine and sessions for the activity store."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from dealflow.config import Settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_options(settings: Settings) -> dict[str, object]:
    """Engine keyword arguments.

    Engagement reads scan a deal's whole activity history, so a server-side
    statement timeout bounds a runaway recompute.
    """
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "echo": settings.debug,
        "connect_args": {
            "server_settings": {
                "application_name": "dealflow-engagement",
                "statement_timeout": str(settings.db_statement_timeout_ms),
            },
        },
    }


async def init_db(settings: Settings) -> None:
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_async_engine(settings.database_url, **engine_options(settings))
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    global _engine, _session_factory  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for code running outside a request (refresh controllers)."""
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with get_session_factory()() as session:
        yield session
