"""structlog setup. JSON in deployed environments, console renderer locally."""

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from dealflow.config import Settings

SERVICE_NAME = "dealflow-engagement"

# Event keys that may carry the FLEx key or a bearer token
_REDACTED_KEYS = frozenset({"api_key", "flex_api_key", "token", "authorization"})


def redact_secrets(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in _REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def service_context(settings: Settings) -> structlog.types.Processor:
    """Stamp every event with the service name, environment and version."""

    def add(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", settings.environment)
        event_dict.setdefault("version", settings.app_version)
        return event_dict

    return add


def setup_logging(settings: Settings) -> None:
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            service_context(settings),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    logging.getLogger("dealflow").setLevel(level)
    # request_completed replaces uvicorn's access line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
