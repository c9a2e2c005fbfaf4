"""Structured logging using structlog.

Development gets colored console lines, everything else JSON. Each
request binds ``request_id``, ``method`` and ``path`` into structlog's
context variables, so service-level events (cache misses, search
timings, invalidations) can be correlated with the request that caused
them without threading a logger through every call.
"""

import logging
import sys
import uuid
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.core.config import Settings, get_settings

REQUEST_ID_HEADER = "X-Request-ID"

# Third-party loggers that are only interesting when something is wrong
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "upstash_redis", "asyncpg")


def add_service_name(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("env", settings.environment)
    return event_dict


def _renderer(settings: Settings) -> list[Processor]:
    if settings.debug or settings.environment == "development":
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog and route stdlib logging through the same stream."""
    settings = settings or get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_service_name,
        *_renderer(settings),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.db_echo else logging.WARNING
    )


def bind_request_context(method: str, path: str, request_id: str | None = None) -> str:
    """Start a fresh log context for one request and return its id."""
    request_id = request_id or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)
    return request_id


def bind_principal(user_id: int, role: str) -> None:
    """Attach the authenticated caller to the current request's log context."""
    structlog.contextvars.bind_contextvars(user_id=user_id, role=role)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
