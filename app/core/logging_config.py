"""
structlog setup.

Every entry carries the service identity and, inside a request, the
request id, caller and organization. Credentials and invitation codes
are redacted before rendering: JSON for aggregation, console locally.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.config import settings

SENSITIVE_KEYS = frozenset({
    "password", "current_password", "new_password", "password_hash",
    "token", "access_token", "refresh_token", "secret", "authorization",
    "invitation_code",
})
SENSITIVE_PARTS = ("password", "secret", "token")
REDACTED = "***REDACTED***"

QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "multipart": logging.WARNING,
    "passlib": logging.ERROR,
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add environment, service name and version to every entry."""
    event_dict["environment"] = settings.environment
    event_dict["service"] = settings.app_name
    event_dict["version"] = settings.app_version
    return event_dict


def add_request_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add request context from contextvars.

    RequestContextMiddleware and the auth dependency populate these.
    """
    from app.core.context import get_request_context

    for key, value in get_request_context().items():
        event_dict.setdefault(key, value)

    return event_dict


def censor_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Redact credential-like keys, in nested dicts and validation error lists too."""
    return _censor(event_dict)


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return lowered in SENSITIVE_KEYS or any(part in lowered for part in SENSITIVE_PARTS)


def _censor(data: dict) -> dict:
    for key, value in list(data.items()):
        if _is_sensitive(key):
            data[key] = REDACTED
        elif isinstance(value, dict):
            data[key] = _censor(dict(value))
        elif isinstance(value, (list, tuple)):
            data[key] = [_censor_item(item) for item in value]
    return data


def _censor_item(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    item = _censor(dict(item))
    # pydantic error entries echo the rejected value under "input"
    loc = item.get("loc")
    if loc and "input" in item and _is_sensitive(loc[-1]):
        item["input"] = REDACTED
    return item


def setup_logging() -> None:
    """Route stdlib and structlog output through one processor chain on stdout."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        add_app_context,
        add_request_context,
        censor_sensitive_data,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=settings.is_development)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Request logging comes from RequestContextMiddleware
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Usage: ``get_logger(__name__).info("file_uploaded", file_id=file.id)``"""
    return structlog.get_logger(name)
