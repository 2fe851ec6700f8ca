"""structlog setup for the API process.

Events are rendered by structlog and handed to the standard library's root
logger, which writes them to stdout and, when LOG_FILE is set, appends them
to that file. uvicorn's own records go through the same handlers.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

from siterecap.config import settings

SERVICE_NAME = "siterecap-api"

# Auth tokens and provider keys pass through the confirmation flow
REDACTED = "[redacted]"
_SECRET_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "token",
        "token_hash",
        "code",
        "api_key",
        "authorization",
        "password",
    }
)


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict.keys() & _SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _add_service(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def _handlers() -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        try:
            handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
        except OSError as exc:
            # structlog is not configured yet at this point
            print(
                f"WARNING: Could not open log file {settings.log_file!r}: {exc}. "
                "Logging to stdout only.",
                file=sys.stderr,
            )
    return handlers


def configure_logging() -> None:
    """Console renderer in development, JSON lines everywhere else."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", level=level, handlers=_handlers(), force=True)

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_service,
        redact_secrets,
    ]
    if settings.environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        # ConsoleRenderer formats exc_info itself; JSON needs it pre-rendered
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
