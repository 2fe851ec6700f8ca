"""Exceptions raised by the provider clients, and the retry helper they share.

``retryable`` follows the HTTP convention used across the clients: 5xx,
429, timeouts and network errors are retryable; other 4xx are not.
Routes translate these into ``{"error": ...}`` responses or login redirects.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

MAX_RETRIES = 1
RETRY_DELAY_SECONDS = 1.0


class UpstreamError(Exception):
    """A call to an external service (auth, email, storage, AI, weather) failed."""

    def __init__(
        self, message: str, *, status_code: int | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class AuthError(UpstreamError):
    pass


class EmailSendError(UpstreamError):
    pass


class StorageError(UpstreamError):
    pass


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


async def with_retry(call: Callable[[], Awaitable[T]], *, event: str, **log_fields: Any) -> T:
    """Await ``call()``, retrying once after a short backoff on a retryable error."""
    attempt = 0
    while True:
        try:
            return await call()
        except UpstreamError as exc:
            if not exc.retryable or attempt >= MAX_RETRIES:
                raise
            attempt += 1
            logger.warning(
                event, error=exc.message, status=exc.status_code, attempt=attempt, **log_fields
            )
            await asyncio.sleep(RETRY_DELAY_SECONDS)
