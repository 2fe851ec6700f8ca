"""Transactional email through the Resend REST API.

``MockMailer`` replaces the real client when RESEND_API_KEY is unset: it
logs the mail and returns a fresh message id, so callers behave the same
in development.
"""

from __future__ import annotations

import uuid
from typing import Protocol

import httpx
import structlog

from siterecap.config import settings
from siterecap.models.contracts import OutgoingEmail
from siterecap.utils.errors import EmailSendError, is_retryable_status, with_retry

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com/emails"


class Mailer(Protocol):
    async def send(self, email: OutgoingEmail) -> str: ...


class ResendMailer:
    def __init__(self, api_key: str, timeout_seconds: float = 10.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def send(self, email: OutgoingEmail) -> str:
        """Send one email and return the provider's message id."""
        return await with_retry(
            lambda: self._send_once(email), event="email_send_retrying", subject=email.subject
        )

    async def _send_once(self, email: OutgoingEmail) -> str:
        payload = {
            "from": email.sender,
            "to": email.to,
            "subject": email.subject,
            "html": email.html,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(RESEND_API_URL, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise EmailSendError("Resend request timed out", retryable=True) from exc
        except httpx.RequestError as exc:
            raise EmailSendError(
                f"Resend unreachable: {type(exc).__name__}", retryable=True
            ) from exc

        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text[:200]
            except ValueError:
                message = response.text[:200]
            raise EmailSendError(
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
            )

        message_id = response.json().get("id")
        if not message_id:
            raise EmailSendError("Resend response did not include a message id")
        logger.info("email_sent", provider="resend", message_id=message_id, subject=email.subject)
        return str(message_id)


class MockMailer:
    def __init__(self) -> None:
        self.outbox: list[tuple[str, OutgoingEmail]] = []

    async def send(self, email: OutgoingEmail) -> str:
        message_id = f"demo-{uuid.uuid4()}"
        self.outbox.append((message_id, email))
        logger.info("email_sent", provider="mock", message_id=message_id, subject=email.subject)
        return message_id


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    global _mailer  # noqa: PLW0603
    if _mailer is None:
        if settings.resend_api_key:
            _mailer = ResendMailer(settings.resend_api_key, settings.http_timeout_seconds)
        else:
            logger.warning("resend_not_configured_using_mock_mailer")
            _mailer = MockMailer()
    return _mailer


def reset_mailer() -> None:
    global _mailer  # noqa: PLW0603
    _mailer = None
