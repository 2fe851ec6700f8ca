"""Deployment diagnostics: URL configuration and email delivery checks."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Request

from siterecap.api.responses import error_response
from siterecap.config import settings
from siterecap.emails import render_test_email
from siterecap.models.contracts import EmailRequest, EmailSentResponse, ErrorResponse
from siterecap.utils.errors import EmailSendError
from siterecap.utils.mailer import get_mailer

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["diagnostics"])


def _env(value: str) -> str | None:
    return value or None


@router.get("/debug-urls")
async def debug_urls(request: Request) -> dict:
    """Show which URL settings are in effect next to what the request looked like."""
    url = request.url
    return {
        "environment_variables": {
            "NEXT_PUBLIC_BASE_URL": _env(settings.next_public_base_url),
            "NEXT_PUBLIC_SITE_URL": _env(settings.next_public_site_url),
            "NEXTAUTH_URL": _env(settings.nextauth_url),
            "NEXT_PUBLIC_SUPABASE_URL": _env(settings.next_public_supabase_url),
        },
        "request_info": {
            "origin": f"{url.scheme}://{url.netloc}",
            "host": url.netloc,
            "pathname": url.path,
        },
        "computed_base_url": settings.base_url,
        "auth_callback_url": settings.auth_callback_url,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/test-email")
async def test_email_info() -> dict:
    return {
        "message": "Email test endpoint",
        "resend_api_key_present": bool(settings.resend_api_key),
        "email_from": settings.email_from,
        "base_url": settings.base_url,
    }


@router.post(
    "/test-email",
    response_model=EmailSentResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def send_test_email(body: EmailRequest):
    if not body.email:
        return error_response(400, "Email is required")

    logger.info("test_email_requested", resend_api_key_present=bool(settings.resend_api_key))
    email = render_test_email(body.email, settings.email_from, settings.base_url)
    try:
        message_id = await get_mailer().send(email)
    except EmailSendError as exc:
        logger.error("test_email_failed", error=exc.message, status=exc.status_code)
        return error_response(500, "Email send failed", details=exc.message)

    return EmailSentResponse(message_id=message_id, message="Test email sent successfully")
