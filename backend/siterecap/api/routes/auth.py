"""Signup confirmation endpoints.

The confirmation email carries a link back to ``/auth/callback``, which
trades the Supabase ``code`` (or ``token_hash``) for a session and hands it
to ``/auth/success``. That page posts the tokens to ``/api/auth/session``
and moves on to the dashboard. Every redirect is built from the
configured base URL, so links stay on the canonical domain no matter
which hostname served the request.
"""

from __future__ import annotations

from urllib.parse import quote

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates

from siterecap.api.responses import error_response, login_redirect, site_redirect
from siterecap.config import settings
from siterecap.emails import TEMPLATES_DIR, render_resend_email, render_welcome_email
from siterecap.models.contracts import (
    AuthSession,
    EmailRequest,
    EmailSentResponse,
    ErrorResponse,
    SendConfirmationRequest,
    SessionRequest,
    SessionResponse,
)
from siterecap.utils.errors import AuthError, EmailSendError
from siterecap.utils.mailer import get_mailer
from siterecap.utils.supabase_auth import get_auth_client

logger = structlog.get_logger()

router = APIRouter(tags=["auth"])
templates = Jinja2Templates(directory=TEMPLATES_DIR)

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"
REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30

CODE_ERROR = "Unable to confirm email. Please try again."
CODE_EXCEPTION = "Email confirmation failed. Please try again."
OTP_ERROR = "Email confirmation failed. Please try again."
OTP_EXCEPTION = "Confirmation failed. Please try again."
NO_SESSION = "Email confirmed but session creation failed. Please log in manually."
CHECK_EMAIL = (
    "Please check your email for confirmation and then log in with your credentials."
)

_ERRORS = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post("/api/send-confirmation", response_model=EmailSentResponse, responses=_ERRORS)
async def send_confirmation(body: SendConfirmationRequest):
    """Send the branded welcome mail with the caller's confirmation link."""
    if not body.email or not body.confirmation_url:
        return error_response(400, "Email and confirmation URL required")

    email = render_welcome_email(body.email, body.confirmation_url)
    try:
        message_id = await get_mailer().send(email)
    except EmailSendError as exc:
        logger.error("confirmation_email_failed", error=exc.message, status=exc.status_code)
        return error_response(500, "Failed to send confirmation email")

    logger.info("confirmation_email_sent", message_id=message_id)
    return EmailSentResponse(message_id=message_id)


@router.post("/api/resend-confirmation", response_model=EmailSentResponse, responses=_ERRORS)
async def resend_confirmation(body: EmailRequest):
    """Ask the auth provider to resend the signup mail, then send our own copy.

    Safe to repeat: every call sends a new mail with its own message id.
    """
    if not body.email:
        return error_response(400, "Email required")

    try:
        await get_auth_client().resend_signup(body.email, settings.auth_callback_url)
    except AuthError as exc:
        logger.error("auth_resend_failed", error=exc.message, status=exc.status_code)
        return error_response(500, "Failed to resend confirmation", details=exc.message)

    link = f"{settings.auth_callback_url}?email={quote(body.email, safe='')}"
    try:
        message_id = await get_mailer().send(render_resend_email(body.email, link))
    except EmailSendError as exc:
        logger.error("resend_email_failed", error=exc.message, status=exc.status_code)
        return error_response(500, "Failed to send confirmation email", details=exc.message)

    logger.info("confirmation_email_resent", message_id=message_id)
    return EmailSentResponse(message_id=message_id, message="Confirmation email sent successfully")


def _success_redirect(session: AuthSession):
    return site_redirect(
        "/auth/success",
        {
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
            "expires_in": session.expires_in,
        },
    )


@router.get("/auth/callback", include_in_schema=False)
async def auth_callback(
    code: str | None = None,
    token_hash: str | None = None,
    type: str | None = None,
    email: str | None = None,
):
    """Confirmation link target. Always answers with a redirect."""
    client = get_auth_client()

    if code:
        try:
            session = await client.exchange_code_for_session(code)
        except AuthError as exc:
            logger.warning("auth_callback_failed", flow="code", error=exc.message)
            return login_redirect(CODE_ERROR)
        except Exception as exc:
            logger.error("auth_callback_exception", flow="code", exc_info=exc)
            return login_redirect(CODE_EXCEPTION)
        if session is None or session.user is None:
            logger.warning("auth_callback_no_session", flow="code")
            return login_redirect(NO_SESSION)
        logger.info("auth_callback_confirmed", flow="code", user_id=session.user.id)
        return _success_redirect(session)

    if token_hash and type:
        try:
            session = await client.verify_otp(token_hash, type)
        except AuthError as exc:
            logger.warning("auth_callback_failed", flow="otp", error=exc.message)
            return login_redirect(OTP_ERROR)
        except Exception as exc:
            logger.error("auth_callback_exception", flow="otp", exc_info=exc)
            return login_redirect(OTP_EXCEPTION)
        if session is None or session.user is None:
            logger.warning("auth_callback_no_session", flow="otp")
            return login_redirect(NO_SESSION)
        logger.info("auth_callback_confirmed", flow="otp", user_id=session.user.id)
        return _success_redirect(session)

    if email:
        return login_redirect(CHECK_EMAIL, type="info")

    return login_redirect()


@router.get("/auth/success", response_class=HTMLResponse, include_in_schema=False)
async def auth_success(request: Request):
    """Loading page that installs the session; identical for every request."""
    return templates.TemplateResponse(request, "auth_success.html")


@router.post(
    "/api/auth/session",
    response_model=SessionResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def set_session(body: SessionRequest):
    """Validate the access token and store both tokens as HttpOnly cookies."""
    if not body.access_token or not body.refresh_token:
        return error_response(400, "Access token and refresh token required")

    try:
        user = await get_auth_client().get_user(body.access_token)
    except AuthError as exc:
        logger.warning("auth_session_rejected", error=exc.message, status=exc.status_code)
        if exc.status_code is None or exc.status_code >= 500:
            return error_response(500, "Authentication service unavailable")
        return error_response(401, "Invalid or expired session")

    secure = settings.base_url.startswith("https://")
    response = JSONResponse(
        SessionResponse(user=user).model_dump(),
    )
    response.set_cookie(
        ACCESS_COOKIE,
        body.access_token,
        httponly=True,
        secure=secure,
        samesite="lax",
        max_age=3600,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        body.refresh_token,
        httponly=True,
        secure=secure,
        samesite="lax",
        max_age=REFRESH_COOKIE_MAX_AGE,
    )
    logger.info("auth_session_set", user_id=user.id)
    return response
