"""Branded HTML for the transactional mails, rendered from templates/emails."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from siterecap.models.contracts import OutgoingEmail

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

BRAND_SENDER = "SiteRecap <support@siterecap.com>"

WELCOME_SUBJECT = "Welcome to SiteRecap - Confirm Your Account"
RESEND_SUBJECT = "Confirm Your SiteRecap Account - Get Started Today!"
TEST_SUBJECT = "SiteRecap Email Test"

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


def _render(template: str, **context) -> str:
    return _env.get_template(template).render(year=datetime.now(UTC).year, **context)


def render_welcome_email(to: str, confirmation_url: str) -> OutgoingEmail:
    return OutgoingEmail(
        sender=BRAND_SENDER,
        to=[to],
        subject=WELCOME_SUBJECT,
        html=_render("emails/welcome.html", title=WELCOME_SUBJECT, link=confirmation_url),
    )


def render_resend_email(to: str, confirmation_url: str) -> OutgoingEmail:
    return OutgoingEmail(
        sender=BRAND_SENDER,
        to=[to],
        subject=RESEND_SUBJECT,
        html=_render("emails/resend.html", title=RESEND_SUBJECT, link=confirmation_url),
    )


def render_test_email(to: str, sender: str, base_url: str) -> OutgoingEmail:
    """Plain diagnostic mail; sent from EMAIL_FROM rather than the brand sender."""
    html = _render(
        "emails/test.html", sent_at=datetime.now(UTC).isoformat(), base_url=base_url
    )
    return OutgoingEmail(sender=sender, to=[to], subject=TEST_SUBJECT, html=html)
