"""Shared fixtures: an in-process client against the app and clean providers per test.

Every test runs against the in-memory store, the mock auth provider, the
mock mailer and the mock AI stages, regardless of what a local .env says.
"""

from __future__ import annotations

import io
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from siterecap.config import settings
from siterecap.repositories.memory import InMemoryStore
from siterecap.repositories.store import set_store
from siterecap.utils import errors, gemini, mailer, storage, supabase_auth

BASE_URL = "https://siterecap.com"


@pytest.fixture(autouse=True)
def _isolated_services(monkeypatch):
    """Pin configuration to local mocks and reset every provider singleton."""
    overrides = {
        "next_public_base_url": BASE_URL,
        "next_public_site_url": "",
        "nextauth_url": "",
        "next_public_supabase_url": "",
        "next_public_supabase_anon_key": "",
        "supabase_storage_access_key_id": "",
        "supabase_storage_secret_access_key": "",
        "resend_api_key": "",
        "database_url": "",
        "gemini_api_key": "",
        "llm_cache_dir": "",
        "environment": "development",
        "demo_mode": True,
        "use_mock_ai": True,
        "auto_close_days": 30,
    }
    for name, value in overrides.items():
        monkeypatch.setattr(settings, name, value)
    monkeypatch.setattr(errors, "RETRY_DELAY_SECONDS", 0)

    set_store(InMemoryStore())
    supabase_auth.reset_client()
    mailer.reset_mailer()
    storage.reset_client()
    gemini.reset_client()
    yield
    set_store(None)
    supabase_auth.reset_client()
    mailer.reset_mailer()
    storage.reset_client()
    gemini.reset_client()


@pytest.fixture
def store() -> InMemoryStore:
    from siterecap.repositories.store import get_store

    current = get_store()
    assert isinstance(current, InMemoryStore)
    return current


@pytest.fixture
def auth_client() -> supabase_auth.MockAuthClient:
    current = supabase_auth.get_auth_client()
    assert isinstance(current, supabase_auth.MockAuthClient)
    return current


@pytest.fixture
def outbox() -> list:
    """Mails sent through the mock mailer during the test, as (message_id, OutgoingEmail)."""
    current = mailer.get_mailer()
    assert isinstance(current, mailer.MockMailer)
    return current.outbox


@pytest.fixture
async def client():
    from siterecap.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


def make_jpeg(size: tuple[int, int] = (64, 48), color: str = "orange") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def mock_http_response(
    status_code: int = 200,
    json_body: object = None,
    content: bytes = b"{}",
    headers: dict | None = None,
) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = content.decode(errors="replace")
    response.headers = headers or {}
    response.json.return_value = json_body if json_body is not None else {}
    return response


def mock_async_client(mock_cls: MagicMock, response=None, side_effect=None) -> AsyncMock:
    """Wire a patched httpx.AsyncClient class to return one async-context client."""
    mock_client = AsyncMock()
    for method in ("get", "post", "request"):
        getattr(mock_client, method).return_value = response
        if side_effect is not None:
            getattr(mock_client, method).side_effect = side_effect
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_cls.return_value = mock_client
    return mock_client
