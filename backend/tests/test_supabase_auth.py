"""Tests for the Supabase Auth REST client and its mock."""

from unittest.mock import patch

import httpx
import pytest
from conftest import mock_async_client, mock_http_response

from siterecap.config import settings
from siterecap.utils import supabase_auth
from siterecap.utils.errors import AuthError

SUPABASE = "https://abc.supabase.co"

TOKEN_BODY = {
    "access_token": "at-1",
    "refresh_token": "rt-1",
    "expires_in": 3600,
    "user": {"id": "u-1", "email": "pat@example.com"},
}


@pytest.fixture
def gotrue() -> supabase_auth.SupabaseAuthClient:
    return supabase_auth.SupabaseAuthClient(SUPABASE + "/", "anon-key")


class TestExchangeCode:
    async def test_returns_session(self, gotrue):
        with patch("httpx.AsyncClient") as cls:
            mock_client = mock_async_client(cls, mock_http_response(json_body=TOKEN_BODY))
            session = await gotrue.exchange_code_for_session("code-1")

        assert session.access_token == "at-1"
        assert session.user.email == "pat@example.com"
        method, url = mock_client.request.call_args.args
        kwargs = mock_client.request.call_args.kwargs
        assert (method, url) == ("POST", f"{SUPABASE}/auth/v1/token")
        assert kwargs["params"] == {"grant_type": "pkce"}
        assert kwargs["json"]["auth_code"] == "code-1"
        assert kwargs["headers"]["apikey"] == "anon-key"

    async def test_no_session_in_payload(self, gotrue):
        with patch("httpx.AsyncClient") as cls:
            mock_async_client(cls, mock_http_response(json_body={"user": {"id": "u"}}))
            assert await gotrue.exchange_code_for_session("code-1") is None

    async def test_rejected_code(self, gotrue):
        response = mock_http_response(
            status_code=404, json_body={"error_description": "invalid flow state"}
        )
        with patch("httpx.AsyncClient") as cls:
            mock_async_client(cls, response)
            with pytest.raises(AuthError, match="invalid flow state") as exc_info:
                await gotrue.exchange_code_for_session("bad")
        assert exc_info.value.status_code == 404
        assert exc_info.value.retryable is False

    async def test_network_error_is_retryable(self, gotrue):
        with patch("httpx.AsyncClient") as cls:
            mock_async_client(cls, side_effect=httpx.ConnectError("refused"))
            with pytest.raises(AuthError) as exc_info:
                await gotrue.exchange_code_for_session("code")
        assert exc_info.value.retryable is True

    async def test_network_error_retried_once(self, gotrue):
        with patch("httpx.AsyncClient") as cls:
            mock_client = mock_async_client(
                cls,
                side_effect=[
                    httpx.ConnectError("refused"),
                    mock_http_response(json_body=TOKEN_BODY),
                ],
            )
            session = await gotrue.exchange_code_for_session("code-1")
        assert session.access_token == "at-1"
        assert mock_client.request.await_count == 2

    async def test_rejected_code_not_retried(self, gotrue):
        response = mock_http_response(status_code=403, json_body={"msg": "expired"})
        with patch("httpx.AsyncClient") as cls:
            mock_client = mock_async_client(cls, response)
            with pytest.raises(AuthError):
                await gotrue.exchange_code_for_session("bad")
        assert mock_client.request.await_count == 1


class TestVerifyOtp:
    async def test_posts_token_hash(self, gotrue):
        with patch("httpx.AsyncClient") as cls:
            mock_client = mock_async_client(cls, mock_http_response(json_body=TOKEN_BODY))
            session = await gotrue.verify_otp("hash-1", "signup")
        assert session.refresh_token == "rt-1"
        assert mock_client.request.call_args.kwargs["json"] == {
            "type": "signup",
            "token_hash": "hash-1",
        }


class TestResendSignup:
    async def test_passes_redirect(self, gotrue):
        with patch("httpx.AsyncClient") as cls:
            mock_client = mock_async_client(cls, mock_http_response(content=b""))
            await gotrue.resend_signup("pat@example.com", "https://siterecap.com/auth/callback")
        kwargs = mock_client.request.call_args.kwargs
        assert kwargs["params"] == {"redirect_to": "https://siterecap.com/auth/callback"}
        assert kwargs["json"] == {"type": "signup", "email": "pat@example.com"}

    async def test_already_registered_is_not_an_error(self, gotrue):
        response = mock_http_response(status_code=400, json_body={"msg": "User already registered"})
        with patch("httpx.AsyncClient") as cls:
            mock_async_client(cls, response)
            await gotrue.resend_signup("pat@example.com", "https://siterecap.com/auth/callback")

    async def test_other_errors_raise(self, gotrue):
        response = mock_http_response(status_code=429, json_body={"msg": "rate limited"})
        with patch("httpx.AsyncClient") as cls:
            mock_async_client(cls, response)
            with pytest.raises(AuthError) as exc_info:
                await gotrue.resend_signup("pat@example.com", "https://x/auth/callback")
        assert exc_info.value.retryable is True


class TestGetUser:
    async def test_uses_access_token(self, gotrue):
        body = {"id": "u-1", "email": "pat@example.com"}
        with patch("httpx.AsyncClient") as cls:
            mock_client = mock_async_client(cls, mock_http_response(json_body=body))
            user = await gotrue.get_user("at-1")
        assert user.id == "u-1"
        assert mock_client.request.call_args.kwargs["headers"]["Authorization"] == "Bearer at-1"

    async def test_invalid_token(self, gotrue):
        response = mock_http_response(status_code=401, json_body={"msg": "invalid JWT"})
        with patch("httpx.AsyncClient") as cls:
            mock_async_client(cls, response)
            with pytest.raises(AuthError) as exc_info:
                await gotrue.get_user("forged")
        assert exc_info.value.status_code == 401


class TestMockAuthClient:
    async def test_issued_code_exchanges_once(self):
        mock = supabase_auth.MockAuthClient()
        code = mock.issue_code("pat@example.com")
        session = await mock.exchange_code_for_session(code)
        assert session.user.email == "pat@example.com"
        assert (await mock.get_user(session.access_token)).email == "pat@example.com"
        with pytest.raises(AuthError):
            await mock.exchange_code_for_session(code)

    async def test_unknown_token_hash(self):
        with pytest.raises(AuthError) as exc_info:
            await supabase_auth.MockAuthClient().verify_otp("nope", "signup")
        assert exc_info.value.status_code == 403

    async def test_same_email_same_user_id(self):
        mock = supabase_auth.MockAuthClient()
        a = await mock.exchange_code_for_session(mock.issue_code("pat@example.com"))
        b = await mock.verify_otp(mock.issue_token_hash("pat@example.com"), "email")
        assert a.user.id == b.user.id
        assert a.access_token != b.access_token


class TestClientSelection:
    def test_mock_when_unconfigured(self):
        assert isinstance(supabase_auth.get_auth_client(), supabase_auth.MockAuthClient)

    def test_real_when_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "next_public_supabase_url", SUPABASE)
        monkeypatch.setattr(settings, "next_public_supabase_anon_key", "anon")
        selected = supabase_auth.get_auth_client()
        assert isinstance(selected, supabase_auth.SupabaseAuthClient)
        assert selected.base_url == SUPABASE
