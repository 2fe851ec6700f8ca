"""Supabase Auth (GoTrue) REST client.

Only the calls the confirmation flow needs: PKCE code exchange, OTP
verification by token hash, signup-confirmation resend, and user lookup
for an access token. A mock client that accepts only codes it issued
stands in when Supabase is not configured.
"""

from __future__ import annotations

import secrets
import uuid
from typing import Any, Protocol

import httpx
import structlog

from siterecap.config import settings
from siterecap.models.contracts import AuthSession, AuthUser
from siterecap.utils.errors import AuthError, is_retryable_status, with_retry

logger = structlog.get_logger()

ALREADY_REGISTERED = "User already registered"


class AuthClient(Protocol):
    async def exchange_code_for_session(self, code: str) -> AuthSession | None: ...

    async def verify_otp(self, token_hash: str, type: str) -> AuthSession | None: ...

    async def resend_signup(self, email: str, redirect_to: str) -> None: ...

    async def get_user(self, access_token: str) -> AuthUser: ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


def _session_from_payload(payload: dict[str, Any]) -> AuthSession | None:
    """Build a session from a GoTrue token response; None if it carries no session."""
    if not payload.get("access_token") or not payload.get("refresh_token"):
        return None
    user_data = payload.get("user")
    user = None
    if isinstance(user_data, dict) and user_data.get("id"):
        user = AuthUser(id=str(user_data["id"]), email=user_data.get("email"))
    return AuthSession(
        access_token=payload["access_token"],
        refresh_token=payload["refresh_token"],
        expires_in=int(payload.get("expires_in") or 3600),
        user=user,
    )


class SupabaseAuthClient:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout_seconds = timeout_seconds

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {bearer or self.anon_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        bearer: str | None = None,
    ) -> dict[str, Any]:
        return await with_retry(
            lambda: self._request_once(method, path, json=json, params=params, bearer=bearer),
            event="auth_request_retrying",
            path=path,
        )

    async def _request_once(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None,
        params: dict[str, str] | None,
        bearer: str | None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(
                    method, url, json=json, params=params, headers=self._headers(bearer)
                )
        except httpx.TimeoutException as exc:
            raise AuthError(f"Auth provider timed out on {path}", retryable=True) from exc
        except httpx.RequestError as exc:
            raise AuthError(
                f"Auth provider unreachable on {path}: {type(exc).__name__}", retryable=True
            ) from exc

        if response.status_code >= 400:
            raise AuthError(
                _error_message(response),
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
            )
        if not response.content:
            return {}
        body = response.json()
        return body if isinstance(body, dict) else {}

    async def exchange_code_for_session(self, code: str) -> AuthSession | None:
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": ""},
        )
        return _session_from_payload(payload)

    async def verify_otp(self, token_hash: str, type: str) -> AuthSession | None:
        payload = await self._request(
            "POST", "/verify", json={"type": type, "token_hash": token_hash}
        )
        return _session_from_payload(payload)

    async def resend_signup(self, email: str, redirect_to: str) -> None:
        try:
            await self._request(
                "POST",
                "/resend",
                params={"redirect_to": redirect_to},
                json={"type": "signup", "email": email},
            )
        except AuthError as exc:
            if exc.message != ALREADY_REGISTERED:
                raise

    async def get_user(self, access_token: str) -> AuthUser:
        payload = await self._request("GET", "/user", bearer=access_token)
        if not payload.get("id"):
            raise AuthError("No user for access token", status_code=401)
        return AuthUser(id=str(payload["id"]), email=payload.get("email"))


class MockAuthClient:
    """In-process auth provider for development and tests.

    ``issue_code`` and ``issue_token_hash`` play the part of the
    confirmation email; anything not issued here is rejected.
    """

    def __init__(self) -> None:
        self._codes: dict[str, str] = {}
        self._token_hashes: dict[str, str] = {}
        self._sessions: dict[str, AuthUser] = {}
        self.resent: list[tuple[str, str]] = []

    def issue_code(self, email: str) -> str:
        code = secrets.token_urlsafe(16)
        self._codes[code] = email
        return code

    def issue_token_hash(self, email: str) -> str:
        token_hash = secrets.token_hex(16)
        self._token_hashes[token_hash] = email
        return token_hash

    def _new_session(self, email: str) -> AuthSession:
        user = AuthUser(id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email}")), email=email)
        session = AuthSession(
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
            expires_in=3600,
            user=user,
        )
        self._sessions[session.access_token] = user
        return session

    async def exchange_code_for_session(self, code: str) -> AuthSession | None:
        email = self._codes.pop(code, None)
        if email is None:
            raise AuthError("invalid flow state, no valid flow state found", status_code=404)
        return self._new_session(email)

    async def verify_otp(self, token_hash: str, type: str) -> AuthSession | None:
        email = self._token_hashes.pop(token_hash, None)
        if email is None:
            raise AuthError("Email link is invalid or has expired", status_code=403)
        return self._new_session(email)

    async def resend_signup(self, email: str, redirect_to: str) -> None:
        self.resent.append((email, redirect_to))
        logger.info("mock_auth_resend", redirect_to=redirect_to)

    async def get_user(self, access_token: str) -> AuthUser:
        user = self._sessions.get(access_token)
        if user is None:
            raise AuthError("invalid JWT", status_code=401)
        return user


_client: AuthClient | None = None


def _build_client() -> AuthClient:
    if settings.supabase_configured:
        return SupabaseAuthClient(
            settings.next_public_supabase_url,
            settings.next_public_supabase_anon_key,
            timeout_seconds=settings.http_timeout_seconds,
        )
    logger.warning("supabase_not_configured_using_mock_auth")
    return MockAuthClient()


def get_auth_client() -> AuthClient:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = _build_client()
    return _client


def reset_client() -> None:
    global _client  # noqa: PLW0603
    _client = None
