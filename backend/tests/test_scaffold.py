"""Tests verifying the app scaffold: health, error shapes, request IDs, diagnostics."""

from unittest.mock import AsyncMock, patch

from httpx import ASGITransport, AsyncClient

from siterecap.config import settings
from siterecap.main import app
from siterecap.utils.errors import EmailSendError


class TestHealthEndpoint:
    """Verify the health endpoint returns the expected shape."""

    async def test_health_returns_200(self, client):
        """Health endpoint returns 200 with status, version, environment and service fields."""
        resp = await client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"] == "0.1.0"
        assert body["environment"] == "development"
        assert body["demo_mode"] is True

    async def test_local_services_report_mocks(self, client):
        """Without provider settings every service reports its local stand-in."""
        body = (await client.get("/health")).json()
        assert body["database"] == "memory"
        assert body["auth"] == "mock"
        assert body["storage"] == "not_configured"
        assert body["email"] == "mock"

    async def test_health_all_connected(self, client):
        with (
            patch(
                "siterecap.api.routes.health._check_database",
                new_callable=AsyncMock,
                return_value="connected",
            ),
            patch(
                "siterecap.api.routes.health._check_auth",
                new_callable=AsyncMock,
                return_value="connected",
            ),
            patch(
                "siterecap.api.routes.health._check_storage",
                new_callable=AsyncMock,
                return_value="connected",
            ),
        ):
            resp = await client.get("/health")
        body = resp.json()
        assert (body["database"], body["auth"], body["storage"]) == ("connected",) * 3

    async def test_unreachable_database_still_200(self, client, monkeypatch):
        """A failing check degrades the field, never the response."""
        monkeypatch.setattr(settings, "database_url", "postgresql://nowhere/db")
        with patch("siterecap.api.routes.health.get_store") as get_store:
            get_store.return_value.ping = AsyncMock(side_effect=OSError("refused"))
            resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["database"] == "disconnected"

    async def test_email_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_live")
        assert (await client.get("/health")).json()["email"] == "configured"


class TestErrorShapes:
    async def test_unknown_route_is_json_404(self, client):
        resp = await client.get("/api/does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not found"}

    async def test_wrong_method_keeps_status(self, client):
        resp = await client.get("/api/create-project")
        assert resp.status_code == 405
        assert "error" in resp.json()

    async def test_validation_error_is_400(self, client):
        resp = await client.post("/api/create-project", json={"name": ["not", "a", "string"]})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Invalid request body"
        assert "name" in body["details"]

    async def test_unhandled_exception_is_json_500(self):
        """Unexpected errors are logged and answered with the error shape."""
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        with patch(
            "siterecap.api.routes.projects.get_store", side_effect=RuntimeError("db exploded")
        ):
            async with AsyncClient(transport=transport, base_url="http://testserver") as c:
                resp = await c.get("/api/projects", headers={"X-Request-ID": "req-500"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}
        assert resp.headers["X-Request-ID"] == "req-500"


class TestRequestId:
    async def test_generated_when_absent(self, client):
        resp = await client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 36

    async def test_echoed_when_present(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    async def test_present_on_error_responses(self, client):
        resp = await client.get("/nope", headers={"X-Request-ID": "abc-404"})
        assert resp.headers["X-Request-ID"] == "abc-404"


class TestDebugUrls:
    async def test_reports_configuration(self, client):
        resp = await client.get("/api/debug-urls")
        assert resp.status_code == 200
        body = resp.json()
        assert body["environment_variables"]["NEXT_PUBLIC_BASE_URL"] == "https://siterecap.com"
        assert body["environment_variables"]["NEXT_PUBLIC_SITE_URL"] is None
        assert body["computed_base_url"] == "https://siterecap.com"
        assert body["auth_callback_url"] == "https://siterecap.com/auth/callback"
        assert body["request_info"]["host"] == "testserver"
        assert body["request_info"]["pathname"] == "/api/debug-urls"

    async def test_base_url_fallback_chain(self, client, monkeypatch):
        monkeypatch.setattr(settings, "next_public_base_url", "")
        monkeypatch.setattr(settings, "next_public_site_url", "https://www.siterecap.com/")
        body = (await client.get("/api/debug-urls")).json()
        assert body["computed_base_url"] == "https://www.siterecap.com"

    async def test_default_base_url(self, client, monkeypatch):
        monkeypatch.setattr(settings, "next_public_base_url", "")
        body = (await client.get("/api/debug-urls")).json()
        assert body["computed_base_url"] == "https://siterecap.com"


class TestTestEmail:
    async def test_get_reports_setup(self, client):
        resp = await client.get("/api/test-email")
        assert resp.json() == {
            "message": "Email test endpoint",
            "resend_api_key_present": False,
            "email_from": settings.email_from,
            "base_url": "https://siterecap.com",
        }

    async def test_post_sends_mail(self, client, outbox):
        resp = await client.post("/api/test-email", json={"email": "ops@example.com"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Test email sent successfully"
        assert body["messageId"] == outbox[-1][0]
        assert outbox[-1][1].sender == settings.email_from

    async def test_post_requires_email(self, client):
        resp = await client.post("/api/test-email", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Email is required"}

    async def test_post_provider_failure(self, client):
        with patch(
            "siterecap.utils.mailer.MockMailer.send",
            new_callable=AsyncMock,
            side_effect=EmailSendError("invalid api key", status_code=401),
        ):
            resp = await client.post("/api/test-email", json={"email": "ops@example.com"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Email send failed", "details": "invalid api key"}
