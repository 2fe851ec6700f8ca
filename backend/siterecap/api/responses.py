"""Response helpers shared by the route modules."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from fastapi.responses import JSONResponse, RedirectResponse

from siterecap.config import settings
from siterecap.models.contracts import ErrorResponse


def error_response(
    status: int, message: str, *, details: str | None = None, **extra: Any
) -> JSONResponse:
    content = ErrorResponse(error=message, details=details).model_dump(exclude_none=True)
    content.update(extra)
    return JSONResponse(status_code=status, content=content)


def site_redirect(path: str, params: dict[str, Any] | None = None) -> RedirectResponse:
    """302 to ``path`` under the configured base URL, never the request host."""
    url = f"{settings.base_url}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=302)


def login_redirect(message: str | None = None, type: str = "error") -> RedirectResponse:
    if message is None:
        return site_redirect("/login")
    return site_redirect("/login", {"message": message, "type": type})
