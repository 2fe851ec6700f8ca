import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from siterecap.api.routes import auth, diagnostics, health, projects, reports
from siterecap.config import APP_VERSION, settings
from siterecap.logging import configure_logging
from siterecap.repositories.store import close_store

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "app_starting",
        environment=settings.environment,
        base_url=settings.base_url,
        demo_mode=settings.demo_mode,
        use_mock_ai=settings.use_mock_ai,
        database_configured=bool(settings.database_url),
        supabase_configured=settings.supabase_configured,
        resend_configured=bool(settings.resend_api_key),
    )
    yield
    await close_store()


app = FastAPI(
    title="SiteRecap API",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)


def _with_request_id(request: Request, response: JSONResponse) -> JSONResponse:
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a unique request ID to every request for log correlation.

    Sets the ID in structlog context vars (appears in all log entries for the
    request) and returns it in the X-Request-ID response header.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report malformed bodies as 400 {"error": ...}.

    FastAPI's default 422 returns {"detail": [...]}; the web client expects
    the same single-string error shape every other failure uses.
    """
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _with_request_id(
        request,
        JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": "; ".join(messages)},
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return _with_request_id(
        request,
        JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return {"error": ...} JSON instead of a bare 500 for unhandled exceptions."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _with_request_id(
        request,
        JSONResponse(status_code=500, content={"error": "Internal server error"}),
    )


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(diagnostics.router)
app.include_router(projects.router)
app.include_router(reports.router)
