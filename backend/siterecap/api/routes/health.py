"""Health check endpoint with service connectivity checks.

Each check has a short timeout and reports a status string; a failing
service never fails the request, so the endpoint always returns 200.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog
from fastapi import APIRouter

from siterecap.config import APP_VERSION, settings
from siterecap.repositories.store import get_store

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

_CHECK_TIMEOUT = 3.0  # seconds per service check


async def _check_database() -> str:
    """Ping the configured store; the in-memory store reports itself as such."""
    if not settings.database_url:
        return "memory"
    try:
        ok = await asyncio.wait_for(get_store().ping(), timeout=_CHECK_TIMEOUT)
        return "connected" if ok else "disconnected"
    except Exception as exc:
        logger.debug("health_database_failed", error=str(exc))
        return "disconnected"


async def _check_auth() -> str:
    """Hit the GoTrue health endpoint of the configured Supabase project."""
    if not settings.supabase_configured:
        return "mock"
    url = f"{settings.next_public_supabase_url.rstrip('/')}/auth/v1/health"
    try:
        async with httpx.AsyncClient(timeout=_CHECK_TIMEOUT) as client:
            response = await client.get(
                url, headers={"apikey": settings.next_public_supabase_anon_key}
            )
        return "connected" if response.status_code < 400 else "disconnected"
    except httpx.HTTPError as exc:
        logger.debug("health_auth_failed", error=str(exc))
        return "disconnected"


async def _check_storage() -> str:
    """Check photo bucket accessibility via head_bucket."""
    if not settings.storage_configured:
        return "not_configured"
    from siterecap.utils.storage import _get_client

    def _head_bucket() -> None:
        _get_client().head_bucket(Bucket=settings.photos_bucket)

    try:
        await asyncio.wait_for(asyncio.to_thread(_head_bucket), timeout=_CHECK_TIMEOUT)
        return "connected"
    except Exception as exc:
        logger.debug("health_storage_failed", error=str(exc))
        return "disconnected"


def _check_email() -> str:
    return "configured" if settings.resend_api_key else "mock"


@router.get("/health")
async def health_check() -> dict:
    """Confirms the API process is alive and reports dependency status."""
    database, auth, storage = await asyncio.gather(
        _check_database(),
        _check_auth(),
        _check_storage(),
    )

    return {
        "status": "ok",
        "version": APP_VERSION,
        "environment": settings.environment,
        "database": database,
        "auth": auth,
        "storage": storage,
        "email": _check_email(),
        "demo_mode": settings.demo_mode,
    }
