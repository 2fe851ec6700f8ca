"""Lazy singleton selecting the storage backend from settings."""

from __future__ import annotations

import structlog

from siterecap.config import settings
from siterecap.repositories.base import SiteStore

logger = structlog.get_logger()

_store: SiteStore | None = None


def _build_store() -> SiteStore:
    if settings.database_url:
        from siterecap.repositories.postgres import PostgresStore

        logger.info("store_selected", backend="postgres")
        return PostgresStore(settings.database_url)

    from siterecap.repositories.memory import InMemoryStore

    logger.info("store_selected", backend="memory")
    return InMemoryStore()


def get_store() -> SiteStore:
    global _store  # noqa: PLW0603
    if _store is None:
        _store = _build_store()
    return _store


def set_store(store: SiteStore | None) -> None:
    """Install a specific backend (tests) or clear the singleton."""
    global _store  # noqa: PLW0603
    _store = store


async def close_store() -> None:
    close = getattr(_store, "close", None)
    if close is not None:
        await close()
