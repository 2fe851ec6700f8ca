"""On-disk cache of model responses for local development.

Keyed by a digest of the call's inputs; disabled unless LLM_CACHE_DIR is set.
Changing a prompt, photo or model yields a new key, so stale entries are
simply never read again.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import structlog

from siterecap.config import settings

logger = structlog.get_logger()


def cache_key(*parts: str | bytes) -> str:
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part if isinstance(part, bytes) else part.encode())
        digest.update(b"|")
    return digest.hexdigest()[:24]


def _cache_path(namespace: str, key: str) -> Path | None:
    if not settings.llm_cache_dir:
        return None
    cache_dir = Path(settings.llm_cache_dir) / namespace
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir / f"{key}.json"


def get_cached(namespace: str, key: str) -> Any | None:
    """Return the cached JSON value, or None on a miss or unreadable entry."""
    path = _cache_path(namespace, key)
    if path is None or not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("llm_cache_unreadable", namespace=namespace, error=str(exc))
        return None
    logger.info("llm_cache_hit", namespace=namespace)
    return data


def set_cached(namespace: str, key: str, value: Any) -> None:
    path = _cache_path(namespace, key)
    if path is None:
        return
    try:
        path.write_text(json.dumps(value))
    except (OSError, TypeError) as exc:
        logger.warning("llm_cache_write_failed", namespace=namespace, error=str(exc))
        return
    logger.info("llm_cache_saved", namespace=namespace)
