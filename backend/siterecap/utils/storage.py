"""Supabase Storage client through its S3-compatible endpoint.

Photos live in the ``photos`` bucket under
    photos/{project_id}/{timestamp}-{random}.{ext}
and are served from the bucket's public URL.
"""

from __future__ import annotations

import secrets
import time
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from siterecap.config import settings
from siterecap.utils.errors import StorageError

logger = structlog.get_logger()

# Bound on one blocking S3 call awaited from a route
STORAGE_TIMEOUT_SECONDS = 30.0

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heif": "heic",
}


def _build_client() -> Any:
    """Create an S3 client pointed at the project's storage endpoint."""
    return boto3.client(
        "s3",
        endpoint_url=f"{settings.next_public_supabase_url.rstrip('/')}/storage/v1/s3",
        aws_access_key_id=settings.supabase_storage_access_key_id,
        aws_secret_access_key=settings.supabase_storage_secret_access_key,
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            connect_timeout=5,
            read_timeout=10,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
        region_name=settings.supabase_storage_region,
    )


_client: Any = None


def _get_client() -> Any:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = _build_client()
    return _client


def reset_client() -> None:
    """Reset the singleton client (for testing)."""
    global _client  # noqa: PLW0603
    _client = None


def photo_key(project_id: str, content_type: str) -> str:
    """Storage path for a new upload, with the extension of the sniffed content type.

    The client's filename never reaches the key.
    """
    ext = _EXTENSIONS.get(content_type, "jpg")
    stamp = int(time.time() * 1000)
    return f"photos/{project_id}/{stamp}-{secrets.token_hex(4)}.{ext}"


def public_url(key: str) -> str:
    base = settings.next_public_supabase_url.rstrip("/") or settings.base_url
    return f"{base}/storage/v1/object/public/{settings.photos_bucket}/{key}"


def upload_object(key: str, data: bytes, content_type: str = "image/jpeg") -> str:
    """Upload bytes to the photos bucket. Returns the storage key."""
    client = _get_client()
    try:
        client.put_object(
            Bucket=settings.photos_bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
    except (ClientError, BotoCoreError) as e:
        logger.error("storage_upload_failed", key=key, error=str(e))
        raise StorageError(f"Upload failed: {e}") from e
    logger.info("storage_upload", key=key, size=len(data), content_type=content_type)
    return key


def delete_object(key: str) -> None:
    """Delete a single object. Missing objects are not an error."""
    client = _get_client()
    try:
        client.delete_object(Bucket=settings.photos_bucket, Key=key)
    except ClientError as e:
        if e.response["Error"]["Code"] in ("404", "NoSuchKey"):
            logger.info("storage_delete_missing", key=key)
            return
        logger.error("storage_delete_failed", key=key, error=str(e))
        raise StorageError(f"Delete failed: {e}") from e
    except BotoCoreError as e:
        logger.error("storage_delete_failed", key=key, error=str(e))
        raise StorageError(f"Delete failed: {e}") from e
    logger.info("storage_delete", key=key)
