"""Photo download helpers for the report pipeline.

Photos are fetched from their public storage URLs and checked for an image
content-type and a decodable payload before they are sent to the model.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from PIL import Image

from siterecap.utils.errors import UpstreamError, is_retryable_status, with_retry

if TYPE_CHECKING:
    import httpx

DOWNLOAD_TIMEOUT = 30.0

_FORMAT_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "HEIF": "image/heif",
    "MPO": "image/jpeg",
}


def sniff_image(data: bytes) -> str:
    """Decode ``data`` fully and return its MIME type.

    Raises ValueError if the bytes are not a readable image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()  # Force full decode to catch truncation
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ValueError(f"Not a readable image: {type(exc).__name__}") from exc
    return _FORMAT_MIME.get(img.format or "", "image/jpeg")


async def fetch_photo(client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
    """Fetch one photo with the given client. Returns (bytes, mime_type)."""
    return await with_retry(
        lambda: _fetch_once(client, url), event="photo_download_retrying", url=url[:100]
    )


async def _fetch_once(client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
    import httpx

    try:
        response = await client.get(url, timeout=DOWNLOAD_TIMEOUT)
    except httpx.TimeoutException as exc:
        raise UpstreamError(f"Timeout downloading photo: {url[:100]}", retryable=True) from exc
    except httpx.RequestError as exc:
        raise UpstreamError(
            f"Network error downloading photo: {url[:100]}: {type(exc).__name__}",
            retryable=True,
        ) from exc

    if response.status_code >= 400:
        raise UpstreamError(
            f"HTTP {response.status_code} downloading photo: {url[:100]}",
            status_code=response.status_code,
            retryable=is_retryable_status(response.status_code),
        )

    content_type = response.headers.get("content-type", "")
    if content_type and not content_type.startswith(("image/", "application/octet-stream")):
        raise UpstreamError(f"Expected image content-type, got: {content_type}")

    try:
        mime_type = sniff_image(response.content)
    except ValueError as exc:
        raise UpstreamError(f"Downloaded photo is corrupt: {url[:100]}") from exc
    return response.content, mime_type


async def download_photo(url: str) -> tuple[bytes, str]:
    import httpx

    async with httpx.AsyncClient(follow_redirects=True) as client:
        return await fetch_photo(client, url)
