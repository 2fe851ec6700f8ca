"""google-genai helpers shared by the report stages and the health checks."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import structlog
from google import genai
from google.genai import types

from siterecap.config import settings
from siterecap.utils.errors import UpstreamError

logger = structlog.get_logger()

GEMINI_TIMEOUT_SECONDS = 90

JSON_CONFIG = types.GenerateContentConfig(
    response_mime_type="application/json",
    temperature=0.2,
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

_client: genai.Client | None = None


def get_client() -> genai.Client:
    """Lazy Gemini client built from GEMINI_API_KEY."""
    global _client  # noqa: PLW0603
    if _client is None:
        if not settings.gemini_api_key:
            raise UpstreamError("GEMINI_API_KEY is not configured")
        _client = genai.Client(api_key=settings.gemini_api_key)
    return _client


def reset_client() -> None:
    global _client  # noqa: PLW0603
    _client = None


def extract_text(response: types.GenerateContentResponse) -> str:
    """Extract all text parts from a Gemini response."""
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return ""
    return "\n".join(part.text for part in content.parts if part.text is not None)


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_text(text: str) -> Any:
    """Parse model output as JSON, tolerating a Markdown code fence around it."""
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        # Some replies add prose around the object; keep the outermost braces.
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(cleaned[start : end + 1])


async def generate_text(
    contents: list[Any],
    config: types.GenerateContentConfig | None = None,
    timeout: float = GEMINI_TIMEOUT_SECONDS,
) -> str:
    """Run one blocking generate_content call off the event loop."""
    client = get_client()
    async with asyncio.timeout(timeout):
        response = await asyncio.to_thread(
            client.models.generate_content,
            model=settings.gemini_model,
            contents=contents,
            config=config,
        )
    return extract_text(response)


async def generate_json(contents: list[Any], timeout: float = GEMINI_TIMEOUT_SECONDS) -> Any:
    text = await generate_text(contents, JSON_CONFIG, timeout)
    if not text:
        raise ValueError("Gemini returned an empty response")
    return parse_json_text(text)


def image_part(data: bytes, mime_type: str) -> types.Part:
    return types.Part.from_bytes(data=data, mime_type=mime_type)


async def ping() -> str:
    """Minimal round trip used by /api/gemini-health."""
    text = await generate_text(
        ["Respond with exactly: 'Gemini API is working correctly'"], timeout=30
    )
    return text.strip()
