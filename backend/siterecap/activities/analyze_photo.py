"""Stage A: per-photo analysis with a Gemini vision model.

Each photo is analyzed on its own and the result is a ``PhotoAnalysis``.
This stage never raises. A photo that cannot be downloaded or analyzed
still yields an entry (flagged ``error``), so stage B always sees one
analysis per photo and the 1-based photo numbers stay aligned.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from siterecap.config import settings
from siterecap.models.contracts import (
    DelayingEvent,
    Delivery,
    EquipmentItem,
    Hazard,
    MaterialItem,
    ObservedTask,
    PhotoAnalysis,
    SafetyIssue,
)
from siterecap.utils.errors import UpstreamError
from siterecap.utils.gemini import generate_json, image_part
from siterecap.utils.http import download_photo
from siterecap.utils.llm_cache import cache_key, get_cached, set_cached

log = structlog.get_logger("analyze_photo")

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

DOWNLOAD_FAILED_CAPTION = "Analysis failed"
MODEL_FAILED_CAPTION = "Analysis temporarily unavailable"

_prompt_cache: str | None = None


def load_prompt() -> str:
    global _prompt_cache  # noqa: PLW0603
    if _prompt_cache is None:
        _prompt_cache = (PROMPTS_DIR / "analyze_photo.txt").read_text()
    return _prompt_cache


def build_contents(image_bytes: bytes, mime_type: str) -> list[Any]:
    return [load_prompt(), image_part(image_bytes, mime_type)]


def _items(data: dict[str, Any], key: str, model: type[BaseModel]) -> list[Any]:
    """Validate a list field item by item, dropping entries the model got wrong."""
    raw = data.get(key)
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        try:
            items.append(model.model_validate(entry))
        except ValidationError:
            log.warning("skipped_malformed_item", field=key, data=repr(entry)[:200])
    return items


def _clamp_confidence(data: dict[str, Any]) -> None:
    for task in data.get("tasks") or []:
        if isinstance(task, dict) and isinstance(task.get("confidence"), int | float):
            task["confidence"] = min(max(float(task["confidence"]), 0.0), 1.0)


def parse_analysis(data: Any, photo_index: int) -> PhotoAnalysis:
    """Convert the model's JSON into a PhotoAnalysis, tolerating partial output."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    _clamp_confidence(data)

    try:
        personnel = max(int(data.get("personnel_count") or 0), 0)
    except (TypeError, ValueError):
        personnel = 0

    objects = data.get("objects")
    return PhotoAnalysis(
        photo_index=photo_index,
        space=str(data.get("space") or ""),
        phase=str(data.get("phase") or ""),
        caption=str(data.get("caption") or ""),
        objects=[str(o) for o in objects] if isinstance(objects, list) else [],
        tasks=_items(data, "tasks", ObservedTask),
        hazards=_items(data, "hazards", Hazard),
        personnel_count=personnel,
        equipment=_items(data, "equipment", EquipmentItem),
        materials=_items(data, "materials", MaterialItem),
        deliveries=_items(data, "deliveries", Delivery),
        safety_issues=_items(data, "safety_issues", SafetyIssue),
        delaying_events=_items(data, "delaying_events", DelayingEvent),
    )


def fallback_analysis(photo_index: int, caption: str = MODEL_FAILED_CAPTION) -> PhotoAnalysis:
    return PhotoAnalysis(photo_index=photo_index, caption=caption, error=True)


async def analyze_image(image_bytes: bytes, mime_type: str, photo_index: int) -> PhotoAnalysis:
    """Analyze already-downloaded photo bytes."""
    key = cache_key(settings.gemini_model, load_prompt(), image_bytes)
    data = get_cached("stage_a", key)
    if data is None:
        try:
            data = await generate_json(build_contents(image_bytes, mime_type))
            analysis = parse_analysis(data, photo_index)
        except (UpstreamError, ValueError, TimeoutError) as exc:
            log.warning("photo_analysis_failed", photo_index=photo_index, error=str(exc))
            return fallback_analysis(photo_index)
        except Exception as exc:
            # SDK errors (google.genai.errors.APIError and transport errors) vary by version
            log.error(
                "photo_analysis_model_error",
                photo_index=photo_index,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return fallback_analysis(photo_index)
        set_cached("stage_a", key, data)
        return analysis

    try:
        return parse_analysis(data, photo_index)
    except ValueError:
        return fallback_analysis(photo_index)


async def analyze_photo(url: str, photo_index: int) -> PhotoAnalysis:
    """Download one photo and analyze it. Never raises."""
    try:
        image_bytes, mime_type = await download_photo(url)
    except UpstreamError as exc:
        log.warning("photo_download_failed", photo_index=photo_index, error=exc.message)
        return fallback_analysis(photo_index, DOWNLOAD_FAILED_CAPTION)

    analysis = await analyze_image(image_bytes, mime_type, photo_index)
    log.info(
        "photo_analyzed",
        photo_index=photo_index,
        space=analysis.space,
        tasks=len(analysis.tasks),
        error=analysis.error,
    )
    return analysis
