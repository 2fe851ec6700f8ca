"""Stage B: merge the per-photo analyses into one structured daily report."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from siterecap.config import settings
from siterecap.models.contracts import ObservedTask, PhotoAnalysis, ReportData, ReportSection
from siterecap.utils.errors import UpstreamError
from siterecap.utils.gemini import generate_json
from siterecap.utils.llm_cache import cache_key, get_cached, set_cached

log = structlog.get_logger("aggregate_report")

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

FALLBACK_SUMMARY = "Daily progress documented"
FALLBACK_PLAN = ["Continue work as planned"]

_prompt_cache: str | None = None


def load_prompt() -> str:
    global _prompt_cache  # noqa: PLW0603
    if _prompt_cache is None:
        _prompt_cache = (PROMPTS_DIR / "aggregate_report.txt").read_text()
    return _prompt_cache


def build_prompt(analyses: list[PhotoAnalysis], project_name: str, date: str) -> str:
    payload = json.dumps(
        [a.model_dump(by_alias=True) for a in analyses], indent=2, ensure_ascii=False
    )
    # str.format would trip over the JSON braces in the template
    return (
        load_prompt()
        .replace("{project_name}", project_name or "the project")
        .replace("{date}", date)
        .replace("{photo_analyses}", payload)
    )


def placeholder_section() -> ReportSection:
    return ReportSection(
        space="Unspecified",
        phase="",
        tasks=[ObservedTask(name="Progress documented", confidence=0.5, photos=[])],
        hazards=[],
    )


def parse_report(data: Any) -> ReportData:
    """Validate the model's JSON; a report always keeps at least one section."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    sections = data.get("sections")
    if isinstance(sections, list):
        data["sections"] = [s for s in sections if isinstance(s, dict) and s.get("space")]
        for section in data["sections"]:
            for task in section.get("tasks") or []:
                # "boost confidence" in the prompt occasionally overshoots 1.0
                if isinstance(task, dict) and isinstance(task.get("confidence"), int | float):
                    task["confidence"] = min(max(float(task["confidence"]), 0.0), 1.0)
    try:
        report = ReportData.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Report JSON failed validation: {exc.error_count()} errors") from exc
    if not report.sections:
        report.sections = [placeholder_section()]
    return report


def fallback_report() -> ReportData:
    return ReportData(
        site_summary=FALLBACK_SUMMARY,
        sections=[placeholder_section()],
        changes_since_yesterday=[],
        next_day_plan=list(FALLBACK_PLAN),
        error=True,
    )


async def generate_report(
    analyses: list[PhotoAnalysis], project_name: str, date: str
) -> ReportData:
    """Aggregate stage A results with Gemini. Never raises; falls back instead."""
    prompt = build_prompt(analyses, project_name, date)
    key = cache_key(settings.gemini_model, prompt)
    data = get_cached("stage_b", key)
    try:
        if data is None:
            data = await generate_json([prompt])
            report = parse_report(data)
            set_cached("stage_b", key, data)
        else:
            report = parse_report(data)
    except (UpstreamError, ValueError, TimeoutError) as exc:
        log.warning("report_aggregation_failed", error=str(exc))
        return fallback_report()
    except Exception as exc:
        log.error(
            "report_aggregation_model_error", error_type=type(exc).__name__, error=str(exc)
        )
        return fallback_report()

    log.info("report_aggregated", sections=len(report.sections), photos=len(analyses))
    return report
