"""Daily report generation for one project and shot date.

weather -> stage A (per photo, sequential) -> stage B -> Markdown -> upsert.

Stage implementations come from ``activities.mock_stubs`` when USE_MOCK_AI
is on and from the Gemini-backed modules otherwise; both expose the same
two coroutines.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from siterecap.activities.markdown import render_gc_markdown, render_owner_markdown
from siterecap.config import settings
from siterecap.models.contracts import (
    Photo,
    PhotoAnalysis,
    Project,
    Report,
    ReportData,
    Weather,
)
from siterecap.repositories.base import SiteStore, utcnow
from siterecap.utils.weather import get_current_weather

logger = structlog.get_logger()

MODEL_USED = "gemini"
DEMO_PHOTO_COUNT = 3

AnalyzeFn = Callable[[str, int], Awaitable[PhotoAnalysis]]
AggregateFn = Callable[[list[PhotoAnalysis], str, str], Awaitable[ReportData]]


class ProjectNotFoundError(Exception):
    pass


class NoPhotosError(Exception):
    pass


@dataclass
class DailyReportResult:
    report: Report
    owner_markdown: str
    gc_markdown: str
    photos_analyzed: int
    weather_included: bool
    demo: bool = False


def load_stages() -> tuple[AnalyzeFn, AggregateFn]:
    """Pick mock or Gemini stage implementations based on config."""
    if settings.use_mock_ai:
        from siterecap.activities.mock_stubs import analyze_photo, generate_report
    else:
        from siterecap.activities.aggregate_report import generate_report
        from siterecap.activities.analyze_photo import analyze_photo
    return analyze_photo, generate_report


async def _weather_for(project: Project) -> Weather | None:
    if project.lat is None or project.lon is None:
        return None
    return await get_current_weather(project.lat, project.lon)


def _raw_json(
    analyses: list[PhotoAnalysis],
    data: ReportData,
    weather: Weather | None,
    photos: list[dict[str, str]],
) -> dict[str, Any]:
    return {
        "stage_a": [a.model_dump(mode="json", by_alias=True) for a in analyses],
        "stage_b": data.model_dump(mode="json"),
        "weather": weather.model_dump(mode="json") if weather else None,
        "photos": photos,
        "generated_at": utcnow().isoformat(),
        "model_used": MODEL_USED,
    }


async def _analyze_all(analyze: AnalyzeFn, urls: list[str]) -> list[PhotoAnalysis]:
    analyses = []
    for index, url in enumerate(urls, start=1):
        analyses.append(await analyze(url, index))
    return analyses


async def generate_daily_report(store: SiteStore, project_id: str, date: str) -> DailyReportResult:
    """Run the full pipeline and persist the result.

    Raises ProjectNotFoundError / NoPhotosError; demo-mode substitution for
    a missing project is the caller's decision (see ``generate_demo_report``).
    """
    project = await store.get_project(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)

    photos: list[Photo] = await store.list_photos(project_id, date)
    if not photos:
        raise NoPhotosError(project_id)

    log = logger.bind(project_id=project_id, date=date)
    log.info("report_generation_started", photo_count=len(photos))

    analyze, aggregate = load_stages()
    weather = await _weather_for(project)
    analyses = await _analyze_all(analyze, [p.url for p in photos])
    data = await aggregate(analyses, project.name, date)

    owner_md = render_owner_markdown(data, weather, project.name, date)
    gc_md = render_gc_markdown(data, weather, project.name, date)
    raw = _raw_json(analyses, data, weather, [{"id": p.id, "url": p.url} for p in photos])

    report = await store.upsert_report(project_id, date, owner_md, gc_md, raw)
    await store.update_project(project_id, last_activity_at=utcnow())

    log.info(
        "report_generated",
        report_id=report.id,
        photos_analyzed=len(analyses),
        failed_photos=sum(1 for a in analyses if a.error),
        weather_included=weather is not None,
        fallback=data.error,
    )
    return DailyReportResult(
        report=report,
        owner_markdown=owner_md,
        gc_markdown=gc_md,
        photos_analyzed=len(analyses),
        weather_included=weather is not None,
    )


async def generate_demo_report(project_id: str, date: str) -> DailyReportResult:
    """Sample report for a project that doesn't exist; nothing is stored."""
    from siterecap.activities.mock_stubs import analyze_photo, generate_report

    name = "Demo Project"
    urls = [f"demo://photo/{i}" for i in range(1, DEMO_PHOTO_COUNT + 1)]
    analyses = await _analyze_all(analyze_photo, urls)
    data = await generate_report(analyses, name, date)
    owner_md = render_owner_markdown(data, None, name, date)
    gc_md = render_gc_markdown(data, None, name, date)
    demo_photos = [{"id": str(i), "url": u} for i, u in enumerate(urls, start=1)]
    now = utcnow()
    report = Report(
        id=f"demo-{uuid.uuid4()}",
        project_id=project_id,
        date=date,
        owner_md=owner_md,
        gc_md=gc_md,
        raw_json=_raw_json(analyses, data, None, demo_photos),
        created_at=now,
        updated_at=now,
    )
    logger.info("demo_report_generated", project_id=project_id, date=date)
    return DailyReportResult(
        report=report,
        owner_markdown=owner_md,
        gc_markdown=gc_md,
        photos_analyzed=len(analyses),
        weather_included=False,
        demo=True,
    )
