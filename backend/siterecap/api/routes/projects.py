"""Project lifecycle endpoints.

Projects are ``active`` until closed (by hand or by the inactivity sweep)
and then ``completed``. Each organization's plan caps how many projects
may be active at once; creating or reopening past the cap answers 403.

Demo mode: when DEMO_MODE is on and a referenced project does not exist,
the per-project endpoints answer with a stand-in project flagged
``demo: true`` instead of 404, so the web app can be exercised without a
seeded database.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from siterecap.api.responses import error_response
from siterecap.config import settings
from siterecap.models.contracts import (
    DEFAULT_PLAN,
    AutoCloseRequest,
    AutoCloseResponse,
    CreateProjectRequest,
    ErrorResponse,
    PlanName,
    Project,
    ProjectCountResponse,
    ProjectIdRequest,
    ProjectListResponse,
    ProjectResponse,
    ProjectStatus,
    ProjectStatusResponse,
    plan_limit,
)
from siterecap.repositories.base import SiteStore, utcnow
from siterecap.repositories.store import get_store

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["projects"])

DEMO_PROJECT_NAME = "Demo Project"

_PROJECT_ID_REQUIRED = "Project ID required"
_NOT_FOUND = "Project not found"

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def _demo_project(project_id: str, status: ProjectStatus = "active") -> Project:
    now = utcnow()
    return Project(
        id=project_id,
        name=DEMO_PROJECT_NAME,
        status=status,
        last_activity_at=now,
        closed_at=now if status == "completed" else None,
        created_at=now,
        updated_at=now,
    )


def _missing(project_id: str, status: ProjectStatus = "active") -> ProjectResponse | JSONResponse:
    if settings.demo_mode:
        logger.info("project_demo_fallback", project_id=project_id)
        return ProjectResponse(project=_demo_project(project_id, status), demo=True)
    return error_response(404, _NOT_FOUND)


def days_since(moment: datetime | None, now: datetime | None = None) -> int:
    if moment is None:
        return 0
    return max(((now or utcnow()) - moment).days, 0)


async def _plan_for(store: SiteStore, org_id: str | None) -> PlanName:
    if not org_id:
        return DEFAULT_PLAN
    org = await store.get_organization(org_id)
    return org.plan if org else DEFAULT_PLAN


async def _limit_exceeded(store: SiteStore, org_id: str | None) -> JSONResponse | None:
    """403 payload when the org already has as many active projects as its plan allows."""
    plan = await _plan_for(store, org_id)
    limit = plan_limit(plan)
    active = await store.list_projects(org_id=org_id, status="active")
    if len(active) < limit:
        return None
    logger.info("project_limit_reached", org_id=org_id, plan=plan, limit=limit)
    return error_response(
        403,
        f"Active project limit reached for the {plan} plan. "
        "Close a project or upgrade to add more.",
        limit=limit,
        active_count=len(active),
        plan=plan,
    )


@router.post(
    "/create-project",
    response_model=ProjectResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_project(body: CreateProjectRequest):
    if not body.name or not body.name.strip():
        return error_response(400, "Project name required")

    org_id = body.org_id or None
    store = get_store()
    if org_id and await store.get_organization(org_id) is None:
        return error_response(404, "Organization not found")
    if err := await _limit_exceeded(store, org_id):
        return err

    project = await store.create_project(
        name=body.name.strip(),
        org_id=org_id,
        city=body.city,
        state=body.state,
        postal_code=body.postal_code,
    )
    logger.info("project_created", project_id=project.id, org_id=project.org_id)
    return ProjectResponse(project=project)


@router.post("/close-project", response_model=ProjectResponse, responses=_ERRORS)
async def close_project(body: ProjectIdRequest):
    """Mark a project completed. Closing a completed project is a no-op."""
    if not body.project_id:
        return error_response(400, _PROJECT_ID_REQUIRED)

    store = get_store()
    project = await store.get_project(body.project_id)
    if project is None:
        return _missing(body.project_id, "completed")
    if project.status == "completed":
        return ProjectResponse(project=project)

    closed = await store.update_project(project.id, status="completed", closed_at=utcnow())
    logger.info("project_closed", project_id=project.id, reason="manual")
    return ProjectResponse(project=closed)


@router.post(
    "/reopen-project",
    response_model=ProjectResponse,
    responses={**_ERRORS, 403: {"model": ErrorResponse}},
)
async def reopen_project(body: ProjectIdRequest):
    """Reactivate a completed project, subject to the plan's active limit."""
    if not body.project_id:
        return error_response(400, _PROJECT_ID_REQUIRED)

    store = get_store()
    project = await store.get_project(body.project_id)
    if project is None:
        return _missing(body.project_id)
    if project.status == "active":
        touched = await store.update_project(project.id, last_activity_at=utcnow())
        return ProjectResponse(project=touched)

    if err := await _limit_exceeded(store, project.org_id):
        return err

    reopened = await store.update_project(
        project.id, status="active", closed_at=None, last_activity_at=utcnow()
    )
    logger.info("project_reopened", project_id=project.id)
    return ProjectResponse(project=reopened)


@router.post("/update-project-activity", response_model=ProjectResponse, responses=_ERRORS)
async def update_project_activity(body: ProjectIdRequest):
    if not body.project_id:
        return error_response(400, _PROJECT_ID_REQUIRED)

    store = get_store()
    project = await store.update_project(body.project_id, last_activity_at=utcnow())
    if project is None:
        return _missing(body.project_id)
    return ProjectResponse(project=project)


@router.post("/auto-close-projects", response_model=AutoCloseResponse)
async def auto_close_projects(body: AutoCloseRequest):
    """Close every active project idle for at least ``days_inactive`` days."""
    days = body.days_inactive if body.days_inactive is not None else settings.auto_close_days
    now = utcnow()
    cutoff = now - timedelta(days=days)

    store = get_store()
    closed_ids = []
    for project in await store.list_projects(org_id=body.org_id, status="active"):
        last_seen = project.last_activity_at or project.created_at
        if last_seen > cutoff:
            continue
        await store.update_project(project.id, status="completed", closed_at=now)
        closed_ids.append(project.id)
        logger.info(
            "project_closed",
            project_id=project.id,
            reason="inactive",
            days_inactive=days_since(last_seen, now),
        )

    logger.info("auto_close_completed", closed_count=len(closed_ids), days_inactive=days)
    return AutoCloseResponse(
        closed_count=len(closed_ids), closed_project_ids=closed_ids, days_inactive=days
    )


@router.get("/project-count", response_model=ProjectCountResponse)
async def project_count(org_id: str | None = None):
    store = get_store()
    projects = await store.list_projects(org_id=org_id)
    active = sum(1 for p in projects if p.status == "active")
    plan = await _plan_for(store, org_id)
    limit = plan_limit(plan)
    return ProjectCountResponse(
        active_count=active,
        completed_count=len(projects) - active,
        total_count=len(projects),
        plan=plan,
        limit=limit,
        remaining=max(limit - active, 0),
        can_create=active < limit,
    )


@router.get("/project-status/{project_id}", response_model=ProjectStatusResponse, responses=_ERRORS)
async def project_status(project_id: str):
    project = await get_store().get_project(project_id)
    if project is None:
        if not settings.demo_mode:
            return error_response(404, _NOT_FOUND)
        demo = _demo_project(project_id)
        return ProjectStatusResponse(
            project_id=project_id,
            status=demo.status,
            last_activity_at=demo.last_activity_at,
            days_inactive=0,
            demo=True,
        )

    return ProjectStatusResponse(
        project_id=project.id,
        status=project.status,
        last_activity_at=project.last_activity_at,
        closed_at=project.closed_at,
        days_inactive=days_since(project.last_activity_at or project.created_at),
    )


@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(org_id: str | None = None):
    """All projects, newest first."""
    return ProjectListResponse(projects=await get_store().list_projects(org_id=org_id))


@router.get("/projects/active", response_model=ProjectListResponse)
async def list_active_projects(org_id: str | None = None):
    return ProjectListResponse(
        projects=await get_store().list_projects(org_id=org_id, status="active")
    )


@router.get("/projects/completed", response_model=ProjectListResponse)
async def list_completed_projects(org_id: str | None = None):
    return ProjectListResponse(
        projects=await get_store().list_projects(org_id=org_id, status="completed")
    )
