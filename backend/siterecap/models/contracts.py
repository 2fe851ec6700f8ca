"""SiteRecap contract models.

Request bodies keep every field optional: the public contract answers a
missing field with 400 and a readable ``error`` string, so presence checks
happen in the route handlers rather than in validation.

JSON field names follow the web frontend (``confirmationUrl``,
``messageId``, ``photoIndex``); Python attribute names stay snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PlanName = Literal["starter", "pro", "business"]
ProjectStatus = Literal["active", "completed"]

PLAN_LIMITS: dict[str, int] = {"starter": 2, "pro": 10, "business": 25}
DEFAULT_PLAN: PlanName = "starter"


def plan_limit(plan: str | None) -> int:
    """Maximum number of active projects for a plan (unknown plans get starter)."""
    return PLAN_LIMITS.get(plan or DEFAULT_PLAN, PLAN_LIMITS[DEFAULT_PLAN])


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# === Errors ===


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


# === Email confirmation ===


class SendConfirmationRequest(_CamelModel):
    email: str | None = None
    confirmation_url: str | None = Field(default=None, alias="confirmationUrl")


class EmailRequest(BaseModel):
    email: str | None = None


class EmailSentResponse(_CamelModel):
    success: bool = True
    message_id: str = Field(alias="messageId")
    message: str | None = None


class OutgoingEmail(BaseModel):
    """A rendered mail ready to hand to the email provider."""

    sender: str
    to: list[str]
    subject: str
    html: str


# === Auth ===


class AuthUser(BaseModel):
    id: str
    email: str | None = None


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int = 3600
    user: AuthUser | None = None


class SessionRequest(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None


class SessionResponse(BaseModel):
    success: bool = True
    user: AuthUser


# === Organizations & projects ===


class Organization(BaseModel):
    id: str
    name: str = ""
    plan: PlanName = DEFAULT_PLAN


class Project(BaseModel):
    id: str
    name: str
    org_id: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    lat: float | None = None
    lon: float | None = None
    status: ProjectStatus = "active"
    last_activity_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class CreateProjectRequest(BaseModel):
    name: str | None = None
    org_id: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None


class ProjectIdRequest(BaseModel):
    project_id: str | None = None


class AutoCloseRequest(BaseModel):
    org_id: str | None = None
    days_inactive: int | None = Field(default=None, ge=0)


class ProjectResponse(BaseModel):
    success: bool = True
    project: Project
    demo: bool = False


class ProjectListResponse(BaseModel):
    projects: list[Project] = []


class ProjectCountResponse(BaseModel):
    active_count: int
    completed_count: int
    total_count: int
    plan: PlanName
    limit: int
    remaining: int
    can_create: bool


class ProjectStatusResponse(BaseModel):
    project_id: str
    status: ProjectStatus
    last_activity_at: datetime | None = None
    closed_at: datetime | None = None
    days_inactive: int
    demo: bool = False


class AutoCloseResponse(BaseModel):
    success: bool = True
    closed_count: int
    closed_project_ids: list[str] = []
    days_inactive: int


# === Photos & location ===


class Photo(BaseModel):
    id: str
    project_id: str
    shot_date: str
    url: str
    storage_path: str | None = None
    created_at: datetime


class DeletePhotoRequest(BaseModel):
    photo_id: str | None = None


class GeocodeRequest(BaseModel):
    project_id: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None


class Coordinates(BaseModel):
    lat: float
    lon: float
    city: str | None = None
    state: str | None = None
    country: str | None = None


class Weather(BaseModel):
    temperature: int
    description: str
    code: int | None = None


# === Stage A: per-photo analysis ===


class ObservedTask(BaseModel):
    name: str
    confidence: float = Field(default=0.5, ge=0, le=1)
    photos: list[int] = []


class Hazard(BaseModel):
    type: str
    severity: str = "low"
    photo: int | None = None


class EquipmentItem(BaseModel):
    name: str
    category: str = ""
    photos: list[int] = []


class MaterialItem(BaseModel):
    name: str
    status: str = ""
    quantity: str | None = None
    photos: list[int] = []


class Delivery(BaseModel):
    type: str
    status: str = ""
    time: str | None = None
    photos: list[int] = []


class SafetyIssue(BaseModel):
    issue: str
    severity: str = "low"
    ppe_compliance: str | None = None
    photos: list[int] = []


class DelayingEvent(BaseModel):
    event: str
    impact: str = "low"
    duration: str | None = None


class PhotoAnalysis(_CamelModel):
    photo_index: int = Field(default=0, alias="photoIndex")
    space: str = ""
    phase: str = ""
    caption: str = ""
    objects: list[str] = []
    tasks: list[ObservedTask] = []
    hazards: list[Hazard] = []
    personnel_count: int = 0
    equipment: list[EquipmentItem] = []
    materials: list[MaterialItem] = []
    deliveries: list[Delivery] = []
    safety_issues: list[SafetyIssue] = []
    delaying_events: list[DelayingEvent] = []
    error: bool = False


# === Stage B: aggregate report ===


class ReportSection(BaseModel):
    space: str
    phase: str = ""
    tasks: list[ObservedTask] = []
    hazards: list[Hazard] = []


class PersonnelSummary(BaseModel):
    total_count: int = 0
    notes: str = ""


class SafetySummary(BaseModel):
    issues: list[SafetyIssue] = []
    compliance: str = ""


class ReportData(BaseModel):
    site_summary: str = ""
    sections: list[ReportSection] = []
    personnel_summary: PersonnelSummary | None = None
    equipment_summary: list[EquipmentItem] = []
    materials_summary: list[MaterialItem] = []
    deliveries_summary: list[Delivery] = []
    safety_summary: SafetySummary | None = None
    delays_summary: list[DelayingEvent] = []
    changes_since_yesterday: list[Any] = []
    next_day_plan: list[str] = []
    error: bool = False


class Report(BaseModel):
    id: str
    project_id: str
    date: str
    owner_md: str
    gc_md: str
    raw_json: dict[str, Any] = {}
    status: str = "generated"
    created_at: datetime
    updated_at: datetime | None = None


class GenerateReportRequest(BaseModel):
    project_id: str | None = None
    date: str | None = None


class ReportDebug(BaseModel):
    photos_analyzed: int
    weather_included: bool
    model_used: str = "gemini"
    demo: bool = False


class GenerateReportResponse(BaseModel):
    success: bool = True
    report: Report
    owner_markdown: str
    gc_markdown: str
    debug: ReportDebug
