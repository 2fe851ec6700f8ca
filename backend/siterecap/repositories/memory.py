"""Process-local store used in development, tests and demo deployments."""

from __future__ import annotations

import uuid
from typing import Any

from siterecap.models.contracts import (
    Organization,
    Photo,
    Project,
    ProjectStatus,
    Report,
)
from siterecap.repositories.base import check_project_fields, utcnow


class InMemoryStore:
    def __init__(self) -> None:
        self.organizations: dict[str, Organization] = {}
        self.projects: dict[str, Project] = {}
        self.photos: dict[str, Photo] = {}
        self.reports: dict[tuple[str, str], Report] = {}

    def clear(self) -> None:
        self.organizations.clear()
        self.projects.clear()
        self.photos.clear()
        self.reports.clear()

    async def ping(self) -> bool:
        return True

    async def get_organization(self, org_id: str) -> Organization | None:
        return self.organizations.get(org_id)

    def add_organization(self, org: Organization) -> Organization:
        self.organizations[org.id] = org
        return org

    async def create_project(
        self,
        name: str,
        org_id: str | None = None,
        city: str | None = None,
        state: str | None = None,
        postal_code: str | None = None,
    ) -> Project:
        now = utcnow()
        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            org_id=org_id,
            city=city,
            state=state,
            postal_code=postal_code,
            status="active",
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )
        self.projects[project.id] = project
        return project

    async def get_project(self, project_id: str) -> Project | None:
        return self.projects.get(project_id)

    async def list_projects(
        self, org_id: str | None = None, status: ProjectStatus | None = None
    ) -> list[Project]:
        found = [
            p
            for p in self.projects.values()
            if (org_id is None or p.org_id == org_id) and (status is None or p.status == status)
        ]
        return sorted(found, key=lambda p: p.created_at, reverse=True)

    async def update_project(self, project_id: str, **fields: Any) -> Project | None:
        check_project_fields(fields)
        project = self.projects.get(project_id)
        if project is None:
            return None
        updated = project.model_copy(update={**fields, "updated_at": utcnow()})
        self.projects[project_id] = updated
        return updated

    async def add_photo(
        self, project_id: str, shot_date: str, url: str, storage_path: str | None
    ) -> Photo:
        photo = Photo(
            id=str(uuid.uuid4()),
            project_id=project_id,
            shot_date=shot_date,
            url=url,
            storage_path=storage_path,
            created_at=utcnow(),
        )
        self.photos[photo.id] = photo
        return photo

    async def get_photo(self, photo_id: str) -> Photo | None:
        return self.photos.get(photo_id)

    async def delete_photo(self, photo_id: str) -> bool:
        return self.photos.pop(photo_id, None) is not None

    async def list_photos(self, project_id: str, shot_date: str) -> list[Photo]:
        found = [
            p
            for p in self.photos.values()
            if p.project_id == project_id and p.shot_date == shot_date
        ]
        return sorted(found, key=lambda p: p.created_at)

    async def upsert_report(
        self,
        project_id: str,
        date: str,
        owner_md: str,
        gc_md: str,
        raw_json: dict[str, Any],
        status: str = "generated",
    ) -> Report:
        now = utcnow()
        existing = self.reports.get((project_id, date))
        report = Report(
            id=existing.id if existing else str(uuid.uuid4()),
            project_id=project_id,
            date=date,
            owner_md=owner_md,
            gc_md=gc_md,
            raw_json=raw_json,
            status=status,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.reports[(project_id, date)] = report
        return report
