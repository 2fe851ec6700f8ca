"""Storage interface shared by the in-memory and Postgres backends.

Backends satisfy ``SiteStore`` structurally; neither inherits from it.
All methods return contract models, never rows.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol

from siterecap.models.contracts import (
    Organization,
    Photo,
    Project,
    ProjectStatus,
    Report,
)

# Columns a caller may change through update_project()
PROJECT_MUTABLE_FIELDS = frozenset(
    {
        "name",
        "city",
        "state",
        "postal_code",
        "lat",
        "lon",
        "status",
        "last_activity_at",
        "closed_at",
    }
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def check_project_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - PROJECT_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update project fields: {sorted(unknown)}")


class SiteStore(Protocol):
    async def ping(self) -> bool: ...

    async def get_organization(self, org_id: str) -> Organization | None: ...

    async def create_project(
        self,
        name: str,
        org_id: str | None = None,
        city: str | None = None,
        state: str | None = None,
        postal_code: str | None = None,
    ) -> Project: ...

    async def get_project(self, project_id: str) -> Project | None: ...

    async def list_projects(
        self, org_id: str | None = None, status: ProjectStatus | None = None
    ) -> list[Project]: ...

    async def update_project(self, project_id: str, **fields: Any) -> Project | None: ...

    async def add_photo(
        self, project_id: str, shot_date: str, url: str, storage_path: str | None
    ) -> Photo: ...

    async def get_photo(self, photo_id: str) -> Photo | None: ...

    async def delete_photo(self, photo_id: str) -> bool: ...

    async def list_photos(self, project_id: str, shot_date: str) -> list[Photo]: ...

    async def upsert_report(
        self,
        project_id: str,
        date: str,
        owner_md: str,
        gc_md: str,
        raw_json: dict[str, Any],
        status: str = "generated",
    ) -> Report: ...
