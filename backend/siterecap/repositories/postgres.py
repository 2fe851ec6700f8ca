"""asyncpg-backed store for the Supabase Postgres database.

Identifiers arrive from clients as strings; anything that is not a UUID is
treated as a missing record instead of reaching the database as a
coercion error.
"""

from __future__ import annotations

import json
import uuid
from datetime import date as date_type
from typing import Any

import asyncpg
import structlog

from siterecap.models.contracts import (
    Organization,
    Photo,
    Project,
    ProjectStatus,
    Report,
)
from siterecap.repositories.base import check_project_fields, utcnow

logger = structlog.get_logger()

_PROJECT_COLUMNS = (
    "id, org_id, name, city, state, postal_code, lat, lon, status, "
    "last_activity_at, closed_at, created_at, updated_at"
)
_PHOTO_COLUMNS = "id, project_id, shot_date, url, storage_path, created_at"
_REPORT_COLUMNS = "id, project_id, date, owner_md, gc_md, raw_json, status, created_at, updated_at"


def pg_dsn(database_url: str) -> str:
    """Convert a SQLAlchemy-style URL to a plain PostgreSQL DSN for asyncpg."""
    return database_url.replace("postgresql+asyncpg://", "postgresql://")


def parse_uuid(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _parse_date(value: str) -> date_type:
    return date_type.fromisoformat(value)


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _project_from_row(row: asyncpg.Record) -> Project:
    return Project(
        id=str(row["id"]),
        org_id=_str_or_none(row["org_id"]),
        name=row["name"],
        city=row["city"],
        state=row["state"],
        postal_code=row["postal_code"],
        lat=row["lat"],
        lon=row["lon"],
        status=row["status"],
        last_activity_at=row["last_activity_at"],
        closed_at=row["closed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _photo_from_row(row: asyncpg.Record) -> Photo:
    return Photo(
        id=str(row["id"]),
        project_id=str(row["project_id"]),
        shot_date=row["shot_date"].isoformat(),
        url=row["url"],
        storage_path=row["storage_path"],
        created_at=row["created_at"],
    )


def _report_from_row(row: asyncpg.Record) -> Report:
    raw = row["raw_json"]
    return Report(
        id=str(row["id"]),
        project_id=str(row["project_id"]),
        date=row["date"].isoformat(),
        owner_md=row["owner_md"],
        gc_md=row["gc_md"],
        raw_json=json.loads(raw) if isinstance(raw, str) else dict(raw or {}),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresStore:
    def __init__(self, database_url: str, min_size: int = 1, max_size: int = 10) -> None:
        self._dsn = pg_dsn(database_url)
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn, min_size=self._min_size, max_size=self._max_size
            )
            logger.info("postgres_pool_created", max_size=self._max_size)
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> bool:
        pool = await self._get_pool()
        return await pool.fetchval("SELECT 1") == 1

    async def get_organization(self, org_id: str) -> Organization | None:
        oid = parse_uuid(org_id)
        if oid is None:
            return None
        pool = await self._get_pool()
        row = await pool.fetchrow("SELECT id, name, plan FROM organizations WHERE id = $1", oid)
        if row is None:
            return None
        return Organization(id=str(row["id"]), name=row["name"] or "", plan=row["plan"])

    async def create_project(
        self,
        name: str,
        org_id: str | None = None,
        city: str | None = None,
        state: str | None = None,
        postal_code: str | None = None,
    ) -> Project:
        oid = parse_uuid(org_id)
        if org_id is not None and oid is None:
            raise ValueError(f"Invalid organization id: {org_id!r}")
        pool = await self._get_pool()
        now = utcnow()
        row = await pool.fetchrow(
            f"INSERT INTO projects (id, org_id, name, city, state, postal_code, status, "
            f"last_activity_at) VALUES ($1, $2, $3, $4, $5, $6, 'active', $7) "
            f"RETURNING {_PROJECT_COLUMNS}",
            uuid.uuid4(),
            oid,
            name,
            city,
            state,
            postal_code,
            now,
        )
        return _project_from_row(row)

    async def get_project(self, project_id: str) -> Project | None:
        pid = parse_uuid(project_id)
        if pid is None:
            return None
        pool = await self._get_pool()
        row = await pool.fetchrow(f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = $1", pid)
        return _project_from_row(row) if row else None

    async def list_projects(
        self, org_id: str | None = None, status: ProjectStatus | None = None
    ) -> list[Project]:
        clauses: list[str] = []
        args: list[Any] = []
        if org_id is not None:
            oid = parse_uuid(org_id)
            if oid is None:
                return []
            args.append(oid)
            clauses.append(f"org_id = ${len(args)}")
        if status is not None:
            args.append(status)
            clauses.append(f"status = ${len(args)}")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"SELECT {_PROJECT_COLUMNS} FROM projects{where} ORDER BY created_at DESC", *args
        )
        return [_project_from_row(r) for r in rows]

    async def update_project(self, project_id: str, **fields: Any) -> Project | None:
        check_project_fields(fields)
        pid = parse_uuid(project_id)
        if pid is None:
            return None
        fields["updated_at"] = utcnow()
        names = list(fields)
        assignments = ", ".join(f"{name} = ${i + 2}" for i, name in enumerate(names))
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"UPDATE projects SET {assignments} WHERE id = $1 RETURNING {_PROJECT_COLUMNS}",
            pid,
            *(fields[name] for name in names),
        )
        return _project_from_row(row) if row else None

    async def add_photo(
        self, project_id: str, shot_date: str, url: str, storage_path: str | None
    ) -> Photo:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"INSERT INTO photos (id, project_id, shot_date, url, storage_path) "
            f"VALUES ($1, $2, $3, $4, $5) RETURNING {_PHOTO_COLUMNS}",
            uuid.uuid4(),
            uuid.UUID(project_id),
            _parse_date(shot_date),
            url,
            storage_path,
        )
        return _photo_from_row(row)

    async def get_photo(self, photo_id: str) -> Photo | None:
        pid = parse_uuid(photo_id)
        if pid is None:
            return None
        pool = await self._get_pool()
        row = await pool.fetchrow(f"SELECT {_PHOTO_COLUMNS} FROM photos WHERE id = $1", pid)
        return _photo_from_row(row) if row else None

    async def delete_photo(self, photo_id: str) -> bool:
        pid = parse_uuid(photo_id)
        if pid is None:
            return False
        pool = await self._get_pool()
        result = await pool.execute("DELETE FROM photos WHERE id = $1", pid)
        return result != "DELETE 0"

    async def list_photos(self, project_id: str, shot_date: str) -> list[Photo]:
        pid = parse_uuid(project_id)
        if pid is None:
            return []
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"SELECT {_PHOTO_COLUMNS} FROM photos WHERE project_id = $1 AND shot_date = $2 "
            f"ORDER BY created_at ASC",
            pid,
            _parse_date(shot_date),
        )
        return [_photo_from_row(r) for r in rows]

    async def upsert_report(
        self,
        project_id: str,
        date: str,
        owner_md: str,
        gc_md: str,
        raw_json: dict[str, Any],
        status: str = "generated",
    ) -> Report:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"INSERT INTO reports (id, project_id, date, owner_md, gc_md, raw_json, status) "
            f"VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7) "
            f"ON CONFLICT (project_id, date) DO UPDATE SET owner_md = EXCLUDED.owner_md, "
            f"gc_md = EXCLUDED.gc_md, raw_json = EXCLUDED.raw_json, status = EXCLUDED.status, "
            f"updated_at = now() RETURNING {_REPORT_COLUMNS}",
            uuid.uuid4(),
            uuid.UUID(project_id),
            _parse_date(date),
            owner_md,
            gc_md,
            json.dumps(raw_json, default=str),
            status,
        )
        return _report_from_row(row)
