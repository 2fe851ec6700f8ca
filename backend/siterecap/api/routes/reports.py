"""Photo, geocoding and daily-report endpoints."""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import structlog
from fastapi import APIRouter, File, Form, UploadFile

from siterecap.api.responses import error_response
from siterecap.config import settings
from siterecap.models.contracts import (
    DeletePhotoRequest,
    ErrorResponse,
    GenerateReportRequest,
    GenerateReportResponse,
    GeocodeRequest,
    ReportDebug,
)
from siterecap.repositories.base import utcnow
from siterecap.repositories.store import get_store
from siterecap.utils.errors import StorageError
from siterecap.utils.http import sniff_image
from siterecap.utils.weather import geocode_location
from siterecap.workflows.daily_report import (
    MODEL_USED,
    NoPhotosError,
    ProjectNotFoundError,
    generate_daily_report,
    generate_demo_report,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["reports"])

MAX_PHOTO_BYTES = 20 * 1024 * 1024  # 20 MB

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _valid_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return len(value) == 10


@router.post("/upload-photo", responses={**_ERRORS, 413: {"model": ErrorResponse}})
async def upload_photo(
    file: UploadFile | None = File(None),
    project_id: str | None = Form(None),
    shot_date: str | None = Form(None),
):
    """Upload photo -> validate -> store object -> record row -> touch project."""
    if file is None or not project_id or not shot_date:
        return error_response(400, "Missing required fields")
    if not _valid_date(shot_date):
        return error_response(400, "Invalid shot_date, expected YYYY-MM-DD")

    store = get_store()
    if await store.get_project(project_id) is None:
        return error_response(404, "Project not found")

    # Stream-read with early termination to avoid buffering unbounded uploads
    chunks: list[bytes] = []
    total = 0
    while chunk := await file.read(65_536):
        total += len(chunk)
        if total > MAX_PHOTO_BYTES:
            mb = MAX_PHOTO_BYTES // (1024 * 1024)
            return error_response(413, f"Photo exceeds {mb} MB limit")
        chunks.append(chunk)
    image_data = b"".join(chunks)

    try:
        content_type = await asyncio.to_thread(sniff_image, image_data)
    except ValueError as exc:
        logger.info("photo_rejected", project_id=project_id, reason=str(exc))
        return error_response(400, "Uploaded file is not a readable image")

    from siterecap.utils.storage import (
        STORAGE_TIMEOUT_SECONDS,
        photo_key,
        public_url,
        upload_object,
    )

    key = photo_key(project_id, content_type)
    if settings.storage_configured:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(upload_object, key, image_data, content_type),
                timeout=STORAGE_TIMEOUT_SECONDS,
            )
        except StorageError as exc:
            return error_response(500, "Failed to store photo", details=exc.message)
        except TimeoutError:
            logger.error("storage_upload_timeout", key=key, project_id=project_id)
            return error_response(500, "Failed to store photo", details="Storage timed out")
    else:
        logger.warning("storage_not_configured_skipping_upload", key=key, project_id=project_id)

    photo = await store.add_photo(project_id, shot_date, public_url(key), key)
    await store.update_project(project_id, last_activity_at=utcnow())
    logger.info(
        "photo_uploaded",
        project_id=project_id,
        photo_id=photo.id,
        shot_date=shot_date,
        size_bytes=len(image_data),
    )
    return {"success": True, "photo": photo.model_dump(mode="json")}


async def _delete_photo(body: DeletePhotoRequest):
    if not body.photo_id:
        return error_response(400, "Photo ID required")

    store = get_store()
    photo = await store.get_photo(body.photo_id)
    if photo is None:
        return error_response(404, "Photo not found")

    if photo.storage_path and settings.storage_configured:
        from siterecap.utils.storage import STORAGE_TIMEOUT_SECONDS, delete_object

        try:
            await asyncio.wait_for(
                asyncio.to_thread(delete_object, photo.storage_path),
                timeout=STORAGE_TIMEOUT_SECONDS,
            )
        except StorageError as exc:
            return error_response(500, "Failed to delete photo", details=exc.message)
        except TimeoutError:
            logger.error("storage_delete_timeout", key=photo.storage_path)
            return error_response(500, "Failed to delete photo", details="Storage timed out")

    await store.delete_photo(photo.id)
    logger.info("photo_deleted", photo_id=photo.id, project_id=photo.project_id)
    return {"success": True}


@router.post("/delete-photo", responses=_ERRORS)
async def delete_photo(body: DeletePhotoRequest):
    return await _delete_photo(body)


@router.delete("/delete-photo", responses=_ERRORS)
async def delete_photo_by_delete(body: DeletePhotoRequest):
    return await _delete_photo(body)


@router.post("/geocode-project", responses=_ERRORS)
async def geocode_project(body: GeocodeRequest):
    """Resolve the project's location and store normalized city/state and lat/lon."""
    if not body.project_id:
        return error_response(400, "Project ID required")

    coords = await geocode_location(body.city, body.state, body.postal_code)
    if coords is None:
        return error_response(404, "Location not found")

    project = await get_store().update_project(
        body.project_id,
        city=coords.city,
        state=coords.state,
        postal_code=body.postal_code,
        lat=coords.lat,
        lon=coords.lon,
    )
    if project is None:
        return error_response(404, "Project not found")

    logger.info("project_geocoded", project_id=project.id, lat=coords.lat, lon=coords.lon)
    return {
        "success": True,
        "coords": coords.model_dump(),
        "project": project.model_dump(mode="json"),
    }


@router.post("/generate-report", response_model=GenerateReportResponse, responses=_ERRORS)
async def generate_report(body: GenerateReportRequest):
    """Run the two-stage pipeline for one project and date."""
    if not body.project_id or not body.date:
        return error_response(400, "Project ID and date required")
    if not _valid_date(body.date):
        return error_response(400, "Invalid date, expected YYYY-MM-DD")

    try:
        result = await generate_daily_report(get_store(), body.project_id, body.date)
    except ProjectNotFoundError:
        if not settings.demo_mode:
            return error_response(404, "Project not found")
        result = await generate_demo_report(body.project_id, body.date)
    except NoPhotosError:
        return error_response(404, "No photos found for this date")

    return GenerateReportResponse(
        report=result.report,
        owner_markdown=result.owner_markdown,
        gc_markdown=result.gc_markdown,
        debug=ReportDebug(
            photos_analyzed=result.photos_analyzed,
            weather_included=result.weather_included,
            model_used=MODEL_USED,
            demo=result.demo,
        ),
    )


@router.get("/gemini-health")
async def gemini_health():
    """One tiny round trip to the configured Gemini model."""
    from siterecap.utils.gemini import ping

    timestamp = datetime.now(UTC).isoformat()
    try:
        text = await ping()
    except Exception as exc:
        logger.warning("gemini_health_failed", error_type=type(exc).__name__, error=str(exc))
        return error_response(
            500,
            str(exc) or type(exc).__name__,
            status="error",
            model=settings.gemini_model,
            timestamp=timestamp,
        )

    return {
        "status": "healthy",
        "model": settings.gemini_model,
        "test_response": text[:100],
        "timestamp": timestamp,
    }
