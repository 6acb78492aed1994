"""HTTP routes for media uploads, garbage collection and post removal.

``files_router`` is mounted under the configured reference prefix, so a
reference embedded in content (``{prefix}/{object_key}``) resolves to the
download route.
"""

from __future__ import annotations

from typing import Any

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from pydantic import BaseModel, Field

from ..config import AppConfig
from ..exceptions import BlobNotFoundError, BlobStoreError, NotFoundError, RepositoryError
from .cascade_delete import CascadeDeleter
from .media_models import MediaObject
from .media_service import MediaService
from .orphan_collector import CollectionResult, OrphanCollector

router = APIRouter(tags=["media"])
files_router = APIRouter(tags=["media-files"])


class CollectionResultModel(BaseModel):
    success: bool
    message: str
    dry_run: bool = False
    temp_only: bool = False
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: CollectionResult) -> "CollectionResultModel":
        return cls(
            success=result.success,
            message=result.message,
            dry_run=result.dry_run,
            temp_only=result.temp_only,
            details=result.summary.to_details(),
        )


class CleanupResponse(BaseModel):
    result: CollectionResultModel


class CascadeReportModel(BaseModel):
    root_id: str
    root_found: bool
    root_deleted: bool
    media_deleted: int
    dependents_deleted: int
    errors: list[str] = Field(default_factory=list)


class MediaFileModel(BaseModel):
    id: str
    object_key: str
    url: str
    filename: str
    content_type: str
    size_bytes: int
    used: bool
    associated_entity_id: str | None = None

    @classmethod
    def from_media(cls, media: MediaObject) -> "MediaFileModel":
        return cls(
            id=media.id,
            object_key=media.object_key,
            url=media.reference_url,
            filename=media.filename,
            content_type=media.content_type,
            size_bytes=media.size_bytes,
            used=media.used_flag,
            associated_entity_id=media.associated_entity_id,
        )


class UploadResponse(BaseModel):
    media: MediaFileModel


class ConfirmRequest(BaseModel):
    object_keys: list[str] = Field(min_length=1)
    associated_entity_id: str | None = None


class ConfirmResponse(BaseModel):
    confirmed: list[MediaFileModel]


def get_orphan_collector(request: Request) -> OrphanCollector:
    try:
        return request.app.state.orphan_collector  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("OrphanCollector is not configured") from exc


def get_post_deleter(request: Request) -> CascadeDeleter:
    try:
        return request.app.state.post_deleter  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("CascadeDeleter is not configured") from exc


def get_media_service(request: Request) -> MediaService:
    try:
        return request.app.state.media_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("MediaService is not configured") from exc


def get_config(request: Request) -> AppConfig:
    try:
        return request.app.state.config  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("AppConfig is not configured") from exc


@router.post("/api/admin/media/cleanup", response_model=CleanupResponse)
def run_cleanup(
    dry_run: bool = Query(default=False),
    temp_only: bool = Query(default=False),
    collector: OrphanCollector = Depends(get_orphan_collector),
) -> CleanupResponse:
    result = collector.collect(dry_run=dry_run, temp_only=temp_only)
    return CleanupResponse(result=CollectionResultModel.from_result(result))


@router.delete("/api/posts/{post_id}", response_model=CascadeReportModel)
def delete_post(post_id: str, deleter: CascadeDeleter = Depends(get_post_deleter)) -> CascadeReportModel:
    try:
        report = deleter.delete_entity_cascade(post_id)
    except RepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return CascadeReportModel(
        root_id=report.root_id,
        root_found=report.root_found,
        root_deleted=report.root_deleted,
        media_deleted=report.media_deleted,
        dependents_deleted=report.dependents_deleted,
        errors=list(report.errors),
    )


@files_router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    owner_id: str = Form(...),
    scope_id: str | None = Form(default=None),
    file: UploadFile = File(...),
    service: MediaService = Depends(get_media_service),
    config: AppConfig = Depends(get_config),
) -> UploadResponse:
    """Store an upload as an unconfirmed object, in the temp scope unless ``scope_id`` is given."""
    content_type = file.content_type or ""
    if content_type not in config.settings.upload_content_types:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail={"status": "error", "failure_reason": "unsupported_media_type"},
        )
    data = await file.read()
    if len(data) > config.settings.upload_max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"status": "error", "failure_reason": "file_too_large"},
        )
    try:
        media = service.upload(
            owner_id=owner_id,
            filename=file.filename or "upload",
            data=data,
            content_type=content_type,
            scope_id=scope_id or None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except (BlobStoreError, RepositoryError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return UploadResponse(media=MediaFileModel.from_media(media))


@files_router.post("/confirm", response_model=ConfirmResponse)
def confirm_media(payload: ConfirmRequest, service: MediaService = Depends(get_media_service)) -> ConfirmResponse:
    """Mark uploads as used so collection leaves them alone."""
    confirmed: list[MediaFileModel] = []
    for object_key in payload.object_keys:
        try:
            media = service.mark_used(object_key, associated_entity_id=payload.associated_entity_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        confirmed.append(MediaFileModel.from_media(media))
    return ConfirmResponse(confirmed=confirmed)


@files_router.get("/{object_key:path}")
def read_media(object_key: str, service: MediaService = Depends(get_media_service)) -> Response:
    try:
        media, data = service.fetch(object_key)
    except BlobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BlobStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return Response(content=data, media_type=media.content_type)
