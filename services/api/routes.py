from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Annotated
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from loguru import logger

from core.settings import Settings
from core.sniff import DEFAULT_MIME_TYPE, guess_mime_type
from core.storage import StorageProvider
from core.thumbnails import delete_with_derivative, is_image_name, regenerate_thumbnails, thumbnail_key
from core.upload import MultipartFieldStream, read_upload
from services.api.schemas import ErrorOut, FileOut


router = APIRouter(prefix="/v1")

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")

_UPLOAD_ERRORS = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorOut},
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorOut},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorOut},
}
_OBJECT_ERRORS = {
    status.HTTP_404_NOT_FOUND: {"model": ErrorOut},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorOut},
}


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


StorageDep = Annotated[StorageProvider, Depends(get_storage)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]


def generate_key(filename: str) -> str:
    """Random storage key keeping the original file extension."""
    suffix = PurePosixPath(filename).suffix
    if not _EXTENSION_RE.match(suffix):
        suffix = ""
    return f"{uuid4().hex}{suffix}"


def object_url(settings: Settings, storage: StorageProvider, key: str) -> str:
    if settings.storage.storage_url:
        return f"{settings.storage.storage_url.rstrip('/')}/{key}"
    public_url = getattr(storage, "public_url", None)
    if callable(public_url):
        return public_url(key)
    return f"/storage/{key}"


def _dispatch_thumbnails(
    names: list[str],
    settings: Settings,
    storage: StorageProvider,
    background_tasks: BackgroundTasks,
) -> None:
    if settings.queue.broker_url:
        try:
            from services.worker.app import app as worker_app

            worker_app.send_task("services.worker.tasks.generate_thumbnails", args=[names])
            logger.info("Queued thumbnail generation for {names}", names=names)
            return
        except Exception as exc:  # pragma: no cover - celery misconfiguration
            logger.warning("Celery dispatch failed, generating in-process: {error}", error=str(exc))

    background_tasks.add_task(
        regenerate_thumbnails,
        storage,
        names,
        size=settings.thumbnails.size,
        image_format=settings.thumbnails.format,
    )


@router.post(
    "/files",
    response_model=FileOut,
    status_code=status.HTTP_201_CREATED,
    responses=_UPLOAD_ERRORS,
    tags=["files"],
)
async def upload_file(
    request: Request,
    storage: StorageDep,
    settings: SettingsDep,
    background_tasks: BackgroundTasks,
) -> FileOut:
    fields = MultipartFieldStream(request.headers.get("content-type"), request.stream())
    upload = await read_upload(fields, settings.upload.file_size_limit, settings.upload.field_name)

    key = generate_key(upload.filename)
    await storage.put_object(key, upload.bytes)
    logger.info("Stored {filename} as {key} ({size} bytes)", filename=upload.filename, key=key, size=upload.size)

    thumbnail_url = None
    if is_image_name(key):
        _dispatch_thumbnails([key], settings, storage, background_tasks)
        thumbnail_url = object_url(settings, storage, thumbnail_key(key))

    return FileOut(
        name=key,
        original_name=upload.filename,
        size=upload.size,
        url=object_url(settings, storage, key),
        thumbnail_url=thumbnail_url,
    )


@router.get("/files/{key:path}", responses=_OBJECT_ERRORS, tags=["files"])
async def download_file(key: str, storage: StorageDep) -> Response:
    data = await storage.get_object(key)
    return Response(content=data, media_type=guess_mime_type(data) or DEFAULT_MIME_TYPE)


@router.delete(
    "/files/{key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorOut}},
    tags=["files"],
)
async def delete_file(key: str, storage: StorageDep) -> Response:
    await delete_with_derivative(storage, key)
    logger.info("Deleted {key}", key=key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
