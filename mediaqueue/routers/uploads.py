# mediaqueue/routers/uploads.py
from functools import lru_cache
from typing import List

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile

from mediaqueue.core.errors import InvalidStateError, ItemNotFoundError
from mediaqueue.core.settings import get_settings
from mediaqueue.domain.uploads import SourceFile
from mediaqueue.schemas.uploads import (
    ClearOut,
    MetadataUpdateIn,
    QueueOut,
    QueueStatsOut,
    RunOut,
    UploadItemOut,
)
from mediaqueue.services.upload_service import get_upload_service
from mediaqueue.services.uploader import MediaUploader

log = structlog.get_logger(__name__)

# -----------------------------------------------------------------------------
# Router + gedeelde uploader (1 queue per proces)
# -----------------------------------------------------------------------------
router = APIRouter(prefix="/uploads", tags=["uploads"])


@lru_cache(maxsize=1)
def get_uploader() -> MediaUploader:
    settings = get_settings()
    return MediaUploader(get_upload_service(settings), settings=settings)


def _queue_out(uploader: MediaUploader) -> QueueOut:
    return QueueOut(
        items=[UploadItemOut.from_item(i) for i in uploader.items()],
        stats=QueueStatsOut.from_stats(uploader.stats()),
        is_uploading=uploader.is_uploading,
    )


def _not_found(e: ItemNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{e.code}:{e.item_id}")


def _conflict(e: InvalidStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=f"{e.code}:{e.message}")


# -----------------------------------------------------------------------------
# Queue lezen / vullen
# -----------------------------------------------------------------------------
@router.get("/queue", response_model=QueueOut)
async def get_queue(uploader: MediaUploader = Depends(get_uploader)) -> QueueOut:
    return _queue_out(uploader)


@router.post("/queue", response_model=List[UploadItemOut], status_code=201)
async def add_to_queue(
    files: List[UploadFile] = File(...),
    uploader: MediaUploader = Depends(get_uploader),
) -> List[UploadItemOut]:
    sources = []
    for f in files:
        data = await f.read()
        sources.append(SourceFile.from_bytes(f.filename or "upload", data, f.content_type or None))
    added = uploader.add_files(sources)
    log.info("queue_add", offered=len(sources), added=len(added))
    return [UploadItemOut.from_item(i) for i in added]


@router.patch("/queue/{item_id}/metadata", response_model=UploadItemOut)
async def update_metadata(
    item_id: str,
    body: MetadataUpdateIn,
    uploader: MediaUploader = Depends(get_uploader),
) -> UploadItemOut:
    try:
        item = uploader.update_metadata(item_id, body.changes())
    except ItemNotFoundError as e:
        raise _not_found(e)
    except InvalidStateError as e:
        raise _conflict(e)
    return UploadItemOut.from_item(item)


@router.delete("/queue/{item_id}", status_code=204)
async def remove_from_queue(item_id: str, uploader: MediaUploader = Depends(get_uploader)) -> Response:
    try:
        uploader.remove(item_id)
    except ItemNotFoundError as e:
        raise _not_found(e)
    return Response(status_code=204)


# -----------------------------------------------------------------------------
# Uploaden / retry
# -----------------------------------------------------------------------------
@router.post("/queue/run", response_model=RunOut)
async def run_queue(uploader: MediaUploader = Depends(get_uploader)) -> RunOut:
    results = await uploader.upload_all()
    return RunOut(results=results, stats=QueueStatsOut.from_stats(uploader.stats()))


@router.post("/queue/{item_id}/retry", response_model=UploadItemOut)
async def retry_item(item_id: str, uploader: MediaUploader = Depends(get_uploader)) -> UploadItemOut:
    try:
        await uploader.retry(item_id)
        item = uploader.get(item_id)
    except ItemNotFoundError as e:
        raise _not_found(e)
    except InvalidStateError as e:
        raise _conflict(e)
    return UploadItemOut.from_item(item)


# -----------------------------------------------------------------------------
# Opruimen
# -----------------------------------------------------------------------------
@router.post("/queue/clear-completed", response_model=ClearOut)
async def clear_completed(uploader: MediaUploader = Depends(get_uploader)) -> ClearOut:
    return ClearOut(removed=uploader.clear_completed())


@router.delete("/queue", response_model=ClearOut)
async def clear_queue(uploader: MediaUploader = Depends(get_uploader)) -> ClearOut:
    return ClearOut(removed=uploader.clear_all())
