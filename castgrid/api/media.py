import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, File, HTTPException, Request, UploadFile

from castgrid.schemas.media import (
    MAX_DURATION_SEC,
    MediaItemIn,
    MediaItemRecord,
    default_duration,
    media_type_from_filename,
)
from castgrid.services.storage import discard, save_bytes
from castgrid.services.store import AdminStore

router = APIRouter(prefix="/media", tags=["media"])
logger = logging.getLogger(__name__)


def get_store(request: Request) -> AdminStore:
    return request.app.state.store


def _new_media_id() -> str:
    return f"media_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _resolved_media_type(declared: str | None, filename: str) -> str:
    media_type = (declared or "").strip().lower()
    if not media_type:
        return media_type_from_filename(filename)
    if media_type not in {"image", "video"}:
        raise HTTPException(status_code=400, detail="Unsupported media type. Use image or video.")
    return media_type


def _validated_duration(duration: int | None, media_type: str) -> int:
    if duration is None:
        return default_duration(media_type)
    if duration < 1 or duration > MAX_DURATION_SEC:
        raise HTTPException(status_code=400, detail=f"duration must be between 1 and {MAX_DURATION_SEC} seconds")
    return duration


def _get_media(store: AdminStore, media_id: str) -> MediaItemRecord:
    media = store.get_media_item(media_id)
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return media


@router.post("")
def add_media_by_url(payload: MediaItemIn = Body(...), store: AdminStore = Depends(get_store)):
    media_id = (payload.media_id or "").strip() or _new_media_id()
    if store.get_media_item(media_id):
        raise HTTPException(status_code=400, detail="mediaId already exists")
    media_type = _resolved_media_type(payload.type, payload.filename)
    media = MediaItemRecord(
        media_id=media_id,
        type=media_type,
        filename=payload.filename.strip(),
        url=payload.url.strip(),
        duration=_validated_duration(payload.duration, media_type),
        uploaded_at=datetime.now(timezone.utc),
        is_local=False,
        download_status="available",
    )
    store.save_media_item(media)
    return _get_media(store, media_id).to_json()


@router.post("/upload")
def upload_media(
    file: UploadFile = File(...),
    type: str | None = None,
    duration: int | None = None,
    store: AdminStore = Depends(get_store),
):
    filename = (file.filename or "").strip() or "upload.bin"
    media_type = _resolved_media_type(type, filename)
    media_duration = _validated_duration(duration, media_type)
    try:
        stored = save_bytes(file.file.read(), filename, media_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    media = MediaItemRecord(
        media_id=_new_media_id(),
        type=media_type,
        filename=stored.filename,
        url=stored.url,
        duration=media_duration,
        file_size=stored.size,
        uploaded_at=datetime.now(timezone.utc),
        is_local=True,
        download_status="available",
    )
    try:
        store.save_media_item(media)
    except Exception:
        logger.warning("Upload of %s not recorded, removing %s", filename, stored.path)
        discard(stored)
        raise
    return _get_media(store, media.media_id).to_json()


@router.get("")
def list_media(type: str | None = None, store: AdminStore = Depends(get_store)):
    media_type = (type or "").strip().lower() or None
    return [media.to_json() for media in store.list_media_items(media_type)]


@router.get("/{media_id}")
def get_media(media_id: str, store: AdminStore = Depends(get_store)):
    return _get_media(store, media_id).to_json()


@router.put("/{media_id}")
def update_media(
    media_id: str,
    filename: str | None = None,
    url: str | None = None,
    duration: int | None = None,
    store: AdminStore = Depends(get_store),
):
    media = _get_media(store, media_id)
    changes = {}
    if filename is not None:
        cleaned = filename.strip()
        if not cleaned:
            raise HTTPException(status_code=400, detail="filename cannot be empty")
        changes["filename"] = cleaned
    if url is not None:
        changes["url"] = url.strip()
    if duration is not None:
        changes["duration"] = _validated_duration(duration, media.type)
    if changes:
        store.save_media_item(media.model_copy(update=changes))
    return _get_media(store, media_id).to_json()


@router.delete("/{media_id}")
def delete_media(media_id: str, store: AdminStore = Depends(get_store)):
    # Box memberships are soft references and are left in place; playlists
    # skip ids that no longer resolve.
    if not store.delete_media_item(media_id):
        raise HTTPException(status_code=404, detail="Media not found")
    return {"ok": True}
