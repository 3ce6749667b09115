import uuid

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from castgrid.schemas.media import MediaBoxIn, MediaBoxRecord
from castgrid.services.playlist import resolve
from castgrid.services.store import AdminStore

router = APIRouter(prefix="/media-boxes", tags=["media-boxes"])


def get_store(request: Request) -> AdminStore:
    return request.app.state.store


def _get_box(store: AdminStore, media_box_id: str) -> MediaBoxRecord:
    box = store.get_media_box(media_box_id)
    if box is None:
        raise HTTPException(status_code=404, detail="Media box not found")
    return box


@router.post("")
def create_media_box(payload: MediaBoxIn = Body(...), store: AdminStore = Depends(get_store)):
    box_id = (payload.media_box_id or "").strip() or f"box_{uuid.uuid4().hex[:12]}"
    if store.get_media_box(box_id):
        raise HTTPException(status_code=400, detail="mediaBoxId already exists")
    box = MediaBoxRecord(media_box_id=box_id, name=payload.name.strip(), media_items=payload.media_items)
    store.save_media_box(box)
    return box.to_json()


@router.get("")
def list_media_boxes(store: AdminStore = Depends(get_store)):
    return [box.to_json() for box in store.list_media_boxes()]


@router.get("/{media_box_id}")
def get_media_box(media_box_id: str, store: AdminStore = Depends(get_store)):
    return _get_box(store, media_box_id).to_json()


@router.get("/{media_box_id}/playlist")
def get_media_box_playlist(media_box_id: str, store: AdminStore = Depends(get_store)):
    """Items in the order a zone assigned to this box would play them."""
    box = _get_box(store, media_box_id)
    items = store.get_media_items(box.media_items)
    found = {item.media_id for item in items}
    return {
        "mediaBoxId": box.media_box_id,
        "missing": [media_id for media_id in box.media_items if media_id not in found],
        "items": [item.to_json() for item in resolve(items)],
    }


@router.put("/{media_box_id}")
def update_media_box(media_box_id: str, name: str | None = None, store: AdminStore = Depends(get_store)):
    box = _get_box(store, media_box_id)
    if name is not None:
        cleaned = name.strip()
        if not cleaned:
            raise HTTPException(status_code=400, detail="Media box name cannot be empty")
        box = box.model_copy(update={"name": cleaned})
        store.save_media_box(box)
    return box.to_json()


@router.delete("/{media_box_id}")
def delete_media_box(media_box_id: str, store: AdminStore = Depends(get_store)):
    if not store.delete_media_box(media_box_id):
        raise HTTPException(status_code=404, detail="Media box not found")
    return {"ok": True}


@router.post("/{media_box_id}/items/{media_id}")
def add_media_to_box(media_box_id: str, media_id: str, store: AdminStore = Depends(get_store)):
    box = _get_box(store, media_box_id)
    if store.get_media_item(media_id) is None:
        raise HTTPException(status_code=404, detail="Media not found")
    added = media_id not in box.media_items
    if added:
        box = MediaBoxRecord(media_box_id=box.media_box_id, name=box.name, media_items=[*box.media_items, media_id])
        store.save_media_box(box)
    payload = box.to_json()
    payload["added"] = added
    return payload


@router.delete("/{media_box_id}/items/{media_id}")
def remove_media_from_box(media_box_id: str, media_id: str, store: AdminStore = Depends(get_store)):
    box = _get_box(store, media_box_id)
    if media_id in box.media_items:
        box = box.model_copy(update={"media_items": [m for m in box.media_items if m != media_id]})
        store.save_media_box(box)
    return box.to_json()
