from fastapi import APIRouter, Depends, HTTPException, Request

from castgrid.services.grid import layout_name
from castgrid.services.store import CatalogStore

router = APIRouter(prefix="/layout", tags=["layout"])


def get_store(request: Request) -> CatalogStore:
    return request.app.state.store


@router.get("/{device_id}")
def device_layout(device_id: str, store: CatalogStore = Depends(get_store)):
    """Everything a display needs to render a device: grids, used boxes, used items."""
    device = store.get_device(device_id)
    if device is None:
        raise HTTPException(status_code=404, detail="device not found")
    grids = store.get_grids_for_device(device_id)
    boxes = []
    for box_id in dict.fromkeys(grid.media_box_id for grid in grids if grid.media_box_id):
        box = store.get_media_box(box_id)
        if box is not None:
            boxes.append(box)
    item_ids = list(dict.fromkeys(media_id for box in boxes for media_id in box.media_items))
    items = store.get_media_items(item_ids)
    return {
        "device": device.to_json(),
        "layout": layout_name(len(grids)),
        "grids": [grid.to_json() for grid in grids],
        "mediaBoxes": [box.to_json() for box in boxes],
        "mediaItems": [item.to_json() for item in items],
    }
