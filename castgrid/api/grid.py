from fastapi import APIRouter, Depends, HTTPException, Request

from castgrid.services.store import AdminStore

router = APIRouter(prefix="/grids", tags=["grids"])


def get_store(request: Request) -> AdminStore:
    return request.app.state.store


@router.get("")
def list_grids(device_id: str | None = None, store: AdminStore = Depends(get_store)):
    device_id = (device_id or "").strip() or None
    return [grid.to_json() for grid in store.list_grids(device_id)]


@router.put("/{grid_id}")
def update_grid(grid_id: str, media_box_id: str = "", store: AdminStore = Depends(get_store)):
    """Assign a media box to a grid position; an empty id clears the zone."""
    grid = store.get_grid(grid_id)
    if grid is None:
        raise HTTPException(status_code=404, detail="Grid not found")
    box_id = (media_box_id or "").strip()
    if box_id and store.get_media_box(box_id) is None:
        raise HTTPException(status_code=404, detail="Media box not found")
    grid = grid.model_copy(update={"media_box_id": box_id})
    store.save_grid(grid)
    return grid.to_json()
