import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from castgrid.models.grid import MAX_GRID_POSITIONS, is_valid_position
from castgrid.schemas.device import DeviceRecord, DeviceRegisterIn, GridRecord, default_grid_id
from castgrid.services.grid import layout_name
from castgrid.services.store import AdminStore

router = APIRouter(prefix="/devices", tags=["devices"])
logger = logging.getLogger(__name__)


def get_store(request: Request) -> AdminStore:
    return request.app.state.store


def _normalize_device_id(value: str) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise HTTPException(status_code=400, detail="deviceId is required")
    return normalized


def _get_device(store: AdminStore, device_id: str) -> DeviceRecord:
    device = store.get_device(_normalize_device_id(device_id))
    if device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


def _device_payload(store: AdminStore, device: DeviceRecord) -> dict:
    grids = store.get_grids_for_device(device.device_id)
    return {
        "deviceId": device.device_id,
        "location": device.location,
        "grids": [grid.grid_id for grid in grids],
        "layout": layout_name(len(grids)),
    }


def _resize_grids(store: AdminStore, device: DeviceRecord, grid_count: int) -> DeviceRecord:
    """Grow or shrink a device's grid set, keeping positions contiguous from 1."""
    if not is_valid_position(grid_count):
        raise HTTPException(status_code=400, detail=f"grid_count must be between 1 and {MAX_GRID_POSITIONS}")
    existing = {grid.position: grid for grid in store.get_grids_for_device(device.device_id)}
    for position, grid in existing.items():
        if position > grid_count:
            store.delete_grid(grid.grid_id)
    grid_ids = []
    for position in range(1, grid_count + 1):
        grid = existing.get(position)
        if grid is None:
            grid = GridRecord(
                grid_id=default_grid_id(device.device_id, position),
                device_id=device.device_id,
                position=position,
            )
            store.save_grid(grid)
        grid_ids.append(grid.grid_id)
    return device.model_copy(update={"grids": grid_ids})


@router.post("")
def create_device(payload: DeviceRegisterIn = Body(...), store: AdminStore = Depends(get_store)):
    device_id = _normalize_device_id(payload.device_id)
    if store.get_device(device_id):
        raise HTTPException(status_code=400, detail="Device ID already exists. Please choose a unique ID.")
    device = DeviceRecord(device_id=device_id, location=payload.location.strip())
    store.save_device(device)
    device = _resize_grids(store, device, payload.grid_count)
    store.save_device(device)
    logger.info("Device %s created with %d grid(s)", device_id, payload.grid_count)
    return _device_payload(store, device)


@router.get("")
def list_devices(store: AdminStore = Depends(get_store)):
    return [_device_payload(store, device) for device in store.list_devices()]


@router.get("/{device_id}")
def get_device(device_id: str, store: AdminStore = Depends(get_store)):
    device = _get_device(store, device_id)
    payload = _device_payload(store, device)
    payload["gridRecords"] = [grid.to_json() for grid in store.get_grids_for_device(device.device_id)]
    return payload


@router.put("/{device_id}")
def update_device(
    device_id: str,
    location: str | None = None,
    grid_count: int | None = None,
    store: AdminStore = Depends(get_store),
):
    device = _get_device(store, device_id)
    if location is not None:
        device = device.model_copy(update={"location": location.strip()})
    if grid_count is not None:
        device = _resize_grids(store, device, grid_count)
    store.save_device(device)
    return _device_payload(store, device)


@router.delete("/{device_id}")
def delete_device(device_id: str, store: AdminStore = Depends(get_store)):
    if not store.delete_device(_normalize_device_id(device_id)):
        raise HTTPException(status_code=404, detail="Device not found")
    logger.info("Device %s deleted", device_id)
    return {"ok": True}
