from fastapi import APIRouter, HTTPException, Request

from castgrid.services.session import SessionRegistry

router = APIRouter(prefix="/player", tags=["player"])


def _sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


# These handlers are async so sessions are created on the event loop that
# owns their zone timers.
@router.get("/{device_id}/snapshot")
async def device_snapshot(device_id: str, request: Request):
    session = _sessions(request).get_or_start(device_id)
    return session.to_json()


@router.post("/{device_id}/refresh")
async def refresh_device(device_id: str, request: Request):
    session = _sessions(request).get_or_start(device_id)
    session.refresh()
    return session.to_json()


@router.delete("/{device_id}")
async def stop_device(device_id: str, request: Request):
    if not _sessions(request).stop(device_id):
        raise HTTPException(status_code=404, detail="No live session for device")
    return {"ok": True}
