import os
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from castgrid.db import Base, engine, ensure_sqlite_schema
from castgrid.api import device, grid, media, media_box, layout, player
from castgrid.services.json_store import JsonCatalogStore
from castgrid.services.realtime import RealtimeHub
from castgrid.services.session import SessionRegistry
from castgrid.services.storage import STORAGE_DIR, ensure_storage
from castgrid.services.store import AdminStore, SqlCatalogStore, StoreError

Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()
ensure_storage()

STORE_BACKEND = os.getenv("CASTGRID_STORE", "sql").strip().lower()
JSON_DATA_DIR = os.getenv("CASTGRID_JSON_DATA_DIR", "data")
REFRESH_INTERVAL_SEC = float(os.getenv("CASTGRID_REFRESH_INTERVAL_SEC", "0"))
REFRESH_ON_CHANGE = os.getenv("CASTGRID_REFRESH_ON_CHANGE", "1").strip().lower() in {"1", "true", "yes", "on"}
QUIET_ACCESS_LOG = os.getenv("CASTGRID_QUIET_ACCESS_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}

logger = logging.getLogger(__name__)

if QUIET_ACCESS_LOG:
    # Keep warning/error lines, suppress normal access noise (200/201 etc).
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_store(backend: str = STORE_BACKEND) -> AdminStore:
    if backend == "json":
        return JsonCatalogStore(JSON_DATA_DIR)
    if backend != "sql":
        raise ValueError(f"Unknown CASTGRID_STORE backend: {backend}")
    return SqlCatalogStore()


hub = RealtimeHub()
store = build_store()

app = FastAPI(title="CastGrid")
app.state.hub = hub
app.state.store = store
app.state.sessions = SessionRegistry(store, hub=hub, refresh_interval_sec=REFRESH_INTERVAL_SEC)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Catalog store unavailable"})


@app.get("/")
def root():
    return {
        "ok": True,
        "service": "castgrid-api",
        "store": STORE_BACKEND,
        "time_utc": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
    }


@app.get("/healthz")
def healthz():
    return {"ok": True, "revision": hub.revision, "realtime_clients": hub.client_count}


@app.websocket("/ws/updates")
async def ws_updates(websocket: WebSocket, device_id: str | None = None):
    await hub.connect(websocket, device_id=device_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        await hub.disconnect(websocket)


@app.on_event("startup")
async def startup_events() -> None:
    logger.info("CastGrid started with %s catalog store", STORE_BACKEND)


@app.on_event("shutdown")
async def shutdown_events() -> None:
    app.state.sessions.stop_all()


@app.middleware("http")
async def realtime_mutation_middleware(request: Request, call_next):
    response = await call_next(request)
    method = request.method.upper()
    path = request.url.path
    if response.status_code < 400 and method in {"POST", "PUT", "DELETE"}:
        watched_prefixes = ("/devices", "/grids", "/media", "/media-boxes")
        if path.startswith(watched_prefixes):
            await hub.publish(
                "config_changed",
                {
                    "path": path,
                    "method": method,
                },
            )
            if REFRESH_ON_CHANGE:
                # No push from the store; live sessions pick up admin edits here
                # or on their periodic refresh.
                request.app.state.sessions.refresh_all()
    return response

app.include_router(device.router)
app.include_router(grid.router)
app.include_router(media.router)
app.include_router(media_box.router)
app.include_router(layout.router)
app.include_router(player.router)

app.mount("/storage", StaticFiles(directory=STORAGE_DIR), name="storage")
