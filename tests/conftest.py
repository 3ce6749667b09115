"""
Shared fixtures.

The database and storage locations are read from the environment when
`castgrid.db` / `castgrid.services.storage` are first imported, so they are
pointed at a throwaway directory before anything from the package loads.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="castgrid-tests-")
os.environ["CASTGRID_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["CASTGRID_STORAGE_DIR"] = os.path.join(_TMP_DIR, "storage")
os.environ["CASTGRID_STORE"] = "sql"
os.environ["CASTGRID_REFRESH_ON_CHANGE"] = "1"
os.environ["CASTGRID_REFRESH_INTERVAL_SEC"] = "0"

import pytest

from castgrid.schemas.device import DeviceRecord, GridRecord
from castgrid.schemas.media import MediaBoxRecord, MediaItemRecord
from castgrid.services.store import StoreError


class _SteppedHandle:
    def __init__(self, when: float, seq: int, callback) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SteppedTimers:
    """Deterministic timer factory: callbacks fire only inside advance()."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._handles: list[_SteppedHandle] = []
        self._seq = 0

    def call_later(self, delay, callback):
        handle = _SteppedHandle(self.now + delay, self._seq, callback)
        self._seq += 1
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled)

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target
        self._handles = [h for h in self._handles if not h.cancelled]
        return self.now


class MemoryStore:
    """CatalogStore over plain dicts, with switches to simulate backend failures."""

    def __init__(self) -> None:
        self.devices: dict[str, DeviceRecord] = {}
        self.grids: dict[str, GridRecord] = {}
        self.boxes: dict[str, MediaBoxRecord] = {}
        self.items: dict[str, MediaItemRecord] = {}
        self.fail_device = False
        self.fail_boxes: set[str] = set()
        self.fail_items = False
        self.box_reads: list[str] = []
        self.item_reads: list[list[str]] = []

    def add_device(self, device_id: str, box_ids: list[str], location: str = "") -> None:
        grid_ids = [f"{device_id}_grid_{position}" for position in range(1, len(box_ids) + 1)]
        self.devices[device_id] = DeviceRecord(device_id=device_id, location=location, grids=grid_ids)
        for position, (grid_id, box_id) in enumerate(zip(grid_ids, box_ids), start=1):
            self.grids[grid_id] = GridRecord(
                grid_id=grid_id, device_id=device_id, position=position, media_box_id=box_id
            )

    def assign(self, grid_id: str, box_id: str) -> None:
        self.grids[grid_id] = self.grids[grid_id].model_copy(update={"media_box_id": box_id})

    def add_box(self, box_id: str, items: list[MediaItemRecord], extra_ids: tuple[str, ...] = ()) -> None:
        for item in items:
            self.items[item.media_id] = item
        self.boxes[box_id] = MediaBoxRecord(
            media_box_id=box_id,
            name=box_id,
            media_items=[item.media_id for item in items] + list(extra_ids),
        )

    def get_device(self, device_id):
        if self.fail_device:
            raise StoreError("backend unavailable")
        return self.devices.get(device_id)

    def get_grids_for_device(self, device_id):
        return sorted(
            (grid for grid in self.grids.values() if grid.device_id == device_id),
            key=lambda grid: grid.position,
        )

    def get_media_box(self, media_box_id):
        self.box_reads.append(media_box_id)
        if media_box_id in self.fail_boxes:
            raise StoreError(f"could not read {media_box_id}")
        return self.boxes.get(media_box_id)

    def get_media_items(self, media_ids):
        self.item_reads.append(list(media_ids))
        if self.fail_items:
            raise StoreError("could not read media items")
        return [self.items[media_id] for media_id in media_ids if media_id in self.items]


def make_item(media_id: str, filename: str, duration: int | None = None, type: str | None = None) -> MediaItemRecord:
    data = {"mediaId": media_id, "filename": filename, "url": f"https://cdn.example.com/{filename}"}
    if duration is not None:
        data["duration"] = duration
    if type is not None:
        data["type"] = type
    return MediaItemRecord.model_validate(data)


@pytest.fixture
def timers() -> SteppedTimers:
    return SteppedTimers()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


def _serve(store):
    from fastapi.testclient import TestClient

    from castgrid.main import app
    from castgrid.services.session import SessionRegistry

    saved = (app.state.store, app.state.sessions)
    app.state.store = store
    app.state.sessions = SessionRegistry(store, hub=app.state.hub)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.state.store, app.state.sessions = saved


@pytest.fixture(params=["sql", "json"])
def client(request, tmp_path):
    """API client over each catalog backend."""
    if request.param == "sql":
        from castgrid.db import Base, engine
        from castgrid.services.store import SqlCatalogStore

        Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
        store = SqlCatalogStore()
    else:
        from castgrid.services.json_store import JsonCatalogStore

        store = JsonCatalogStore(str(tmp_path / "data"))
    yield from _serve(store)


@pytest.fixture
def json_client(tmp_path):
    from castgrid.services.json_store import JsonCatalogStore

    yield from _serve(JsonCatalogStore(str(tmp_path / "data")))
