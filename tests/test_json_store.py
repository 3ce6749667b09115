import json
import os

import pytest

from castgrid.schemas.device import DeviceRecord, GridRecord
from castgrid.seed import seed_json
from castgrid.services.json_store import (
    DEVICES_FILE,
    GRIDS_FILE,
    MEDIA_BOXES_FILE,
    MEDIA_ITEMS_FILE,
    JsonCatalogStore,
)
from castgrid.services.session import DeviceSession
from castgrid.services.store import AdminStore, CatalogStore, StoreError


def _write(data_dir, filename, rows):
    with open(os.path.join(data_dir, filename), "w", encoding="utf-8") as f:
        json.dump(rows, f)


@pytest.fixture
def json_store(tmp_path):
    return JsonCatalogStore(str(tmp_path))


def test_json_store_satisfies_catalog_protocol(json_store):
    assert isinstance(json_store, CatalogStore)


def test_missing_files_read_as_empty(json_store):
    assert json_store.get_device("tv_001") is None
    assert json_store.get_grids_for_device("tv_001") == []
    assert json_store.get_media_items(["a"]) == []


def test_media_items_are_normalized(json_store, tmp_path):
    _write(
        str(tmp_path),
        MEDIA_ITEMS_FILE,
        [
            {"mediaId": "legacy", "fileName": "Menu.png", "url": "https://cdn/x.png", "duration": "12"},
            {"mediaId": "bare", "url": "https://cdn/videos/intro.mp4"},
            {"mediaId": "typed", "filename": "clip.MOV", "type": "unknown"},
        ],
    )

    items = {item.media_id: item for item in json_store.get_media_items(["legacy", "bare", "typed"])}

    assert items["legacy"].filename == "Menu.png"
    assert items["legacy"].duration == 12
    assert items["legacy"].type == "image"
    assert items["bare"].filename == "intro.mp4"
    assert items["bare"].type == "video"
    assert items["bare"].duration == 30
    assert items["typed"].type == "video"


def test_grids_are_sorted_and_invalid_rows_skipped(json_store, tmp_path):
    _write(
        str(tmp_path),
        GRIDS_FILE,
        [
            {"gridId": "g2", "deviceId": "tv", "position": 2, "mediaBoxId": None},
            {"gridId": "g1", "deviceId": "tv", "position": 1, "mediaBoxId": " box1 "},
            {"gridId": "g9", "deviceId": "tv", "position": 9},
            {"gridId": "other", "deviceId": "tv_2", "position": 1},
        ],
    )

    grids = json_store.get_grids_for_device("tv")

    assert [grid.grid_id for grid in grids] == ["g1", "g2"]
    assert grids[0].media_box_id == "box1"
    assert grids[1].media_box_id == ""


def test_corrupt_file_raises_store_error(json_store, tmp_path):
    with open(os.path.join(str(tmp_path), DEVICES_FILE), "w", encoding="utf-8") as f:
        f.write("{not json")

    with pytest.raises(StoreError):
        json_store.get_device("tv_001")


def test_non_array_file_raises_store_error(json_store, tmp_path):
    _write(str(tmp_path), MEDIA_BOXES_FILE, {"mediaBoxId": "box1"})

    with pytest.raises(StoreError):
        json_store.get_media_box("box1")


def test_upsert_and_delete_rows(json_store):
    json_store.upsert_row(DEVICES_FILE, "deviceId", {"deviceId": "tv", "location": "Hall"})
    json_store.upsert_row(DEVICES_FILE, "deviceId", {"deviceId": "tv", "location": "Lobby"})

    assert json_store.read_rows(DEVICES_FILE) == [{"deviceId": "tv", "location": "Lobby"}]
    assert json_store.delete_row(DEVICES_FILE, "deviceId", "tv") is True
    assert json_store.delete_row(DEVICES_FILE, "deviceId", "tv") is False


def test_session_runs_against_seeded_json_data(json_store, tmp_path, timers):
    seed_json(str(tmp_path))
    session = DeviceSession("tv_001", json_store, timers=timers)

    assert session.start() is True
    snapshot = session.snapshot()
    assert [item.filename for item in snapshot.values()] == ["A_welcome_video.mp4", "A_welcome_video.mp4"]

    timers.advance(30)
    assert session.snapshot()[1].filename == "B_menu_image.jpg"


def test_corrupt_store_puts_session_in_error(json_store, tmp_path, timers):
    with open(os.path.join(str(tmp_path), DEVICES_FILE), "w", encoding="utf-8") as f:
        f.write("[")

    session = DeviceSession("tv_001", json_store, timers=timers)

    assert session.start() is False
    assert session.state.value == "error"


def test_admin_edits_reach_player_with_json_backend(json_client):
    json_client.post("/media", json={"mediaId": "m1", "filename": "B.jpg", "duration": 5})
    json_client.post("/media", json={"mediaId": "m2", "filename": "a.jpg", "duration": 5})
    json_client.post("/media-boxes", json={"mediaBoxId": "box1", "name": "Lobby", "mediaItems": ["m1", "m2"]})
    json_client.post("/devices", json={"deviceId": "tv", "gridCount": 1})
    assert json_client.get("/player/tv/snapshot").json()["zones"][0]["item"] is None

    json_client.put("/grids/tv_grid_1", params={"media_box_id": "box1"})

    playlist = json_client.get("/media-boxes/box1/playlist").json()
    assert [item["filename"] for item in playlist["items"]] == ["a.jpg", "B.jpg"]
    snapshot = json_client.get("/player/tv/snapshot").json()
    assert snapshot["state"] == "running"
    assert snapshot["zones"][0]["item"]["mediaId"] == "m2"

    store = json_client.app.state.store
    assert [row["deviceId"] for row in store.read_rows(DEVICES_FILE)] == ["tv"]
    assert store.read_rows(DEVICES_FILE)[0]["grids"] == ["tv_grid_1"]
    assert store.read_rows(GRIDS_FILE)[0]["mediaBoxId"] == "box1"


def test_delete_device_cascades_grids_in_json_files(json_store):
    json_store.save_device(DeviceRecord(device_id="tv", grids=["tv_grid_1"]))
    json_store.save_grid(GridRecord(grid_id="tv_grid_1", device_id="tv", position=1))
    json_store.save_grid(GridRecord(grid_id="other_grid_1", device_id="other", position=1))

    assert json_store.delete_device("tv") is True

    assert json_store.get_device("tv") is None
    assert [grid.grid_id for grid in json_store.list_grids()] == ["other_grid_1"]
    assert json_store.delete_device("tv") is False


def test_json_store_satisfies_admin_protocol(json_store):
    assert isinstance(json_store, AdminStore)
