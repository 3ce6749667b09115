"""
JSON-file catalog store.

One directory holds `devices.json`, `grids.json`, `media-boxes.json` and
`media-items.json`, each a JSON array. Writes replace the whole file, the
same read/modify/write cycle the dashboard used against a git-hosted data
folder.
"""

import json
import logging
import os
import threading
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from castgrid.schemas.device import DeviceRecord, GridRecord
from castgrid.schemas.media import MediaBoxRecord, MediaItemRecord
from castgrid.services.store import StoreError

logger = logging.getLogger(__name__)

DEVICES_FILE = "devices.json"
GRIDS_FILE = "grids.json"
MEDIA_BOXES_FILE = "media-boxes.json"
MEDIA_ITEMS_FILE = "media-items.json"

RecordT = TypeVar("RecordT", bound=BaseModel)


class JsonCatalogStore:
    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir
        self._lock = threading.RLock()

    def _path(self, filename: str) -> str:
        return os.path.join(self.data_dir, filename)

    def read_rows(self, filename: str) -> list[dict[str, Any]]:
        path = self._path(filename)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read {filename}: {exc}") from exc
        if not isinstance(rows, list):
            raise StoreError(f"{filename} must contain a JSON array")
        return [row for row in rows if isinstance(row, dict)]

    def write_rows(self, filename: str, rows: list[dict[str, Any]]) -> None:
        path = self._path(filename)
        tmp_path = f"{path}.tmp"
        with self._lock:
            try:
                os.makedirs(self.data_dir, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(rows, f, indent=2)
                os.replace(tmp_path, path)
            except OSError as exc:
                raise StoreError(f"Could not write {filename}: {exc}") from exc

    def upsert_row(self, filename: str, key: str, row: dict[str, Any]) -> None:
        with self._lock:
            rows = self.read_rows(filename)
            for index, existing in enumerate(rows):
                if existing.get(key) == row.get(key):
                    rows[index] = row
                    break
            else:
                rows.append(row)
            self.write_rows(filename, rows)

    def delete_row(self, filename: str, key: str, value: str) -> bool:
        return self._delete_where(filename, lambda row: row.get(key) == value) > 0

    def _delete_where(self, filename: str, predicate: Callable[[dict[str, Any]], bool]) -> int:
        with self._lock:
            rows = self.read_rows(filename)
            kept = [row for row in rows if not predicate(row)]
            removed = len(rows) - len(kept)
            if removed:
                self.write_rows(filename, kept)
            return removed

    def _records(
        self,
        filename: str,
        model: type[RecordT],
        key: str,
        where: Callable[[dict[str, Any]], bool] | None = None,
    ) -> list[RecordT]:
        records: list[RecordT] = []
        for row in self.read_rows(filename):
            if where is not None and not where(row):
                continue
            try:
                records.append(model.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping invalid %s row %s: %s", filename, row.get(key), exc.errors()[0]["msg"])
        return records

    # devices

    def get_device(self, device_id: str) -> DeviceRecord | None:
        found = self._records(DEVICES_FILE, DeviceRecord, "deviceId", lambda row: row.get("deviceId") == device_id)
        return found[0] if found else None

    def list_devices(self) -> list[DeviceRecord]:
        return sorted(self._records(DEVICES_FILE, DeviceRecord, "deviceId"), key=lambda device: device.device_id)

    def save_device(self, device: DeviceRecord) -> None:
        self.upsert_row(DEVICES_FILE, "deviceId", device.to_json())

    def delete_device(self, device_id: str) -> bool:
        with self._lock:
            if not self.delete_row(DEVICES_FILE, "deviceId", device_id):
                return False
            self._delete_where(GRIDS_FILE, lambda row: row.get("deviceId") == device_id)
            return True

    # grids

    def get_grids_for_device(self, device_id: str) -> list[GridRecord]:
        return self.list_grids(device_id)

    def list_grids(self, device_id: str | None = None) -> list[GridRecord]:
        where = None if device_id is None else (lambda row: row.get("deviceId") == device_id)
        grids = self._records(GRIDS_FILE, GridRecord, "gridId", where)
        return sorted(grids, key=lambda grid: (grid.device_id, grid.position))

    def get_grid(self, grid_id: str) -> GridRecord | None:
        found = self._records(GRIDS_FILE, GridRecord, "gridId", lambda row: row.get("gridId") == grid_id)
        return found[0] if found else None

    def save_grid(self, grid: GridRecord) -> None:
        self.upsert_row(GRIDS_FILE, "gridId", grid.to_json())

    def delete_grid(self, grid_id: str) -> bool:
        return self.delete_row(GRIDS_FILE, "gridId", grid_id)

    # media boxes

    def get_media_box(self, media_box_id: str) -> MediaBoxRecord | None:
        found = self._records(
            MEDIA_BOXES_FILE, MediaBoxRecord, "mediaBoxId", lambda row: row.get("mediaBoxId") == media_box_id
        )
        return found[0] if found else None

    def list_media_boxes(self) -> list[MediaBoxRecord]:
        boxes = self._records(MEDIA_BOXES_FILE, MediaBoxRecord, "mediaBoxId")
        return sorted(boxes, key=lambda box: (box.name, box.media_box_id))

    def save_media_box(self, box: MediaBoxRecord) -> None:
        self.upsert_row(MEDIA_BOXES_FILE, "mediaBoxId", box.to_json())

    def delete_media_box(self, media_box_id: str) -> bool:
        return self.delete_row(MEDIA_BOXES_FILE, "mediaBoxId", media_box_id)

    # media items

    def get_media_items(self, media_ids: list[str]) -> list[MediaItemRecord]:
        wanted = set(media_ids)
        if not wanted:
            return []
        return self._records(MEDIA_ITEMS_FILE, MediaItemRecord, "mediaId", lambda row: row.get("mediaId") in wanted)

    def get_media_item(self, media_id: str) -> MediaItemRecord | None:
        items = self.get_media_items([media_id])
        return items[0] if items else None

    def list_media_items(self, media_type: str | None = None) -> list[MediaItemRecord]:
        items = self._records(MEDIA_ITEMS_FILE, MediaItemRecord, "mediaId")
        if media_type:
            items = [item for item in items if item.type == media_type]
        return sorted(items, key=lambda item: (item.filename, item.media_id))

    def save_media_item(self, item: MediaItemRecord) -> None:
        self.upsert_row(MEDIA_ITEMS_FILE, "mediaId", item.to_json())

    def delete_media_item(self, media_id: str) -> bool:
        return self.delete_row(MEDIA_ITEMS_FILE, "mediaId", media_id)
