import logging
from typing import Callable, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from castgrid.db import SessionLocal
from castgrid.models.device import Device
from castgrid.models.grid import Grid
from castgrid.models.media_box import MediaBox, MediaBoxItem
from castgrid.models.media_item import MediaItem
from castgrid.schemas.device import DeviceRecord, GridRecord
from castgrid.schemas.media import MediaBoxRecord, MediaItemRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A backing read or write failed (as opposed to a record simply not existing)."""


@runtime_checkable
class CatalogStore(Protocol):
    """Read side used by the playback core. Missing records yield None / absence."""

    def get_device(self, device_id: str) -> DeviceRecord | None: ...

    def get_grids_for_device(self, device_id: str) -> list[GridRecord]: ...

    def get_media_box(self, media_box_id: str) -> MediaBoxRecord | None: ...

    def get_media_items(self, media_ids: list[str]) -> list[MediaItemRecord]: ...


@runtime_checkable
class AdminStore(CatalogStore, Protocol):
    """Full read/write surface behind the admin routers."""

    def list_devices(self) -> list[DeviceRecord]: ...

    def save_device(self, device: DeviceRecord) -> None: ...

    def delete_device(self, device_id: str) -> bool: ...

    def list_grids(self, device_id: str | None = None) -> list[GridRecord]: ...

    def get_grid(self, grid_id: str) -> GridRecord | None: ...

    def save_grid(self, grid: GridRecord) -> None: ...

    def delete_grid(self, grid_id: str) -> bool: ...

    def list_media_items(self, media_type: str | None = None) -> list[MediaItemRecord]: ...

    def get_media_item(self, media_id: str) -> MediaItemRecord | None: ...

    def save_media_item(self, item: MediaItemRecord) -> None: ...

    def delete_media_item(self, media_id: str) -> bool: ...

    def list_media_boxes(self) -> list[MediaBoxRecord]: ...

    def save_media_box(self, box: MediaBoxRecord) -> None: ...

    def delete_media_box(self, media_box_id: str) -> bool: ...


class SqlCatalogStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def _read(self, fn):
        db = self._session_factory()
        try:
            return fn(db)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        finally:
            db.close()

    def _write(self, fn):
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Write failed: %s", exc)
            raise StoreError(str(exc)) from exc
        finally:
            db.close()

    @staticmethod
    def _device_record(db: Session, device: Device) -> DeviceRecord:
        grid_ids = [
            grid_id
            for (grid_id,) in db.query(Grid.id)
            .filter(Grid.device_id == device.id)
            .order_by(Grid.position.asc())
            .all()
        ]
        return DeviceRecord(device_id=device.id, location=device.location or "", grids=grid_ids)

    @staticmethod
    def _box_record(db: Session, box: MediaBox) -> MediaBoxRecord:
        members = (
            db.query(MediaBoxItem.media_id)
            .filter(MediaBoxItem.media_box_id == box.id)
            .order_by(MediaBoxItem.order.asc())
            .all()
        )
        return MediaBoxRecord(
            media_box_id=box.id,
            name=box.name or "",
            media_items=[media_id for (media_id,) in members],
        )

    # devices

    def get_device(self, device_id: str) -> DeviceRecord | None:
        def query(db: Session) -> DeviceRecord | None:
            device = db.get(Device, device_id)
            return self._device_record(db, device) if device else None

        return self._read(query)

    def list_devices(self) -> list[DeviceRecord]:
        def query(db: Session) -> list[DeviceRecord]:
            devices = db.query(Device).order_by(Device.id.asc()).all()
            return [self._device_record(db, device) for device in devices]

        return self._read(query)

    def save_device(self, device: DeviceRecord) -> None:
        # grid ids are derived from the grid table on read
        def write(db: Session) -> None:
            row = db.get(Device, device.device_id)
            if row is None:
                row = Device(id=device.device_id)
                db.add(row)
            row.location = device.location

        self._write(write)

    def delete_device(self, device_id: str) -> bool:
        def write(db: Session) -> bool:
            row = db.get(Device, device_id)
            if row is None:
                return False
            db.query(Grid).filter(Grid.device_id == device_id).delete(synchronize_session=False)
            db.delete(row)
            return True

        return self._write(write)

    # grids

    def get_grids_for_device(self, device_id: str) -> list[GridRecord]:
        return self.list_grids(device_id)

    def list_grids(self, device_id: str | None = None) -> list[GridRecord]:
        def query(db: Session) -> list[GridRecord]:
            q = db.query(Grid)
            if device_id is not None:
                q = q.filter(Grid.device_id == device_id)
            rows = q.order_by(Grid.device_id.asc(), Grid.position.asc()).all()
            return [GridRecord.from_row(row) for row in rows]

        return self._read(query)

    def get_grid(self, grid_id: str) -> GridRecord | None:
        def query(db: Session) -> GridRecord | None:
            row = db.get(Grid, grid_id)
            return GridRecord.from_row(row) if row else None

        return self._read(query)

    def save_grid(self, grid: GridRecord) -> None:
        def write(db: Session) -> None:
            row = db.get(Grid, grid.grid_id)
            if row is None:
                row = Grid(id=grid.grid_id)
                db.add(row)
            row.device_id = grid.device_id
            row.position = grid.position
            row.media_box_id = grid.media_box_id

        self._write(write)

    def delete_grid(self, grid_id: str) -> bool:
        def write(db: Session) -> bool:
            return db.query(Grid).filter(Grid.id == grid_id).delete(synchronize_session=False) > 0

        return self._write(write)

    # media boxes

    def get_media_box(self, media_box_id: str) -> MediaBoxRecord | None:
        def query(db: Session) -> MediaBoxRecord | None:
            box = db.get(MediaBox, media_box_id)
            return self._box_record(db, box) if box else None

        return self._read(query)

    def list_media_boxes(self) -> list[MediaBoxRecord]:
        def query(db: Session) -> list[MediaBoxRecord]:
            boxes = db.query(MediaBox).order_by(MediaBox.name.asc(), MediaBox.id.asc()).all()
            return [self._box_record(db, box) for box in boxes]

        return self._read(query)

    def save_media_box(self, box: MediaBoxRecord) -> None:
        def write(db: Session) -> None:
            row = db.get(MediaBox, box.media_box_id)
            if row is None:
                row = MediaBox(id=box.media_box_id)
                db.add(row)
            row.name = box.name
            db.query(MediaBoxItem).filter(MediaBoxItem.media_box_id == box.media_box_id).delete(
                synchronize_session=False
            )
            for order, media_id in enumerate(box.media_items, start=1):
                db.add(MediaBoxItem(media_box_id=box.media_box_id, media_id=media_id, order=order))

        self._write(write)

    def delete_media_box(self, media_box_id: str) -> bool:
        def write(db: Session) -> bool:
            row = db.get(MediaBox, media_box_id)
            if row is None:
                return False
            db.query(MediaBoxItem).filter(MediaBoxItem.media_box_id == media_box_id).delete(
                synchronize_session=False
            )
            db.delete(row)
            return True

        return self._write(write)

    # media items

    def get_media_items(self, media_ids: list[str]) -> list[MediaItemRecord]:
        if not media_ids:
            return []

        def query(db: Session) -> list[MediaItemRecord]:
            rows = db.query(MediaItem).filter(MediaItem.id.in_(list(media_ids))).all()
            return [MediaItemRecord.from_row(row) for row in rows]

        return self._read(query)

    def get_media_item(self, media_id: str) -> MediaItemRecord | None:
        items = self.get_media_items([media_id])
        return items[0] if items else None

    def list_media_items(self, media_type: str | None = None) -> list[MediaItemRecord]:
        def query(db: Session) -> list[MediaItemRecord]:
            q = db.query(MediaItem)
            if media_type:
                q = q.filter(MediaItem.type == media_type)
            rows = q.order_by(MediaItem.filename.asc(), MediaItem.id.asc()).all()
            return [MediaItemRecord.from_row(row) for row in rows]

        return self._read(query)

    def save_media_item(self, item: MediaItemRecord) -> None:
        def write(db: Session) -> None:
            row = db.get(MediaItem, item.media_id)
            if row is None:
                row = MediaItem(id=item.media_id)
                db.add(row)
            row.type = item.type
            row.filename = item.filename
            row.url = item.url
            row.duration = item.duration
            row.file_size = item.file_size
            row.is_local = item.is_local
            row.download_status = item.download_status
            if item.uploaded_at is not None:
                row.uploaded_at = item.uploaded_at

        self._write(write)

    def delete_media_item(self, media_id: str) -> bool:
        # Box memberships are soft references and stay behind.
        def write(db: Session) -> bool:
            return db.query(MediaItem).filter(MediaItem.id == media_id).delete(synchronize_session=False) > 0

        return self._write(write)
