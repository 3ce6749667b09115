import logging

from castgrid.schemas.device import GridRecord
from castgrid.schemas.media import MediaBoxRecord, MediaItemRecord
from castgrid.services.store import CatalogStore

logger = logging.getLogger(__name__)


class MediaCatalog:
    """
    Fetches and indexes the media boxes and items a device's grids point at.

    Each distinct box is read once per load and every referenced item is read
    in a single batched lookup. Ids that resolve to nothing are dropped.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._store = store
        self.boxes: dict[str, MediaBoxRecord] = {}
        self.items: dict[str, MediaItemRecord] = {}
        self.failed_positions: set[int] = set()

    def load(self, grids: list[GridRecord]) -> dict[int, list[MediaItemRecord]]:
        boxes: dict[str, MediaBoxRecord] = {}
        failed_boxes: set[str] = set()
        for box_id in dict.fromkeys(grid.media_box_id for grid in grids if grid.media_box_id):
            try:
                box = self._store.get_media_box(box_id)
            except Exception:
                logger.warning("Media box %s could not be read", box_id, exc_info=True)
                failed_boxes.add(box_id)
                continue
            if box is None:
                logger.info("Media box %s not found, zone will be empty", box_id)
                continue
            boxes[box_id] = box

        wanted_ids = list(dict.fromkeys(media_id for box in boxes.values() for media_id in box.media_items))
        items: dict[str, MediaItemRecord] = {}
        items_failed = False
        if wanted_ids:
            try:
                items = {item.media_id: item for item in self._store.get_media_items(wanted_ids)}
            except Exception:
                logger.warning("Media items could not be read", exc_info=True)
                items_failed = True

        missing = [media_id for media_id in wanted_ids if media_id not in items]
        if missing and not items_failed:
            logger.info("Dropping %d dangling media reference(s): %s", len(missing), ", ".join(missing))

        self.boxes = boxes
        self.items = items
        self.failed_positions = set()
        playlists: dict[int, list[MediaItemRecord]] = {}
        for grid in grids:
            box_id = grid.media_box_id
            if box_id in failed_boxes or (items_failed and box_id in boxes and boxes[box_id].media_items):
                self.failed_positions.add(grid.position)
                playlists[grid.position] = []
                continue
            box = boxes.get(box_id)
            if box is None:
                playlists[grid.position] = []
                continue
            playlists[grid.position] = [items[media_id] for media_id in box.media_items if media_id in items]
        return playlists
