import logging

from castgrid.schemas.device import GridRecord
from castgrid.schemas.media import MediaItemRecord
from castgrid.services.playlist import playlist_signature, resolve
from castgrid.services.zone import TimerFactory, ZoneCallback, ZoneScheduler

logger = logging.getLogger(__name__)

LAYOUT_NAMES = {1: "Full", 2: "Split", 3: "Triple", 4: "Quad", 6: "Six", 8: "Eight"}


def layout_name(grid_count: int) -> str:
    return LAYOUT_NAMES.get(grid_count, "Custom")


class GridScheduler:
    """One ZoneScheduler per configured grid position, plus the layout snapshot."""

    def __init__(self, timers: TimerFactory, on_zone_advanced: ZoneCallback | None = None) -> None:
        self._timers = timers
        self._on_zone_advanced = on_zone_advanced
        self._zones: dict[int, ZoneScheduler] = {}
        self._signatures: dict[int, tuple] = {}

    @property
    def positions(self) -> list[int]:
        return sorted(self._zones)

    @property
    def layout_name(self) -> str:
        return layout_name(len(self._zones))

    def zone(self, position: int) -> ZoneScheduler | None:
        return self._zones.get(position)

    def configure(
        self,
        grids: list[GridRecord],
        media_by_position: dict[int, list[MediaItemRecord]],
    ) -> list[int]:
        """
        Apply fresh configuration. Only zones whose media box or resolved
        playlist differs from what they are playing get reset; the others keep
        their index and timer. Returns the positions that were (re)started.
        """
        wanted: dict[int, GridRecord] = {}
        for grid in sorted(grids, key=lambda g: g.position):
            if grid.position in wanted:
                logger.warning(
                    "Duplicate grid position %s (%s ignored)", grid.position, grid.grid_id
                )
                continue
            wanted[grid.position] = grid

        for position in [p for p in self._zones if p not in wanted]:
            self._zones.pop(position).stop()
            self._signatures.pop(position, None)
            logger.info("Zone %s removed", position)

        changed: list[int] = []
        for position, grid in wanted.items():
            playlist = resolve(media_by_position.get(position, []))
            signature = (grid.media_box_id, playlist_signature(playlist))
            zone = self._zones.get(position)
            if zone is None:
                zone = ZoneScheduler(position, self._timers, self._on_zone_advanced)
                self._zones[position] = zone
            elif self._signatures.get(position) == signature:
                continue
            self._signatures[position] = signature
            zone.set_playlist(playlist)
            changed.append(position)
        if changed:
            logger.info("Zones reconfigured: %s", ", ".join(str(p) for p in changed))
        return changed

    def snapshot(self) -> dict[int, MediaItemRecord | None]:
        return {position: self._zones[position].current_item() for position in self.positions}

    def stop(self) -> None:
        for zone in self._zones.values():
            zone.stop()
        # stopped zones have no timer; the next configure must re-arm them
        self._signatures.clear()
