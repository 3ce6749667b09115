import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from castgrid.schemas.device import DeviceRecord, GridRecord
from castgrid.schemas.media import MediaItemRecord
from castgrid.services.catalog import MediaCatalog
from castgrid.services.grid import GridScheduler, layout_name
from castgrid.services.realtime import RealtimeHub
from castgrid.services.store import CatalogStore
from castgrid.services.zone import AsyncioTimerFactory, TimerFactory

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    NOT_CONFIGURED = "not_configured"
    ERROR = "error"


@dataclass(frozen=True)
class SessionError:
    kind: str  # "device_not_configured" | "load_failed"
    message: str

    def to_json(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class DeviceSession:
    """
    Ties a device id to a live GridScheduler.

    Loading is a discrete phase: device, grids, then media through the
    catalog. Anything that goes wrong there becomes `error` and never reaches
    the zone timers. A failed refresh leaves the current zones playing.
    """

    def __init__(
        self,
        device_id: str,
        store: CatalogStore,
        timers: TimerFactory | None = None,
        on_zone_advanced: Callable[[int], None] | None = None,
        on_state_changed: Callable[["DeviceSession"], None] | None = None,
    ) -> None:
        self.device_id = device_id
        self._store = store
        self._timers = timers or AsyncioTimerFactory()
        self._catalog = MediaCatalog(store)
        self._on_zone_advanced = on_zone_advanced
        self._on_state_changed = on_state_changed
        self._scheduler: GridScheduler | None = None
        self._refresh_task: asyncio.Task | None = None
        self.device: DeviceRecord | None = None
        self.grids: list[GridRecord] = []
        self.state = SessionState.IDLE
        self.error: SessionError | None = None
        self.loaded_at: datetime | None = None

    @property
    def scheduler(self) -> GridScheduler | None:
        return self._scheduler

    @property
    def layout_name(self) -> str:
        return layout_name(len(self.grids))

    def start(self) -> bool:
        return self.refresh()

    def refresh(self) -> bool:
        """Re-run load-and-configure. Returns True when the device is live."""
        try:
            device = self._store.get_device(self.device_id)
            if device is None:
                self._not_configured()
                return False
            grids = self._store.get_grids_for_device(self.device_id)
            media_by_position = self._catalog.load(grids)
        except Exception as exc:
            logger.warning("Device %s: load failed", self.device_id, exc_info=True)
            self._set_state(
                SessionState.ERROR,
                SessionError("load_failed", f"Failed to load device data: {exc}"),
            )
            return False

        if self._scheduler is None:
            self._scheduler = GridScheduler(self._timers, self._zone_advanced)
        for position in self._catalog.failed_positions:
            zone = self._scheduler.zone(position)
            if zone is not None:
                # Last known good instead of blanking on a transient failure.
                media_by_position[position] = list(zone.playlist)
        self._scheduler.configure(grids, media_by_position)
        self.device = device
        self.grids = grids
        self.loaded_at = datetime.now(timezone.utc)
        self._set_state(SessionState.RUNNING, None)
        return True

    def snapshot(self) -> dict[int, MediaItemRecord | None]:
        if self._scheduler is None:
            return {}
        return self._scheduler.snapshot()

    def start_periodic_refresh(self, interval_sec: float) -> None:
        if interval_sec <= 0:
            return
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop(interval_sec))

    async def _refresh_loop(self, interval_sec: float) -> None:
        while True:
            await asyncio.sleep(interval_sec)
            self.refresh()

    def stop(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        if self._scheduler is not None:
            self._scheduler.stop()

    def _not_configured(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
            self._scheduler = None
        self.device = None
        self.grids = []
        self._set_state(
            SessionState.NOT_CONFIGURED,
            SessionError(
                "device_not_configured",
                f"Device '{self.device_id}' not found. Please configure this device in the admin dashboard.",
            ),
        )

    def _set_state(self, state: SessionState, error: SessionError | None) -> None:
        changed = state != self.state or error != self.error
        self.state = state
        self.error = error
        if changed and self._on_state_changed is not None:
            try:
                self._on_state_changed(self)
            except Exception:
                logger.exception("Device %s state listener failed", self.device_id)

    def _zone_advanced(self, position: int, item: MediaItemRecord | None) -> None:
        if self._on_zone_advanced is not None:
            self._on_zone_advanced(position)

    def to_json(self) -> dict[str, Any]:
        zones = []
        for position, item in self.snapshot().items():
            zone = self._scheduler.zone(position) if self._scheduler else None
            zones.append(
                {
                    "position": position,
                    "index": zone.index if zone else None,
                    "playlist_length": len(zone.playlist) if zone else 0,
                    "item": item.to_json() if item else None,
                }
            )
        return {
            "device_id": self.device_id,
            "state": self.state.value,
            "layout": self.layout_name,
            "error": self.error.to_json() if self.error else None,
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
            "zones": zones,
        }


class SessionRegistry:
    """Live DeviceSessions for this process, one per device id."""

    def __init__(
        self,
        store: CatalogStore,
        hub: RealtimeHub | None = None,
        timers: TimerFactory | None = None,
        refresh_interval_sec: float = 0,
    ) -> None:
        self.store = store
        self._hub = hub
        self._timers = timers
        self._refresh_interval_sec = refresh_interval_sec
        self._sessions: dict[str, DeviceSession] = {}
        self._tasks: set[asyncio.Task] = set()

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._sessions

    def get(self, device_id: str) -> DeviceSession | None:
        return self._sessions.get(device_id)

    def get_or_start(self, device_id: str) -> DeviceSession:
        session = self._sessions.get(device_id)
        if session is not None:
            return session
        session = DeviceSession(
            device_id,
            self.store,
            timers=self._timers,
            on_zone_advanced=lambda position: self._zone_advanced(device_id, position),
            on_state_changed=self._state_changed,
        )
        self._sessions[device_id] = session
        session.start()
        if self._refresh_interval_sec > 0:
            session.start_periodic_refresh(self._refresh_interval_sec)
        logger.info("Session started for %s (%s)", device_id, session.state.value)
        return session

    def refresh_all(self) -> None:
        for session in list(self._sessions.values()):
            session.refresh()

    def stop(self, device_id: str) -> bool:
        session = self._sessions.pop(device_id, None)
        if session is None:
            return False
        session.stop()
        return True

    def stop_all(self) -> None:
        for device_id in list(self._sessions):
            self.stop(device_id)

    def _zone_advanced(self, device_id: str, position: int) -> None:
        session = self._sessions.get(device_id)
        item = session.snapshot().get(position) if session else None
        self._publish(
            "zone_advanced",
            {
                "device_id": device_id,
                "position": position,
                "media_id": item.media_id if item else None,
                "filename": item.filename if item else None,
            },
            device_id,
        )

    def _state_changed(self, session: DeviceSession) -> None:
        self._publish(
            "session_state",
            {
                "device_id": session.device_id,
                "state": session.state.value,
                "error": session.error.to_json() if session.error else None,
            },
            session.device_id,
        )

    def _publish(self, event_type: str, payload: dict[str, Any], device_id: str) -> None:
        if self._hub is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._hub.publish(event_type, payload, device_id=device_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
