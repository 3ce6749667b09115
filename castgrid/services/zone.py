import asyncio
import logging
from enum import Enum
from typing import Callable, Iterable, Protocol

from castgrid.schemas.media import MediaItemRecord

logger = logging.getLogger(__name__)

MIN_DURATION_SEC = 1

ZoneCallback = Callable[[int, MediaItemRecord | None], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerFactory(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioTimerFactory:
    """Timers on the running asyncio loop. Cancellation is synchronous."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ZoneState(str, Enum):
    EMPTY = "empty"
    SHOWING = "showing"


def effective_duration(item: MediaItemRecord) -> int:
    # Stored durations can be zero or negative after edits.
    return max(MIN_DURATION_SEC, int(item.duration))


class ZoneScheduler:
    """
    Fixed-duration round robin for one grid position.

    Each item stays current for exactly its `duration`, then the zone moves
    to the next one and wraps at the end. Video and image are timed the same
    way; nothing here asks a player whether playback actually finished.
    """

    def __init__(
        self,
        position: int,
        timers: TimerFactory,
        on_advanced: ZoneCallback | None = None,
    ) -> None:
        self.position = position
        self._timers = timers
        self._on_advanced = on_advanced
        self._playlist: tuple[MediaItemRecord, ...] = ()
        self._index: int | None = None
        self._handle: TimerHandle | None = None
        self._generation = 0

    @property
    def state(self) -> ZoneState:
        return ZoneState.EMPTY if self._index is None else ZoneState.SHOWING

    @property
    def index(self) -> int | None:
        return self._index

    @property
    def playlist(self) -> tuple[MediaItemRecord, ...]:
        return self._playlist

    @property
    def timer_pending(self) -> bool:
        return self._handle is not None

    def current_item(self) -> MediaItemRecord | None:
        if self._index is None:
            return None
        return self._playlist[self._index]

    def set_playlist(self, items: Iterable[MediaItemRecord]) -> None:
        """Replace the playlist and restart from the first item."""
        self._cancel_timer()
        was_showing = self._index is not None
        self._playlist = tuple(items)
        if not self._playlist:
            self._index = None
            logger.debug("Zone %s is empty", self.position)
            if was_showing:
                self._notify()
            return
        self._index = 0
        self._show()

    def advance(self) -> None:
        if self._index is None:
            return
        self._cancel_timer()
        self._index = (self._index + 1) % len(self._playlist)
        self._show()

    def stop(self) -> None:
        self._cancel_timer()

    def _show(self) -> None:
        item = self._playlist[self._index]
        delay = effective_duration(item)
        if delay != item.duration:
            logger.warning(
                "Zone %s: media %s has invalid duration %s, using %ss",
                self.position,
                item.media_id,
                item.duration,
                delay,
            )
        self._schedule(delay)
        self._notify()

    def _schedule(self, delay: int) -> None:
        self._generation += 1
        generation = self._generation
        self._handle = self._timers.call_later(delay, lambda: self._on_timer(generation))

    def _on_timer(self, generation: int) -> None:
        # A handle that fires after set_playlist/stop superseded it is stale.
        if generation != self._generation:
            return
        self._handle = None
        self.advance()

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _notify(self) -> None:
        if self._on_advanced is None:
            return
        try:
            self._on_advanced(self.position, self.current_item())
        except Exception:
            logger.exception("Zone %s advance listener failed", self.position)
