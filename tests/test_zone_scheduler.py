import pytest

from castgrid.services.zone import ZoneScheduler, ZoneState

from conftest import SteppedTimers, make_item


@pytest.fixture
def events():
    return []


@pytest.fixture
def zone(timers, events):
    return ZoneScheduler(1, timers, lambda position, item: events.append((timers.now, item.filename if item else None)))


def _playlist(*durations):
    return [make_item(f"m{i}", f"{chr(ord('A') + i)}.jpg", duration=d) for i, d in enumerate(durations)]


def test_new_zone_is_empty(zone, timers):
    assert zone.state == ZoneState.EMPTY
    assert zone.current_item() is None
    assert timers.pending == 0


def test_set_playlist_shows_first_item_and_arms_timer(zone, timers, events):
    zone.set_playlist(_playlist(5, 5))

    assert zone.state == ZoneState.SHOWING
    assert zone.index == 0
    assert zone.current_item().filename == "A.jpg"
    assert timers.pending == 1
    assert events == [(0.0, "A.jpg")]


def test_advancing_playlist_length_times_returns_to_first_item(zone):
    playlist = _playlist(3, 4, 5)
    zone.set_playlist(playlist)

    for _ in range(len(playlist)):
        zone.advance()

    assert zone.index == 0
    assert zone.current_item() == playlist[0]


def test_single_item_playlist_never_changes(zone, timers, events):
    only = _playlist(2)
    zone.set_playlist(only)

    timers.advance(20)

    assert zone.current_item() == only[0]
    assert zone.index == 0
    # re-shown every 2s, timer always re-armed
    assert len(events) == 11
    assert timers.pending == 1


def test_duration_drives_exactly_one_advance(zone, timers, events):
    zone.set_playlist(_playlist(7, 30))

    timers.advance(6.9)
    assert zone.index == 0

    timers.advance(0.3)
    assert zone.index == 1
    advances = [at for at, _ in events[1:]]
    assert advances == [7.0]
    assert 7.0 <= advances[0] <= 7.2


def test_zones_wrap_forever(zone, timers):
    zone.set_playlist(_playlist(1, 2))

    timers.advance(9)  # A@0, B@1, A@3, B@4, A@6, B@7, A@9

    assert zone.current_item().filename == "A.jpg"


@pytest.mark.parametrize("bad_duration", [0, -5])
def test_invalid_duration_is_clamped_to_one_second(zone, timers, bad_duration):
    zone.set_playlist(_playlist(bad_duration, 10))

    timers.advance(0.5)
    assert zone.index == 0
    timers.advance(0.5)
    assert zone.index == 1


def test_set_playlist_restarts_from_first_item(zone, timers):
    zone.set_playlist(_playlist(5, 5, 5))
    timers.advance(5)
    assert zone.index == 1

    replacement = _playlist(8, 8)
    zone.set_playlist(replacement)

    assert zone.index == 0
    assert zone.current_item() == replacement[0]


def test_set_playlist_cancels_outstanding_timer(zone, timers):
    zone.set_playlist(_playlist(5, 5))
    timers.advance(3)

    zone.set_playlist(_playlist(5, 5))
    timers.advance(2)  # t=5: the superseded timer must not fire
    assert zone.index == 0

    timers.advance(3)  # t=8: five seconds after the new playlist
    assert zone.index == 1


class _LeakyTimers(SteppedTimers):
    """Timers whose cancel() loses the race and fires anyway."""

    def call_later(self, delay, callback):
        handle = super().call_later(delay, callback)
        handle.cancel = lambda: None
        return handle


def test_stale_timer_firing_after_reconfiguration_is_ignored():
    timers = _LeakyTimers()
    zone = ZoneScheduler(1, timers)
    zone.set_playlist(_playlist(5, 5))
    timers.advance(3)
    zone.set_playlist(_playlist(10, 10))

    timers.advance(2)  # old handle fires at t=5

    assert zone.index == 0


def test_empty_playlist_returns_zone_to_empty(zone, timers, events):
    zone.set_playlist(_playlist(5))
    zone.set_playlist([])

    assert zone.state == ZoneState.EMPTY
    assert zone.current_item() is None
    assert timers.pending == 0
    assert events[-1] == (0.0, None)


def test_advance_on_empty_zone_is_noop(zone, timers):
    zone.advance()

    assert zone.state == ZoneState.EMPTY
    assert timers.pending == 0


def test_stop_cancels_timer_and_keeps_item(zone, timers):
    playlist = _playlist(5, 5)
    zone.set_playlist(playlist)

    zone.stop()
    timers.advance(60)

    assert zone.current_item() == playlist[0]
    assert timers.pending == 0


def test_listener_errors_do_not_break_rotation(timers):
    def broken(position, item):
        raise RuntimeError("renderer went away")

    zone = ZoneScheduler(1, timers, broken)
    zone.set_playlist(_playlist(1, 1))

    timers.advance(3)

    assert zone.index == 1
    assert timers.pending == 1
