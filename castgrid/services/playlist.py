from typing import Iterable

from castgrid.schemas.media import MediaItemRecord


def resolve(items: Iterable[MediaItemRecord]) -> list[MediaItemRecord]:
    """
    Playback order for a media box: filename ascending, case-insensitive,
    plain lexicographic (no natural/numeric ordering). Content producers rely
    on this to order a zone by naming files `A_...`, `B_...`.

    `sorted` is stable, so identical filenames keep their relative order.
    """
    return sorted(items, key=lambda item: item.filename.lower())


def playlist_signature(items: Iterable[MediaItemRecord]) -> tuple:
    # Everything that changes what a zone shows or for how long.
    return tuple((item.media_id, item.filename, item.url, item.duration) for item in items)
