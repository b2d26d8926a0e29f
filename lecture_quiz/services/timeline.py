"""Map playback time onto transcript segments."""

from __future__ import annotations

import logging
from bisect import bisect_right
from typing import Callable, List, Optional, Protocol, Sequence

from .records import Segment


LOGGER = logging.getLogger(__name__)


class PlaybackController(Protocol):
    """Anything that can be told to seek and resume playback."""

    def seek(self, position: float) -> None: ...

    def play(self) -> None: ...


def is_searchable(segments: Sequence[Segment]) -> bool:
    """Return ``True`` when *segments* are sorted by start and do not overlap."""

    return all(
        previous.start_time <= current.start_time and previous.end_time <= current.start_time
        for previous, current in zip(segments, segments[1:])
    )


def _scan(time: float, segments: Sequence[Segment]) -> Optional[int]:
    for index, segment in enumerate(segments):
        if segment.contains(time):
            return index
    return None


def _search(time: float, segments: Sequence[Segment], starts: Sequence[float]) -> Optional[int]:
    candidate = bisect_right(starts, time) - 1
    if candidate >= 0 and segments[candidate].contains(time):
        return candidate
    return None


def active_segment(
    time: float,
    segments: Sequence[Segment],
    previous: Optional[int] = None,
) -> Optional[int]:
    """Return the index of the segment covering *time*.

    The first segment with ``start <= time < end`` wins. When no segment
    covers *time* (a gap between segments or a position past the end) the
    *previous* index is kept. An empty segment list has no active index.
    """

    if not segments:
        return None
    if is_searchable(segments):
        found = _search(time, segments, [segment.start_time for segment in segments])
    else:
        found = _scan(time, segments)
    return previous if found is None else found


class SegmentTracker:
    """Two-way binding between the active segment and the playback position."""

    def __init__(
        self,
        player: Optional[PlaybackController] = None,
        *,
        on_change: Optional[Callable[[Optional[int]], None]] = None,
    ) -> None:
        self._player = player
        self._on_change = on_change
        self._segments: Sequence[Segment] = ()
        self._starts: List[float] = []
        self._searchable = True
        self._active: Optional[int] = None
        self._position = 0.0

    @property
    def active_index(self) -> Optional[int]:
        return self._active

    @property
    def position(self) -> float:
        return self._position

    @property
    def segments(self) -> Sequence[Segment]:
        return self._segments

    def update_segments(self, segments: Sequence[Segment]) -> None:
        """Replace the segment list, keeping the active index while it stays valid."""

        self._segments = tuple(segments)
        self._starts = [segment.start_time for segment in self._segments]
        self._searchable = is_searchable(self._segments)
        if not self._searchable and self._segments:
            LOGGER.warning(
                "Transcript segments overlap or are unsorted; using first-match lookup for %d segments",
                len(self._segments),
            )

        if not self._segments:
            self._set_active(None)
        elif self._active is None:
            found = self._lookup(self._position)
            self._set_active(0 if found is None else found)
        elif self._active >= len(self._segments):
            self._set_active(len(self._segments) - 1)

    def on_time_update(self, position: float) -> Optional[int]:
        """Recompute the active segment for a playback time-change event."""

        self._position = position
        if not self._segments:
            return None
        found = self._lookup(position)
        if found is not None:
            self._set_active(found)
        return self._active

    def _lookup(self, position: float) -> Optional[int]:
        if self._searchable:
            return _search(position, self._segments, self._starts)
        return _scan(position, self._segments)

    def select(self, index: int) -> Segment:
        """Make *index* active, seek playback to its start and resume playing."""

        if not 0 <= index < len(self._segments):
            raise IndexError(f"Segment {index} is out of range (0..{len(self._segments) - 1})")
        segment = self._segments[index]
        self._set_active(index)
        self._position = segment.start_time
        if self._player is not None:
            self._player.seek(segment.start_time)
            try:
                self._player.play()
            except Exception as error:  # noqa: BLE001 - playback is best effort
                LOGGER.error("Error resuming playback at %.2fs: %s", segment.start_time, error)
        return segment

    def reset(self) -> None:
        self._segments = ()
        self._starts = []
        self._searchable = True
        self._position = 0.0
        self._set_active(None)

    def _set_active(self, index: Optional[int]) -> None:
        if index == self._active:
            return
        LOGGER.debug("Active segment changed from %s to %s", self._active, index)
        self._active = index
        if self._on_change is not None:
            self._on_change(index)


__all__ = ["PlaybackController", "SegmentTracker", "active_segment", "is_searchable"]
