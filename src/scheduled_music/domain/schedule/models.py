"""
Schedule domain models.

Contains data structures for events, their tracks, and the derived
playback window and selection result.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple, Optional

from scheduled_music.utils.timestamps import parse_utc_timestamp


@dataclass(frozen=True, eq=False)
class Track:
    """A single audio item inside an event.

    Identity is by reference: the same track object appearing in the
    schedule snapshot is the same track for change notifications.
    """

    id: str
    name: str
    locator: str  # Opaque; resolved by the audio resource fetcher
    duration_seconds: float = 0.0

    @property
    def has_valid_duration(self) -> bool:
        """Zero or negative durations are unknown and skipped by the cursor."""
        return self.duration_seconds > 0


@dataclass(frozen=True, eq=False)
class Event:
    """A named, time-boxed program slot with an ordered track list.

    Raw timestamps are kept verbatim so a schedule round-trips unchanged;
    use ``start``/``end`` for parsed UTC values.
    """

    id: str
    name: str
    artist: str
    start_time_utc: str
    end_time_utc: str
    tracks: tuple[Track, ...] = ()

    @property
    def start(self) -> Optional[datetime]:
        return parse_utc_timestamp(self.start_time_utc)

    @property
    def end(self) -> Optional[datetime]:
        return parse_utc_timestamp(self.end_time_utc)

    @property
    def total_track_duration(self) -> float:
        """Sum of valid track durations, in seconds."""
        return sum(t.duration_seconds for t in self.tracks if t.has_valid_duration)

    def __repr__(self) -> str:
        return f"Event(id={self.id!r}, name={self.name!r}, start={self.start_time_utc!r})"


@dataclass(frozen=True)
class EffectiveWindow:
    """The span during which an event is considered active.

    ``effective_end`` is the earlier of the declared end and the instant the
    event's audio runs out, so it never exceeds ``end``.
    """

    start: datetime
    end: datetime
    effective_end: datetime

    def contains(self, timestamp: datetime) -> bool:
        """True if start <= timestamp < effective_end."""
        return self.start <= timestamp < self.effective_end

    def seconds_until_end(self, timestamp: datetime) -> float:
        return (self.effective_end - timestamp).total_seconds()


def effective_window(event: Event) -> Optional[EffectiveWindow]:
    """Compute an event's effective window.

    Args:
        event: Event to evaluate

    Returns:
        The window, or None if the event has an unparseable timestamp or
        end <= start (such events are never selectable)
    """
    start = event.start
    end = event.end
    if start is None or end is None or end <= start:
        return None

    slot_seconds = (end - start).total_seconds()
    track_seconds = event.total_track_duration
    if track_seconds <= 0:
        # No usable duration metadata at all: declared slot governs
        return EffectiveWindow(start=start, end=end, effective_end=end)

    effective_end = start + timedelta(seconds=min(slot_seconds, track_seconds))
    return EffectiveWindow(start=start, end=end, effective_end=min(effective_end, end))


class SelectionStatus(Enum):
    NOTHING = "nothing"
    UPCOMING = "upcoming"
    ACTIVE = "active"


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of one scheduling decision.

    For UPCOMING results ``wait_seconds`` is the (non-negative) time until
    the event starts; for ACTIVE results it is 0.
    """

    status: SelectionStatus
    event: Optional[Event] = None
    window: Optional[EffectiveWindow] = None
    wait_seconds: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status is SelectionStatus.ACTIVE

    @property
    def is_upcoming(self) -> bool:
        return self.status is SelectionStatus.UPCOMING

    @property
    def is_nothing(self) -> bool:
        return self.status is SelectionStatus.NOTHING


NOTHING_RELEVANT = SelectionResult(status=SelectionStatus.NOTHING)


class TrackPosition(NamedTuple):
    """Resume point inside an event."""

    track_index: int
    offset_seconds: float
