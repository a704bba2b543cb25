"""
Playback state owned by the playback loop.

The state is an immutable record replaced as a whole, so readers always see
a coherent (event, track, fallback) triple. Only the loop writes it; the
outside world reads snapshots or subscribes to change notifications.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from scheduled_music.core.signals import Signal
from scheduled_music.domain.schedule.models import Event, Track


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot of what is playing right now."""

    current_active_event: Optional[Event] = None
    current_track: Optional[Track] = None
    is_fallback_active: bool = False


class PlaybackStateStore:
    """Single-writer holder for PlaybackState plus its notifications.

    - ``active_event_changed`` fires only when the active event identity or
      the fallback flag changes. The current track is cleared in the same
      update, and ``track_changed(None)`` follows if a track was playing.
    - ``track_changed`` fires only when the track identity changes.
    """

    def __init__(self) -> None:
        self._state = PlaybackState()
        self._lock = threading.Lock()
        self.active_event_changed: Signal[Optional[Event]] = Signal(
            "ActiveEventChanged"
        )
        self.track_changed: Signal[Optional[Track]] = Signal("TrackChanged")

    @property
    def snapshot(self) -> PlaybackState:
        with self._lock:
            return self._state

    def set_active_event(self, event: Optional[Event], is_fallback: bool = False) -> bool:
        """Switch the active event, clearing the current track.

        Returns:
            True if anything changed (and notifications were sent)
        """
        with self._lock:
            previous = self._state
            if (
                previous.current_active_event is event
                and previous.is_fallback_active == is_fallback
            ):
                return False
            self._state = PlaybackState(
                current_active_event=event,
                current_track=None,
                is_fallback_active=is_fallback,
            )

        label = f"{event.id} ({event.name})" if event else "none"
        logger.info(f"Active event changed to {label}{' [fallback]' if is_fallback else ''}")
        self.active_event_changed.emit(event)
        if previous.current_track is not None:
            self.track_changed.emit(None)
        return True

    def set_track(self, track: Optional[Track]) -> bool:
        """Update the current track.

        Returns:
            True if the track identity changed
        """
        with self._lock:
            previous = self._state
            if previous.current_track is track:
                return False
            self._state = PlaybackState(
                current_active_event=previous.current_active_event,
                current_track=track,
                is_fallback_active=previous.is_fallback_active,
            )

        if track is not None:
            logger.info(f"Now playing: {track.name}")
        self.track_changed.emit(track)
        return True

    def reset(self) -> None:
        """Return to the empty state (nothing active, no track)."""
        if not self.set_active_event(None, is_fallback=False):
            self.set_track(None)

    def subscribe_active_event_changed(
        self, callback: Callable[[Optional[Event]], None]
    ) -> Callable[[], None]:
        return self.active_event_changed.subscribe(callback)

    def subscribe_track_changed(
        self, callback: Callable[[Optional[Track]], None]
    ) -> Callable[[], None]:
        return self.track_changed.subscribe(callback)
