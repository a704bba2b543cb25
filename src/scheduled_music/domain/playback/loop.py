"""
Scheduled playback loop.

One thread walks the schedule: resolve what should be on now, locate the
resume point, then fetch/play/wait track by track, re-reading the clock
after every wait. When nothing is scheduled the default event is looped
(if there is one), otherwise the loop sleeps until the next event starts.

Every suspension goes through ``_wait`` so ``stop()`` interrupts it
promptly.
"""

import threading
from typing import Callable, Optional, Sequence

from loguru import logger

from scheduled_music.domain.schedule.cursor import locate_track
from scheduled_music.domain.schedule.models import EffectiveWindow, Event, Track
from scheduled_music.domain.schedule.selector import find_active_event, select_event
from scheduled_music.domain.timesync.service import TimeSync
from scheduled_music.exceptions import (
    ConfigurationError,
    ResourceFetchError,
    ScheduledMusicError,
)

from .fallback import FallbackPolicy
from .player import AudioPlayer
from .resources import ResourceFetcher
from .state import PlaybackState, PlaybackStateStore

# Offsets closer than this to the end of a clip leave nothing audible
PLAYBACK_EPSILON_SECONDS = 0.01

ScheduleProvider = Callable[[], Sequence[Event]]


class PlaybackLoop:
    """Drives the player from the schedule.

    Args:
        schedule_provider: Zero-argument callable returning the current
            event snapshot. Called once per resolve cycle.
        time_sync: Source of current UTC time
        fetcher: Turns track locators into playable resources
        player: Audio output
        fallback: Default-event policy (None disables fallback)
        retry_backoff_seconds: Pause before re-resolving after a failed
            event attempt
        waiter: Replacement for the real-time wait, ``waiter(seconds)``.
            Used by tests to advance a fake clock.
    """

    def __init__(
        self,
        schedule_provider: Optional[ScheduleProvider],
        time_sync: Optional[TimeSync],
        fetcher: ResourceFetcher,
        player: AudioPlayer,
        fallback: Optional[FallbackPolicy] = None,
        retry_backoff_seconds: float = 5.0,
        waiter: Optional[Callable[[float], None]] = None,
    ):
        self._schedule_provider = schedule_provider
        self._time_sync = time_sync
        self._fetcher = fetcher
        self._player = player
        self._fallback = fallback
        self.retry_backoff_seconds = max(0.0, retry_backoff_seconds)
        self._waiter = waiter

        self._store = PlaybackStateStore()
        self._events: tuple[Event, ...] = ()
        self._default_event: Optional[Event] = None

        self._lock = threading.Lock()
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # Public surface

    @property
    def state(self) -> PlaybackState:
        """Read-only snapshot of the current playback state."""
        return self._store.snapshot

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def default_event(self) -> Optional[Event]:
        return self._default_event

    def subscribe_active_event_changed(
        self, callback: Callable[[Optional[Event]], None]
    ) -> Callable[[], None]:
        return self._store.subscribe_active_event_changed(callback)

    def subscribe_track_changed(
        self, callback: Callable[[Optional[Track]], None]
    ) -> Callable[[], None]:
        return self._store.subscribe_track_changed(callback)

    def start(self) -> bool:
        """Run the loop in a background thread.

        Returns:
            False if the loop was already running (nothing was started)
        """
        if not self._claim():
            return False

        self._thread = threading.Thread(
            target=self._run_claimed, name="playback-loop", daemon=True
        )
        self._thread.start()
        return True

    def run(self) -> None:
        """Run the loop in the calling thread until it stops."""
        if self._claim():
            self._run_claimed()

    def stop(self) -> None:
        """Cancel any pending wait, stop audio and clear the playback state."""
        self._stop_event.set()

        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5.0)
            if thread.is_alive():
                logger.warning("Playback loop did not stop within 5s")
        self._thread = None

        self._player.stop()
        self._store.reset()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the background thread (if any) to finish."""
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout)

    def close(self) -> None:
        """Stop the loop and release the audio output."""
        self.stop()
        self._player.close()

    # Lifecycle

    def _claim(self) -> bool:
        with self._lock:
            if self._running:
                logger.warning("Playback loop already running, ignoring start")
                return False
            self._running = True
            self._stop_event.clear()
            return True

    def _run_claimed(self) -> None:
        try:
            self._run_loop()
        except Exception:
            logger.exception("Playback loop crashed")
            raise
        finally:
            with self._lock:
                self._running = False
            if self._stop_event.is_set():
                self._player.stop()
                self._store.reset()

    def _wait(self, seconds: float) -> bool:
        """Suspend for ``seconds``. Returns True if the loop was stopped."""
        if self._stop_event.is_set():
            return True
        if seconds <= 0:
            return False
        if self._waiter is not None:
            self._waiter(seconds)
            return self._stop_event.is_set()
        return self._stop_event.wait(seconds)

    def _initialize(self) -> None:
        """Load the schedule and the default event, and anchor the clock.

        Raises:
            ConfigurationError: If a collaborator is missing or the schedule
                cannot be loaded or is empty
        """
        if self._schedule_provider is None:
            raise ConfigurationError("No schedule source configured")
        if self._time_sync is None:
            raise ConfigurationError("No time source configured")

        try:
            events = tuple(self._schedule_provider())
        except ScheduledMusicError as e:
            raise ConfigurationError(f"Unable to load schedule: {e}") from e

        if not events:
            raise ConfigurationError("Unable to load schedule: no events")

        self._events = events
        self._default_event = self._fallback.resolve(events) if self._fallback else None
        self._time_sync.ensure_initialized()

    def _refresh_events(self) -> tuple[Event, ...]:
        """Re-read the schedule snapshot, keeping the previous one on error."""
        try:
            self._events = tuple(self._schedule_provider())
        except ScheduledMusicError as e:
            logger.warning(f"Schedule refresh failed, keeping previous snapshot: {e}")
        return self._events

    def _run_loop(self) -> None:
        try:
            self._initialize()
        except ConfigurationError as e:
            logger.error(f"Playback not started: {e}")
            return

        while not self._stop_event.is_set():
            events = self._refresh_events()
            now = self._time_sync.now()
            selection = select_event(events, now)

            if selection.is_active:
                self._store.set_active_event(selection.event, is_fallback=False)
                if not self._play_event(selection.event, selection.window):
                    if self._wait(self._retry_delay(selection.window)):
                        break
                continue

            if self._default_event is not None:
                if not self._play_fallback(self._default_event):
                    if self._wait(self._fallback_retry_delay()):
                        break
                continue

            if selection.is_upcoming:
                self._store.set_active_event(None)
                logger.info(
                    f"No active event. Waiting {selection.wait_seconds:.0f} seconds "
                    f'for next event "{selection.event.name}".'
                )
                if self._wait(selection.wait_seconds):
                    break
                continue

            logger.info("No active or upcoming events to play. Stopping playback.")
            self._store.set_active_event(None)
            break

    def _retry_delay(self, window: EffectiveWindow) -> float:
        remaining = window.seconds_until_end(self._time_sync.now())
        return max(0.0, min(self.retry_backoff_seconds, remaining))

    def _fallback_retry_delay(self) -> float:
        until_next = self._seconds_until_next_start()
        if until_next is None:
            return self.retry_backoff_seconds
        return max(0.0, min(self.retry_backoff_seconds, until_next))

    # Scheduled events

    def _play_event(self, event: Event, window: EffectiveWindow) -> bool:
        """Play an active event from its resume point.

        Returns:
            True if the event reached its effective end or the loop was
            stopped; False if the attempt failed
        """
        if not event.tracks:
            logger.error(f'Event "{event.name}" does not include any tracks.')
            return False

        elapsed = max(0.0, (self._time_sync.now() - window.start).total_seconds())
        position = locate_track(event, elapsed)
        if position is None:
            logger.warning(
                "Unable to find a track for the current elapsed time. Event might be complete."
            )
            return False

        for index in range(position.track_index, len(event.tracks)):
            track = event.tracks[index]

            try:
                resource = self._fetcher.fetch(track.locator)
            except ResourceFetchError as e:
                logger.error(f"Unable to load audio for track {track.name}: {e}")
                self._player.stop()
                self._store.set_track(None)
                return False

            clip_length = resource.duration_seconds
            offset = 0.0
            if index == position.track_index:
                offset = min(
                    max(0.0, position.offset_seconds),
                    max(0.0, clip_length - PLAYBACK_EPSILON_SECONDS),
                )
            # Metadata longer than the real clip: nothing audible left here
            if offset >= clip_length - PLAYBACK_EPSILON_SECONDS:
                continue

            if not self._player.play(resource, offset):
                logger.error(f"Player failed to start track {track.name}")
                self._store.set_track(None)
                return False
            self._store.set_track(track)

            seconds_until_end = window.seconds_until_end(self._time_sync.now())
            if seconds_until_end <= 0:
                self._end_scheduled_track()
                return True

            if self._wait(min(clip_length - offset, seconds_until_end)):
                return True

            if self._time_sync.now() >= window.effective_end:
                self._end_scheduled_track()
                return True

        self._store.set_track(None)
        logger.info(f'Finished scheduled playback for event "{event.name}".')

        # Real clips were shorter than their metadata; the rest of the window stays silent
        remaining = window.seconds_until_end(self._time_sync.now())
        if remaining > 0:
            logger.info(f"Event audio ran out {remaining:.0f}s before its window closes")
            self._wait(remaining)
        return True

    def _end_scheduled_track(self) -> None:
        self._player.stop()
        self._store.set_track(None)

    # Fallback

    def _scheduled_event_started(self) -> bool:
        events = self._refresh_events()
        return find_active_event(events, self._time_sync.now()) is not None

    def _seconds_until_next_start(self) -> Optional[float]:
        selection = select_event(self._events, self._time_sync.now())
        return selection.wait_seconds if selection.is_upcoming else None

    def _stop_default(self) -> None:
        self._player.stop()
        self._store.set_active_event(None)

    def _play_fallback(self, default: Event) -> bool:
        """Loop the default event until a scheduled event becomes active.

        Returns:
            False if a default track could not be loaded (fallback stopped)
        """
        if not default.tracks:
            logger.warning("Default event is missing tracks, cannot play fallback audio.")
            self._stop_default()
            return False

        self._store.set_active_event(default, is_fallback=True)
        check_interval = (
            self._fallback.effective_check_interval if self._fallback else 1.0
        )

        while not self._stop_event.is_set():
            if self._scheduled_event_started():
                self._stop_default()
                return True

            for track in default.tracks:
                try:
                    resource = self._fetcher.fetch(track.locator)
                except ResourceFetchError as e:
                    logger.error(f"Unable to download default track {track.name}: {e}")
                    self._stop_default()
                    return False

                if not self._player.play(resource, 0.0):
                    logger.error(f"Player failed to start default track {track.name}")
                    self._stop_default()
                    return False
                self._store.set_track(track)

                remaining = resource.duration_seconds
                while remaining > 0:
                    wait = min(check_interval, remaining)
                    until_next = self._seconds_until_next_start()
                    if until_next is not None and until_next > 0:
                        wait = min(wait, until_next)

                    if self._wait(wait):
                        return True
                    remaining -= wait

                    if self._scheduled_event_started():
                        self._stop_default()
                        return True

        return True
