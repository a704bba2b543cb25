"""
UTC time synchronization.

Current time is derived from an anchor: a (timestamp, monotonic reading)
pair captured whenever the external time source answers. Between
refreshes ``now()`` extrapolates with the local monotonic clock, so reads
are cheap, never block, and never jump backwards because of network
jitter.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from loguru import logger

from scheduled_music.core.signals import Signal
from scheduled_music.exceptions import TimeSourceError
from scheduled_music.utils.timestamps import ensure_utc, parse_utc_timestamp, utc_now

from .source import TimeSource


@dataclass(frozen=True)
class TimeAnchor:
    """Reference point for extrapolating current time."""

    base_timestamp: datetime
    base_monotonic_reading: float

    def extrapolate(self, monotonic_reading: float) -> datetime:
        elapsed = max(0.0, monotonic_reading - self.base_monotonic_reading)
        return self.base_timestamp + timedelta(seconds=elapsed)


class TimeSync:
    """Monotonic estimate of UTC time anchored to a remote time source.

    Lifecycle:
    - The first activation makes exactly one bounded fetch. On failure the
      anchor is set from the local wall clock, so initialization always
      completes.
    - Afterwards the anchor is refreshed every ``resync_interval_seconds``.
      A failed refresh keeps the previous anchor running.
    - ``override_current_time`` pins the anchor to a given instant and
      stops remote refreshes (mock time).
    """

    def __init__(
        self,
        source: Optional[TimeSource],
        resync_interval_seconds: float = 60.0,
        initial_timeout_seconds: float = 5.0,
        use_mock_utc_time: bool = False,
        mock_utc_time: Optional[str] = None,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utc_now,
    ):
        self._source = source
        self.resync_interval_seconds = resync_interval_seconds
        self.initial_timeout_seconds = initial_timeout_seconds
        self._use_mock = use_mock_utc_time
        self._mock_utc_time = mock_utc_time
        self._monotonic = monotonic
        self._wall_clock = wall_clock

        self._anchor: Optional[TimeAnchor] = None
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.time_updated: Signal[datetime] = Signal("TimeUpdated")

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def is_mock_time(self) -> bool:
        return self._use_mock

    @property
    def anchor(self) -> Optional[TimeAnchor]:
        with self._lock:
            return self._anchor

    def now(self) -> datetime:
        """Current UTC time. Never blocks; local clock until initialized."""
        with self._lock:
            anchor = self._anchor

        if anchor is None:
            return self._wall_clock()
        return anchor.extrapolate(self._monotonic())

    def ensure_initialized(self, timeout: Optional[float] = None) -> bool:
        """Block until an anchor (real or fallback) exists.

        Starts the background lifecycle if it is not running yet.

        Args:
            timeout: Maximum seconds to wait (None waits for the bounded
                initial fetch to finish)

        Returns:
            True once initialized
        """
        if self.is_ready:
            return True

        self.start()
        return self._ready.wait(timeout)

    def start(self) -> None:
        """Start the initialize-then-resync loop in a daemon thread."""
        if self._thread and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="time-sync", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop periodic refreshes. The current anchor stays usable."""
        self._stop_event.set()
        if (
            self._thread
            and self._thread.is_alive()
            and self._thread is not threading.current_thread()
        ):
            self._thread.join(timeout=2.0)
        self._thread = None

    def override_current_time(self, timestamp: datetime) -> None:
        """Pin current time to ``timestamp`` (deterministic testing)."""
        self._use_mock = True
        self._set_anchor(ensure_utc(timestamp))
        self._ready.set()

    def initialize(self) -> None:
        """Anchor the clock once: mock time, one remote fetch, or local clock."""
        if self.is_ready:
            return

        if self._use_mock:
            mock_time = parse_utc_timestamp(self._mock_utc_time)
            if mock_time is not None:
                self._set_anchor(mock_time)
                self._ready.set()
                return

            logger.warning(
                f'Mock UTC time "{self._mock_utc_time}" is invalid. '
                f"Falling back to remote service."
            )
            self._use_mock = False

        if not self.refresh(timeout=self.initial_timeout_seconds):
            logger.warning("Falling back to local UTC time for initialization.")
            self._set_anchor(self._wall_clock())

        self._ready.set()

    def refresh(self, timeout: Optional[float] = None) -> bool:
        """Fetch the remote time once and re-anchor on success.

        A missing source re-anchors to the local clock (there is nothing
        better to prefer). A failed fetch leaves the previous anchor alone.

        Returns:
            True if the anchor was updated
        """
        if self._source is None:
            logger.warning("No time service configured. Falling back to local UTC time.")
            self._set_anchor(self._wall_clock())
            return True

        try:
            fetched = self._source.fetch_utc(
                timeout if timeout is not None else self.initial_timeout_seconds
            )
        except TimeSourceError as e:
            logger.warning(f"UTC time refresh failed, keeping previous anchor: {e}")
            return False

        self._set_anchor(fetched)
        logger.debug(f"UTC time anchored to {fetched.isoformat()}")
        return True

    def _run(self) -> None:
        self.initialize()

        if self._source is None:
            return

        while self.resync_interval_seconds > 0 and not self._use_mock:
            if self._stop_event.wait(self.resync_interval_seconds):
                break
            if self._use_mock:
                break
            self.refresh()

    def _set_anchor(self, timestamp: datetime) -> None:
        anchor = TimeAnchor(
            base_timestamp=ensure_utc(timestamp),
            base_monotonic_reading=self._monotonic(),
        )
        with self._lock:
            self._anchor = anchor
        self.time_updated.emit(anchor.base_timestamp)
