"""
Schedule source: loads the event collection from a JSON file or URL.

The loader owns the "current" snapshot. Consumers get the whole list;
replacing the schedule swaps the list, never mutates events in place.
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import requests
from loguru import logger

from scheduled_music.core.signals import Signal
from scheduled_music.exceptions import ScheduleLoadError

from .models import Event, SelectionResult
from .parsing import log_validation_report, parse_events, validate_events
from .selector import is_event_active_at


class ScheduleLoader:
    """Loads and caches the event schedule.

    A local ``path`` takes precedence over ``url``. With
    ``cache_last_response`` enabled, a successful load is reused by every
    later ``load_schedule()`` call until ``overwrite_schedule`` or
    ``clear_cache`` replaces it. A snapshot installed by
    ``overwrite_schedule`` is served until ``clear_cache`` regardless of
    ``cache_last_response``.
    """

    def __init__(
        self,
        path: Optional[str | Path] = None,
        url: Optional[str] = None,
        cache_last_response: bool = True,
        request_timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.path = Path(path).expanduser() if path else None
        self.url = url
        self.cache_last_response = cache_last_response
        self.request_timeout_seconds = request_timeout_seconds
        self._session = session or requests.Session()
        self._events: Optional[tuple[Event, ...]] = None
        self._overwritten = False
        self._lock = threading.Lock()

        self.schedule_loaded: Signal[tuple[Event, ...]] = Signal("ScheduleLoaded")
        self.schedule_load_failed: Signal[str] = Signal("ScheduleLoadFailed")

    @property
    def current_events(self) -> tuple[Event, ...]:
        """The most recent snapshot (empty until something has loaded)."""
        with self._lock:
            return self._events or ()

    @property
    def source_description(self) -> str:
        if self.path:
            return str(self.path)
        return self.url or "<none>"

    def load_schedule(self) -> tuple[Event, ...]:
        """Return the schedule, loading it if needed.

        Returns:
            Events in source order

        Raises:
            ScheduleLoadError: If no source is configured, the source cannot
                be read, or it contains no events
        """
        with self._lock:
            snapshot = self._events
            overwritten = self._overwritten
        if snapshot is not None and (overwritten or self.cache_last_response):
            return snapshot

        try:
            raw = self._read_source()
            events = tuple(parse_events(raw, self.source_description))
        except ScheduleLoadError as e:
            logger.error(f"Failed to load schedule: {e}")
            self.schedule_load_failed.emit(str(e))
            raise

        log_validation_report(validate_events(events))
        logger.info(f"Loaded {len(events)} event(s) from {self.source_description}")
        self._set_events(events, broadcast=True)
        return events

    def _read_source(self) -> str:
        if self.path:
            try:
                return self.path.read_text(encoding="utf-8")
            except OSError as e:
                raise ScheduleLoadError(
                    f"Unable to read schedule file: {e}", str(self.path)
                ) from e

        if not self.url or not self.url.strip():
            raise ScheduleLoadError("No schedule path or URL configured")

        logger.info(f"Downloading schedule from {self.url}...")
        try:
            response = self._session.get(self.url, timeout=self.request_timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ScheduleLoadError(
                f"Failed to download schedule: {e}", self.url
            ) from e

        return response.text

    def overwrite_schedule(
        self, events: Sequence[Event], broadcast: bool = True
    ) -> None:
        """Replace the current snapshot (e.g. after an external edit)."""
        self._set_events(tuple(events), broadcast=broadcast, overwritten=True)
        logger.info(f"Schedule replaced with {len(events)} event(s)")

    def clear_cache(self) -> None:
        """Forget the cached snapshot so the next load re-reads the source."""
        with self._lock:
            self._events = None
            self._overwritten = False
        logger.debug("Schedule cache cleared")

    def _set_events(
        self, events: tuple[Event, ...], broadcast: bool, overwritten: bool = False
    ) -> None:
        with self._lock:
            self._events = events
            self._overwritten = overwritten
        if broadcast:
            self.schedule_loaded.emit(events)

    def try_get_active_event(self, timestamp: datetime) -> SelectionResult:
        """Active-or-upcoming event in the current snapshot at ``timestamp``."""
        return is_event_active_at(self.current_events, timestamp)


def load_event_file(path: str | Path) -> Optional[Event]:
    """Read a standalone event payload, returning its first event.

    Used for the default (fallback) event. Problems are logged and yield
    None rather than raising: a missing default only disables fallback.
    """
    file_path = Path(path).expanduser()
    try:
        raw = file_path.read_text(encoding="utf-8")
        events = parse_events(raw, str(file_path))
    except OSError as e:
        logger.warning(f"Unable to read default event file {file_path}: {e}")
        return None
    except ScheduleLoadError as e:
        logger.warning(f"Unable to parse default event JSON: {e}")
        return None

    return events[0]
