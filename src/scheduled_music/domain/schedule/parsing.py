"""
Schedule JSON parsing, validation, and serialization.

Wire format (one event; a schedule is a JSON array of these, and a single
bare object is accepted as a one-event schedule):

    {
      "event_id": "evt-1",
      "event_name": "Evening Set",
      "artist_name": "Someone",
      "start_time_utc": "2025-03-01T18:00:00Z",
      "end_time_utc": "2025-03-01T19:00:00Z",
      "tracks": [
        {"track_id": "t1", "track_name": "Intro",
         "track_url": "audio/intro.mp3", "track_duration_seconds": 180.0}
      ]
    }
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from loguru import logger

from scheduled_music.exceptions import ScheduleLoadError

from .models import Event, Track


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_duration(value: Any) -> float:
    """Coerce a duration field; anything unusable becomes 0 (unknown)."""
    if isinstance(value, bool):
        return 0.0
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(duration) or math.isinf(duration):
        return 0.0
    return duration


def track_from_dict(data: dict[str, Any]) -> Track:
    """Build a Track from its wire representation."""
    track_id = data.get("track_id")
    if track_id in (None, ""):
        # Older payloads used a double-underscore key
        track_id = data.get("track__id")

    return Track(
        id=_as_str(track_id),
        name=_as_str(data.get("track_name")),
        locator=_as_str(data.get("track_url")),
        duration_seconds=_as_duration(data.get("track_duration_seconds")),
    )


def event_from_dict(data: dict[str, Any]) -> Event:
    """Build an Event from its wire representation.

    Raises:
        ValueError: If data is not a JSON object
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected an event object, got {type(data).__name__}")

    raw_tracks = data.get("tracks") or []
    if not isinstance(raw_tracks, list):
        raw_tracks = []

    return Event(
        id=_as_str(data.get("event_id")),
        name=_as_str(data.get("event_name")),
        artist=_as_str(data.get("artist_name")),
        start_time_utc=_as_str(data.get("start_time_utc")),
        end_time_utc=_as_str(data.get("end_time_utc")),
        tracks=tuple(track_from_dict(t) for t in raw_tracks if isinstance(t, dict)),
    )


def track_to_dict(track: Track) -> dict[str, Any]:
    return {
        "track_id": track.id,
        "track_name": track.name,
        "track_url": track.locator,
        "track_duration_seconds": track.duration_seconds,
    }


def event_to_dict(event: Event) -> dict[str, Any]:
    return {
        "event_id": event.id,
        "event_name": event.name,
        "artist_name": event.artist,
        "start_time_utc": event.start_time_utc,
        "end_time_utc": event.end_time_utc,
        "tracks": [track_to_dict(t) for t in event.tracks],
    }


def parse_events(raw_json: str, source: Optional[str] = None) -> list[Event]:
    """Parse a schedule payload into events.

    Args:
        raw_json: JSON array of events, or a single event object
        source: Where the payload came from (for error messages)

    Returns:
        Events in source order

    Raises:
        ScheduleLoadError: If the payload is empty, not JSON, or has no events
    """
    if not raw_json or not raw_json.strip():
        raise ScheduleLoadError("Received empty schedule payload", source)

    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as e:
        raise ScheduleLoadError(f"Unable to parse schedule JSON: {e}", source) from e

    if isinstance(data, dict):
        # Accept {"events": [...]} wrappers as well as a single bare event
        items = data["events"] if isinstance(data.get("events"), list) else [data]
    elif isinstance(data, list):
        items = data
    else:
        raise ScheduleLoadError("Schedule JSON must be an array or object", source)

    events = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Skipping schedule entry {index}: not an object")
            continue
        events.append(event_from_dict(item))

    if not events:
        raise ScheduleLoadError("No events found in schedule payload", source)

    return events


def dump_events(events: Iterable[Event], pretty: bool = True) -> str:
    """Serialize events to a JSON array (round-trips with parse_events)."""
    payload = [event_to_dict(e) for e in events]
    return json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False)


# Data-error kinds reported by validate_events
INVALID_START = "invalid_start"
INVALID_END = "invalid_end"
INVERTED_WINDOW = "inverted_window"
NO_TRACKS = "no_tracks"
MISSING_TRACK_DURATION = "missing_track_duration"


@dataclass(frozen=True)
class ValidationIssue:
    """One data error found in a schedule."""

    kind: str
    event_index: int  # Position in the source collection
    event_id: str
    message: str
    track_index: Optional[int] = None

    @property
    def excludes_event(self) -> bool:
        """Whether the issue makes the whole event unselectable."""
        return self.kind in (INVALID_START, INVALID_END, INVERTED_WINDOW)


@dataclass
class ValidationReport:
    """Classified data errors for a schedule snapshot."""

    total_events: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def excluded_event_indices(self) -> set[int]:
        return {i.event_index for i in self.issues if i.excludes_event}

    @property
    def valid_event_count(self) -> int:
        return self.total_events - len(self.excluded_event_indices)

    @property
    def is_clean(self) -> bool:
        return not self.issues

    def by_kind(self, kind: str) -> list[ValidationIssue]:
        return [i for i in self.issues if i.kind == kind]


def validate_events(events: Sequence[Event]) -> ValidationReport:
    """Classify the data errors in a schedule without rejecting it.

    Nothing here is fatal: excluded events are simply never selected, and
    tracks without a duration are skipped by the cursor.

    Args:
        events: Schedule snapshot

    Returns:
        ValidationReport listing every issue found, in source order
    """
    report = ValidationReport(total_events=len(events))

    for event_index, event in enumerate(events):
        label = event.id or event.name or "<unnamed>"
        start = event.start
        end = event.end

        if start is None:
            report.issues.append(
                ValidationIssue(
                    INVALID_START,
                    event_index,
                    event.id,
                    f"Invalid start time for event {label} ({event.start_time_utc!r})",
                )
            )
        if end is None:
            report.issues.append(
                ValidationIssue(
                    INVALID_END,
                    event_index,
                    event.id,
                    f"Invalid end time for event {label} ({event.end_time_utc!r})",
                )
            )
        if start is not None and end is not None and end <= start:
            report.issues.append(
                ValidationIssue(
                    INVERTED_WINDOW,
                    event_index,
                    event.id,
                    f"Event {label} has end time at or before start time",
                )
            )

        if not event.tracks:
            report.issues.append(
                ValidationIssue(
                    NO_TRACKS, event_index, event.id, f"Event {label} has no tracks"
                )
            )

        for index, track in enumerate(event.tracks):
            if not track.has_valid_duration:
                report.issues.append(
                    ValidationIssue(
                        MISSING_TRACK_DURATION,
                        event_index,
                        event.id,
                        f"Track {track.name or index} in event {label} is missing "
                        f"duration metadata (track_duration_seconds)",
                        track_index=index,
                    )
                )

    return report


def log_validation_report(report: ValidationReport) -> None:
    """Log each issue as a warning (operators read these; consumers never do)."""
    for issue in report.issues:
        logger.warning(issue.message)

    if report.issues:
        logger.info(
            f"Schedule validation: {report.valid_event_count}/{report.total_events} "
            f"events selectable, {len(report.issues)} issue(s)"
        )
