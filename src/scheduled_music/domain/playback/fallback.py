"""
Default-event fallback.

When no scheduled event is active, a designated "default" event is looped
so the program never goes silent.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger

from scheduled_music.domain.schedule.loader import load_event_file
from scheduled_music.domain.schedule.models import Event

DEFAULT_EVENT_NAME = "default"
MIN_CHECK_INTERVAL_SECONDS = 1.0


def find_default_event(
    events: Sequence[Event], default_event_id: Optional[str] = None
) -> Optional[Event]:
    """Find the default event inside a schedule.

    Matches ``default_event_id`` first (case-insensitive), then an event
    whose trimmed name is "default" (case-insensitive).
    """
    if default_event_id and default_event_id.strip():
        wanted = default_event_id.strip().casefold()
        for event in events:
            if event.id.casefold() == wanted:
                return event

    for event in events:
        if event.name and event.name.strip().casefold() == DEFAULT_EVENT_NAME:
            return event

    return None


def resolve_default_event(
    events: Sequence[Event],
    default_payload: Optional[Event] = None,
    default_event_id: Optional[str] = None,
) -> Optional[Event]:
    """Pick the event to loop while nothing is scheduled.

    Args:
        events: The loaded schedule
        default_payload: Explicitly supplied default event (preferred)
        default_event_id: Id of a schedule event to use as default

    Returns:
        The default event, or None (fallback disabled) if none was found or
        it has no tracks
    """
    event = default_payload or find_default_event(events, default_event_id)

    if event is None:
        logger.warning("Default event fallback is enabled but no default event data was found.")
        return None

    if not event.tracks:
        logger.warning(
            f"Default event {event.id} is missing tracks, cannot play fallback audio."
        )
        return None

    logger.info(f"Default event: {event.id} ({event.name}, {len(event.tracks)} track(s))")
    return event


@dataclass
class FallbackPolicy:
    """How the loop fills gaps between scheduled events."""

    enabled: bool = True
    default_payload: Optional[Event] = None
    default_event_id: Optional[str] = None
    check_interval_seconds: float = 60.0

    @classmethod
    def from_config(cls, fallback_config) -> "FallbackPolicy":
        """Build from a FallbackConfig, loading the default payload file if set."""
        payload = None
        if fallback_config.enabled and fallback_config.default_event_path:
            payload = load_event_file(fallback_config.default_event_path)

        return cls(
            enabled=fallback_config.enabled,
            default_payload=payload,
            default_event_id=fallback_config.default_event_id,
            check_interval_seconds=fallback_config.check_interval_seconds,
        )

    @property
    def effective_check_interval(self) -> float:
        return max(MIN_CHECK_INTERVAL_SECONDS, self.check_interval_seconds)

    def resolve(self, events: Sequence[Event]) -> Optional[Event]:
        """Default event for this schedule, or None when fallback is off."""
        if not self.enabled:
            return None
        return resolve_default_event(events, self.default_payload, self.default_event_id)
