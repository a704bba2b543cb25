"""
Event selection: which event should be playing (or is next) at a given time.

Pure functions over an immutable schedule snapshot. Given the same events
and timestamp the result is always the same; nothing here remembers
previous selections.
"""

from datetime import datetime
from typing import Optional, Sequence

from loguru import logger

from scheduled_music.utils.timestamps import ensure_utc

from .models import (
    NOTHING_RELEVANT,
    EffectiveWindow,
    Event,
    SelectionResult,
    SelectionStatus,
    effective_window,
)


def _window_or_log(event: Event) -> Optional[EffectiveWindow]:
    """Compute the event's window, logging why it is excluded if it is."""
    window = effective_window(event)
    if window is not None:
        return window

    start = event.start
    end = event.end
    if start is None:
        logger.warning(
            f"Invalid start time for event {event.id} ({event.start_time_utc!r}), skipping"
        )
    elif end is None:
        logger.warning(
            f"Invalid end time for event {event.id} ({event.end_time_utc!r}), skipping"
        )
    else:
        logger.warning(f"Event {event.id} has end time before start time, skipping")
    return None


def select_event(events: Sequence[Event], now: datetime) -> SelectionResult:
    """Pick the single relevant event for a moment in time.

    Rules, in order:
    1. Events with unparseable timestamps or end <= start are ignored.
    2. An event is active when start <= now < effective_end. If several
       overlap, the first in source order wins.
    3. Otherwise the upcoming event with the smallest start wins (ties
       broken by source order).
    4. Otherwise nothing is relevant.

    Args:
        events: Schedule snapshot in source order
        now: Current instant (naive values are treated as UTC)

    Returns:
        SelectionResult describing the active/upcoming event, or NOTHING
    """
    now = ensure_utc(now)
    upcoming: Optional[tuple[Event, EffectiveWindow]] = None

    for event in events:
        window = _window_or_log(event)
        if window is None:
            continue

        if window.contains(now):
            return SelectionResult(
                status=SelectionStatus.ACTIVE, event=event, window=window
            )

        if window.start > now and (upcoming is None or window.start < upcoming[1].start):
            upcoming = (event, window)

    if upcoming is None:
        return NOTHING_RELEVANT

    event, window = upcoming
    return SelectionResult(
        status=SelectionStatus.UPCOMING,
        event=event,
        window=window,
        wait_seconds=max(0.0, (window.start - now).total_seconds()),
    )


def find_active_event(
    events: Sequence[Event], now: datetime
) -> Optional[tuple[Event, EffectiveWindow]]:
    """Return (event, window) for the active event at ``now``, if any."""
    result = select_event(events, now)
    if result.is_active:
        return result.event, result.window
    return None


def is_event_active_at(events: Sequence[Event], timestamp: datetime) -> SelectionResult:
    """Side-effect-free preview query for status displays.

    Identical to select_event; exposed under this name so presentation code
    never has to touch the playback loop to answer "what is on at T?".
    """
    return select_event(events, timestamp)
