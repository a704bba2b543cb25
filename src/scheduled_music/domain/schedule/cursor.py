"""
Track cursor: map time elapsed since an event's start to a resume point.

This is what makes "tune in mid-event" work: after a restart, playback
picks up at the track and offset it would have reached had it been
running since the event's declared start.
"""

from typing import Optional

from loguru import logger

from .models import Event, TrackPosition


def locate_track(event: Event, elapsed_seconds: float) -> Optional[TrackPosition]:
    """Find the track and in-track offset for an elapsed time.

    Tracks with a missing or zero duration are skipped without consuming
    any elapsed time.

    Args:
        event: Event whose tracks to walk
        elapsed_seconds: Seconds since the event's start (negative -> 0)

    Returns:
        TrackPosition(track_index, offset_seconds), or None when elapsed time
        runs past the last track (the event's audio is used up)

    Examples:
        tracks of 180s and 240s:
        locate_track(event, 0)    # TrackPosition(0, 0.0)
        locate_track(event, 200)  # TrackPosition(1, 20.0)
        locate_track(event, 420)  # None
    """
    remaining = max(0.0, elapsed_seconds)

    for index, track in enumerate(event.tracks):
        if not track.has_valid_duration:
            logger.error(
                f"Track {track.name} is missing duration metadata "
                f"(track_duration_seconds), skipping"
            )
            continue

        if remaining < track.duration_seconds:
            return TrackPosition(track_index=index, offset_seconds=remaining)

        remaining -= track.duration_seconds

    return None
