"""Playback domain - scheduled playback loop and audio output.

This domain handles:
- The playback loop (resolve, resume mid-event, advance, fallback)
- Playback state ownership and change notifications
- Audio resource fetching and caching
- MPV integration via JSON IPC
"""

from .fallback import FallbackPolicy, find_default_event, resolve_default_event
from .loop import PLAYBACK_EPSILON_SECONDS, PlaybackLoop
from .player import (
    AudioPlayer,
    MpvPlayer,
    NullPlayer,
    check_mpv_available,
    create_player,
)
from .resources import AudioResource, AudioResourceFetcher, ResourceCache
from .state import PlaybackState, PlaybackStateStore

__all__ = [
    # Loop
    "PlaybackLoop",
    "PLAYBACK_EPSILON_SECONDS",
    # State
    "PlaybackState",
    "PlaybackStateStore",
    # Fallback
    "FallbackPolicy",
    "find_default_event",
    "resolve_default_event",
    # Resources
    "AudioResource",
    "AudioResourceFetcher",
    "ResourceCache",
    # Player
    "AudioPlayer",
    "MpvPlayer",
    "NullPlayer",
    "check_mpv_available",
    "create_player",
]
