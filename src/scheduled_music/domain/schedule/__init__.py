"""
Schedule domain module.

Event/track models, JSON parsing and validation, deterministic event
selection, and the elapsed-time track cursor.
"""

from .cursor import locate_track
from .loader import ScheduleLoader, load_event_file
from .models import (
    EffectiveWindow,
    Event,
    SelectionResult,
    SelectionStatus,
    Track,
    TrackPosition,
    effective_window,
)
from .parsing import (
    ValidationIssue,
    ValidationReport,
    dump_events,
    event_from_dict,
    event_to_dict,
    parse_events,
    validate_events,
)
from .selector import find_active_event, is_event_active_at, select_event

__all__ = [
    # Models
    "Event",
    "Track",
    "EffectiveWindow",
    "SelectionResult",
    "SelectionStatus",
    "TrackPosition",
    "effective_window",
    # Parsing
    "parse_events",
    "dump_events",
    "event_from_dict",
    "event_to_dict",
    "validate_events",
    "ValidationIssue",
    "ValidationReport",
    # Loading
    "ScheduleLoader",
    "load_event_file",
    # Selection
    "select_event",
    "find_active_event",
    "is_event_active_at",
    "locate_track",
]
