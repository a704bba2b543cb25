"""Scheduled music - plays a time-boxed event schedule, resuming mid-event."""

__version__ = "0.1.0"
