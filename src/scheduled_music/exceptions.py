"""Exceptions for scheduled playback operations."""


class ScheduledMusicError(Exception):
    """Base exception for scheduled-music operations."""

    pass


class ConfigurationError(ScheduledMusicError):
    """Raised when a required collaborator (schedule or time source) is missing."""

    pass


class ScheduleLoadError(ConfigurationError):
    """Raised when the schedule cannot be read, parsed, or is empty."""

    def __init__(self, reason: str, source: str | None = None):
        self.reason = reason
        self.source = source
        message = f"{reason} ({source})" if source else reason
        super().__init__(message)


class TimeSourceError(ScheduledMusicError):
    """Raised when the external UTC time source fails or returns garbage."""

    pass


class ResourceFetchError(ScheduledMusicError):
    """Raised when an audio resource cannot be fetched or decoded."""

    def __init__(self, locator: str, message: str | None = None):
        self.locator = locator
        super().__init__(message or f"Unable to fetch audio resource: {locator}")
