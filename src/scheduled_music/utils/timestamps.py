"""
Timestamp parsing utilities.

All instants handled by the scheduler are timezone-aware UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def parse_utc_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Explicit offsets are honored and converted to UTC; timestamps without
    an offset are assumed to already be UTC.

    Args:
        raw: Candidate timestamp (anything that is not a string fails)

    Returns:
        Aware UTC datetime, or None if the value cannot be parsed

    Examples:
        parse_utc_timestamp("2025-03-01T18:00:00Z")       # 18:00 UTC
        parse_utc_timestamp("2025-03-01T20:00:00+02:00")  # 18:00 UTC
        parse_utc_timestamp("2025-03-01 18:00:00")        # 18:00 UTC (assumed)
        parse_utc_timestamp("tomorrow")                   # None
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None

    return ensure_utc(parsed)


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Local wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_utc(value: datetime) -> str:
    """Format an instant for display, e.g. '2025-03-01 18:05:00 UTC'."""
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_duration(seconds: float) -> str:
    """Format seconds as MM:SS (or H:MM:SS past an hour)."""
    if seconds < 0:
        return "00:00"

    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
