"""Cross-cutting helpers with no domain dependencies."""

from .timestamps import (
    ensure_utc,
    format_duration,
    format_utc,
    parse_utc_timestamp,
    utc_now,
)

__all__ = [
    "ensure_utc",
    "format_duration",
    "format_utc",
    "parse_utc_timestamp",
    "utc_now",
]
