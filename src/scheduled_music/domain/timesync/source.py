"""HTTP UTC time source.

Expects a GET endpoint returning a JSON object with one ISO-8601 datetime
field, e.g. ``{"datetime": "2025-03-01T18:05:00+00:00"}``.
"""

from datetime import datetime
from typing import Optional, Protocol

import requests
from loguru import logger

from scheduled_music.exceptions import TimeSourceError
from scheduled_music.utils.timestamps import parse_utc_timestamp


class TimeSource(Protocol):
    """Anything that can report the current UTC time."""

    def fetch_utc(self, timeout: float) -> datetime:
        """Return the current UTC time or raise TimeSourceError."""
        ...


class HttpTimeSource:
    """Time source backed by a JSON-over-HTTP endpoint."""

    def __init__(
        self,
        url: str,
        response_field: str = "datetime",
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.response_field = response_field
        self._session = session or requests.Session()

    def fetch_utc(self, timeout: float) -> datetime:
        """Fetch the current UTC time.

        Args:
            timeout: Upper bound for the whole request, in seconds

        Returns:
            Aware UTC datetime

        Raises:
            TimeSourceError: On transport errors, non-2xx status, or a
                response without a parseable timestamp
        """
        logger.debug(f"Fetching UTC time from {self.url}...")
        try:
            response = self._session.get(self.url, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise TimeSourceError(f"Failed to fetch UTC time: {e}") from e
        except ValueError as e:
            raise TimeSourceError(f"Unable to parse time response: {e}") from e

        raw = payload.get(self.response_field) if isinstance(payload, dict) else None
        parsed = parse_utc_timestamp(raw)
        if parsed is None:
            raise TimeSourceError(
                f"Time response has no valid '{self.response_field}' field: {raw!r}"
            )
        return parsed
