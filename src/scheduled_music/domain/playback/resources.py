"""Audio resource fetching.

Turns a track locator into something the player can open plus its real
duration. Local paths are used in place; http(s) locators are downloaded
once into a cache directory. Duration comes from the file itself via
Mutagen, not from schedule metadata.
"""

import hashlib
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import unquote, urlparse

import requests
from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from scheduled_music.exceptions import ResourceFetchError

SUPPORTED_EXTENSIONS = {".mp3", ".wav", ".ogg", ".oga", ".opus", ".flac", ".m4a", ".aif", ".aiff"}


@dataclass(frozen=True)
class AudioResource:
    """A playable audio handle with a known duration."""

    locator: str
    path: str  # Local file path handed to the player
    duration_seconds: float


class ResourceFetcher(Protocol):
    def fetch(self, locator: str) -> AudioResource:
        """Return a playable resource or raise ResourceFetchError."""
        ...


def read_duration(path: str) -> float:
    """Read an audio file's duration in seconds.

    Raises:
        ResourceFetchError: If the file is missing or not decodable
    """
    try:
        audio = MutagenFile(path)
    except (MutagenError, OSError) as e:
        raise ResourceFetchError(path, f"Unable to decode audio {path}: {e}") from e

    if audio is None or getattr(audio, "info", None) is None:
        raise ResourceFetchError(path, f"Unrecognized audio format: {path}")

    duration = float(getattr(audio.info, "length", 0.0) or 0.0)
    if duration <= 0:
        raise ResourceFetchError(path, f"Audio has no playable duration: {path}")
    return duration


def guess_extension(locator: str) -> str:
    """Guess a file extension from a URL or path (empty if unknown)."""
    parsed = urlparse(locator)
    path = parsed.path if parsed.scheme else locator
    extension = os.path.splitext(path)[1].lower()
    return extension if extension in SUPPORTED_EXTENSIONS else ""


class ResourceCache:
    """Fetched resources keyed by locator.

    Reads are concurrent; writes are idempotent (a second fetch of the same
    locator stores an equivalent resource). Per-locator locks only prevent
    duplicate downloads.
    """

    def __init__(self) -> None:
        self._entries: dict[str, AudioResource] = {}
        self._lock = threading.Lock()
        self._inflight: dict[str, threading.Lock] = {}

    def get(self, locator: str) -> Optional[AudioResource]:
        with self._lock:
            return self._entries.get(locator)

    def put(self, resource: AudioResource) -> None:
        with self._lock:
            self._entries[resource.locator] = resource

    def lock_for(self, locator: str) -> threading.Lock:
        with self._lock:
            return self._inflight.setdefault(locator, threading.Lock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class AudioResourceFetcher:
    """Resolves locators to local, duration-bearing audio files."""

    def __init__(
        self,
        cache_dir: Path,
        request_timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
        cache: Optional[ResourceCache] = None,
    ):
        self.cache_dir = Path(cache_dir)
        self.request_timeout_seconds = request_timeout_seconds
        self._session = session or requests.Session()
        self.cache = cache or ResourceCache()

    def fetch(self, locator: str) -> AudioResource:
        """Fetch (or reuse) the audio behind a locator.

        Raises:
            ResourceFetchError: If the locator is empty, the download fails,
                or the file cannot be decoded
        """
        if not locator or not locator.strip():
            raise ResourceFetchError(locator, "Track has no audio locator")

        cached = self.cache.get(locator)
        if cached is not None:
            return cached

        with self.cache.lock_for(locator):
            cached = self.cache.get(locator)
            if cached is not None:
                return cached

            try:
                path = self._resolve_to_file(locator)
            except OSError as e:
                raise ResourceFetchError(locator, f"Cannot access audio for {locator}: {e}") from e

            resource = AudioResource(
                locator=locator, path=str(path), duration_seconds=read_duration(str(path))
            )
            self.cache.put(resource)
            return resource

    def _resolve_to_file(self, locator: str) -> Path:
        parsed = urlparse(locator)

        if parsed.scheme in ("http", "https"):
            return self._download(locator)

        if parsed.scheme == "file":
            path = Path(unquote(parsed.path))
        else:
            path = Path(locator).expanduser()

        if not path.is_file():
            raise ResourceFetchError(locator, f"Audio file not found: {path}")
        return path

    def _cache_path(self, locator: str) -> Path:
        digest = hashlib.sha1(locator.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}{guess_extension(locator)}"

    def _download(self, url: str) -> Path:
        target = self._cache_path(url)
        if target.is_file() and target.stat().st_size > 0:
            logger.debug(f"Audio cache hit for {url}")
            return target

        partial = target.with_name(target.name + ".part")

        logger.info(f"Downloading track from {url}...")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with self._session.get(
                url, stream=True, timeout=self.request_timeout_seconds
            ) as response:
                response.raise_for_status()
                with open(partial, "wb") as f:
                    for chunk in response.iter_content(chunk_size=64 * 1024):
                        if chunk:
                            f.write(chunk)
            partial.replace(target)
        except (requests.RequestException, OSError) as e:
            if partial.exists():
                partial.unlink()
            raise ResourceFetchError(url, f"Failed to download track ({url}): {e}") from e

        return target
