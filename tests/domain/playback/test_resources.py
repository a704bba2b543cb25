"""Tests for AudioResourceFetcher."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from scheduled_music.domain.playback.resources import (
    AudioResourceFetcher,
    guess_extension,
    read_duration,
)
from scheduled_music.exceptions import ResourceFetchError

MUTAGEN = "scheduled_music.domain.playback.resources.MutagenFile"


def audio_with_length(length: float) -> SimpleNamespace:
    return SimpleNamespace(info=SimpleNamespace(length=length))


@pytest.fixture
def local_track(tmp_path: Path) -> Path:
    path = tmp_path / "track.mp3"
    path.write_bytes(b"ID3fake")
    return path


@pytest.fixture
def fetcher(tmp_path: Path) -> AudioResourceFetcher:
    return AudioResourceFetcher(tmp_path / "cache", session=MagicMock(spec=requests.Session))


class TestReadDuration:
    def test_reads_length(self) -> None:
        with patch(MUTAGEN, return_value=audio_with_length(123.4)):
            assert read_duration("x.mp3") == 123.4

    def test_unrecognized_format(self) -> None:
        with patch(MUTAGEN, return_value=None):
            with pytest.raises(ResourceFetchError):
                read_duration("x.bin")

    def test_zero_length(self) -> None:
        with patch(MUTAGEN, return_value=audio_with_length(0)):
            with pytest.raises(ResourceFetchError):
                read_duration("x.mp3")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceFetchError):
            read_duration(str(tmp_path / "missing.mp3"))


class TestFetch:
    def test_local_path_used_in_place(self, fetcher, local_track: Path) -> None:
        with patch(MUTAGEN, return_value=audio_with_length(60)):
            resource = fetcher.fetch(str(local_track))
        assert resource.path == str(local_track)
        assert resource.duration_seconds == 60

    def test_file_url(self, fetcher, local_track: Path) -> None:
        with patch(MUTAGEN, return_value=audio_with_length(60)):
            resource = fetcher.fetch(local_track.as_uri())
        assert Path(resource.path) == local_track

    def test_missing_local_file(self, fetcher, tmp_path: Path) -> None:
        with pytest.raises(ResourceFetchError):
            fetcher.fetch(str(tmp_path / "gone.mp3"))

    @pytest.mark.parametrize("locator", ["", "   "])
    def test_empty_locator(self, fetcher, locator: str) -> None:
        with pytest.raises(ResourceFetchError):
            fetcher.fetch(locator)

    def test_results_cached_by_locator(self, fetcher, local_track: Path) -> None:
        with patch(MUTAGEN, return_value=audio_with_length(60)) as mutagen_file:
            first = fetcher.fetch(str(local_track))
            second = fetcher.fetch(str(local_track))
        assert first is second
        assert mutagen_file.call_count == 1
        assert len(fetcher.cache) == 1

    def test_http_download(self, tmp_path: Path) -> None:
        session = MagicMock(spec=requests.Session)
        response = session.get.return_value.__enter__.return_value
        response.iter_content.return_value = [b"abc", b"", b"def"]
        fetcher = AudioResourceFetcher(tmp_path / "cache", session=session, request_timeout_seconds=7)

        with patch(MUTAGEN, return_value=audio_with_length(200)):
            resource = fetcher.fetch("https://cdn.example.com/a/song.mp3?sig=1")

        path = Path(resource.path)
        assert path.parent == tmp_path / "cache"
        assert path.suffix == ".mp3"
        assert path.read_bytes() == b"abcdef"
        session.get.assert_called_once_with(
            "https://cdn.example.com/a/song.mp3?sig=1", stream=True, timeout=7
        )

    def test_http_error(self, tmp_path: Path) -> None:
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("offline")
        fetcher = AudioResourceFetcher(tmp_path / "cache", session=session)

        with pytest.raises(ResourceFetchError):
            fetcher.fetch("https://cdn.example.com/song.mp3")
        assert not list((tmp_path / "cache").glob("*.part"))

    def test_unusable_cache_dir(self, tmp_path: Path) -> None:
        blocker = tmp_path / "cache"
        blocker.write_text("not a directory", encoding="utf-8")
        session = MagicMock(spec=requests.Session)
        fetcher = AudioResourceFetcher(blocker / "audio", session=session)

        with pytest.raises(ResourceFetchError):
            fetcher.fetch("https://cdn.example.com/song.mp3")
        session.get.assert_not_called()

    def test_failed_rename_cleans_partial(self, tmp_path: Path) -> None:
        session = MagicMock(spec=requests.Session)
        response = session.get.return_value.__enter__.return_value
        response.iter_content.return_value = [b"abc"]
        fetcher = AudioResourceFetcher(tmp_path / "cache", session=session)

        with patch.object(Path, "replace", side_effect=PermissionError("read-only")):
            with pytest.raises(ResourceFetchError):
                fetcher.fetch("https://cdn.example.com/song.mp3")
        assert not list((tmp_path / "cache").iterdir())

    def test_local_lookup_os_error(self, fetcher) -> None:
        with patch.object(Path, "is_file", side_effect=PermissionError("denied")):
            with pytest.raises(ResourceFetchError):
                fetcher.fetch("/restricted/song.mp3")


class TestGuessExtension:
    @pytest.mark.parametrize(
        "locator,expected",
        [
            ("https://x/y/song.MP3?token=1", ".mp3"),
            ("/music/a.flac", ".flac"),
            ("https://x/stream", ""),
            ("https://x/file.exe", ""),
        ],
    )
    def test_guess(self, locator: str, expected: str) -> None:
        assert guess_extension(locator) == expected
