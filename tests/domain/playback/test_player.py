"""Tests for the mpv IPC helpers and player selection."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from scheduled_music.domain.playback.player import (
    MpvPlayer,
    NullPlayer,
    create_player,
    get_mpv_property,
    send_mpv_command,
)
from scheduled_music.domain.playback.resources import AudioResource

SOCKET_FACTORY = "scheduled_music.domain.playback.player.socket.socket"


@pytest.fixture
def socket_path(tmp_path: Path) -> str:
    path = tmp_path / "mpv.sock"
    path.touch()
    return str(path)


def fake_socket(reply: bytes = b"", connect_error: Exception | None = None) -> MagicMock:
    factory = MagicMock()
    conn = factory.return_value.__enter__.return_value
    factory.return_value.__exit__.return_value = False
    conn.recv.return_value = reply
    if connect_error is not None:
        conn.connect.side_effect = connect_error
    return factory


class TestIpc:
    def test_socket_closed_when_connect_fails(self, socket_path: str) -> None:
        factory = fake_socket(connect_error=ConnectionRefusedError("mpv gone"))
        with patch(SOCKET_FACTORY, factory):
            assert send_mpv_command(socket_path, {"command": ["stop"]}) is False
        factory.return_value.__exit__.assert_called_once()

    def test_reply_found_among_event_lines(self, socket_path: str) -> None:
        lines = [
            json.dumps({"event": "file-loaded"}),
            json.dumps({"data": 241.5, "error": "success", "request_id": 0}),
        ]
        factory = fake_socket("\n".join(lines).encode("utf-8"))
        with patch(SOCKET_FACTORY, factory):
            assert get_mpv_property(socket_path, "duration") == 241.5

    def test_error_reply(self, socket_path: str) -> None:
        factory = fake_socket(json.dumps({"error": "property unavailable"}).encode("utf-8"))
        with patch(SOCKET_FACTORY, factory):
            assert get_mpv_property(socket_path, "duration") is None
            assert send_mpv_command(socket_path, {"command": ["stop"]}) is False

    def test_missing_socket_skips_connect(self, tmp_path: Path) -> None:
        factory = fake_socket()
        with patch(SOCKET_FACTORY, factory):
            assert send_mpv_command(str(tmp_path / "absent.sock"), {"command": ["stop"]}) is False
            assert send_mpv_command(None, {"command": ["stop"]}) is False
        factory.assert_not_called()


class TestCreatePlayer:
    def test_mpv_when_available(self) -> None:
        with patch("scheduled_music.domain.playback.player.check_mpv_available", return_value=True):
            player = create_player("mpv", socket_path="/tmp/x.sock", volume=40)
        assert isinstance(player, MpvPlayer)
        assert player.volume == 40

    def test_mpv_missing_falls_back_to_null(self) -> None:
        with patch("scheduled_music.domain.playback.player.check_mpv_available", return_value=False):
            assert isinstance(create_player("mpv"), NullPlayer)

    def test_null_player_tracks_current(self) -> None:
        player = create_player("null")
        resource = AudioResource(locator="a.mp3", path="/audio/a.mp3", duration_seconds=60.0)

        assert player.play(resource, offset_seconds=12.0) is True
        assert player.current is resource
        player.close()
        assert player.current is None
