"""Tests for the scheduled-music command line."""

import json
from pathlib import Path

import pytest

from scheduled_music.cli import main

EVENTS = [
    {
        "event_id": "evt-1",
        "event_name": "Evening Set",
        "artist_name": "DJ Test",
        "start_time_utc": "2025-03-01T18:00:00Z",
        "end_time_utc": "2025-03-01T19:00:00Z",
        "tracks": [
            {"track_id": "t1", "track_name": "Intro", "track_url": "intro.mp3", "track_duration_seconds": 600}
        ],
    },
    {
        "event_id": "broken",
        "event_name": "Broken",
        "artist_name": "",
        "start_time_utc": "2025-03-01T21:00:00Z",
        "end_time_utc": "2025-03-01T20:00:00Z",
        "tracks": [],
    },
]


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("SCHEDULED_MUSIC_SCHEDULE_URL", raising=False)
    monkeypatch.delenv("SCHEDULED_MUSIC_TIME_URL", raising=False)

    schedule = tmp_path / "schedule.json"
    schedule.write_text(json.dumps(EVENTS), encoding="utf-8")

    config = tmp_path / "config.toml"
    config.write_text(
        f'[schedule]\npath = "{schedule.as_posix()}"\n\n'
        '[time_sync]\ntime_service_url = ""\n\n'
        '[playback]\nplayer = "null"\n',
        encoding="utf-8",
    )
    return config


def run_cli(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    return exc_info.value.code


class TestStatus:
    def test_active_event(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = run_cli("--config", str(config_file), "status", "--at", "2025-03-01T18:05:00Z")
        out = capsys.readouterr().out
        assert code == 0
        assert "ACTIVE" in out
        assert "Evening Set" in out

    def test_upcoming_event(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = run_cli("--config", str(config_file), "status", "--at", "2025-03-01T17:00:00Z")
        assert code == 0
        assert "UPCOMING" in capsys.readouterr().out

    def test_nothing_scheduled(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        run_cli("--config", str(config_file), "status", "--at", "2025-03-02T00:00:00Z")
        assert "Nothing scheduled" in capsys.readouterr().out

    def test_invalid_timestamp(self, config_file: Path) -> None:
        assert run_cli("--config", str(config_file), "status", "--at", "later") == 1


class TestValidateAndExport:
    def test_validate_reports_issues(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = run_cli("--config", str(config_file), "validate")
        out = capsys.readouterr().out
        assert code == 0
        assert "inverted_window" in out
        assert "no_tracks" in out
        assert "1/2 events selectable" in out

    def test_export_writes_normalized_json(self, config_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "out" / "normalized.json"
        assert run_cli("--config", str(config_file), "export", str(output)) == 0

        exported = json.loads(output.read_text(encoding="utf-8"))
        assert [e["event_id"] for e in exported] == ["evt-1", "broken"]
        assert exported[0]["tracks"][0]["track_duration_seconds"] == 600.0

    def test_missing_schedule_exits_with_error(
        self, config_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        (tmp_path / "schedule.json").unlink()
        assert run_cli("--config", str(config_file), "validate") == 1
        assert "Error" in capsys.readouterr().err
