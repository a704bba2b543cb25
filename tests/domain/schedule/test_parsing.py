"""Tests for schedule JSON parsing, validation and serialization."""

import json

import pytest

from scheduled_music.domain.schedule.parsing import (
    INVALID_END,
    INVALID_START,
    INVERTED_WINDOW,
    MISSING_TRACK_DURATION,
    NO_TRACKS,
    dump_events,
    event_from_dict,
    parse_events,
    validate_events,
)
from scheduled_music.exceptions import ConfigurationError, ScheduleLoadError

EVENT = {
    "event_id": "evt-1",
    "event_name": "Evening Set",
    "artist_name": "DJ Test",
    "start_time_utc": "2025-03-01T18:00:00Z",
    "end_time_utc": "2025-03-01T19:00:00Z",
    "tracks": [
        {
            "track_id": "t1",
            "track_name": "Intro",
            "track_url": "https://cdn.example.com/intro.mp3",
            "track_duration_seconds": 180,
        },
        {
            "track_id": "t2",
            "track_name": "Main",
            "track_url": "main.ogg",
            "track_duration_seconds": 240.5,
        },
    ],
}


class TestParseEvents:
    """Tests for parse_events."""

    def test_array(self) -> None:
        events = parse_events(json.dumps([EVENT, EVENT]))
        assert len(events) == 2
        event = events[0]
        assert event.id == "evt-1"
        assert event.name == "Evening Set"
        assert event.artist == "DJ Test"
        assert [t.name for t in event.tracks] == ["Intro", "Main"]
        assert event.tracks[1].duration_seconds == 240.5
        assert event.tracks[0].locator == "https://cdn.example.com/intro.mp3"

    def test_single_object(self) -> None:
        events = parse_events(json.dumps(EVENT))
        assert len(events) == 1
        assert events[0].id == "evt-1"

    def test_events_wrapper(self) -> None:
        events = parse_events(json.dumps({"events": [EVENT]}))
        assert [e.id for e in events] == ["evt-1"]

    def test_legacy_track_id_key(self) -> None:
        data = dict(EVENT, tracks=[{"track__id": "old", "track_name": "x"}])
        event = event_from_dict(data)
        assert event.tracks[0].id == "old"
        assert event.tracks[0].duration_seconds == 0.0

    def test_non_numeric_duration_becomes_unknown(self) -> None:
        data = dict(EVENT, tracks=[{"track_id": "t", "track_duration_seconds": "long"}])
        assert event_from_dict(data).tracks[0].duration_seconds == 0.0

    def test_non_object_entries_skipped(self) -> None:
        events = parse_events(json.dumps([42, EVENT, "x"]))
        assert len(events) == 1

    @pytest.mark.parametrize("payload", ["", "   ", "{not json", "[]", "[1, 2]", '"text"'])
    def test_unusable_payload_raises(self, payload: str) -> None:
        with pytest.raises(ScheduleLoadError):
            parse_events(payload, source="schedule.json")

    def test_load_error_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_events("", source="remote")
        assert exc_info.value.source == "remote"
        assert "empty" in exc_info.value.reason


class TestDumpEvents:
    """Tests for dump_events."""

    def test_round_trip_preserves_fields(self) -> None:
        first = parse_events(json.dumps([EVENT]))
        again = parse_events(dump_events(first))
        assert json.loads(dump_events(again)) == json.loads(dump_events(first))

    def test_wire_keys(self) -> None:
        payload = json.loads(dump_events(parse_events(json.dumps(EVENT))))
        assert isinstance(payload, list)
        assert set(payload[0]) == {
            "event_id",
            "event_name",
            "artist_name",
            "start_time_utc",
            "end_time_utc",
            "tracks",
        }
        assert set(payload[0]["tracks"][0]) == {
            "track_id",
            "track_name",
            "track_url",
            "track_duration_seconds",
        }
        assert payload[0]["start_time_utc"] == "2025-03-01T18:00:00Z"

    def test_compact_output(self) -> None:
        text = dump_events(parse_events(json.dumps(EVENT)), pretty=False)
        assert "\n" not in text


class TestValidateEvents:
    """Tests for validate_events."""

    def test_clean_schedule(self) -> None:
        report = validate_events(parse_events(json.dumps([EVENT])))
        assert report.is_clean
        assert report.valid_event_count == 1

    def test_classifies_every_kind(self) -> None:
        raw = [
            dict(EVENT, event_id="bad-start", start_time_utc="soon"),
            dict(EVENT, event_id="bad-end", end_time_utc=None),
            dict(EVENT, event_id="inverted", end_time_utc="2025-03-01T17:00:00Z"),
            dict(EVENT, event_id="empty", tracks=[]),
            dict(EVENT, event_id="no-duration", tracks=[{"track_id": "t", "track_name": "t"}]),
        ]
        report = validate_events(parse_events(json.dumps(raw)))

        assert [i.event_id for i in report.by_kind(INVALID_START)] == ["bad-start"]
        assert [i.event_id for i in report.by_kind(INVALID_END)] == ["bad-end"]
        assert [i.event_id for i in report.by_kind(INVERTED_WINDOW)] == ["inverted"]
        assert [i.event_id for i in report.by_kind(NO_TRACKS)] == ["empty"]
        missing = report.by_kind(MISSING_TRACK_DURATION)
        assert [i.event_id for i in missing] == ["no-duration"]
        assert missing[0].track_index == 0

    def test_only_window_errors_exclude_events(self) -> None:
        raw = [
            dict(EVENT, event_id="inverted", end_time_utc="2025-03-01T17:00:00Z"),
            dict(EVENT, event_id="empty", tracks=[]),
        ]
        report = validate_events(parse_events(json.dumps(raw)))
        assert report.excluded_event_indices == {0}
        assert report.valid_event_count == 1
