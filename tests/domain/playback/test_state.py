"""Tests for PlaybackStateStore notifications."""

import pytest

from scheduled_music.domain.playback.state import PlaybackState, PlaybackStateStore
from scheduled_music.domain.schedule.models import Event, Track


@pytest.fixture
def track() -> Track:
    return Track(id="t1", name="One", locator="1.mp3", duration_seconds=60)


@pytest.fixture
def event(track: Track) -> Event:
    return Event(
        id="e1",
        name="Set",
        artist="",
        start_time_utc="2025-03-01T18:00:00Z",
        end_time_utc="2025-03-01T19:00:00Z",
        tracks=(track,),
    )


@pytest.fixture
def store() -> PlaybackStateStore:
    return PlaybackStateStore()


@pytest.fixture
def log(store: PlaybackStateStore) -> list[tuple[str, object]]:
    """Ordered record of every notification."""
    calls: list[tuple[str, object]] = []
    store.subscribe_active_event_changed(lambda e: calls.append(("event", e)))
    store.subscribe_track_changed(lambda t: calls.append(("track", t)))
    return calls


class TestPlaybackStateStore:
    def test_initial_state_empty(self, store: PlaybackStateStore) -> None:
        assert store.snapshot == PlaybackState()

    def test_event_change_notifies_once(self, store, log, event) -> None:
        assert store.set_active_event(event)
        assert not store.set_active_event(event)
        assert log == [("event", event)]

    def test_fallback_flag_change_notifies(self, store, log, event) -> None:
        store.set_active_event(event)
        store.set_active_event(event, is_fallback=True)
        assert log == [("event", event), ("event", event)]
        assert store.snapshot.is_fallback_active

    def test_track_change_deduplicated(self, store, log, event, track) -> None:
        store.set_active_event(event)
        assert store.set_track(track)
        assert not store.set_track(track)
        assert log == [("event", event), ("track", track)]

    def test_identity_not_equality(self, store, log, track) -> None:
        twin = Track(id=track.id, name=track.name, locator=track.locator, duration_seconds=60)
        store.set_track(track)
        store.set_track(twin)
        assert log == [("track", track), ("track", twin)]

    def test_event_change_clears_track_after_event_notice(self, store, log, event, track) -> None:
        store.set_active_event(event)
        store.set_track(track)
        log.clear()

        store.set_active_event(None)

        assert log == [("event", None), ("track", None)]
        assert store.snapshot == PlaybackState()

    def test_no_track_notice_when_no_track_playing(self, store, log, event) -> None:
        store.set_active_event(event)
        log.clear()
        store.set_active_event(None)
        assert log == [("event", None)]

    def test_snapshot_is_replaced_not_mutated(self, store, event, track) -> None:
        before = store.snapshot
        store.set_active_event(event)
        store.set_track(track)
        assert before == PlaybackState()
        assert store.snapshot.current_track is track

    def test_reset(self, store, log, event, track) -> None:
        store.set_active_event(event)
        store.set_track(track)
        log.clear()
        store.reset()
        assert store.snapshot == PlaybackState()
        assert log == [("event", None), ("track", None)]

    def test_unsubscribe(self, store, event) -> None:
        seen: list = []
        unsubscribe = store.subscribe_active_event_changed(seen.append)
        unsubscribe()
        store.set_active_event(event)
        assert seen == []

    def test_failing_subscriber_does_not_block_others(self, store, event) -> None:
        seen: list = []

        def boom(_):
            raise RuntimeError("subscriber bug")

        store.subscribe_active_event_changed(boom)
        store.subscribe_active_event_changed(seen.append)
        store.set_active_event(event)
        assert seen == [event]
