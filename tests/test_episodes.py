import pytest

from fatigue_core import EpisodeTracker, HysteresisConfig
from fatigue_core.episodes import REASON_HYSTERESIS, REASON_SESSION_STOPPED
from fatigue_core.errors import SessionStateError

from conftest import RecordingSink


def test_episode_written_on_start(sink, clock):
    tracker = EpisodeTracker(sink, clock)
    episode = tracker.begin_episode(HysteresisConfig(on_threshold=0.8, consec_on_needed=3))
    assert sink.writes == [("insert", episode.id, None)]
    assert episode.is_active
    assert episode.on_threshold == 0.8
    assert episode.consec_on_needed == 3


def test_average_over_recorded_frames(sink, clock):
    tracker = EpisodeTracker(sink, clock)
    episode = tracker.begin_episode(HysteresisConfig())
    for p in (0.75, 0.30, 0.30):
        tracker.record_frame(p)

    ended = tracker.end_episode(REASON_HYSTERESIS)
    assert ended is episode
    assert ended.avg_probability == pytest.approx(0.45)
    assert ended.peak_probability == pytest.approx(0.75)
    assert ended.frame_count == 3
    assert ended.end_reason == REASON_HYSTERESIS
    assert ended.ended_at > ended.started_at
    assert sink.writes[-1][0] == "update"


def test_end_twice_is_noop(sink, clock):
    tracker = EpisodeTracker(sink, clock)
    tracker.begin_episode(HysteresisConfig())
    tracker.record_frame(0.9)
    assert tracker.end_episode(REASON_SESSION_STOPPED) is not None
    writes = len(sink.writes)
    assert tracker.end_episode(REASON_SESSION_STOPPED) is None
    assert len(sink.writes) == writes


def test_end_without_frames_is_noop(sink, clock):
    tracker = EpisodeTracker(sink, clock)
    tracker.begin_episode(HysteresisConfig())
    assert tracker.end_episode(REASON_HYSTERESIS) is None
    assert tracker.active is not None


def test_record_without_episode_raises():
    with pytest.raises(SessionStateError):
        EpisodeTracker().record_frame(0.5)


def test_one_active_episode_at_a_time():
    tracker = EpisodeTracker()
    tracker.begin_episode(HysteresisConfig())
    with pytest.raises(SessionStateError):
        tracker.begin_episode(HysteresisConfig())


def test_reason_does_not_change_numbers(clock):
    results = []
    for reason in (REASON_HYSTERESIS, REASON_SESSION_STOPPED):
        tracker = EpisodeTracker(None, clock)
        tracker.begin_episode(HysteresisConfig())
        for p in (0.9, 0.6):
            tracker.record_frame(p)
        ep = tracker.end_episode(reason)
        results.append((ep.avg_probability, ep.peak_probability, ep.frame_count))
    assert results[0] == results[1]


def test_sink_failure_keeps_memory_state(clock):
    tracker = EpisodeTracker(RecordingSink(fail=True), clock)
    tracker.begin_episode(HysteresisConfig())
    tracker.record_frame(0.8)
    ended = tracker.end_episode(REASON_HYSTERESIS)
    assert ended.avg_probability == pytest.approx(0.8)
    assert tracker.active is None


def test_force_end_closes_episode_without_frames(sink, clock):
    tracker = EpisodeTracker(sink, clock)
    episode = tracker.begin_episode(HysteresisConfig())

    closed = tracker.force_end(REASON_SESSION_STOPPED)

    assert closed is episode
    assert closed.ended_at is not None
    assert closed.avg_probability is None
    assert closed.to_dict()["avg_probability"] is None
    assert tracker.active is None
    assert [op for op, _, _ in sink.writes] == ["insert", "update"]


def test_force_end_with_frames_finalizes_normally(sink, clock):
    tracker = EpisodeTracker(sink, clock)
    tracker.begin_episode(HysteresisConfig())
    tracker.record_frame(0.6)
    assert tracker.force_end(REASON_SESSION_STOPPED).avg_probability == pytest.approx(0.6)
    assert tracker.force_end(REASON_SESSION_STOPPED) is None
