import asyncio

import pytest

from fatigue_core import (
    ClassificationResult,
    ClassifierPort,
    FEATURE_ORDER,
    DisplayState,
    FatigueLabel,
    MonitoringSession,
    SessionConfig,
)
from fatigue_core.episodes import REASON_HYSTERESIS, REASON_SESSION_STOPPED
from fatigue_core.errors import SessionStateError

from conftest import ScriptedClassifier


def result(p):
    return ClassificationResult(p, FatigueLabel.FATIGUED if p >= 0.5 else FatigueLabel.AWAKE)


def drain(queue):
    out = []
    while not queue.empty():
        out.append(queue.get_nowait())
    return out


def make_session(sink, notifier, clock, classifier=None, **config):
    return MonitoringSession(
        classifier=classifier or ScriptedClassifier(),
        sink=sink,
        notifier=notifier,
        config=SessionConfig(**config),
        clock=clock,
        monotonic=lambda: 0.0,
    )


class GatedClassifier(ClassifierPort):
    def __init__(self, probability=0.9):
        self.gate = asyncio.Event()
        self.probability = probability
        self.calls = 0

    async def classify(self, features):
        self.calls += 1
        await self.gate.wait()
        return result(self.probability)


def test_episode_lifecycle_through_results(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    queue = session.events.subscribe()
    session.start()

    for p in (0.2, 0.75, 0.80):
        session.apply_result(result(p))
    assert session.engine.active
    assert session.display_state is DisplayState.FATIGUED
    assert len(notifier.alerts) == 1
    assert notifier.alerts[0]["on_threshold"] == 0.70

    for p in (0.75, 0.30, 0.30):
        session.apply_result(result(p))
    assert not session.engine.active
    assert session.display_state is DisplayState.AWAKE

    types = [e.type for e in drain(queue)]
    assert types.count("episode_start") == 1
    assert types.count("episode_end") == 1
    assert types.count("alert") == 1
    assert types.count("frame") == 6

    assert len([w for w in sink.writes if w[0] == "update"]) == 1
    assert session.counters.episodes_started == 1
    assert session.counters.frames_processed == 6


def test_average_matches_recorded_frames(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    queue = session.events.subscribe()
    session.start()
    for p in (0.2, 0.75, 0.80, 0.75, 0.30, 0.30):
        session.apply_result(result(p))

    end = [e for e in drain(queue) if e.type == "episode_end"][0]
    assert end.reason == REASON_HYSTERESIS
    assert end.avg_probability == pytest.approx(0.45)
    assert end.frame_count == 3


def test_failed_frame_leaves_episode_untouched(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    for p in (0.9, 0.9, 0.8):
        session.apply_result(result(p))
    frames = session.tracker.active.frame_count

    session.apply_result(None)

    assert session.engine.active
    assert session.display_state is DisplayState.FATIGUED
    assert session.tracker.active.frame_count == frames
    assert session.counters.classification_failures == 1


def test_label_only_result_drives_hysteresis(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    fatigued = ClassificationResult(0.0, FatigueLabel.FATIGUED, probability_available=False)
    session.apply_result(fatigued)
    session.apply_result(fatigued)
    assert session.engine.active
    assert session.last_probability == 0.0


def test_one_alert_per_start_and_throttled(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    for p in (0.9, 0.9, 0.1, 0.1, 0.9, 0.9):
        session.apply_result(result(p))
    assert session.counters.episodes_started == 2
    # monotonic clock frozen at 0, so the second start is inside the interval
    assert len(notifier.alerts) == 1
    assert session.counters.alerts_sent == 1


def test_start_twice_raises(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    with pytest.raises(SessionStateError):
        session.start()


def test_stop_force_finalizes_active_episode(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    for p in (0.9, 0.9, 0.8, 0.6):
        session.apply_result(result(p))

    ended = session.stop()

    assert ended.end_reason == REASON_SESSION_STOPPED
    assert ended.frame_count == 2
    assert ended.avg_probability == pytest.approx(0.7)
    assert not session.running
    assert session.status()["episode_active"] is False


def test_stop_without_episode_returns_none(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    assert session.stop() is None
    assert session.stop() is None


def test_ingest_ignored_when_not_running(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    assert session.ingest("C3", 1.0, 0.0) is False


def test_ingest_classifies_each_window(sink, notifier, clock):
    classifier = ScriptedClassifier([0.9, 0.9, 0.1])

    async def scenario():
        session = make_session(sink, notifier, clock, classifier, window_size=1, channels=("C3",))
        session.start()
        for i in range(3):
            assert session.ingest("C3", float(i), float(i))
            await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert len(classifier.calls) == 3
    assert classifier.calls[0].shape == (12,)
    assert session.counters.frames_processed == 3
    assert session.counters.episodes_started == 1


def test_classification_error_through_ingest(sink, notifier, clock, classification_error):
    classifier = ScriptedClassifier([0.9, 0.9, classification_error])

    async def scenario():
        session = make_session(sink, notifier, clock, classifier, window_size=1, channels=("HR",))
        session.start()
        for i in range(3):
            session.ingest("HR", 70.0, float(i))
            await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert session.engine.active
    assert session.counters.classification_failures == 1
    assert not any(w[0] == "update" for w in sink.writes)


def test_windows_dropped_while_classifier_busy(sink, notifier, clock):
    classifier = GatedClassifier()

    async def scenario():
        session = make_session(sink, notifier, clock, classifier, window_size=1, channels=("C3",))
        session.start()
        session.ingest("C3", 1.0, 0.0)
        await asyncio.sleep(0)
        assert session.busy
        session.ingest("C3", 2.0, 0.1)
        session.ingest("C3", 3.0, 0.2)
        classifier.gate.set()
        await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert classifier.calls == 1
    assert session.counters.windows == 3
    assert session.counters.frames_dropped_busy == 2
    assert session.counters.frames_processed == 1


def test_stop_discards_late_result(sink, notifier, clock):
    classifier = GatedClassifier(probability=0.95)

    async def scenario():
        session = make_session(sink, notifier, clock, classifier, window_size=1, channels=("C3",))
        session.start()
        session.ingest("C3", 1.0, 0.0)
        await asyncio.sleep(0)
        session.stop()
        classifier.gate.set()
        await asyncio.sleep(0.01)
        return session

    session = asyncio.run(scenario())
    assert session.counters.frames_processed == 0
    assert session.last_probability == 0.0
    assert not session.busy


def test_restart_resets_counters(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    session.start()
    session.apply_result(result(0.9))
    session.stop()
    session.start()
    status = session.status()
    assert status["counters"]["frames_processed"] == 0
    assert status["consecutive_on"] == 0
    assert status["display_state"] == "awake"


def test_stop_right_after_start_closes_empty_episode(sink, notifier, clock):
    session = make_session(sink, notifier, clock)
    queue = session.events.subscribe()
    session.start()
    session.apply_result(result(0.8))
    session.apply_result(result(0.8))
    assert session.tracker.active.frame_count == 0

    closed = session.stop()

    assert closed.ended_at is not None
    assert closed.end_reason == REASON_SESSION_STOPPED
    assert closed.avg_probability is None
    op, episode_id, ended_at = sink.writes[-1]
    assert (op, episode_id) == ("update", closed.id)
    assert ended_at is not None
    end = [e for e in drain(queue) if e.type == "episode_end"]
    assert len(end) == 1 and end[0].to_dict()["avg_probability"] is None


def test_stats_gaps_noted_once_per_session(sink, notifier, clock):
    classifier = ScriptedClassifier([0.1, 0.1])

    async def scenario():
        session = make_session(sink, notifier, clock, classifier, window_size=1, channels=("C3",))
        session.start()
        for i in range(2):
            session.ingest("C3", float(i), float(i))
            await session.wait_idle()
        return session

    session = asyncio.run(scenario())
    assert session._stats_gaps == set(FEATURE_ORDER)
    session.stop()
    session.start()
    assert session._stats_gaps == set()
