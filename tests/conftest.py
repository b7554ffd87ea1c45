"""
Shared fixtures: scripted classifiers, recording sinks / notifiers and a
deterministic clock. Backend settings are pointed at a throwaway SQLite file
before anything imports ``app``.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

_TMP = Path(tempfile.mkdtemp(prefix="fatiguewatch-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'test.db'}")
os.environ.setdefault("TELEGRAM_ENABLED", "false")
os.environ.setdefault("GOOGLE_API_KEY", "")
os.environ.setdefault("DEBUG", "false")

from fatigue_core import ClassificationError, ClassificationResult, ClassifierPort, FatigueLabel  # noqa: E402


class ScriptedClassifier(ClassifierPort):
    """Returns queued results in order; an Exception instance is raised instead."""

    def __init__(self, outputs=None):
        self.outputs = list(outputs or [])
        self.calls = []

    def classify(self, features):
        self.calls.append(features)
        out = self.outputs.pop(0) if self.outputs else 0.0
        if isinstance(out, Exception):
            raise out
        if isinstance(out, ClassificationResult):
            return out
        label = FatigueLabel.FATIGUED if out >= 0.5 else FatigueLabel.AWAKE
        return ClassificationResult(probability=float(out), label=label)


class RecordingSink:
    def __init__(self, fail=False):
        self.fail = fail
        self.writes = []

    def insert(self, episode):
        if self.fail:
            raise RuntimeError("database is down")
        self.writes.append(("insert", episode.id, episode.ended_at))

    def update(self, episode):
        if self.fail:
            raise RuntimeError("database is down")
        self.writes.append(("update", episode.id, episode.ended_at))


class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.alerts = []

    def send_alert(self, payload=None):
        if self.fail:
            raise RuntimeError("companion unreachable")
        self.alerts.append(payload)


class StepClock:
    """Advances one second per call"""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 8, 12, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def classification_error():
    return ClassificationError("model exploded")
