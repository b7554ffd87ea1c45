"""
FatigueWatch Core
Headless streaming pipeline turning physiological feature windows into a
debounced awake / fatigued state with tracked fatigue episodes.

Usage:
    from fatigue_core import MonitoringSession, LogisticFatigueClassifier, NormalizationStats

    session = MonitoringSession(
        classifier=LogisticFatigueClassifier.from_json("models/fatigue_model.json"),
        stats=NormalizationStats.from_json("models/lean_feature_stats.json"),
    )
    session.start()
    session.ingest("C3", 12.5, timestamp)   # from inside the event loop
    session.stop()
"""

from .classifier import (
    ClassificationResult,
    ClassifierPort,
    FatigueLabel,
    LogisticFatigueClassifier,
    interpret_model_output,
)
from .episodes import Episode, EpisodeTracker, EventSink
from .errors import (
    ClassificationError,
    ClassifierLoadError,
    FatigueCoreError,
    FeatureSchemaError,
    SessionStateError,
)
from .events import (
    AlertSent,
    DisplayState,
    EpisodeEnded,
    EpisodeStarted,
    EventChannel,
    FrameProcessed,
    StateChanged,
)
from .features import CHANNELS, FEATURE_ORDER, FeatureVector, FeatureWindow, FeatureWindower
from .hysteresis import HysteresisConfig, HysteresisEngine, HysteresisState, Transition
from .normalizer import NormalizationStats, normalize
from .session import MonitoringSession, SessionConfig
from .simulator import SignalSimulator
from .throttle import AlertThrottle, Notifier

__all__ = [
    "ClassificationResult", "ClassifierPort", "FatigueLabel",
    "LogisticFatigueClassifier", "interpret_model_output",
    "Episode", "EpisodeTracker", "EventSink",
    "ClassificationError", "ClassifierLoadError", "FatigueCoreError",
    "FeatureSchemaError", "SessionStateError",
    "AlertSent", "DisplayState", "EpisodeEnded", "EpisodeStarted",
    "EventChannel", "FrameProcessed", "StateChanged",
    "CHANNELS", "FEATURE_ORDER", "FeatureVector", "FeatureWindow", "FeatureWindower",
    "HysteresisConfig", "HysteresisEngine", "HysteresisState", "Transition",
    "NormalizationStats", "normalize",
    "MonitoringSession", "SessionConfig",
    "SignalSimulator",
    "AlertThrottle", "Notifier",
]
