"""
Monitoring Session
Owns the per-session pipeline state and is its single writer:

    samples -> FeatureWindower -> normalize -> ClassifierPort
            -> HysteresisEngine -> EpisodeTracker / AlertThrottle -> events

Classification may run on a worker thread; every state mutation happens back
on the event loop, one window at a time. While a classification is in flight
newly completed windows are dropped, not queued.
"""

import asyncio
import inspect
import logging
import time
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set, Tuple

from .classifier import ClassificationResult, ClassifierPort
from .episodes import (
    REASON_HYSTERESIS,
    REASON_SESSION_STOPPED,
    Clock,
    Episode,
    EpisodeTracker,
    EventSink,
    utc_now,
)
from .errors import ClassificationError, SessionStateError
from .events import (
    AlertSent,
    DisplayState,
    EpisodeEnded,
    EpisodeStarted,
    EventChannel,
    FrameProcessed,
    StateChanged,
)
from .features import CHANNELS, DEFAULT_WINDOW_SIZE, FeatureVector, FeatureWindow, FeatureWindower
from .hysteresis import HysteresisConfig, HysteresisEngine, Transition
from .normalizer import NormalizationStats, normalize
from .throttle import DEFAULT_MIN_INTERVAL, AlertThrottle, Notifier

logger = logging.getLogger("fatiguewatch.session")


@dataclass(frozen=True)
class SessionConfig:
    window_size: int = DEFAULT_WINDOW_SIZE
    channels: Tuple[str, ...] = CHANNELS
    stale_after: Optional[float] = None
    hysteresis: HysteresisConfig = field(default_factory=HysteresisConfig)
    alert_min_interval: float = DEFAULT_MIN_INTERVAL


@dataclass
class SessionCounters:
    windows: int = 0
    frames_processed: int = 0
    frames_dropped_busy: int = 0
    classification_failures: int = 0
    episodes_started: int = 0
    alerts_sent: int = 0

    def to_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


class MonitoringSession:
    """One monitoring run at a time; ``start()`` / ``stop()`` reset all state."""

    def __init__(
        self,
        classifier: ClassifierPort,
        stats: Optional[NormalizationStats] = None,
        sink: Optional[EventSink] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[SessionConfig] = None,
        events: Optional[EventChannel] = None,
        clock: Clock = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
    ):
        self.classifier = classifier
        self.stats = stats if stats is not None else NormalizationStats()
        self.config = config or SessionConfig()
        self.events = events or EventChannel()
        self.clock = clock
        self._executor = executor

        self.windower = FeatureWindower(
            window_size=self.config.window_size,
            channels=self.config.channels,
            stale_after=self.config.stale_after,
        )
        self.engine = HysteresisEngine(self.config.hysteresis)
        self.tracker = EpisodeTracker(sink, clock)
        self.throttle = AlertThrottle(notifier, self.config.alert_min_interval, monotonic)

        self.running = False
        self.simulated = False
        self.started_at: Optional[datetime] = None
        self.display_state = DisplayState.AWAKE
        self.last_probability = 0.0
        self.counters = SessionCounters()

        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._stats_gaps: Set[str] = set()

    # ──────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────

    def start(self, simulated: bool = False):
        if self.running:
            raise SessionStateError("Monitoring session already running")
        self._reset()
        self._generation += 1
        self.running = True
        self.simulated = simulated
        self.started_at = self.clock()
        logger.info("Monitoring session started (simulated=%s)", simulated)

    def stop(self) -> Optional[Episode]:
        """
        Hard stop: late classification results are discarded, an active
        episode is force-finalized and every counter resets.
        """
        if not self.running:
            return None
        self.running = False
        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

        ended = self.tracker.force_end(REASON_SESSION_STOPPED)
        if ended is not None:
            self._publish_episode_end(ended)

        logger.info(
            "Monitoring session stopped: %d frames, %d episodes, %d dropped",
            self.counters.frames_processed,
            self.counters.episodes_started,
            self.counters.frames_dropped_busy,
        )
        self.windower.reset()
        self.engine.reset()
        self.throttle.reset()
        self.display_state = DisplayState.AWAKE
        self.last_probability = 0.0
        return ended

    def _reset(self):
        self.windower.reset()
        self.engine.reset()
        self.throttle.reset()
        self.tracker.force_end(REASON_SESSION_STOPPED)
        self.display_state = DisplayState.AWAKE
        self.last_probability = 0.0
        self.counters = SessionCounters()
        self._stats_gaps.clear()

    # ──────────────────────────────────────────────────────
    # Ingestion
    # ──────────────────────────────────────────────────────

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def ingest(self, channel: str, value: float, timestamp: Optional[float] = None) -> bool:
        """
        Push one sample. Must be called from the event loop. Returns False when
        the session is not running.
        """
        if not self.running:
            return False
        self.windower.append(channel, value, timestamp)
        window = self.windower.try_extract_window()
        if window is None:
            return True

        self.counters.windows += 1
        if self.busy:
            self.counters.frames_dropped_busy += 1
            logger.debug("Classifier busy; dropping window")
            return True

        self._inflight = asyncio.get_running_loop().create_task(
            self._classify_window(window, self._generation)
        )
        return True

    async def wait_idle(self):
        """Wait until the in-flight classification (if any) has been applied."""
        task = self._inflight
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _classify_window(self, window: FeatureWindow, generation: int):
        result: Optional[ClassificationResult] = None
        try:
            raw = window.feature_vector().as_dict()
            self._note_stats_gaps(raw)
            vector = FeatureVector(normalize(raw, self.stats))
            result = await self._call_classifier(vector)
        except ClassificationError as e:
            logger.warning("Classification failed: %s", e)
        except Exception as e:
            logger.error("Classifier error: %s", e, exc_info=True)

        if generation != self._generation or not self.running:
            logger.debug("Discarding classification result from a stopped session")
            return
        self.apply_result(result)

    def _note_stats_gaps(self, features: Dict[str, float]):
        gaps = [name for name in features if name not in self.stats and name not in self._stats_gaps]
        if gaps:
            self._stats_gaps.update(gaps)
            logger.debug("No normalization stats for %s; passing raw values through", ", ".join(gaps))

    async def _call_classifier(self, vector: FeatureVector) -> ClassificationResult:
        features = vector.as_array()
        if inspect.iscoroutinefunction(self.classifier.classify):
            return await self.classifier.classify(features)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.classifier.classify, features)

    # ──────────────────────────────────────────────────────
    # State machine
    # ──────────────────────────────────────────────────────

    def apply_result(self, result: Optional[ClassificationResult]):
        """
        Advance hysteresis, episode and alert state with one classification.
        ``None`` is a failed frame: nothing advances and the display holds.
        """
        now = self.clock()

        if result is None:
            self.counters.classification_failures += 1
            self.last_probability = 0.0
            self.events.publish(FrameProcessed(0.0, self.display_state, True, now))
            return

        p = result.hysteresis_input
        self.counters.frames_processed += 1

        if self.engine.active and self.tracker.active is not None:
            self.tracker.record_frame(p)

        transition = self.engine.step(p)
        if transition is Transition.EPISODE_START:
            self._on_episode_start(p, now)
        elif transition is Transition.EPISODE_END:
            ended = self.tracker.end_episode(REASON_HYSTERESIS)
            if ended is not None:
                self._publish_episode_end(ended)

        state = self.engine.display_state
        if state != self.display_state:
            self.events.publish(StateChanged(self.display_state, state, result.probability, now))
            logger.info("State %s -> %s (p=%.3f)", self.display_state.value, state.value, p)
            self.display_state = state

        self.last_probability = result.probability
        self.events.publish(FrameProcessed(result.probability, state, False, now))

    def _on_episode_start(self, p: float, now: datetime):
        episode = self.tracker.begin_episode(self.engine.config, simulated=self.simulated)
        self.counters.episodes_started += 1
        self.events.publish(EpisodeStarted(episode.id, episode.started_at, p))

        alert = {
            "episode_id": episode.id,
            "started_at": episode.started_at.isoformat(),
            "probability": round(p, 4),
            "on_threshold": episode.on_threshold,
            "off_threshold": episode.off_threshold,
            "simulated": episode.simulated,
        }
        if self.throttle.try_alert(payload=alert):
            self.counters.alerts_sent += 1
            self.events.publish(AlertSent(episode.id, now))

    def _publish_episode_end(self, episode: Episode):
        self.events.publish(EpisodeEnded(
            episode_id=episode.id,
            at=episode.ended_at,
            reason=episode.end_reason,
            avg_probability=episode.avg_probability,
            peak_probability=episode.peak_probability,
            frame_count=episode.frame_count,
        ))

    # ──────────────────────────────────────────────────────
    # Introspection
    # ──────────────────────────────────────────────────────

    def status(self) -> Dict[str, Any]:
        s = self.engine.state
        active = self.tracker.active
        return {
            "running": self.running,
            "simulated": self.simulated,
            "started_at": self.started_at.isoformat() if self.started_at and self.running else None,
            "display_state": self.display_state.value,
            "last_probability": round(self.last_probability, 4),
            "episode_active": s.episode_active,
            "consecutive_on": s.consecutive_on,
            "consecutive_off": s.consecutive_off,
            "active_episode": active.to_dict() if active else None,
            "classifier_busy": self.busy,
            "config": self.engine.config.to_dict(),
            "counters": self.counters.to_dict(),
        }
