"""
FatigueWatch Monitoring Service
Wires the headless MonitoringSession into the backend: loads the classifier
and normalization stats once at startup, forwards pipeline events to the
monitoring WebSocket channel and optionally drives the session from the
signal simulator (demo mode).

Constructed once in the application lifespan and handed to routers through
``app.state``; there is no module-level instance.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from fatigue_core import (
    HysteresisConfig,
    LogisticFatigueClassifier,
    MonitoringSession,
    NormalizationStats,
    SessionConfig,
    SignalSimulator,
)
from fatigue_core.episodes import Episode, EventSink
from fatigue_core.throttle import Notifier
from app.services.websocket_manager import ConnectionManager

logger = logging.getLogger("fatiguewatch.monitoring")


def session_config_from_settings(settings) -> SessionConfig:
    return SessionConfig(
        window_size=settings.WINDOW_SIZE,
        stale_after=settings.STALE_AFTER_SECONDS,
        hysteresis=HysteresisConfig(
            on_threshold=settings.ON_THRESHOLD,
            off_threshold=settings.OFF_THRESHOLD,
            consec_on_needed=settings.CONSEC_ON_NEEDED,
            consec_off_needed=settings.CONSEC_OFF_NEEDED,
        ),
        alert_min_interval=settings.ALERT_MIN_INTERVAL_SECONDS,
    )


class MonitoringService:
    """Single active monitoring session plus its background tasks"""

    def __init__(
        self,
        session: MonitoringSession,
        ws_manager: ConnectionManager,
        simulator_sample_rate: float = 20.0,
    ):
        self.session = session
        self.ws_manager = ws_manager
        self.simulator_sample_rate = simulator_sample_rate
        self.simulator: Optional[SignalSimulator] = None
        self._forwarder: Optional[asyncio.Task] = None
        self._simulator_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings,
        ws_manager: ConnectionManager,
        sink: Optional[EventSink] = None,
        notifier: Optional[Notifier] = None,
    ) -> "MonitoringService":
        """
        Load model + stats. ClassifierLoadError propagates: a missing or broken
        model must abort startup.
        """
        classifier = LogisticFatigueClassifier.from_json(settings.classifier_path)
        stats = NormalizationStats.from_json(settings.feature_stats_path)
        session = MonitoringSession(
            classifier=classifier,
            stats=stats,
            sink=sink,
            notifier=notifier,
            config=session_config_from_settings(settings),
        )
        return cls(session, ws_manager, settings.SIMULATOR_SAMPLE_RATE)

    # ──────────────────────────────────────────────────────
    # Session control
    # ──────────────────────────────────────────────────────

    async def start(self, simulate: bool = False, fatigued: bool = False) -> Dict[str, Any]:
        self.session.start(simulated=simulate)
        self._ensure_forwarder()
        if simulate:
            self.simulator = SignalSimulator(sample_rate=self.simulator_sample_rate, fatigued=fatigued)
            self._simulator_task = asyncio.create_task(self._run_simulator(self.simulator))
            logger.info("Simulator driving session (fatigued=%s, %.0f Hz)", fatigued, self.simulator_sample_rate)
        return self.session.status()

    async def stop(self) -> Optional[Episode]:
        await self._stop_simulator()
        return self.session.stop()

    def ingest(self, samples: Iterable[Tuple[str, float, Optional[float]]]) -> Tuple[int, int]:
        """Push samples into the running session. Returns (accepted, ignored)."""
        accepted = ignored = 0
        for channel, value, timestamp in samples:
            if self.session.ingest(channel, value, timestamp):
                accepted += 1
            else:
                ignored += 1
        return accepted, ignored

    def status(self) -> Dict[str, Any]:
        out = self.session.status()
        out["simulator"] = (
            {"fatigued": self.simulator.fatigued, "sample_rate": self.simulator.sample_rate}
            if self.simulator is not None and self._simulator_task is not None
            else None
        )
        return out

    async def shutdown(self):
        if self.session.running:
            await self.stop()
        if self._forwarder is not None:
            self._forwarder.cancel()
            try:
                await self._forwarder
            except asyncio.CancelledError:
                pass
            self._forwarder = None

    # ──────────────────────────────────────────────────────
    # Background tasks
    # ──────────────────────────────────────────────────────

    def _ensure_forwarder(self):
        if self._forwarder is None or self._forwarder.done():
            queue = self.session.events.subscribe()
            self._forwarder = asyncio.create_task(self._forward_events(queue))

    async def _forward_events(self, queue: asyncio.Queue):
        try:
            while True:
                event = await queue.get()
                try:
                    await self.ws_manager.send_event(event.to_dict())
                except Exception as exc:
                    logger.warning("Failed to broadcast %s event: %s", event.type, exc)
        finally:
            self.session.events.unsubscribe(queue)

    async def _run_simulator(self, simulator: SignalSimulator):
        period = 1.0 / simulator.sample_rate
        try:
            while self.session.running:
                self.ingest(simulator.next_samples())
                await asyncio.sleep(period)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Simulator stopped: %s", exc, exc_info=True)

    async def _stop_simulator(self):
        task, self._simulator_task = self._simulator_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.simulator = None
