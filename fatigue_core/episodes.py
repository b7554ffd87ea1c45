"""
Episode Tracking
Lifecycle and running statistics of a fatigue episode. Episodes are written
to the sink when they start and updated when they end, so a crash mid-episode
still leaves an (open) record behind.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from .errors import SessionStateError
from .hysteresis import HysteresisConfig

logger = logging.getLogger("fatiguewatch.episodes")

Clock = Callable[[], datetime]

REASON_HYSTERESIS = "hysteresis end"
REASON_SESSION_STOPPED = "session stopped"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Episode:
    """One contiguous fatigued interval"""
    started_at: datetime
    on_threshold: float
    off_threshold: float
    consec_on_needed: int
    consec_off_needed: int
    simulated: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    ended_at: Optional[datetime] = None
    frame_count: int = 0
    probability_sum: float = 0.0
    peak_probability: float = 0.0
    avg_probability: Optional[float] = None
    end_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    @property
    def duration_seconds(self) -> float:
        end = self.ended_at or utc_now()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "frame_count": self.frame_count,
            "avg_probability": round(self.avg_probability, 4) if self.avg_probability is not None else None,
            "peak_probability": round(self.peak_probability, 4),
            "on_threshold": self.on_threshold,
            "off_threshold": self.off_threshold,
            "consec_on_needed": self.consec_on_needed,
            "consec_off_needed": self.consec_off_needed,
            "simulated": self.simulated,
            "end_reason": self.end_reason,
        }


class EventSink(Protocol):
    """Episode persistence. Both calls are upserts keyed by episode id."""

    def insert(self, episode: Episode) -> None: ...

    def update(self, episode: Episode) -> None: ...


class EpisodeTracker:
    """Owns at most one active episode at a time."""

    def __init__(self, sink: Optional[EventSink] = None, clock: Clock = utc_now):
        self.sink = sink
        self.clock = clock
        self.active: Optional[Episode] = None

    def begin_episode(self, config: HysteresisConfig, simulated: bool = False) -> Episode:
        if self.active is not None:
            raise SessionStateError(f"Episode {self.active.id} is still active")

        episode = Episode(
            started_at=self.clock(),
            on_threshold=config.on_threshold,
            off_threshold=config.off_threshold,
            consec_on_needed=config.consec_on_needed,
            consec_off_needed=config.consec_off_needed,
            simulated=simulated,
        )
        self.active = episode
        logger.info("Episode %s started", episode.id)
        self._write("insert", episode)
        return episode

    def record_frame(self, p: float):
        episode = self.active
        if episode is None:
            raise SessionStateError("No active episode to record into")
        episode.frame_count += 1
        episode.probability_sum += p
        episode.peak_probability = max(episode.peak_probability, p)

    def end_episode(self, reason: str) -> Optional[Episode]:
        """
        Finalize the active episode. No-op (returns None) when nothing is
        active or no frame was recorded yet.
        """
        episode = self.active
        if episode is None or episode.frame_count == 0:
            return None

        episode.avg_probability = episode.probability_sum / episode.frame_count
        episode.ended_at = self.clock()
        episode.end_reason = reason
        self.active = None
        logger.info(
            "Episode %s ended (%s): %d frames, avg=%.3f, peak=%.3f",
            episode.id, reason, episode.frame_count,
            episode.avg_probability, episode.peak_probability,
        )
        self._write("update", episode)
        return episode

    def force_end(self, reason: str) -> Optional[Episode]:
        """
        Close the active episode even if no frame was recorded yet. An empty
        episode keeps ``avg_probability=None`` but its record is still closed.
        """
        episode = self.active
        if episode is None or episode.frame_count > 0:
            return self.end_episode(reason)

        episode.ended_at = self.clock()
        episode.end_reason = reason
        self.active = None
        logger.warning("Episode %s closed (%s) before any frame was recorded", episode.id, reason)
        self._write("update", episode)
        return episode

    def _write(self, op: str, episode: Episode):
        if self.sink is None:
            return
        try:
            getattr(self.sink, op)(episode)
        except Exception as e:
            # in-memory state stays authoritative
            logger.error("Episode sink %s failed for %s: %s", op, episode.id, e)
