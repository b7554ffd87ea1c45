"""
Pipeline Events
Typed events emitted by the monitoring session, and the channel that fans
them out to subscribers (WebSocket broadcaster, UI adapters, tests).
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

logger = logging.getLogger("fatiguewatch.events")


class DisplayState(str, Enum):
    """Debounced state shown to the user"""
    AWAKE = "awake"
    DROWSY = "drowsy"
    FATIGUED = "fatigued"


class _Event:
    type: str = "event"

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
            elif isinstance(value, Enum):
                data[key] = value.value
        return {"type": self.type, **data}


@dataclass(frozen=True)
class EpisodeStarted(_Event):
    episode_id: str
    at: datetime
    probability: float
    type = "episode_start"


@dataclass(frozen=True)
class EpisodeEnded(_Event):
    episode_id: str
    at: datetime
    reason: str
    avg_probability: Optional[float]
    peak_probability: float
    frame_count: int
    type = "episode_end"


@dataclass(frozen=True)
class StateChanged(_Event):
    previous: DisplayState
    current: DisplayState
    probability: float
    at: datetime
    type = "state_changed"


@dataclass(frozen=True)
class FrameProcessed(_Event):
    probability: float
    display_state: DisplayState
    dropped: bool
    at: datetime
    type = "frame"


@dataclass(frozen=True)
class AlertSent(_Event):
    episode_id: str
    at: datetime
    type = "alert"


class EventChannel:
    """
    Publish/subscribe fan-out. Each subscriber owns a bounded queue; when a
    slow subscriber's queue is full its oldest event is dropped.
    """

    def __init__(self, maxsize: int = 256):
        self._maxsize = maxsize
        self._subscribers: List[asyncio.Queue] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: _Event):
        for queue in self._subscribers:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.debug("Subscriber queue full; dropped oldest event")
            queue.put_nowait(event)
