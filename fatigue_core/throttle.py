"""
Alert Throttle
Minimum-interval gate in front of the companion notifier.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger("fatiguewatch.throttle")

DEFAULT_MIN_INTERVAL = 15.0


class Notifier(Protocol):
    """Fire-and-forget alert delivery; must never block or raise."""

    def send_alert(self, payload: Any = None) -> None: ...


@dataclass
class AlertState:
    last_alert_timestamp: Optional[float] = None


class AlertThrottle:
    """
    ``try_alert(now)`` dispatches only when no alert was sent yet or at least
    ``min_interval`` seconds passed since the last one.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.notifier = notifier
        self.min_interval = min_interval
        self.clock = clock
        self.state = AlertState()

    def reset(self):
        self.state = AlertState()

    def try_alert(self, now: Optional[float] = None, payload: Any = None) -> bool:
        now = self.clock() if now is None else now
        last = self.state.last_alert_timestamp
        if last is not None and now - last < self.min_interval:
            logger.debug("Alert suppressed (%.1fs since last)", now - last)
            return False

        if self.notifier is not None:
            try:
                self.notifier.send_alert(payload)
            except Exception as e:
                logger.error("Alert dispatch failed: %s", e)
                return False

        self.state.last_alert_timestamp = now
        return True
