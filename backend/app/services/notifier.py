"""
FatigueWatch Alert Notifier
Delivers throttled episode-start alerts to the companion WebSocket channel
and to Telegram. ``send_alert()`` only schedules delivery and returns; a
failed delivery is logged and never retried.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from app.services.telegram_service import TelegramService
from app.services.websocket_manager import ConnectionManager

logger = logging.getLogger("fatiguewatch.notifier")


class FatigueNotifier:
    """Notifier for the monitoring session"""

    def __init__(self, ws_manager: ConnectionManager, telegram: Optional[TelegramService] = None):
        self.ws_manager = ws_manager
        self.telegram = telegram
        self._pending: Set[asyncio.Task] = set()

    def send_alert(self, payload: Any = None) -> None:
        alert: Dict[str, Any] = dict(payload or {})
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; fatigue alert not delivered")
            return
        task = loop.create_task(self._deliver(alert))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, alert: Dict[str, Any]):
        try:
            delivered = await self.ws_manager.send_companion_alert(alert)
            logger.info("Fatigue alert pushed to %d companion device(s)", delivered)
        except Exception as exc:
            logger.warning("Companion alert failed: %s", exc)

        if self.telegram is None or not self.telegram.enabled:
            return
        try:
            if not await self.telegram.send_fatigue_alert(alert):
                logger.warning("Telegram fatigue alert not delivered")
        except Exception as exc:
            logger.warning("Telegram fatigue alert failed: %s", exc)

    async def drain(self):
        """Wait for scheduled deliveries (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
