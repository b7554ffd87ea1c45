"""
FatigueWatch Telegram Notification Service
Sends fatigue-episode alerts to a Telegram chat via the Bot API.
Rate limiting lives in the session's AlertThrottle, not here.
"""

import logging
import time
from typing import Any, Dict

import httpx

logger = logging.getLogger("fatiguewatch.telegram")


class TelegramService:
    """Sends notifications to Telegram via Bot API"""

    def __init__(self, bot_token: str = "", chat_id: str = "", enabled: bool = False, timeout: float = 10.0):
        self.enabled = bool(enabled and bot_token and chat_id)
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self.base_url = f"https://api.telegram.org/bot{bot_token}"

        if self.enabled:
            logger.info("Telegram notifications enabled")
        else:
            logger.info("Telegram notifications disabled (set TELEGRAM_BOT_TOKEN & TELEGRAM_CHAT_ID in .env)")

    @classmethod
    def from_settings(cls, settings) -> "TelegramService":
        return cls(
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            chat_id=settings.TELEGRAM_CHAT_ID,
            enabled=settings.TELEGRAM_ENABLED,
        )

    async def _send_message(self, text: str, parse_mode: str = "HTML") -> bool:
        """Send a message via Telegram Bot API"""
        if not self.enabled:
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/sendMessage",
                    json={
                        "chat_id": self.chat_id,
                        "text": text,
                        "parse_mode": parse_mode,
                    },
                )
                if resp.status_code == 200:
                    return True
                else:
                    logger.warning(f"Telegram API error {resp.status_code}: {resp.text}")
                    return False
        except Exception as e:
            logger.error(f"Telegram send failed: {e}")
            return False

    # ── Fatigue Alert ────────────────────────────────────

    @staticmethod
    def format_fatigue_alert(alert: Dict[str, Any]) -> str:
        probability = alert.get("probability", 0.0) or 0.0
        simulated = " (simulated)" if alert.get("simulated") else ""
        return (
            f"🚨 <b>FatigueWatch: fatigue detected{simulated}</b>\n\n"
            f"😴 A fatigue episode has started.\n"
            f"🎯 Probability: {probability * 100:.0f}%\n"
            f"📏 Thresholds: on {alert.get('on_threshold', 0):.2f} / off {alert.get('off_threshold', 0):.2f}\n\n"
            f"Pull over and rest when it is safe to do so.\n\n"
            f"🕐 {time.strftime('%Y-%m-%d %H:%M:%S')}"
        )

    async def send_fatigue_alert(self, alert: Dict[str, Any]) -> bool:
        """Send an episode-start alert. Returns False when disabled or on failure."""
        if not self.enabled:
            return False
        return await self._send_message(self.format_fatigue_alert(alert))
