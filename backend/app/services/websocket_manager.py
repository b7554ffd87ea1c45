"""
FatigueWatch WebSocket Manager
Channel-based fan-out of pipeline events and companion-device alerts.
"""

import logging
from typing import Dict, Set

from fastapi import WebSocket

logger = logging.getLogger("fatiguewatch.websocket")

MONITORING = "monitoring"
COMPANION = "companion"


class ConnectionManager:
    """Manages WebSocket connections for real-time streaming"""

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {
            MONITORING: set(),
            COMPANION: set(),
        }

    async def connect(self, websocket: WebSocket, channel: str = MONITORING):
        await websocket.accept()
        if channel not in self.active_connections:
            self.active_connections[channel] = set()
        self.active_connections[channel].add(websocket)
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")

    def disconnect(self, websocket: WebSocket, channel: str = MONITORING):
        if channel in self.active_connections:
            self.active_connections[channel].discard(websocket)
        logger.info(f"Client disconnected from channel: {channel}")

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """Send message to all clients on a channel; returns how many received it"""
        if channel not in self.active_connections:
            return 0

        dead = set()
        delivered = 0
        for ws in list(self.active_connections[channel]):
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                dead.add(ws)

        for ws in dead:
            self.active_connections[channel].discard(ws)
        return delivered

    async def send_event(self, event: dict) -> int:
        """Broadcast a pipeline event to monitoring clients"""
        return await self.broadcast_to_channel(MONITORING, event)

    async def send_companion_alert(self, alert: dict) -> int:
        """Push a fatigue alert to connected companion devices"""
        return await self.broadcast_to_channel(COMPANION, {
            "action": "fatigueAlert",
            **alert,
        })

    def channel_size(self, channel: str) -> int:
        return len(self.active_connections.get(channel, ()))

    @property
    def total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())
