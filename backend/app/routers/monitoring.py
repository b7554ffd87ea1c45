"""
Monitoring Router
Session control, sample ingestion and the real-time WebSocket channels.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.core.dependencies import get_monitor
from app.models.schemas import IngestResponse, SampleBatch, SampleIn
from app.services.monitoring_service import MonitoringService
from app.services.websocket_manager import COMPANION, MONITORING
from fatigue_core import SessionStateError

logger = logging.getLogger("fatiguewatch.monitoring_router")

router = APIRouter(tags=["Monitoring"])


# ══════════════════════════════════════════════════════════
# REST endpoints
# ══════════════════════════════════════════════════════════

@router.post("/api/monitoring/start")
async def start_monitoring(
    simulate: bool = Query(default=False),
    fatigued: bool = Query(default=False),
    monitor: MonitoringService = Depends(get_monitor),
):
    """Start a monitoring session (optionally driven by the signal simulator)"""
    try:
        await monitor.start(simulate=simulate, fatigued=fatigued)
    except SessionStateError as e:
        raise HTTPException(409, str(e))
    return monitor.status()


@router.post("/api/monitoring/stop")
async def stop_monitoring(monitor: MonitoringService = Depends(get_monitor)):
    """Stop the session; an active episode is finalized"""
    ended = await monitor.stop()
    return {
        "status": monitor.status(),
        "finalized_episode": ended.to_dict() if ended else None,
    }


@router.get("/api/monitoring/status")
def monitoring_status(monitor: MonitoringService = Depends(get_monitor)):
    return monitor.status()


@router.post("/api/monitoring/samples", response_model=IngestResponse)
async def ingest_samples(batch: SampleBatch, monitor: MonitoringService = Depends(get_monitor)):
    """Push a batch of sensor samples into the running session"""
    if not monitor.session.running:
        raise HTTPException(409, "No monitoring session running")
    accepted, ignored = monitor.ingest((s.channel, s.value, s.timestamp) for s in batch.samples)
    return IngestResponse(accepted=accepted, ignored=ignored)


# ══════════════════════════════════════════════════════════
# WebSocket endpoints
# ══════════════════════════════════════════════════════════

@router.websocket("/ws/monitoring")
async def websocket_monitoring(websocket: WebSocket):
    """
    Real-time monitoring WebSocket.

    Protocol:
    - Client pushes sensor samples:
      {"type": "sample", "channel": "C3", "value": 1.2, "timestamp": 12.5}
      {"type": "samples", "data": [{"channel": ..., "value": ..., "timestamp": ...}, ...]}
    - Server pushes pipeline events:
      {"type": "frame" | "state_changed" | "episode_start" | "episode_end" | "alert", ...}
    - {"type": "ping"} -> {"type": "pong"}
    """
    monitor: MonitoringService = websocket.app.state.monitor
    ws_manager = websocket.app.state.ws_manager
    await ws_manager.connect(websocket, MONITORING)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type", "")

            if msg_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if msg_type == "status":
                await websocket.send_json({"type": "status", "data": monitor.status()})
                continue

            if msg_type in ("sample", "samples"):
                items = msg.get("data", []) if msg_type == "samples" else [msg]
                try:
                    samples = [SampleIn.model_validate(item) for item in items]
                except ValidationError:
                    await websocket.send_json({"type": "error", "message": "Malformed sample"})
                    continue
                monitor.ingest((s.channel, s.value, s.timestamp) for s in samples)

    except WebSocketDisconnect:
        logger.info("Monitoring client disconnected")
    except Exception as e:
        logger.error("Monitoring WS error: %s", e, exc_info=True)
    finally:
        ws_manager.disconnect(websocket, MONITORING)


@router.websocket("/ws/companion")
async def websocket_companion(websocket: WebSocket):
    """Companion device channel; fatigue alerts are pushed, nothing is expected back"""
    ws_manager = websocket.app.state.ws_manager
    await ws_manager.connect(websocket, COMPANION)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("Companion device disconnected")
    finally:
        ws_manager.disconnect(websocket, COMPANION)
