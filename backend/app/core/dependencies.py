"""
FastAPI dependencies resolving the long-lived services built in the lifespan.
"""

from fastapi import HTTPException, Request

from app.services.monitoring_service import MonitoringService
from app.services.predrive_service import PreDriveAdvisor
from app.services.websocket_manager import ConnectionManager


def get_monitor(request: Request) -> MonitoringService:
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(503, "Monitoring service not initialised")
    return monitor


def get_ws_manager(request: Request) -> ConnectionManager:
    return request.app.state.ws_manager


def get_advisor(request: Request) -> PreDriveAdvisor:
    return request.app.state.advisor
