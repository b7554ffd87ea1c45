"""
FatigueWatch - FastAPI Application Entry Point
Streaming fatigue monitoring: debounced awake / fatigued state, recorded
fatigue episodes and throttled companion alerts.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import init_db
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO", settings.LOG_FILE or None)
logger = logging.getLogger("fatiguewatch.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    from app.services.episode_store import EpisodeStore
    from app.services.monitoring_service import MonitoringService
    from app.services.notifier import FatigueNotifier
    from app.services.predrive_service import PreDriveAdvisor
    from app.services.telegram_service import TelegramService
    from app.services.websocket_manager import ConnectionManager

    logger.info("=" * 60)
    logger.info("  FatigueWatch Monitoring Service - Starting")
    logger.info("=" * 60)

    init_db()
    logger.info("Database initialized")

    ws_manager = ConnectionManager()
    notifier = FatigueNotifier(ws_manager, TelegramService.from_settings(settings))

    # A classifier that cannot be loaded aborts startup
    monitor = MonitoringService.from_settings(
        settings, ws_manager, sink=EpisodeStore(), notifier=notifier,
    )
    logger.info("Fatigue classifier loaded from %s", settings.classifier_path)

    app.state.ws_manager = ws_manager
    app.state.notifier = notifier
    app.state.monitor = monitor
    app.state.advisor = PreDriveAdvisor.from_settings(settings)
    if not app.state.advisor.configured:
        logger.warning("GOOGLE_API_KEY not set; /predrive/analyze will answer 500")

    logger.info(f"Environment: {settings.FATIGUEWATCH_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info("FatigueWatch is ready!")
    logger.info("=" * 60)

    yield

    logger.info("FatigueWatch shutting down...")
    await monitor.shutdown()
    await notifier.drain()


# Create FastAPI app
app = FastAPI(
    title="FatigueWatch - Fatigue Monitoring Platform",
    description="Debounced fatigue detection from cardiac and neural signal features",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import episodes, monitoring, predrive  # noqa: E402

app.include_router(monitoring.router)
app.include_router(episodes.router)
app.include_router(predrive.router)


# Health check endpoint
@app.get("/health")
def health_check():
    monitor = getattr(app.state, "monitor", None)
    return {
        "status": "healthy",
        "service": "FatigueWatch",
        "version": "1.0.0",
        "classifier_loaded": monitor is not None,
        "session_running": bool(monitor and monitor.session.running),
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "FatigueWatch API",
        "version": "1.0.0",
        "description": "Fatigue Monitoring Platform",
        "endpoints": {
            "monitoring": "/api/monitoring",
            "episodes": "/api/episodes",
            "predrive": "/predrive/analyze",
            "websocket_monitoring": "/ws/monitoring",
            "websocket_companion": "/ws/companion",
            "health": "/health",
        }
    }


def run():
    """Console entry point: serve with uvicorn"""
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
