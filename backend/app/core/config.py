"""
FatigueWatch Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    APP_NAME: str = "FatigueWatch"
    FATIGUEWATCH_ENV: str = "development"
    DEBUG: bool = True
    LOG_FILE: str = ""  # empty: console only

    # Database
    DATABASE_URL: str = "sqlite:///./fatiguewatch.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8000"

    # Classifier
    MODEL_PATH: str = "../models/fatigue_model.json"
    FEATURE_STATS_PATH: str = "../models/lean_feature_stats.json"

    # Windowing
    WINDOW_SIZE: int = 100
    STALE_AFTER_SECONDS: Optional[float] = 5.0

    # Hysteresis
    ON_THRESHOLD: float = 0.70
    OFF_THRESHOLD: float = 0.40
    CONSEC_ON_NEEDED: int = 2
    CONSEC_OFF_NEEDED: int = 2

    # Alerts
    ALERT_MIN_INTERVAL_SECONDS: float = 15.0

    # Simulation (demo mode)
    SIMULATOR_SAMPLE_RATE: float = 20.0

    # Telegram Notifications
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""
    TELEGRAM_ENABLED: bool = False

    # Pre-drive advisory (Google Generative Language API)
    GOOGLE_API_KEY: str = ""
    PREDRIVE_MODEL: str = "gemini-2.5-flash"
    PREDRIVE_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    PREDRIVE_TIMEOUT_SECONDS: float = 20.0

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent.parent / ".env",
        extra="allow",
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        if not 0.0 <= self.OFF_THRESHOLD < self.ON_THRESHOLD <= 1.0:
            raise ValueError(
                f"OFF_THRESHOLD ({self.OFF_THRESHOLD}) must be below "
                f"ON_THRESHOLD ({self.ON_THRESHOLD}), both within [0, 1]"
            )
        if self.WINDOW_SIZE < 1:
            raise ValueError("WINDOW_SIZE must be >= 1")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    def _resolve(self, value: str) -> Path:
        p = Path(value)
        if not p.is_absolute():
            p = self.base_dir / p
        return p

    @property
    def classifier_path(self) -> Path:
        return self._resolve(self.MODEL_PATH)

    @property
    def feature_stats_path(self) -> Path:
        return self._resolve(self.FEATURE_STATS_PATH)


settings = Settings()
