"""
Pydantic Schemas for API request/response validation
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Sample Schemas ───────────────────────────────────────
class SampleIn(BaseModel):
    channel: str
    value: float
    timestamp: Optional[float] = None


class SampleBatch(BaseModel):
    samples: List[SampleIn] = Field(default_factory=list)


class IngestResponse(BaseModel):
    accepted: int
    ignored: int


# ── Episode Schemas ──────────────────────────────────────
class EpisodeResponse(BaseModel):
    id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    frame_count: int
    avg_probability: Optional[float] = None
    peak_probability: float
    on_threshold: float
    off_threshold: float
    consec_on_needed: int
    consec_off_needed: int
    simulated: bool
    end_reason: Optional[str] = None
    is_active: bool
    duration_seconds: float

    model_config = ConfigDict(from_attributes=True)


class EpisodeList(BaseModel):
    episodes: List[EpisodeResponse]
    total: int


# ── Pre-drive Schemas ────────────────────────────────────
class TimeOfDay(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"
    NIGHT = "Night"


class RiskLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class PreDriveRequest(BaseModel):
    sleepHours: float = Field(ge=0)
    tripDurationHours: float = Field(gt=0)
    timeOfDay: TimeOfDay
    totalDrowsy: Optional[int] = None
    totalFatigued: Optional[int] = None
    age: Optional[int] = None
    heightCm: Optional[int] = None
    weightKg: Optional[int] = None

    model_config = ConfigDict(extra="ignore")


class RiskAssessment(BaseModel):
    riskLevel: RiskLevel
    explanation: str
    recommendations: List[str] = Field(min_length=1, max_length=3)
