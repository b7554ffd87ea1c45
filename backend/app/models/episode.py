"""
Fatigue Episode Model
One row per episode; inserted when the episode starts, updated when it ends.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from app.core.database import Base


class FatigueEpisodeRecord(Base):
    __tablename__ = "fatigue_episodes"

    id = Column(String(32), primary_key=True, index=True)
    started_at = Column(DateTime, nullable=False, index=True)
    ended_at = Column(DateTime, nullable=True)  # NULL while ongoing

    # Stats
    frame_count = Column(Integer, default=0)
    probability_sum = Column(Float, default=0.0)
    avg_probability = Column(Float, nullable=True)  # filled on end
    peak_probability = Column(Float, default=0.0)

    # Threshold snapshot at creation
    on_threshold = Column(Float, nullable=False)
    off_threshold = Column(Float, nullable=False)
    consec_on_needed = Column(Integer, nullable=False)
    consec_off_needed = Column(Integer, nullable=False)

    simulated = Column(Boolean, default=False)
    end_reason = Column(String(50), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()
