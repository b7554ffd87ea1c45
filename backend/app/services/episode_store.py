"""
FatigueWatch Episode Store
SQLAlchemy-backed EventSink. Both writes are upserts keyed by episode id, so
insert-then-update, repeated updates and late inserts are all harmless.

Failures are logged and swallowed; the in-memory session is authoritative.
"""

import logging
from typing import Callable

from sqlalchemy.orm import Session as SASession

from app.core.database import SessionLocal
from app.models.episode import FatigueEpisodeRecord
from fatigue_core.episodes import Episode

logger = logging.getLogger("fatiguewatch.episode_store")


def _naive_utc(value):
    # SQLite DateTime columns are naive; store UTC wall time
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


class EpisodeStore:
    """EventSink for the monitoring session"""

    def __init__(self, session_factory: Callable[[], SASession] = SessionLocal):
        self.session_factory = session_factory

    # ── EventSink ────────────────────────────────────────

    def insert(self, episode: Episode) -> None:
        self._upsert(episode)

    def update(self, episode: Episode) -> None:
        self._upsert(episode)

    def _upsert(self, episode: Episode) -> bool:
        db: SASession = self.session_factory()
        try:
            row = db.get(FatigueEpisodeRecord, episode.id)
            if row is None:
                row = FatigueEpisodeRecord(id=episode.id)
                db.add(row)
            row.started_at = _naive_utc(episode.started_at)
            row.ended_at = _naive_utc(episode.ended_at)
            row.frame_count = episode.frame_count
            row.probability_sum = episode.probability_sum
            row.avg_probability = episode.avg_probability
            row.peak_probability = episode.peak_probability
            row.on_threshold = episode.on_threshold
            row.off_threshold = episode.off_threshold
            row.consec_on_needed = episode.consec_on_needed
            row.consec_off_needed = episode.consec_off_needed
            row.simulated = episode.simulated
            row.end_reason = episode.end_reason
            db.commit()
            logger.debug(
                "Episode %s saved (%s)",
                episode.id, "ongoing" if episode.ended_at is None else "final",
            )
            return True
        except Exception as exc:
            logger.error("Failed to save episode %s: %s", episode.id, exc)
            db.rollback()
            return False
        finally:
            db.close()
