"""
Episodes Router
Read access to recorded fatigue episodes.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.episode import FatigueEpisodeRecord
from app.models.schemas import EpisodeList, EpisodeResponse

router = APIRouter(prefix="/api/episodes", tags=["Episodes"])


@router.get("", response_model=EpisodeList)
def list_episodes(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    simulated: bool = None,
    db: Session = Depends(get_db),
):
    """List episodes, newest first"""
    query = db.query(FatigueEpisodeRecord)
    if simulated is not None:
        query = query.filter(FatigueEpisodeRecord.simulated == simulated)

    total = query.count()
    episodes = query.order_by(desc(FatigueEpisodeRecord.started_at)).offset(skip).limit(limit).all()
    return EpisodeList(
        episodes=[EpisodeResponse.model_validate(e) for e in episodes],
        total=total,
    )


@router.get("/{episode_id}", response_model=EpisodeResponse)
def get_episode(episode_id: str, db: Session = Depends(get_db)):
    episode = db.get(FatigueEpisodeRecord, episode_id)
    if not episode:
        raise HTTPException(404, "Episode not found")
    return EpisodeResponse.model_validate(episode)
