"""
oiiai.api.routes.scores — Typing game score + leaderboard endpoints
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from oiiai.api.deps import get_config, get_engine
from oiiai.api.rate_limit import rate_limited
from oiiai.config import OiiaiConfig
from oiiai.database.models import Score
from oiiai.services import score_service

router = APIRouter(tags=["scores"])


class ScoreSubmit(BaseModel):
    """Every numeric field is required by presence; ``0`` is a real value."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    player_name: str = Field(alias="playerName")
    score: float
    time: float
    letters_per_second: float = Field(alias="lettersPerSecond")
    mistakes: int = 0


def _score_dict(s: Score) -> dict:
    return {
        "id": s.id,
        "player_name": s.player_name,
        "score": s.score,
        "time": s.time,
        "letters_per_second": s.letters_per_second,
        "mistakes": s.mistakes,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }


@router.post("/scores", status_code=201, dependencies=[Depends(rate_limited("score"))])
def submit_score(body: ScoreSubmit, engine=Depends(get_engine)):
    score_id = score_service.submit_score(
        engine,
        player_name=body.player_name,
        score=body.score,
        time=body.time,
        letters_per_second=body.letters_per_second,
        mistakes=body.mistakes,
    )
    return {"id": score_id}


@router.get("/leaderboard")
def get_leaderboard(
    engine=Depends(get_engine),
    cfg: OiiaiConfig = Depends(get_config),
):
    return [_score_dict(s) for s in score_service.leaderboard(engine, cfg.leaderboard_size)]
