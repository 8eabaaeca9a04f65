"""
oiiai.services.score_service — Typing Game Leaderboard
========================================================

Scores are append-only.  A player may post many rows; the leaderboard
keeps each player's best (highest score, then fastest time).
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select

from oiiai.database.engine import get_session, storage_errors
from oiiai.database.models import Score
from oiiai.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_PLAYER_NAME = 50


def submit_score(
    engine: Engine,
    *,
    player_name: str,
    score: float,
    time: float,
    letters_per_second: float,
    mistakes: int = 0,
) -> int:
    """Persist one game result and return its id.

    Zero is a valid value for every numeric field; only absence is an error,
    and that is caught by the request schema before we get here.
    """
    name = (player_name or "").strip()
    if not name:
        raise ValidationError("playerName is required")
    if len(name) > MAX_PLAYER_NAME:
        raise ValidationError(f"playerName must be at most {MAX_PLAYER_NAME} characters")
    if mistakes < 0:
        raise ValidationError("mistakes must be >= 0")

    with storage_errors("save score"), get_session(engine) as session:
        row = Score(
            player_name=name,
            score=score,
            time=time,
            letters_per_second=letters_per_second,
            mistakes=mistakes,
        )
        session.add(row)
        session.flush()
        score_id = row.id

    logger.info("Score %s saved for %r (%.2f)", score_id, name, score)
    return score_id


def leaderboard(engine: Engine, limit: int = 50) -> list[Score]:
    """Best row per player, ordered by score desc then time asc."""
    ranked = (
        select(
            Score.id,
            func.row_number().over(
                partition_by=Score.player_name,
                order_by=(Score.score.desc(), Score.time.asc(), Score.id.asc()),
            ).label("rank"),
        )
        .subquery()
    )
    stmt = (
        select(Score)
        .join(ranked, ranked.c.id == Score.id)
        .where(ranked.c.rank == 1)
        .order_by(Score.score.desc(), Score.time.asc(), Score.id.asc())
        .limit(limit)
    )
    with storage_errors("load leaderboard"), get_session(engine) as session:
        return list(session.scalars(stmt).all())
