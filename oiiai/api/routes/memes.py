"""
oiiai.api.routes.memes — Public meme endpoints
================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from oiiai.api.deps import get_config, get_engine
from oiiai.api.rate_limit import rate_limited
from oiiai.config import OiiaiConfig
from oiiai.database.models import Meme
from oiiai.errors import ValidationError
from oiiai.services import links, meme_service
from oiiai.services.meme_service import MAX_URL_LENGTH, MAX_VIDEO_ID_LENGTH

router = APIRouter(prefix="/memes", tags=["memes"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class MemeSubmit(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    url: str = Field(max_length=MAX_URL_LENGTH)
    platform: str
    video_id: str = Field(alias="videoId", max_length=MAX_VIDEO_ID_LENGTH)
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class VoteBody(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    vote_type: str = Field(alias="type")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def meme_dict(m: Meme) -> dict:
    return {
        "id": m.id,
        "url": m.url,
        "platform": m.platform,
        "video_id": m.video_id,
        "votes": m.votes,
        "description": m.description,
        "tags": list(m.tags or []),
        "status": m.status,
        "admin_notes": m.admin_notes,
        "reviewed_by": m.reviewed_by,
        "reviewed_at": m.reviewed_at.isoformat() if m.reviewed_at else None,
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


def _page_size(limit: int | None, cfg: OiiaiConfig) -> int:
    if limit is None:
        return cfg.discovery_page_size
    if limit > cfg.max_page_size:
        raise ValidationError(f"limit must be <= {cfg.max_page_size}")
    return limit


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("")
def list_memes(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    engine=Depends(get_engine),
    cfg: OiiaiConfig = Depends(get_config),
):
    """Gallery feed: approved memes, newest first."""
    memes = meme_service.discover(
        engine, category="newest", page=page, limit=_page_size(limit, cfg)
    )
    return [meme_dict(m) for m in memes]


@router.get("/discover")
def discover_memes(
    category: str = Query("newest"),
    platform: str = Query("all"),
    date_range: str = Query("all", alias="dateRange"),
    search: str = Query(""),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    engine=Depends(get_engine),
    cfg: OiiaiConfig = Depends(get_config),
):
    memes = meme_service.discover(
        engine,
        category=category,
        platform=platform,
        date_range=date_range,
        search=search,
        page=page,
        limit=_page_size(limit, cfg),
    )
    return [meme_dict(m) for m in memes]


@router.get("/trending-tags")
def get_trending_tags(engine=Depends(get_engine)):
    return meme_service.trending_tags(engine)


@router.get("/resolve")
def resolve_link(url: str = Query(...)):
    """Work out ``platform`` / ``videoId`` for a pasted share link."""
    resolved = links.resolve_url(url)
    return {"platform": resolved.platform.value, "videoId": resolved.video_id}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
@router.post("", status_code=201, dependencies=[Depends(rate_limited("submit"))])
def submit_meme(body: MemeSubmit, engine=Depends(get_engine)):
    meme = meme_service.submit_meme(
        engine,
        url=body.url,
        platform=body.platform,
        video_id=body.video_id,
        description=body.description,
        tags=body.tags,
    )
    return meme_dict(meme)


@router.post("/{meme_id}/vote", dependencies=[Depends(rate_limited("vote"))])
def vote_meme(meme_id: int, body: VoteBody, engine=Depends(get_engine)):
    return meme_dict(meme_service.vote(engine, meme_id, body.vote_type))
