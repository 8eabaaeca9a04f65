"""
oiiai.api.routes.admin — Login + moderation endpoints (bearer-protected)
=========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from oiiai.api.deps import JWT_SECRET, get_current_admin, get_engine
from oiiai.api.routes.memes import meme_dict
from oiiai.errors import ValidationError
from oiiai.services import auth_service, meme_service
from oiiai.services.auth_service import AdminIdentity
from oiiai.services.log_buffer import (
    VALID_LEVELS,
    get_current_level,
    get_logs,
    set_capture_level,
)
from oiiai.services.meme_service import MAX_URL_LENGTH, MAX_VIDEO_ID_LENGTH

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class LoginBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str
    password: str


class ReviewBody(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    status: str
    admin_notes: str | None = Field(default=None, alias="adminNotes")


class AdminMemeSubmit(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    url: str = Field(max_length=MAX_URL_LENGTH)
    platform: str
    video_id: str = Field(alias="videoId", max_length=MAX_VIDEO_ID_LENGTH)
    status: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class LogLevelBody(BaseModel):
    level: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
@router.post("/login")
def login(body: LoginBody, engine=Depends(get_engine)):
    token = auth_service.login(engine, body.username, body.password, secret=JWT_SECRET)
    return {"token": token}


@router.get("/me")
def me(admin: AdminIdentity = Depends(get_current_admin)):
    return {"id": admin.id, "username": admin.username}


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
@router.get("/memes/pending")
def pending_memes(
    admin: AdminIdentity = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [meme_dict(m) for m in meme_service.list_pending(engine)]


@router.post("/memes/{meme_id}/review")
def review_meme(
    meme_id: int,
    body: ReviewBody,
    admin: AdminIdentity = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    meme = meme_service.review_meme(
        engine,
        meme_id=meme_id,
        status=body.status,
        admin_notes=body.admin_notes,
        admin_id=admin.id,
    )
    return meme_dict(meme)


@router.post("/memes", status_code=201)
def add_meme(
    body: AdminMemeSubmit,
    admin: AdminIdentity = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    meme = meme_service.submit_meme_as_admin(
        engine,
        admin_id=admin.id,
        url=body.url,
        platform=body.platform,
        video_id=body.video_id,
        status=body.status,
        description=body.description,
        tags=body.tags,
    )
    return meme_dict(meme)


# ---------------------------------------------------------------------------
# Live logs
# ---------------------------------------------------------------------------
@router.get("/logs")
def get_live_logs(
    tail: int = Query(200, ge=1, le=5000),
    level: str | None = Query(None),
    logger_filter: str | None = Query(None, alias="logger"),
    admin: AdminIdentity = Depends(get_current_admin),
):
    """Recent log entries from the in-memory ring buffer."""
    entries = get_logs(tail=tail, level=level, logger_filter=logger_filter)
    return {
        "entries": entries,
        "total": len(entries),
        "capture_level": get_current_level(),
        "valid_levels": list(VALID_LEVELS),
    }


@router.put("/logs/level")
def change_log_level(
    body: LogLevelBody,
    admin: AdminIdentity = Depends(get_current_admin),
):
    try:
        new_level = set_capture_level(body.level)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None
    return {"capture_level": new_level}
