"""
oiiai.services.meme_service — Meme Moderation & Discovery
===========================================================

Lifecycle of a meme::

    public submit ──► pending ──review──► approved ◄──review──► rejected
    admin submit  ──► approved (default) / any requested status

Rules enforced here:

* ``(platform, video_id)`` is unique.  Submissions insert directly and let
  the database constraint decide; a violation becomes :class:`ConflictError`.
* ``votes`` only changes through a single ``UPDATE … SET votes = votes ± 1
  … RETURNING`` statement, so concurrent votes are never lost.
* Discovery only ever returns ``approved`` memes.
* Review may be repeated; it always sets the requested target status.

No state is cached between calls — the database is the source of truth.
"""

from __future__ import annotations

import calendar
import json
import logging
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from sqlalchemy import (
    DateTime,
    Engine,
    Float,
    String,
    case,
    cast,
    extract,
    func,
    literal,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError

from oiiai.database.engine import get_session, storage_errors
from oiiai.database.models import Admin, Meme, MemeStatus, Platform, VoteType
from oiiai.errors import AuthError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CATEGORIES = ("trending", "newest", "popular")
DATE_RANGES = ("today", "week", "month", "all")
REVIEW_STATUSES = (MemeStatus.APPROVED, MemeStatus.REJECTED)

TRENDING_TAG_WINDOW = timedelta(days=7)
TRENDING_TAG_LIMIT = 10

# Column widths of memes.url / memes.video_id
MAX_URL_LENGTH = 500
MAX_VIDEO_ID_LENGTH = 100

# Floor on a meme's age in the trending score so brand-new rows don't divide by ~0
MIN_TRENDING_ELAPSED_SECONDS = 1.0


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------
def _require(value: str | None, field: str, max_length: int | None = None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    value = str(value).strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def _parse_platform(value: str | None) -> Platform:
    raw = _require(value, "platform").upper()
    try:
        return Platform(raw)
    except ValueError:
        raise ValidationError("platform must be INSTAGRAM or TIKTOK") from None


def _parse_status(value: str | None, allowed: Iterable[MemeStatus]) -> MemeStatus:
    allowed = tuple(allowed)
    try:
        status = MemeStatus(value)
    except ValueError:
        status = None
    if status not in allowed:
        raise ValidationError(
            "status must be one of: " + ", ".join(s.value for s in allowed)
        )
    return status


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Trim and lower-case *tags*, dropping blanks.  Order and repeats are kept."""
    if not tags:
        return []
    return [t.strip().lower() for t in tags if t and t.strip()]


def _username_for(session, admin_id: int) -> str:
    username = session.scalar(select(Admin.username).where(Admin.id == admin_id))
    if username is None:
        raise AuthError("unauthorized")
    return username


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------
def _insert(engine: Engine, meme: Meme, *, admin_id: int | None = None) -> Meme:
    with storage_errors("save meme"):
        try:
            with get_session(engine) as session:
                if admin_id is not None:
                    meme.reviewed_by = _username_for(session, admin_id)
                session.add(meme)
                session.flush()
                session.refresh(meme)
        except IntegrityError as exc:
            logger.info("Duplicate submission rejected: %s/%s", meme.platform, meme.video_id)
            raise ConflictError("This meme has already been submitted") from exc

    logger.info(
        "Meme %s created (%s/%s, status=%s)",
        meme.id, meme.platform, meme.video_id, meme.status,
    )
    return meme


def submit_meme(
    engine: Engine,
    *,
    url: str,
    platform: str,
    video_id: str,
    description: str | None = None,
    tags: Iterable[str] | None = None,
) -> Meme:
    """Public submission.  Always lands in ``pending``.

    Raises
    ------
    ValidationError
        ``url``, ``platform`` or ``video_id`` missing/blank, or unknown platform.
    ConflictError
        The ``(platform, video_id)`` pair already exists.
    """
    meme = Meme(
        url=_require(url, "url", MAX_URL_LENGTH),
        platform=_parse_platform(platform).value,
        video_id=_require(video_id, "videoId", MAX_VIDEO_ID_LENGTH),
        description=description,
        tags=normalize_tags(tags),
        status=MemeStatus.PENDING.value,
    )
    return _insert(engine, meme)


def submit_meme_as_admin(
    engine: Engine,
    *,
    admin_id: int,
    url: str,
    platform: str,
    video_id: str,
    status: str | None = None,
    description: str | None = None,
    tags: Iterable[str] | None = None,
    now: datetime | None = None,
) -> Meme:
    """Admin submission: ``approved`` unless *status* says otherwise, and
    stamped as reviewed by the acting admin.
    """
    target = (
        MemeStatus.APPROVED if status is None
        else _parse_status(status, MemeStatus)
    )
    meme = Meme(
        url=_require(url, "url", MAX_URL_LENGTH),
        platform=_parse_platform(platform).value,
        video_id=_require(video_id, "videoId", MAX_VIDEO_ID_LENGTH),
        description=description,
        tags=normalize_tags(tags),
        status=target.value,
        reviewed_at=now or datetime.now(UTC),
    )
    return _insert(engine, meme, admin_id=admin_id)


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------
def vote(engine: Engine, meme_id: int, vote_type: str) -> Meme:
    """Add +1 (``up``) or -1 (``down``) to a meme's counter atomically."""
    try:
        delta = 1 if VoteType(vote_type) is VoteType.UP else -1
    except ValueError:
        raise ValidationError("type must be 'up' or 'down'") from None

    stmt = (
        update(Meme)
        .where(Meme.id == meme_id)
        .values(votes=Meme.votes + delta)
        .returning(Meme)
    )
    with storage_errors("record vote"), get_session(engine) as session:
        meme = session.scalars(
            stmt, execution_options={"synchronize_session": False}
        ).one_or_none()

    if meme is None:
        raise NotFoundError(f"Meme {meme_id} not found")
    return meme


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------
def _minus_one_month(moment: datetime) -> datetime:
    """Same wall-clock time one calendar month earlier (day clamped)."""
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_range_cutoff(date_range: str | None, now: datetime) -> datetime | None:
    """Earliest ``created_at`` admitted by *date_range*, or ``None`` for no filter."""
    if date_range == "today":
        return now - timedelta(days=1)
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return _minus_one_month(now)
    return None


def _tag_match(dialect: str, tag: str):
    if dialect == "postgresql":
        return Meme.tags.contains([tag])
    # Other backends store the list as JSON text
    return cast(Meme.tags, String).contains(json.dumps(tag), autoescape=True)


def _elapsed_seconds(dialect: str, now: datetime):
    if dialect == "postgresql":
        return cast(
            extract("epoch", literal(now, DateTime(timezone=True)) - Meme.created_at),
            Float,
        )
    return (
        func.julianday(literal(now, DateTime())) - func.julianday(Meme.created_at)
    ) * 86400.0


def trending_score(dialect: str, now: datetime):
    """``votes / max(seconds since creation, 1)`` as a SQL expression."""
    elapsed = _elapsed_seconds(dialect, now)
    floored = case(
        (elapsed < MIN_TRENDING_ELAPSED_SECONDS, MIN_TRENDING_ELAPSED_SECONDS),
        else_=elapsed,
    )
    return cast(Meme.votes, Float) / floored


def discover(
    engine: Engine,
    *,
    category: str | None = None,
    platform: str | None = None,
    date_range: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 12,
    now: datetime | None = None,
) -> list[Meme]:
    """Filtered, sorted, paginated read over **approved** memes.

    ``category``: ``trending`` | ``popular`` | anything else → newest first.
    ``platform``: ``all``/empty → no filter, otherwise upper-cased exact match.
    ``date_range``: ``today`` | ``week`` | ``month``; anything else → no filter.
    ``search``: case-insensitive match on description, or an exact tag.

    No total is returned; a short or empty page means there is nothing more.
    """
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    now = now or datetime.now(UTC)

    with storage_errors("load memes"), get_session(engine) as session:
        dialect = session.get_bind().dialect.name
        stmt = select(Meme).where(Meme.status == MemeStatus.APPROVED.value)

        if platform and platform.strip().lower() != "all":
            stmt = stmt.where(Meme.platform == platform.strip().upper())

        cutoff = date_range_cutoff(date_range, now)
        if cutoff is not None:
            stmt = stmt.where(Meme.created_at >= cutoff)

        term = (search or "").strip()
        if term:
            stmt = stmt.where(or_(
                Meme.description.icontains(term, autoescape=True),
                _tag_match(dialect, term.lower()),
            ))

        if category == "trending":
            stmt = stmt.order_by(trending_score(dialect, now).desc())
        elif category == "popular":
            stmt = stmt.order_by(Meme.votes.desc())
        else:
            stmt = stmt.order_by(Meme.created_at.desc())

        # Stable tiebreak keeps consecutive pages disjoint
        stmt = stmt.order_by(Meme.id.desc()).offset((page - 1) * limit).limit(limit)
        return list(session.scalars(stmt).all())


def trending_tags(
    engine: Engine,
    now: datetime | None = None,
    *,
    window: timedelta = TRENDING_TAG_WINDOW,
    top: int = TRENDING_TAG_LIMIT,
) -> list[str]:
    """Most frequent tags over memes created in the last *window*.

    Every occurrence in a meme's tag list counts.  Ties sort alphabetically.
    """
    now = now or datetime.now(UTC)
    with storage_errors("load trending tags"), get_session(engine) as session:
        tag_lists = session.scalars(
            select(Meme.tags).where(Meme.created_at >= now - window)
        ).all()

    counts = Counter(tag for tags in tag_lists for tag in (tags or []))
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [tag for tag, _ in ranked[:top]]


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
def list_pending(engine: Engine) -> list[Meme]:
    """Review queue, oldest submission first."""
    with storage_errors("load pending memes"), get_session(engine) as session:
        return list(session.scalars(
            select(Meme)
            .where(Meme.status == MemeStatus.PENDING.value)
            .order_by(Meme.created_at.asc(), Meme.id.asc())
        ).all())


def review_meme(
    engine: Engine,
    *,
    meme_id: int,
    status: str,
    admin_notes: str | None,
    admin_id: int,
    now: datetime | None = None,
) -> Meme:
    """Set status, notes, reviewer and review time in one statement.

    Current status is not checked: approved ↔ rejected re-review is allowed.

    Raises
    ------
    ValidationError
        *status* is not ``approved`` or ``rejected`` (row untouched).
    NotFoundError
        No meme with *meme_id*.
    """
    target = _parse_status(status, REVIEW_STATUSES)
    now = now or datetime.now(UTC)

    with storage_errors("review meme"), get_session(engine) as session:
        reviewer = _username_for(session, admin_id)
        meme = session.scalars(
            update(Meme)
            .where(Meme.id == meme_id)
            .values(
                status=target.value,
                admin_notes=admin_notes,
                reviewed_by=reviewer,
                reviewed_at=now,
            )
            .returning(Meme),
            execution_options={"synchronize_session": False},
        ).one_or_none()

    if meme is None:
        raise NotFoundError(f"Meme {meme_id} not found")
    logger.info("Meme %s marked %s by %s", meme_id, target.value, reviewer)
    return meme
