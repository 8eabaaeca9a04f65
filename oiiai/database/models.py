"""
oiiai.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- memes              — Moderated references to Instagram/TikTok videos
- admins             — Moderator accounts (provisioned out of band)
- admin_sessions     — Server-side records backing bearer tokens
- scores             — Typing-game results for the leaderboard
- rate_limit_events  — Durable per-client request log for throttling
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all OIIAI ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Platform(enum.StrEnum):
    """Hosting platforms a meme can point at."""
    INSTAGRAM = "INSTAGRAM"
    TIKTOK = "TIKTOK"


class MemeStatus(enum.StrEnum):
    """Moderation lifecycle.  Only APPROVED memes are publicly visible."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VoteType(enum.StrEnum):
    UP = "up"
    DOWN = "down"


# ---------------------------------------------------------------------------
# Memes
# ---------------------------------------------------------------------------
class Meme(Base):
    __tablename__ = "memes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    video_id: Mapped[str] = mapped_column(String(100), nullable=False)
    # Free signed counter; only ever changed by votes = votes ± 1
    votes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    description: Mapped[str | None] = mapped_column(Text, default=None)
    tags: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default="[]"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MemeStatus.PENDING,
        server_default=MemeStatus.PENDING.value,
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, default=None)
    reviewed_by: Mapped[str | None] = mapped_column(String(50), default=None)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("platform", "video_id", name="uq_memes_platform_video_id"),
        Index("ix_memes_status_created", "status", "created_at"),
        Index("ix_memes_votes", "votes"),
    )

    def __repr__(self) -> str:
        return f"<Meme id={self.id} {self.platform}/{self.video_id} status={self.status}>"


# ---------------------------------------------------------------------------
# Admins + bearer sessions
# ---------------------------------------------------------------------------
class Admin(Base):
    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sessions: Mapped[list[AdminSession]] = relationship(
        back_populates="admin", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Admin id={self.id} username={self.username!r}>"


class AdminSession(Base):
    """A live row with ``expires_at > now`` is required for a token to pass."""
    __tablename__ = "admin_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("admins.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    admin: Mapped[Admin] = relationship(back_populates="sessions")

    __table_args__ = (
        Index("ix_admin_sessions_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminSession admin={self.admin_id} token={self.token[:8]!r}...>"


# ---------------------------------------------------------------------------
# Scores — typing game leaderboard
# ---------------------------------------------------------------------------
class Score(Base):
    __tablename__ = "scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_name: Mapped[str] = mapped_column(String(50), nullable=False)
    score: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    time: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    letters_per_second: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False
    )
    mistakes: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_scores_score", score.desc()),
        Index("ix_scores_player_name", "player_name"),
    )

    def __repr__(self) -> str:
        return f"<Score id={self.id} player={self.player_name!r} score={self.score}>"


# ---------------------------------------------------------------------------
# RateLimitEvent — durable request log for the public throttle
# ---------------------------------------------------------------------------
class RateLimitEvent(Base):
    __tablename__ = "rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(20), nullable=False)
    client_key: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_rate_limit_scope_client_ts", "scope", "client_key", "timestamp"),
        Index("ix_rate_limit_ts", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<RateLimitEvent {self.scope}:{self.client_key!r} ts={self.timestamp}>"
