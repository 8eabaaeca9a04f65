"""
oiiai.api.rate_limit — Per-Client Throttle for Public Write Endpoints
=======================================================================

Sliding-window counter keyed by ``(scope, client IP)`` and stored in the
``rate_limit_events`` table so limits survive restarts and are shared by
every worker.  Scopes and their windows come from ``config.yaml``:

* ``submit`` — meme submissions (default 5 / hour)
* ``vote``   — votes (default 50 / 15 min)
* ``score``  — leaderboard posts (default 100 / 15 min)

Over the limit → :class:`RateLimitError` → HTTP 429 with ``Retry-After``.
The meme and score services know nothing about this module.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, Request
from sqlalchemy import Engine, delete, select

from oiiai.api.deps import get_config, get_engine
from oiiai.config import OiiaiConfig, RateLimitRule
from oiiai.database.engine import get_session, run_db
from oiiai.database.models import RateLimitEvent
from oiiai.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter for one *scope*.  DB-backed, no in-process state."""

    def __init__(self, scope: str, rule: RateLimitRule, *, engine: Engine) -> None:
        self.scope = scope
        self.max_requests = rule.max_requests
        self.window_seconds = rule.window_seconds
        self.engine = engine

    @staticmethod
    def _aware(value: datetime) -> datetime:
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value

    def _window(self, session, client_key: str, now: datetime) -> list[datetime]:
        cutoff = now - timedelta(seconds=self.window_seconds)
        session.execute(
            delete(RateLimitEvent).where(
                RateLimitEvent.scope == self.scope,
                RateLimitEvent.client_key == client_key,
                RateLimitEvent.timestamp < cutoff,
            )
        )
        return list(session.scalars(
            select(RateLimitEvent.timestamp)
            .where(
                RateLimitEvent.scope == self.scope,
                RateLimitEvent.client_key == client_key,
            )
            .order_by(RateLimitEvent.timestamp.asc())
        ).all())

    def _info(self, timestamps: list[datetime], now: datetime) -> dict[str, Any]:
        count = len(timestamps)
        if count >= self.max_requests:
            oldest = self._aware(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return {"remaining": 0, "reset": max(1, int(reset) + 1), "limit": self.max_requests}
        return {
            "remaining": self.max_requests - count,
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def check(self, client_key: str, now: datetime | None = None) -> tuple[bool, dict[str, Any]]:
        """Return ``(allowed, info)`` without consuming a slot.

        ``info`` holds ``remaining``, ``reset`` (seconds) and ``limit``.
        """
        now = now or datetime.now(UTC)
        with get_session(self.engine) as session:
            timestamps = self._window(session, client_key, now)
        info = self._info(timestamps, now)
        return info["remaining"] > 0, info

    def hit(self, client_key: str, now: datetime | None = None) -> tuple[bool, dict[str, Any]]:
        """Consume a slot if one is free.  Check and record share a transaction."""
        now = now or datetime.now(UTC)
        with get_session(self.engine) as session:
            timestamps = self._window(session, client_key, now)
            info = self._info(timestamps, now)
            if info["remaining"] <= 0:
                return False, info
            session.add(RateLimitEvent(scope=self.scope, client_key=client_key, timestamp=now))
        info["remaining"] -= 1
        return True, info

    def reset(self, client_key: str | None = None) -> None:
        """Clear this scope's history, for one client or all of them."""
        stmt = delete(RateLimitEvent).where(RateLimitEvent.scope == self.scope)
        if client_key is not None:
            stmt = stmt.where(RateLimitEvent.client_key == client_key)
        with get_session(self.engine) as session:
            session.execute(stmt)


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------
def rate_limited(scope: str):
    """Build a dependency that throttles the route under *scope*.

    Usage::

        @router.post("/memes", dependencies=[Depends(rate_limited("submit"))])
    """

    async def _enforce(
        request: Request,
        engine: Engine = Depends(get_engine),
        cfg: OiiaiConfig = Depends(get_config),
    ) -> None:
        limiter = RateLimiter(scope, cfg.rate_limit(scope), engine=engine)
        key = client_key(request)
        allowed, info = await run_db(limiter.hit, key)
        if not allowed:
            logger.warning(
                "Rate limit exceeded for %s on %s: %d requests per %ds",
                key, scope, limiter.max_requests, limiter.window_seconds,
            )
            raise RateLimitError(
                f"Rate limit exceeded: {limiter.max_requests} requests per "
                f"{limiter.window_seconds} seconds. Please wait before trying again.",
                retry_after=info["reset"],
            )

    return _enforce
