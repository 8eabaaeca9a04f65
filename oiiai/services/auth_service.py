"""
oiiai.services.auth_service — Admin Credentials & Bearer Sessions
===================================================================

Login mints a signed JWT (``sub`` = admin id, 24 h ``exp``) and persists an
``admin_sessions`` row holding the exact same token string.  A token is
accepted only when **both** hold:

  1. the signature and ``exp`` claim verify against the shared secret, and
  2. a session row with that token exists and ``expires_at > now``.

Every failure collapses into one generic :class:`AuthError`, so callers
can't probe which usernames exist or which check a token failed.

There is no server-side logout: sessions end when they expire.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import bcrypt
import jwt
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine, delete, select

from oiiai.database.engine import get_session, storage_errors
from oiiai.database.models import Admin, AdminSession
from oiiai.errors import AuthError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
SESSION_TTL = timedelta(hours=24)

INVALID_CREDENTIALS = "invalid credentials"
UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True, slots=True)
class AdminIdentity:
    """The authenticated admin attached to a request."""
    id: int
    username: str


# ---------------------------------------------------------------------------
# Password hashing (bcrypt — salted, adaptive)
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt comparison.  Malformed input never raises."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------
def login(
    engine: Engine,
    username: str,
    password: str,
    *,
    secret: str,
    now: datetime | None = None,
) -> str:
    """Verify credentials and open a new 24-hour session.

    Each successful call creates its own session row; earlier sessions stay
    valid until they expire.

    Returns
    -------
    str
        The bearer token.

    Raises
    ------
    AuthError
        Unknown username or wrong password (same message for both).
    """
    now = now or datetime.now(UTC)

    with storage_errors("log in"), get_session(engine) as session:
        admin = session.scalar(select(Admin).where(Admin.username == username))
        if admin is None:
            # Burn a bcrypt round so unknown usernames take as long as bad passwords
            verify_password(password, _decoy_hash())
            logger.warning("Failed admin login (unknown user)")
            raise AuthError(INVALID_CREDENTIALS)
        if not verify_password(password, admin.password_hash):
            logger.warning("Failed admin login for admin id %s", admin.id)
            raise AuthError(INVALID_CREDENTIALS)

        expires_at = now + SESSION_TTL
        token = jwt.encode(
            {
                "sub": str(admin.id),
                "username": admin.username,
                "iat": now,
                "exp": expires_at,
                "jti": secrets.token_urlsafe(12),
            },
            secret,
            algorithm=JWT_ALGORITHM,
        )
        session.add(AdminSession(admin_id=admin.id, token=token, expires_at=expires_at))
        admin_id = admin.id

    logger.info("Admin %s logged in; session valid until %s", admin_id, expires_at.isoformat())
    return token


# ---------------------------------------------------------------------------
# Authorization gate
# ---------------------------------------------------------------------------
def authenticate_token(
    engine: Engine,
    token: str,
    *,
    secret: str,
    now: datetime | None = None,
) -> AdminIdentity:
    """Return the admin behind *token* or raise :class:`AuthError`."""
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        logger.warning("Rejected bearer token: signature/claims invalid")
        raise AuthError(UNAUTHORIZED) from None

    now = now or datetime.now(UTC)
    with storage_errors("validate session"), get_session(engine) as session:
        row = session.execute(
            select(Admin.id, Admin.username)
            .join(AdminSession, AdminSession.admin_id == Admin.id)
            .where(AdminSession.token == token, AdminSession.expires_at > now)
        ).first()

    if row is None or str(row.id) != str(claims.get("sub")):
        logger.warning("Rejected bearer token: no live session")
        raise AuthError(UNAUTHORIZED)
    return AdminIdentity(id=row.id, username=row.username)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
def prune_expired_sessions(engine: Engine, now: datetime | None = None) -> int:
    """Delete session rows past ``expires_at``.  Returns the number removed."""
    now = now or datetime.now(UTC)
    with get_session(engine) as session:
        result = session.execute(delete(AdminSession).where(AdminSession.expires_at <= now))
        removed = result.rowcount or 0
    if removed:
        logger.info("Pruned %d expired admin sessions", removed)
    return removed
