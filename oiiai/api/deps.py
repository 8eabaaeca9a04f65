"""
oiiai.api.deps — FastAPI dependency injection
===============================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from oiiai.config import OiiaiConfig, load_config
from oiiai.database.engine import create_db_engine, run_db
from oiiai.errors import AuthError
from oiiai.services import auth_service
from oiiai.services.auth_service import JWT_ALGORITHM, AdminIdentity

__all__ = [
    "JWT_ALGORITHM",
    "JWT_SECRET",
    "get_config",
    "get_current_admin",
    "get_engine",
    "get_session",
]

_WEAK_SECRETS = frozenset({
    "oiiai-dev-secret-change-me",
    "change-me",
    "changeme",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> OiiaiConfig:
    return load_config()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine) as session:
        yield session


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthError("unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("unauthorized")
    return token.strip()


async def get_current_admin(
    engine: Annotated[Engine, Depends(get_engine)],
    authorization: Annotated[str | None, Header()] = None,
) -> AdminIdentity:
    """Authorization gate for admin routes.

    The token must verify cryptographically *and* match a live session row.
    Any failure raises :class:`AuthError` (401) with a generic message.
    """
    token = _bearer_token(authorization)
    return await run_db(
        auth_service.authenticate_token, engine, token, secret=JWT_SECRET
    )
