"""
oiiai.database.seed — Out-of-band Admin Provisioning
======================================================

There is no signup endpoint.  Moderator accounts are created here, either
from ``ADMIN_USERNAME`` / ``ADMIN_PASSWORD`` at startup or by calling
:func:`seed_admin` from a shell.

Idempotent — an existing username is never overwritten.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import Engine, select

from oiiai.database.engine import get_session
from oiiai.database.models import Admin
from oiiai.services.auth_service import hash_password

logger = logging.getLogger(__name__)


def seed_admin(engine: Engine, username: str, password: str) -> bool:
    """Create admin *username* unless it already exists.

    Returns ``True`` if a row was inserted.
    """
    username = username.strip()
    if not username or not password:
        raise ValueError("Admin username and password must be non-empty")

    with get_session(engine) as session:
        existing = session.scalar(select(Admin.id).where(Admin.username == username))
        if existing is not None:
            logger.debug("Admin %r already provisioned — skipping", username)
            return False
        session.add(Admin(username=username, password_hash=hash_password(password)))

    logger.info("Provisioned admin %r", username)
    return True


def seed_admin_from_env(engine: Engine) -> bool:
    """Provision the admin named by ``ADMIN_USERNAME`` / ``ADMIN_PASSWORD``.

    Does nothing unless both variables are set.
    """
    username = os.getenv("ADMIN_USERNAME", "").strip()
    password = os.getenv("ADMIN_PASSWORD", "")
    if not username or not password:
        return False
    return seed_admin(engine, username, password)
