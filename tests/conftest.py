"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of oiiai.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, select  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite has no JSONB; render it as TEXT.  SQLAlchemy still applies its
# JSON serialization, so ``tags`` round-trips as a list.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from oiiai.database.models import Admin, Base, Meme  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()

ADMIN_USERNAME = "catmod"
ADMIN_PASSWORD = "oiiai-oiiai-spin"


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every OIIAI table.

    Uses StaticPool so all threads share the same in-memory database
    (FastAPI runs sync routes and ``run_db`` work on worker threads).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with a real connection pool.

    For tests that hit the database from several threads at once; each
    thread gets its own connection, and SQLite's busy timeout serializes writers.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'oiiai.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def make_meme(db_engine):
    """Factory inserting a meme row directly; returns its id."""

    def _make(
        video_id: str,
        *,
        engine: Engine | None = None,
        platform: str = "INSTAGRAM",
        status: str = "approved",
        votes: int = 0,
        tags: list[str] | None = None,
        description: str | None = None,
        created_at: datetime | None = None,
    ) -> int:
        with Session(engine or db_engine) as session:
            meme = Meme(
                url=f"https://www.instagram.com/reel/{video_id}/",
                platform=platform,
                video_id=video_id,
                status=status,
                votes=votes,
                tags=tags or [],
                description=description,
                created_at=created_at or datetime.now(UTC),
            )
            session.add(meme)
            session.commit()
            return meme.id

    return _make


@pytest.fixture
def admin_credentials() -> tuple[str, str]:
    return ADMIN_USERNAME, ADMIN_PASSWORD


@pytest.fixture
def admin_id(db_engine) -> int:
    """Provision the fixture admin and return its id."""
    from oiiai.database.seed import seed_admin

    seed_admin(db_engine, ADMIN_USERNAME, ADMIN_PASSWORD)
    with Session(db_engine) as session:
        return session.scalar(select(Admin.id).where(Admin.username == ADMIN_USERNAME))


@pytest.fixture
def admin_token(db_engine, admin_id) -> str:
    """Log the fixture admin in and return a live bearer token."""
    from oiiai.api.deps import JWT_SECRET
    from oiiai.services import auth_service

    return auth_service.login(db_engine, ADMIN_USERNAME, ADMIN_PASSWORD, secret=JWT_SECRET)


@pytest.fixture
def app_config():
    """Default config with throttles wide open.

    Modules that exercise rate limiting override this fixture.
    """
    from oiiai.config import OiiaiConfig, RateLimitRule

    roomy = RateLimitRule(max_requests=1000, window_seconds=60)
    return OiiaiConfig(rate_limits={"submit": roomy, "vote": roomy, "score": roomy})


@pytest.fixture
def client(db_engine, app_config):
    """FastAPI TestClient bound to the in-memory engine.

    The lifespan is not run, so no real DATABASE_URL is needed.
    """
    from fastapi.testclient import TestClient

    from oiiai.api.deps import get_config, get_engine
    from oiiai.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: app_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
