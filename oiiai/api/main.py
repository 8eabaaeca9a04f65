"""
oiiai.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn oiiai.api.main:app --reload --port 3001
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

load_dotenv()

from oiiai import __version__  # noqa: E402
from oiiai.api.deps import get_engine, get_session  # noqa: E402
from oiiai.api.errors import install_error_handlers  # noqa: E402
from oiiai.api.routes.admin import router as admin_router  # noqa: E402
from oiiai.api.routes.memes import router as memes_router  # noqa: E402
from oiiai.api.routes.scores import router as scores_router  # noqa: E402
from oiiai.database.engine import init_db, run_db  # noqa: E402
from oiiai.services.auth_service import prune_expired_sessions  # noqa: E402
from oiiai.services.log_buffer import install_handler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
      3) ``*`` — the public site embeds this API from anywhere
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — schema check, admin seed, session cleanup."""
    # Uvicorn reconfigures logging on start, so attach the buffer here
    install_handler()

    engine = get_engine()
    await run_db(init_db, engine)
    await run_db(prune_expired_sessions, engine)
    logger.info("OIIAI API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("OIIAI API shutting down")


app = FastAPI(
    title="OIIAI Meme API",
    version=__version__,
    lifespan=lifespan,
)

_origins = _cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

app.include_router(memes_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(scores_router, prefix="/api")


@app.get("/api/health")
def health(session: Session = Depends(get_session)):
    """Liveness plus a ``SELECT 1`` round-trip to the database."""
    timestamp = datetime.now(UTC).isoformat()
    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "error": str(exc.__class__.__name__), "timestamp": timestamp},
        )
    return {"status": "healthy", "database": "connected", "timestamp": timestamp}
