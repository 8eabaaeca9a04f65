"""
oiiai.api.errors — Exception → JSON response translation
==========================================================

Every failure leaves the API as ``{"error": <kind>, "message": <text>}``
so the client can show it verbatim.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from oiiai.errors import (
    AuthError,
    OiiaiError,
    RateLimitError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def error_body(kind: str, message: str) -> dict[str, str]:
    return {"error": kind, "message": message}


async def _oiiai_error(request: Request, exc: OiiaiError) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, AuthError):
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message),
        headers=headers or None,
    )


def _describe(errors: list[dict]) -> str:
    """Flatten pydantic errors into ``field: problem; …``."""
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        parts.append(f"{field}: {err.get('msg', 'invalid')}")
    return "; ".join(parts) or "Invalid request"


async def _request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=error_body(ValidationError.kind, _describe(exc.errors())),
    )


async def _sqlalchemy_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Unhandled database error on %s %s", request.method, request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=StorageError.status_code,
        content=error_body(StorageError.kind, "Database service unavailable"),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OiiaiError, _oiiai_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error)
