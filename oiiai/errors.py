"""
oiiai.errors — Error taxonomy shared by services and the API layer.

Services raise these; :mod:`oiiai.api.errors` turns them into
``{"error": kind, "message": ...}`` responses with the matching status.
"""

from __future__ import annotations


class OiiaiError(Exception):
    """Base class for every failure surfaced to API callers."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.kind


class ValidationError(OiiaiError):
    """Missing or invalid input."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(OiiaiError):
    kind = "not_found"
    status_code = 404


class ConflictError(OiiaiError):
    """Duplicate (platform, video_id) submission."""

    kind = "conflict"
    status_code = 409


class AuthError(OiiaiError):
    """Bad credentials, or a missing/invalid/expired bearer token.

    Always carries a generic message so callers can't tell which check failed.
    """

    kind = "unauthorized"
    status_code = 401


class RateLimitError(OiiaiError):
    kind = "rate_limited"
    status_code = 429

    def __init__(self, message: str = "", retry_after: int = 1) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class StorageError(OiiaiError):
    """Underlying store failure.  Never retried by the services."""

    kind = "storage_error"
    status_code = 500
