"""
oiiai.services.links — Instagram / TikTok URL resolution
==========================================================

Turns a pasted share link into the ``(platform, video_id)`` pair that
identifies a meme.  Supported shapes::

    https://www.instagram.com/reel/ABC123/
    https://www.instagram.com/p/ABC123/?igsh=...
    https://www.instagram.com/share/reel/ABC123
    https://www.tiktok.com/@someone/video/7312345678901234567
    https://vm.tiktok.com/ZMabc123/
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from oiiai.database.models import Platform
from oiiai.errors import ValidationError

_HOST_PATTERNS: tuple[tuple[re.Pattern[str], Platform], ...] = (
    (re.compile(r"(^|\.)instagram\.com$"), Platform.INSTAGRAM),
    (re.compile(r"(^|\.)tiktok\.com$"), Platform.TIKTOK),
)


@dataclass(frozen=True, slots=True)
class ResolvedLink:
    platform: Platform
    video_id: str


def detect_platform(host: str) -> Platform | None:
    """Platform served by *host* (exact domain or a subdomain of it)."""
    host = host.lower().rstrip(".")
    for pattern, platform in _HOST_PATTERNS:
        if pattern.search(host):
            return platform
    return None


def _instagram_id(parts: list[str]) -> str | None:
    if "share" in parts:
        return parts[-1]
    for marker in ("p", "reel"):
        if marker in parts:
            idx = parts.index(marker)
            if idx + 1 < len(parts):
                return parts[idx + 1]
    return None


def _tiktok_id(parts: list[str]) -> str | None:
    if "video" in parts:
        idx = parts.index("video")
        return parts[idx + 1] if idx + 1 < len(parts) else None
    return parts[-1] if parts else None


def resolve_url(url: str) -> ResolvedLink:
    """Return the platform and external video id for *url*.

    Raises
    ------
    ValidationError
        Empty or malformed URL, a host other than Instagram/TikTok, or a
        path with no recognisable video id.
    """
    url = (url or "").strip()
    if not url:
        raise ValidationError("URL is required")

    parsed = urlsplit(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid URL format")

    platform = detect_platform(parsed.hostname or "")
    if platform is None:
        raise ValidationError("URL must be from Instagram or TikTok")

    parts = [p for p in parsed.path.split("/") if p]
    if platform is Platform.INSTAGRAM:
        video_id = _instagram_id(parts)
    else:
        video_id = _tiktok_id(parts)

    if not video_id:
        raise ValidationError(f"Could not extract valid {platform.lower()} video ID")
    return ResolvedLink(platform=platform, video_id=video_id)
