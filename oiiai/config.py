"""
oiiai.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for **infrastructure-only** tuning (page sizes,
throttle windows).  Secrets and connection strings never live here; they
come from the environment (``DATABASE_URL``, ``JWT_SECRET``).

Usage::

    from oiiai.config import load_config

    cfg = load_config()                 # reads $OIIAI_CONFIG or ./config.yaml
    print(cfg.discovery_page_size)      # 12
    print(cfg.rate_limit("vote"))       # RateLimitRule(max_requests=50, ...)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Throttle rules — one per rate-limited scope
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RateLimitRule:
    """At most ``max_requests`` per client within ``window_seconds``."""

    max_requests: int
    window_seconds: int


DEFAULT_RATE_LIMITS: dict[str, RateLimitRule] = {
    "submit": RateLimitRule(max_requests=5, window_seconds=3600),
    "vote": RateLimitRule(max_requests=50, window_seconds=900),
    "score": RateLimitRule(max_requests=100, window_seconds=900),
}


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class OiiaiConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every key is optional; the defaults match the production site.
    """

    discovery_page_size: int = 12
    max_page_size: int = 50
    leaderboard_size: int = 50
    rate_limits: dict[str, RateLimitRule] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS)
    )

    def rate_limit(self, scope: str) -> RateLimitRule:
        """Return the rule for *scope*, raising ``KeyError`` if unknown."""
        return self.rate_limits[scope]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def _parse_rate_limits(raw: dict | None) -> dict[str, RateLimitRule]:
    rules = dict(DEFAULT_RATE_LIMITS)
    for scope, values in (raw or {}).items():
        if scope not in rules:
            continue
        base = rules[scope]
        rules[scope] = RateLimitRule(
            max_requests=int(values.get("max_requests", base.max_requests)),
            window_seconds=int(values.get("window_seconds", base.window_seconds)),
        )
    return rules


def load_config(path: str | Path | None = None) -> OiiaiConfig:
    """Read *path* and return an :class:`OiiaiConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$OIIAI_CONFIG`` or ``config.yaml`` in the working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    """
    config_path = Path(path or os.getenv("OIIAI_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = OiiaiConfig()
    return OiiaiConfig(
        discovery_page_size=int(raw.get("discovery_page_size", defaults.discovery_page_size)),
        max_page_size=int(raw.get("max_page_size", defaults.max_page_size)),
        leaderboard_size=int(raw.get("leaderboard_size", defaults.leaderboard_size)),
        rate_limits=_parse_rate_limits(raw.get("rate_limits")),
    )
