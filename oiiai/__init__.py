"""
OIIAI — Spinning Cat Meme Gallery API
=======================================
Backend for the OIIAI spinning-cat site: a community meme gallery with
voting and moderation, an admin review queue, and the typing-game
leaderboard.

Package layout::

    oiiai/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Error taxonomy shared by services and API
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session helper, async bridge
    │   ├── models.py      # ORM models (memes, admins, sessions, scores)
    │   └── seed.py        # Out-of-band admin provisioning
    ├── services/
    │   ├── meme_service.py   # Submission, voting, discovery, review
    │   ├── auth_service.py   # Password hashing + bearer sessions
    │   ├── score_service.py  # Typing-game leaderboard
    │   ├── links.py          # Instagram / TikTok URL parsing
    │   └── log_buffer.py     # In-memory log tail for the admin panel
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection + authorization gate
        ├── errors.py      # Exception → JSON response handlers
        ├── rate_limit.py  # Per-client throttle
        └── routes/        # Public, admin and leaderboard endpoints
"""

__version__ = "0.1.0"
