"""
DapDip — A Social Network Backend with an AI Wellness Companion
=================================================================
Posts, comments, reels, stories, direct messages and voice notes, plus
"Better Me": health logging and AI-generated meal and workout plans paid
for from a per-user token balance.

Package layout::

    dapdip/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Plan allowances, token costs, limits
    ├── errors.py          # Typed service errors → HTTP status
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── services/
    │   ├── access.py          # Privacy visibility + pagination helpers
    │   ├── content_model.py   # Pluggable text/audio/health model
    │   ├── ai_service.py      # Token accounting + AI features
    │   ├── post_service.py, comment_service.py, follow_service.py, ...
    │   ├── log_buffer.py      # In-memory log ring buffer
    │   └── upload_service.py  # Media upload storage
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # GitHub OAuth + credentials → JWT
        ├── rate_limit.py  # DB-backed sliding-window limiter
        └── routes/        # One router per resource
"""

__version__ = "0.1.0"
