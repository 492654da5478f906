"""
dapdip.api.routes.admin — Admin dashboard endpoints (JWT-protected)
=====================================================================
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_admin, get_session
from dapdip.database.models import AITokenUsage, Message, Post, Reel, Story, User
from dapdip.services.access import count, utcnow
from dapdip.services.log_buffer import (
    VALID_LEVELS,
    get_current_level,
    get_logs,
    set_capture_level,
)

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------
@router.get("/stats")
def get_stats(
    admin: dict = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    """Platform-wide counters for the dashboard overview."""
    now = utcnow()
    tokens_spent = session.scalar(
        select(func.coalesce(func.sum(AITokenUsage.amount), 0)).where(
            AITokenUsage.created_at >= now - timedelta(days=30)
        )
    )
    return {
        "users": count(session, User.id),
        "posts": count(session, Post.id),
        "reels": count(session, Reel.id),
        "active_stories": count(
            session, Story.id, Story.expires_at > now, Story.is_archived.is_(False)
        ),
        "messages": count(session, Message.id),
        "ai_tokens_spent_30d": int(tokens_spent or 0),
    }


# ---------------------------------------------------------------------------
# Live logs
# ---------------------------------------------------------------------------
@router.get("/logs")
def get_live_logs(
    tail: int = Query(200, ge=1, le=5000),
    level: str | None = Query(None),
    logger_filter: str | None = Query(None, alias="logger"),
    admin: dict = Depends(get_current_admin),
):
    """Return recent log entries from the in-memory ring buffer."""
    entries = get_logs(tail=tail, level=level, logger_filter=logger_filter)
    return {
        "entries": entries,
        "total": len(entries),
        "capture_level": get_current_level(),
        "valid_levels": list(VALID_LEVELS),
    }


@router.put("/logs/level")
def change_log_level(
    body: dict,
    admin: dict = Depends(get_current_admin),
):
    """Change the capture level of the ring-buffer handler on the fly."""
    try:
        new_level = set_capture_level(str(body.get("level", "")))
    except ValueError:
        raise HTTPException(
            400, detail=f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}"
        ) from None
    logger.info("Admin %s set log capture level to %s", admin.get("sub"), new_level)
    return {"level": new_level}
