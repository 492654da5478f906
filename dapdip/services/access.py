"""
dapdip.services.access — Shared Read/Write Helpers
====================================================

Building blocks used by every resource service:

* :func:`paginate` — newest-first cursor pagination over integer ids
* :func:`visible_privacy_levels` — which privacy levels a viewer may see
* :func:`notify` — write a notification, never for self-actions
* :func:`toggle_reaction` — same type removes, other type updates
* :func:`user_brief` / :func:`iso` — serializer fragments
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from dapdip.database.models import (
    Follow,
    FollowStatus,
    Notification,
    PrivacyLevel,
    User,
)
from dapdip.errors import ForbiddenError, NotFoundError

M = TypeVar("M")


# ---------------------------------------------------------------------------
# Time / serialization
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def user_brief(user: User | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "image": user.image,
    }


def get_or_404(session: Session, model: type[M], pk: int, message: str) -> M:
    row = session.get(model, pk)
    if row is None:
        raise NotFoundError(message)
    return row


def count(session: Session, column: InstrumentedAttribute, *criteria) -> int:
    """``SELECT count(column) WHERE criteria`` as a plain int."""
    return session.scalar(select(func.count(column)).where(*criteria)) or 0


LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """``%text%`` with LIKE wildcards in *text* matched literally (use ``escape=LIKE_ESCAPE``)."""
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"


# ---------------------------------------------------------------------------
# Cursor pagination
# ---------------------------------------------------------------------------
def paginate(
    session: Session,
    stmt: Select,
    id_column: InstrumentedAttribute,
    *,
    limit: int,
    cursor: int | None = None,
    ascending: bool = False,
) -> tuple[list[Any], int | None]:
    """Fetch one page of *stmt* ordered by *id_column*.

    Reads ``limit + 1`` rows; when the extra row exists it is dropped from
    the page and its id returned as the next cursor.  Passing that cursor
    back starts the next page at (and including) that row.
    """
    if cursor is not None:
        stmt = stmt.where(id_column >= cursor if ascending else id_column <= cursor)
    stmt = stmt.order_by(id_column.asc() if ascending else id_column.desc()).limit(limit + 1)

    rows = list(session.scalars(stmt).all())
    next_cursor = None
    if len(rows) > limit:
        extra = rows.pop()
        next_cursor = _row_id(extra, id_column)
    return rows, next_cursor


def _row_id(row: Any, id_column: InstrumentedAttribute) -> int:
    if isinstance(row, int):
        return row
    return getattr(row, id_column.key)


# ---------------------------------------------------------------------------
# Social graph / privacy
# ---------------------------------------------------------------------------
def follow_row(session: Session, follower_id: int, following_id: int) -> Follow | None:
    return session.scalar(
        select(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )


def is_accepted_follower(session: Session, viewer_id: int | None, author_id: int) -> bool:
    if viewer_id is None:
        return False
    row = follow_row(session, viewer_id, author_id)
    return row is not None and row.status == FollowStatus.ACCEPTED


def is_blocked_between(session: Session, a: int, b: int) -> bool:
    """True if either user has blocked the other."""
    return session.scalar(
        select(func.count(Follow.id)).where(
            Follow.status == FollowStatus.BLOCKED,
            ((Follow.follower_id == a) & (Follow.following_id == b))
            | ((Follow.follower_id == b) & (Follow.following_id == a)),
        )
    ) > 0


def visible_privacy_levels(
    session: Session, viewer_id: int | None, author_id: int
) -> list[str]:
    """Privacy levels of *author_id*'s content that *viewer_id* may see."""
    if viewer_id is not None and viewer_id == author_id:
        return [PrivacyLevel.PUBLIC, PrivacyLevel.FRIENDS, PrivacyLevel.PRIVATE]
    if is_accepted_follower(session, viewer_id, author_id):
        return [PrivacyLevel.PUBLIC, PrivacyLevel.FRIENDS]
    return [PrivacyLevel.PUBLIC]


def can_view(
    session: Session, viewer_id: int | None, author_id: int, privacy_level: str
) -> bool:
    return privacy_level in visible_privacy_levels(session, viewer_id, author_id)


def get_visible_or_403(
    session: Session, model: type[M], pk: int, viewer_id: int | None, label: str
) -> M:
    """Load a post or reel, refusing viewers its privacy level hides it from.

    Everything hanging off the row (comments, reactions, likes, saves)
    goes through here so it is exactly as visible as the row itself.
    """
    row = get_or_404(session, model, pk, f"{label} not found")
    if not can_view(session, viewer_id, row.author_id, row.privacy_level):
        raise ForbiddenError(f"You do not have permission to view this {label.lower()}")
    return row


def accepted_following_ids(session: Session, viewer_id: int) -> list[int]:
    return list(
        session.scalars(
            select(Follow.following_id).where(
                Follow.follower_id == viewer_id,
                Follow.status == FollowStatus.ACCEPTED,
            )
        ).all()
    )


def feed_visibility_clause(session: Session, model: Any, viewer_id: int | None):
    """WHERE clause: PUBLIC, the viewer's own, or FRIENDS of an accepted follow."""
    if viewer_id is None:
        return model.privacy_level == PrivacyLevel.PUBLIC
    friends = accepted_following_ids(session, viewer_id)
    return (
        (model.privacy_level == PrivacyLevel.PUBLIC)
        | (model.author_id == viewer_id)
        | ((model.privacy_level == PrivacyLevel.FRIENDS) & model.author_id.in_(friends))
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
def notify(
    session: Session,
    *,
    user_id: int,
    sender_id: int,
    type: str,
    title: str,
    content: str,
    link: str | None = None,
) -> Notification | None:
    """Queue a notification for *user_id*; self-actions produce nothing."""
    if user_id == sender_id:
        return None
    row = Notification(
        user_id=user_id,
        sender_id=sender_id,
        type=type,
        title=title,
        content=content,
        link=link,
    )
    session.add(row)
    return row


def display_name(user: User | None) -> str:
    if user is None:
        return "Someone"
    return user.name or user.username or "Someone"


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------
def toggle_reaction(
    session: Session,
    model: type,
    *,
    target_column: InstrumentedAttribute,
    target_id: int,
    user_id: int,
    reaction_type: str,
) -> dict[str, Any]:
    """Toggle a (target, user) reaction row of *model*.

    Same type as the stored one removes it; a different type replaces it;
    no row creates one.  Returns ``{"type": <current type or None>}``.
    """
    existing = session.scalar(
        select(model).where(target_column == target_id, model.user_id == user_id)
    )
    if existing is not None:
        if existing.type == reaction_type:
            session.delete(existing)
            session.flush()
            return {"type": None}
        existing.type = reaction_type
        session.flush()
        return {"type": reaction_type}

    session.add(model(**{target_column.key: target_id, "user_id": user_id, "type": reaction_type}))
    session.flush()
    return {"type": reaction_type}
