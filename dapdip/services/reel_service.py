"""
dapdip.services.reel_service — Short Videos
=============================================

Reels follow the same privacy visibility rule as posts.  Likes, views
and saves are unique per (reel, user); views are upserted so the latest
watch progress wins.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dapdip.constants import REEL_TRENDING_WINDOWS
from dapdip.database.models import (
    NotificationType,
    PrivacyLevel,
    Reel,
    ReelComment,
    ReelLike,
    ReelTag,
    ReelView,
    SavedReel,
    User,
)
from dapdip.errors import BadRequestError, ForbiddenError
from dapdip.services.access import (
    count,
    feed_visibility_clause,
    get_or_404,
    get_visible_or_403,
    iso,
    notify,
    paginate,
    user_brief,
    utcnow,
    visible_privacy_levels,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _reel_dict(session: Session, reel: Reel, viewer_id: int | None = None) -> dict[str, Any]:
    data = {
        "id": reel.id,
        "video_url": reel.video_url,
        "thumbnail_url": reel.thumbnail_url,
        "description": reel.description,
        "duration": reel.duration,
        "aspect_ratio": reel.aspect_ratio,
        "audio": {"id": reel.audio_id, "name": reel.audio_name, "artist": reel.audio_artist},
        "privacy_level": reel.privacy_level,
        "tags": [t.tag for t in reel.tags],
        "author": user_brief(reel.author),
        "created_at": iso(reel.created_at),
        "likes_count": count(session, ReelLike.id, ReelLike.reel_id == reel.id),
        "comments_count": count(session, ReelComment.id, ReelComment.reel_id == reel.id),
        "views_count": count(session, ReelView.id, ReelView.reel_id == reel.id),
        "is_liked": False,
        "is_saved": False,
    }
    if viewer_id is not None:
        data["is_liked"] = session.scalar(
            select(ReelLike.id).where(ReelLike.reel_id == reel.id, ReelLike.user_id == viewer_id)
        ) is not None
        data["is_saved"] = session.scalar(
            select(SavedReel.id).where(SavedReel.reel_id == reel.id, SavedReel.user_id == viewer_id)
        ) is not None
    return data


def _reel_comment_dict(session: Session, comment: ReelComment) -> dict[str, Any]:
    return {
        "id": comment.id,
        "reel_id": comment.reel_id,
        "content": comment.content,
        "parent_id": comment.parent_id,
        "author": user_brief(comment.author),
        "created_at": iso(comment.created_at),
        "replies_count": count(session, ReelComment.id, ReelComment.parent_id == comment.id),
    }


def _normalise_tag(tag: str) -> str:
    return tag.strip().lstrip("#").lower()


def _set_tags(reel: Reel, tags: list[str]) -> None:
    unique: list[str] = []
    for tag in tags:
        tag = _normalise_tag(tag)
        if tag and tag not in unique:
            unique.append(tag)
    reel.tags = [ReelTag(tag=tag, position=i) for i, tag in enumerate(unique)]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def create_reel(session: Session, author_id: int, data: dict[str, Any]) -> dict[str, Any]:
    audio = data.pop("audio", None) or {}
    tags = data.pop("tags", None) or []
    reel = Reel(
        author_id=author_id,
        audio_id=audio.get("id"),
        audio_name=audio.get("name"),
        audio_artist=audio.get("artist"),
        **data,
    )
    _set_tags(reel, tags)
    session.add(reel)
    session.flush()
    logger.debug("User %s created reel %s", author_id, reel.id)
    return _reel_dict(session, reel, author_id)


def _owned_reel(session: Session, reel_id: int, user_id: int, action: str) -> Reel:
    reel = get_or_404(session, Reel, reel_id, "Reel not found")
    if reel.author_id != user_id:
        raise ForbiddenError(f"You can only {action} your own reels")
    return reel


def update_reel(
    session: Session, user_id: int, reel_id: int, changes: dict[str, Any]
) -> dict[str, Any]:
    reel = _owned_reel(session, reel_id, user_id, "update")
    tags = changes.pop("tags", None)
    for key, value in changes.items():
        setattr(reel, key, value)
    if tags is not None:
        reel.tags.clear()
        session.flush()
        _set_tags(reel, tags)
    session.flush()
    return _reel_dict(session, reel, user_id)


def delete_reel(session: Session, user_id: int, reel_id: int) -> dict[str, bool]:
    session.delete(_owned_reel(session, reel_id, user_id, "delete"))
    session.flush()
    return {"success": True}


def toggle_like(session: Session, user_id: int, reel_id: int) -> dict[str, bool]:
    reel = get_visible_or_403(session, Reel, reel_id, user_id, "Reel")
    existing = session.scalar(
        select(ReelLike).where(ReelLike.reel_id == reel_id, ReelLike.user_id == user_id)
    )
    if existing is not None:
        session.delete(existing)
        session.flush()
        return {"liked": False}

    session.add(ReelLike(reel_id=reel_id, user_id=user_id))
    notify(
        session,
        user_id=reel.author_id,
        sender_id=user_id,
        type=NotificationType.REEL_LIKE,
        title="New Like",
        content="Someone liked your reel",
        link=f"/reel/{reel_id}",
    )
    session.flush()
    return {"liked": True}


def create_reel_comment(
    session: Session,
    author_id: int,
    *,
    reel_id: int,
    content: str | None,
    parent_id: int | None = None,
) -> ReelComment:
    """Insert a reel comment or reply and notify the reel (and parent) author."""
    reel = get_visible_or_403(session, Reel, reel_id, author_id, "Reel")
    parent = None
    if parent_id is not None:
        parent = get_or_404(session, ReelComment, parent_id, "Parent comment not found")
        if parent.reel_id != reel_id:
            raise BadRequestError("Parent comment does not belong to this reel")

    comment = ReelComment(reel_id=reel_id, author_id=author_id, content=content, parent_id=parent_id)
    session.add(comment)
    notify(
        session,
        user_id=reel.author_id,
        sender_id=author_id,
        type=NotificationType.REEL_COMMENT,
        title="New Comment",
        content="Someone commented on your reel",
        link=f"/reel/{reel_id}",
    )
    if parent is not None and parent.author_id != reel.author_id:
        notify(
            session,
            user_id=parent.author_id,
            sender_id=author_id,
            type=NotificationType.COMMENT,
            title="New Reply",
            content="Someone replied to your comment",
            link=f"/reel/{reel_id}",
        )
    session.flush()
    return comment


def comment(
    session: Session, author_id: int, reel_id: int, content: str, parent_id: int | None = None
) -> dict[str, Any]:
    row = create_reel_comment(
        session, author_id, reel_id=reel_id, content=content, parent_id=parent_id
    )
    return _reel_comment_dict(session, row)


def record_view(
    session: Session,
    user_id: int,
    reel_id: int,
    *,
    watch_duration: float,
    watch_percentage: float,
    completed_view: bool = False,
) -> dict[str, Any]:
    get_visible_or_403(session, Reel, reel_id, user_id, "Reel")
    view = session.scalar(
        select(ReelView).where(ReelView.reel_id == reel_id, ReelView.user_id == user_id)
    )
    if view is None:
        view = ReelView(reel_id=reel_id, user_id=user_id)
        session.add(view)
    view.watch_duration = watch_duration
    view.watch_percentage = watch_percentage
    view.completed_view = completed_view
    session.flush()
    return {
        "id": view.id,
        "reel_id": reel_id,
        "watch_duration": view.watch_duration,
        "watch_percentage": view.watch_percentage,
        "completed_view": view.completed_view,
    }


def save_reel(session: Session, user_id: int, reel_id: int) -> dict[str, bool]:
    get_visible_or_403(session, Reel, reel_id, user_id, "Reel")
    existing = session.scalar(
        select(SavedReel).where(SavedReel.reel_id == reel_id, SavedReel.user_id == user_id)
    )
    if existing is not None:
        session.delete(existing)
        session.flush()
        return {"saved": False}
    session.add(SavedReel(reel_id=reel_id, user_id=user_id))
    session.flush()
    return {"saved": True}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_reel(session: Session, reel_id: int, viewer_id: int | None) -> dict[str, Any]:
    reel = get_visible_or_403(session, Reel, reel_id, viewer_id, "Reel")
    return _reel_dict(session, reel, viewer_id)


def get_feed(
    session: Session, viewer_id: int | None, *, limit: int = 5, cursor: int | None = None
) -> dict[str, Any]:
    rows, next_cursor = paginate(
        session,
        select(Reel).where(feed_visibility_clause(session, Reel, viewer_id)),
        Reel.id,
        limit=limit,
        cursor=cursor,
    )
    return {"reels": [_reel_dict(session, r, viewer_id) for r in rows], "next_cursor": next_cursor}


def get_user_reels(
    session: Session,
    user_id: int,
    viewer_id: int | None,
    *,
    limit: int = 10,
    cursor: int | None = None,
) -> dict[str, Any]:
    get_or_404(session, User, user_id, "User not found")
    levels = visible_privacy_levels(session, viewer_id, user_id)
    rows, next_cursor = paginate(
        session,
        select(Reel).where(Reel.author_id == user_id, Reel.privacy_level.in_(levels)),
        Reel.id,
        limit=limit,
        cursor=cursor,
    )
    return {"reels": [_reel_dict(session, r, viewer_id) for r in rows], "next_cursor": next_cursor}


def get_comments(
    session: Session,
    reel_id: int,
    viewer_id: int | None,
    *,
    limit: int = 20,
    cursor: int | None = None,
) -> dict[str, Any]:
    get_visible_or_403(session, Reel, reel_id, viewer_id, "Reel")
    rows, next_cursor = paginate(
        session,
        select(ReelComment).where(ReelComment.reel_id == reel_id, ReelComment.parent_id.is_(None)),
        ReelComment.id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "comments": [_reel_comment_dict(session, c) for c in rows],
        "next_cursor": next_cursor,
    }


def get_comment_replies(
    session: Session,
    comment_id: int,
    viewer_id: int | None,
    *,
    limit: int = 10,
    cursor: int | None = None,
) -> dict[str, Any]:
    parent = get_or_404(session, ReelComment, comment_id, "Comment not found")
    get_visible_or_403(session, Reel, parent.reel_id, viewer_id, "Reel")
    rows, next_cursor = paginate(
        session,
        select(ReelComment).where(ReelComment.parent_id == comment_id),
        ReelComment.id,
        limit=limit,
        cursor=cursor,
        ascending=True,
    )
    return {
        "replies": [_reel_comment_dict(session, c) for c in rows],
        "next_cursor": next_cursor,
    }


def get_trending(
    session: Session, viewer_id: int | None, *, timeframe: str = "week", limit: int = 10
) -> dict[str, Any]:
    """PUBLIC reels from the window, ranked by likes, then views, then comments."""
    since = utcnow() - REEL_TRENDING_WINDOWS[timeframe]

    def _count_of(model):
        return (
            select(func.count(model.id))
            .where(model.reel_id == Reel.id)
            .correlate(Reel)
            .scalar_subquery()
        )

    reels = session.scalars(
        select(Reel)
        .where(Reel.privacy_level == PrivacyLevel.PUBLIC, Reel.created_at >= since)
        .order_by(
            _count_of(ReelLike).desc(),
            _count_of(ReelView).desc(),
            _count_of(ReelComment).desc(),
            Reel.id.desc(),
        )
        .limit(limit)
    ).all()
    return {"reels": [_reel_dict(session, r, viewer_id) for r in reels]}


def get_by_tag(
    session: Session,
    tag: str,
    viewer_id: int | None,
    *,
    limit: int = 10,
    cursor: int | None = None,
) -> dict[str, Any]:
    rows, next_cursor = paginate(
        session,
        select(Reel).where(
            Reel.privacy_level == PrivacyLevel.PUBLIC,
            Reel.id.in_(select(ReelTag.reel_id).where(ReelTag.tag == _normalise_tag(tag))),
        ),
        Reel.id,
        limit=limit,
        cursor=cursor,
    )
    return {"reels": [_reel_dict(session, r, viewer_id) for r in rows], "next_cursor": next_cursor}


def get_saved_reels(
    session: Session, user_id: int, *, limit: int = 10, cursor: int | None = None
) -> dict[str, Any]:
    saves, next_cursor = paginate(
        session,
        select(SavedReel).where(SavedReel.user_id == user_id),
        SavedReel.id,
        limit=limit,
        cursor=cursor,
    )
    reels = []
    for save in saves:
        reel = session.get(Reel, save.reel_id)
        if reel is not None:
            reels.append(_reel_dict(session, reel, user_id))
    return {"reels": reels, "next_cursor": next_cursor}
