"""
dapdip.services.post_service — Posts, Feed, Saves & Reactions
===============================================================
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dapdip.database.models import (
    Comment,
    Post,
    PostReaction,
    PostView,
    PrivacyLevel,
    SavedPost,
    Topic,
    User,
)
from dapdip.errors import BadRequestError, ForbiddenError
from dapdip.services.access import (
    count,
    get_or_404,
    get_visible_or_403,
    iso,
    paginate,
    toggle_reaction,
    user_brief,
    visible_privacy_levels,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _post_dict(session: Session, post: Post, viewer_id: int | None = None) -> dict[str, Any]:
    data = {
        "id": post.id,
        "content": post.content,
        "media_urls": post.media_urls or [],
        "media_types": post.media_types or [],
        "media_titles": post.media_titles or [],
        "privacy_level": post.privacy_level,
        "parent_id": post.parent_id,
        "sentiment": post.sentiment,
        "ai_analysis": post.ai_analysis,
        "created_at": iso(post.created_at),
        "updated_at": iso(post.updated_at),
        "author": user_brief(post.author),
        "topics": [{"id": t.id, "name": t.name} for t in post.topics],
        "reactions_count": count(session, PostReaction.id, PostReaction.post_id == post.id),
        "comments_count": count(session, Comment.id, Comment.post_id == post.id),
        "views_count": count(session, PostView.id, PostView.post_id == post.id),
        "user_reaction": None,
        "is_saved": False,
    }
    if viewer_id is not None:
        data["user_reaction"] = session.scalar(
            select(PostReaction.type).where(
                PostReaction.post_id == post.id, PostReaction.user_id == viewer_id
            )
        )
        data["is_saved"] = session.scalar(
            select(SavedPost.id).where(SavedPost.post_id == post.id, SavedPost.user_id == viewer_id)
        ) is not None
    return data


def _resolve_topics(session: Session, topic_ids: list[int]) -> list[Topic]:
    topics = list(session.scalars(select(Topic).where(Topic.id.in_(topic_ids))).all())
    if len(topics) != len(set(topic_ids)):
        raise BadRequestError("One or more topics not found")
    return topics


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def create_post(session: Session, author_id: int, data: dict[str, Any]) -> dict[str, Any]:
    topic_ids = data.pop("topic_ids", None) or []
    if data.get("parent_id") is not None:
        get_visible_or_403(session, Post, data["parent_id"], author_id, "Parent post")

    post = Post(author_id=author_id, **data)
    if topic_ids:
        post.topics = _resolve_topics(session, topic_ids)
    session.add(post)
    session.flush()
    logger.debug("User %s created post %s", author_id, post.id)
    return _post_dict(session, post, author_id)


def _owned_post(session: Session, post_id: int, user_id: int, action: str) -> Post:
    post = get_or_404(session, Post, post_id, "Post not found")
    if post.author_id != user_id:
        raise ForbiddenError(f"Not authorized to {action} this post")
    return post


def update_post(
    session: Session, user_id: int, post_id: int, changes: dict[str, Any]
) -> dict[str, Any]:
    post = _owned_post(session, post_id, user_id, "update")
    topic_ids = changes.pop("topic_ids", None)
    for key, value in changes.items():
        setattr(post, key, value)
    if topic_ids is not None:
        post.topics = _resolve_topics(session, topic_ids)
    session.flush()
    return _post_dict(session, post, user_id)


def delete_post(session: Session, user_id: int, post_id: int) -> dict[str, bool]:
    post = _owned_post(session, post_id, user_id, "delete")
    session.delete(post)
    session.flush()
    return {"success": True}


def save_post(session: Session, user_id: int, post_id: int) -> dict[str, bool]:
    get_visible_or_403(session, Post, post_id, user_id, "Post")
    existing = session.scalar(
        select(SavedPost).where(SavedPost.post_id == post_id, SavedPost.user_id == user_id)
    )
    if existing is not None:
        session.delete(existing)
        session.flush()
        return {"saved": False}
    session.add(SavedPost(post_id=post_id, user_id=user_id))
    session.flush()
    return {"saved": True}


def toggle_post_reaction(
    session: Session, user_id: int, post_id: int, reaction_type: str
) -> dict[str, Any]:
    get_visible_or_403(session, Post, post_id, user_id, "Post")
    return toggle_reaction(
        session,
        PostReaction,
        target_column=PostReaction.post_id,
        target_id=post_id,
        user_id=user_id,
        reaction_type=reaction_type,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_post(session: Session, post_id: int, viewer_id: int | None) -> dict[str, Any]:
    """Fetch one post; records a unique view for signed-in non-authors."""
    post = get_visible_or_403(session, Post, post_id, viewer_id, "Post")

    if viewer_id is not None and viewer_id != post.author_id:
        seen = session.scalar(
            select(PostView.id).where(PostView.post_id == post_id, PostView.user_id == viewer_id)
        )
        if seen is None:
            session.add(PostView(post_id=post_id, user_id=viewer_id))
            session.flush()

    data = _post_dict(session, post, viewer_id)
    if post.parent_id is not None:
        parent = session.get(Post, post.parent_id)
        data["parent"] = (
            {"id": parent.id, "content": parent.content, "author": user_brief(parent.author)}
            if parent else None
        )
    return data


def get_feed(
    session: Session, viewer_id: int | None, *, limit: int = 10, cursor: int | None = None
) -> dict[str, Any]:
    rows, next_cursor = paginate(
        session,
        select(Post).where(Post.privacy_level == PrivacyLevel.PUBLIC, Post.parent_id.is_(None)),
        Post.id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "posts": [_post_dict(session, p, viewer_id) for p in rows],
        "next_cursor": next_cursor,
    }


def get_user_posts(
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
        select(Post).where(
            Post.author_id == user_id,
            Post.parent_id.is_(None),
            Post.privacy_level.in_(levels),
        ),
        Post.id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "posts": [_post_dict(session, p, viewer_id) for p in rows],
        "next_cursor": next_cursor,
    }


def get_saved_posts(
    session: Session, user_id: int, *, limit: int = 10, cursor: int | None = None
) -> dict[str, Any]:
    saves, next_cursor = paginate(
        session,
        select(SavedPost).where(SavedPost.user_id == user_id),
        SavedPost.id,
        limit=limit,
        cursor=cursor,
    )
    posts = []
    for save in saves:
        post = session.get(Post, save.post_id)
        if post is not None:
            posts.append({**_post_dict(session, post, user_id), "saved_at": iso(save.created_at)})
    return {"posts": posts, "next_cursor": next_cursor}
