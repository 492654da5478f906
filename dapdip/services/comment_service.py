"""
dapdip.services.comment_service — Threaded Post Comments
==========================================================

Comments are two levels deep: top-level comments on a post, and replies
pointing at a parent comment on the same post.  Top-level lists read
newest first; reply threads read oldest first.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dapdip.database.models import (
    Comment,
    CommentReaction,
    NotificationType,
    Post,
)
from dapdip.errors import BadRequestError, ForbiddenError
from dapdip.services.access import (
    count,
    get_or_404,
    get_visible_or_403,
    iso,
    notify,
    paginate,
    toggle_reaction,
    user_brief,
)

logger = logging.getLogger(__name__)


def _comment_dict(session: Session, comment: Comment, viewer_id: int | None = None) -> dict[str, Any]:
    data = {
        "id": comment.id,
        "content": comment.content,
        "post_id": comment.post_id,
        "parent_id": comment.parent_id,
        "author": user_brief(comment.author),
        "created_at": iso(comment.created_at),
        "updated_at": iso(comment.updated_at),
        "replies_count": count(session, Comment.id, Comment.parent_id == comment.id),
        "reactions_count": count(
            session, CommentReaction.id, CommentReaction.comment_id == comment.id
        ),
        "user_reaction": None,
    }
    if viewer_id is not None:
        data["user_reaction"] = session.scalar(
            select(CommentReaction.type).where(
                CommentReaction.comment_id == comment.id,
                CommentReaction.user_id == viewer_id,
            )
        )
    return data


def create_comment(
    session: Session,
    author_id: int,
    *,
    post_id: int,
    content: str | None,
    parent_id: int | None = None,
    notify_author: bool = True,
) -> Comment:
    """Insert a comment (or reply) and notify the people it concerns.

    *content* may be None for comments that carry an audio attachment.
    """
    post = get_visible_or_403(session, Post, post_id, author_id, "Post")
    parent = None
    if parent_id is not None:
        parent = get_or_404(session, Comment, parent_id, "Parent comment not found")
        if parent.post_id != post_id:
            raise BadRequestError("Parent comment does not belong to this post")

    comment = Comment(content=content, post_id=post_id, author_id=author_id, parent_id=parent_id)
    session.add(comment)
    session.flush()

    if notify_author:
        notify(
            session,
            user_id=post.author_id,
            sender_id=author_id,
            type=NotificationType.COMMENT,
            title="New Comment",
            content="Someone commented on your post",
            link=f"/post/{post_id}",
        )
        if parent is not None and parent.author_id != post.author_id:
            notify(
                session,
                user_id=parent.author_id,
                sender_id=author_id,
                type=NotificationType.COMMENT,
                title="New Reply",
                content="Someone replied to your comment",
                link=f"/post/{post_id}",
            )
    session.flush()
    return comment


def create(
    session: Session, author_id: int, post_id: int, content: str, parent_id: int | None = None
) -> dict[str, Any]:
    comment = create_comment(
        session, author_id, post_id=post_id, content=content, parent_id=parent_id
    )
    return _comment_dict(session, comment, author_id)


def _owned_comment(session: Session, comment_id: int, user_id: int, action: str) -> Comment:
    comment = get_or_404(session, Comment, comment_id, "Comment not found")
    if comment.author_id != user_id:
        raise ForbiddenError(f"Not authorized to {action} this comment")
    return comment


def update(session: Session, user_id: int, comment_id: int, content: str) -> dict[str, Any]:
    comment = _owned_comment(session, comment_id, user_id, "update")
    comment.content = content
    session.flush()
    return _comment_dict(session, comment, user_id)


def delete(session: Session, user_id: int, comment_id: int) -> dict[str, bool]:
    comment = _owned_comment(session, comment_id, user_id, "delete")
    session.delete(comment)
    session.flush()
    return {"success": True}


def get_for_post(
    session: Session,
    post_id: int,
    viewer_id: int | None,
    *,
    limit: int = 50,
    cursor: int | None = None,
) -> dict[str, Any]:
    get_visible_or_403(session, Post, post_id, viewer_id, "Post")
    rows, next_cursor = paginate(
        session,
        select(Comment).where(Comment.post_id == post_id, Comment.parent_id.is_(None)),
        Comment.id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "comments": [_comment_dict(session, c, viewer_id) for c in rows],
        "next_cursor": next_cursor,
    }


def get_replies(
    session: Session,
    comment_id: int,
    viewer_id: int | None,
    *,
    limit: int = 10,
    cursor: int | None = None,
) -> dict[str, Any]:
    comment = get_or_404(session, Comment, comment_id, "Comment not found")
    get_visible_or_403(session, Post, comment.post_id, viewer_id, "Post")
    rows, next_cursor = paginate(
        session,
        select(Comment).where(Comment.parent_id == comment_id),
        Comment.id,
        limit=limit,
        cursor=cursor,
        ascending=True,
    )
    return {
        "replies": [_comment_dict(session, c, viewer_id) for c in rows],
        "next_cursor": next_cursor,
    }


def toggle_comment_reaction(
    session: Session, user_id: int, comment_id: int, reaction_type: str
) -> dict[str, Any]:
    comment = get_or_404(session, Comment, comment_id, "Comment not found")
    get_visible_or_403(session, Post, comment.post_id, user_id, "Post")
    return toggle_reaction(
        session,
        CommentReaction,
        target_column=CommentReaction.comment_id,
        target_id=comment_id,
        user_id=user_id,
        reaction_type=reaction_type,
    )
