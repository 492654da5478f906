"""
dapdip.services.follow_service — Social Graph
===============================================

A follow is one directed row (follower → following) with a status:

* ``PENDING``  — one-way follow
* ``ACCEPTED`` — both directions exist (mutual / "friends")
* ``BLOCKED``  — the follower has blocked the other user

Following someone who already follows you promotes both rows to
``ACCEPTED``; unfollowing demotes the reverse row back to ``PENDING``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dapdip.database.models import Follow, FollowStatus, NotificationType, User
from dapdip.errors import BadRequestError, ForbiddenError
from dapdip.services.access import follow_row, get_or_404, iso, notify, paginate

logger = logging.getLogger(__name__)


def follow_user(session: Session, current_user_id: int, target_id: int) -> dict[str, Any]:
    """Toggle following *target_id*."""
    if target_id == current_user_id:
        raise BadRequestError("You cannot follow yourself")
    get_or_404(session, User, target_id, "User not found")

    existing = follow_row(session, current_user_id, target_id)
    reverse = follow_row(session, target_id, current_user_id)

    if existing is not None:
        if existing.status == FollowStatus.BLOCKED:
            raise ForbiddenError("Cannot follow this user")
        session.delete(existing)
        if reverse is not None and reverse.status == FollowStatus.ACCEPTED:
            reverse.status = FollowStatus.PENDING
        session.flush()
        logger.debug("User %s unfollowed %s", current_user_id, target_id)
        return {"following": False}

    follow = Follow(
        follower_id=current_user_id,
        following_id=target_id,
        status=FollowStatus.PENDING,
    )
    session.add(follow)
    if reverse is not None and reverse.status != FollowStatus.BLOCKED:
        follow.status = FollowStatus.ACCEPTED
        reverse.status = FollowStatus.ACCEPTED

    notify(
        session,
        user_id=target_id,
        sender_id=current_user_id,
        type=NotificationType.FOLLOW,
        title="New Follower",
        content="You have a new follower",
        link=f"/profile/{current_user_id}",
    )
    session.flush()
    return {"following": True, "status": follow.status}


def block_user(session: Session, current_user_id: int, target_id: int) -> dict[str, bool]:
    """Toggle blocking *target_id*."""
    if target_id == current_user_id:
        raise BadRequestError("You cannot block yourself")
    get_or_404(session, User, target_id, "User not found")

    existing = follow_row(session, current_user_id, target_id)
    if existing is not None and existing.status == FollowStatus.BLOCKED:
        session.delete(existing)
        session.flush()
        return {"blocked": False}

    if existing is not None:
        existing.status = FollowStatus.BLOCKED
    else:
        session.add(
            Follow(
                follower_id=current_user_id,
                following_id=target_id,
                status=FollowStatus.BLOCKED,
            )
        )
    # A block ends any friendship from the other side as well
    reverse = follow_row(session, target_id, current_user_id)
    if reverse is not None and reverse.status == FollowStatus.ACCEPTED:
        reverse.status = FollowStatus.PENDING
    session.flush()
    logger.info("User %s blocked %s", current_user_id, target_id)
    return {"blocked": True}


def _follow_user_dict(follow: Follow, user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "image": user.image,
        "bio": user.bio,
        "status": follow.status,
        "since": iso(follow.created_at),
    }


def _list_edges(
    session: Session,
    *,
    owner_id: int,
    viewer_id: int | None,
    direction: str,
    limit: int,
    cursor: int | None,
) -> tuple[list[Follow], int | None]:
    column = Follow.following_id if direction == "followers" else Follow.follower_id
    stmt = select(Follow).where(column == owner_id)
    if viewer_id != owner_id:
        stmt = stmt.where(Follow.status == FollowStatus.ACCEPTED)
    return paginate(session, stmt, Follow.id, limit=limit, cursor=cursor)


def get_followers(
    session: Session,
    user_id: int,
    viewer_id: int | None,
    *,
    limit: int = 20,
    cursor: int | None = None,
) -> dict[str, Any]:
    rows, next_cursor = _list_edges(
        session, owner_id=user_id, viewer_id=viewer_id, direction="followers",
        limit=limit, cursor=cursor,
    )
    return {
        "followers": [_follow_user_dict(f, f.follower) for f in rows],
        "next_cursor": next_cursor,
    }


def get_following(
    session: Session,
    user_id: int,
    viewer_id: int | None,
    *,
    limit: int = 20,
    cursor: int | None = None,
) -> dict[str, Any]:
    rows, next_cursor = _list_edges(
        session, owner_id=user_id, viewer_id=viewer_id, direction="following",
        limit=limit, cursor=cursor,
    )
    return {
        "following": [_follow_user_dict(f, f.following) for f in rows],
        "next_cursor": next_cursor,
    }


def get_follow_status(session: Session, current_user_id: int, user_id: int) -> dict[str, bool]:
    outgoing = follow_row(session, current_user_id, user_id)
    incoming = follow_row(session, user_id, current_user_id)

    is_following = outgoing is not None and outgoing.status != FollowStatus.BLOCKED
    is_follower = incoming is not None and incoming.status != FollowStatus.BLOCKED
    return {
        "is_following": is_following,
        "is_follower": is_follower,
        "is_mutual": is_following and is_follower,
        "is_blocked": outgoing is not None and outgoing.status == FollowStatus.BLOCKED,
    }
