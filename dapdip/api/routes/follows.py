"""
dapdip.api.routes.follows — Follow graph & blocking
=====================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_optional_user_id, get_session
from dapdip.services import follow_service

router = APIRouter(prefix="/follows", tags=["follows"])


@router.post("/{user_id}")
def follow_user(
    user_id: int,
    current_user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Follow *user_id*, or unfollow when a follow already exists."""
    result = follow_service.follow_user(session, current_user_id, user_id)
    session.commit()
    return result


@router.post("/{user_id}/block")
def block_user(
    user_id: int,
    current_user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Block *user_id*, or unblock when already blocked."""
    result = follow_service.block_user(session, current_user_id, user_id)
    session.commit()
    return result


@router.get("/{user_id}/status")
def get_follow_status(
    user_id: int,
    current_user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return follow_service.get_follow_status(session, current_user_id, user_id)


@router.get("/{user_id}/followers")
def get_followers(
    user_id: int,
    limit: int = Query(20, ge=1, le=100),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return follow_service.get_followers(session, user_id, viewer_id, limit=limit, cursor=cursor)


@router.get("/{user_id}/following")
def get_following(
    user_id: int,
    limit: int = Query(20, ge=1, le=100),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return follow_service.get_following(session, user_id, viewer_id, limit=limit, cursor=cursor)
