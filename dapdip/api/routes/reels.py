"""
dapdip.api.routes.reels — Short videos, likes, comments & views
=================================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_optional_user_id, get_session
from dapdip.api.rate_limit import rate_limited
from dapdip.database.models import PrivacyLevel
from dapdip.services import reel_service

router = APIRouter(prefix="/reels", tags=["reels"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ReelAudio(BaseModel):
    id: str | None = Field(None, max_length=100)
    name: str | None = Field(None, max_length=200)
    artist: str | None = Field(None, max_length=200)


class ReelCreate(BaseModel):
    video_url: str = Field(min_length=1)
    thumbnail_url: str = Field(min_length=1)
    description: str | None = Field(None, max_length=2000)
    duration: float = Field(gt=0)
    aspect_ratio: float = Field(0.5625, gt=0)
    audio: ReelAudio | None = None
    tags: list[str] = Field(default_factory=list, max_length=10)
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC


class ReelUpdate(BaseModel):
    description: str | None = Field(None, max_length=2000)
    privacy_level: PrivacyLevel | None = None
    tags: list[str] | None = Field(None, max_length=10)


class ReelCommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=500)
    parent_id: int | None = None


class ReelViewBody(BaseModel):
    watch_duration: float = Field(ge=0)
    watch_percentage: float = Field(ge=0, le=100)
    completed_view: bool = False


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("/feed")
def get_feed(
    limit: int = Query(5, ge=1, le=10),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_feed(session, viewer_id, limit=limit, cursor=cursor)


@router.get("/trending")
def get_trending(
    timeframe: Literal["day", "week", "month"] = Query("week"),
    limit: int = Query(10, ge=1, le=50),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_trending(session, viewer_id, timeframe=timeframe, limit=limit)


@router.get("/saved")
def get_saved_reels(
    limit: int = Query(10, ge=1, le=50),
    cursor: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_saved_reels(session, user_id, limit=limit, cursor=cursor)


@router.get("/tag/{tag}")
def get_by_tag(
    tag: str,
    limit: int = Query(10, ge=1, le=50),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_by_tag(session, tag, viewer_id, limit=limit, cursor=cursor)


@router.get("/user/{user_id}")
def get_user_reels(
    user_id: int,
    limit: int = Query(10, ge=1, le=50),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_user_reels(session, user_id, viewer_id, limit=limit, cursor=cursor)


@router.get("/comments/{comment_id}/replies")
def get_comment_replies(
    comment_id: int,
    limit: int = Query(10, ge=1, le=50),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_comment_replies(
        session, comment_id, viewer_id, limit=limit, cursor=cursor
    )


@router.get("/{reel_id}")
def get_reel(
    reel_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_reel(session, reel_id, viewer_id)


@router.get("/{reel_id}/comments")
def get_comments(
    reel_id: int,
    limit: int = Query(20, ge=1, le=50),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return reel_service.get_comments(session, reel_id, viewer_id, limit=limit, cursor=cursor)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
def create_reel(
    body: ReelCreate,
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
):
    result = reel_service.create_reel(session, user_id, body.model_dump())
    session.commit()
    return result


@router.patch("/{reel_id}")
def update_reel(
    reel_id: int,
    body: ReelUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = reel_service.update_reel(session, user_id, reel_id, body.model_dump(exclude_unset=True))
    session.commit()
    return result


@router.delete("/{reel_id}")
def delete_reel(
    reel_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = reel_service.delete_reel(session, user_id, reel_id)
    session.commit()
    return result


@router.post("/{reel_id}/like")
def toggle_like(
    reel_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = reel_service.toggle_like(session, user_id, reel_id)
    session.commit()
    return result


@router.post("/{reel_id}/save")
def save_reel(
    reel_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = reel_service.save_reel(session, user_id, reel_id)
    session.commit()
    return result


@router.post("/{reel_id}/comments", status_code=201)
def comment_on_reel(
    reel_id: int,
    body: ReelCommentCreate,
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
):
    result = reel_service.comment(session, user_id, reel_id, body.content, body.parent_id)
    session.commit()
    return result


@router.post("/{reel_id}/view")
def record_view(
    reel_id: int,
    body: ReelViewBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = reel_service.record_view(
        session,
        user_id,
        reel_id,
        watch_duration=body.watch_duration,
        watch_percentage=body.watch_percentage,
        completed_view=body.completed_view,
    )
    session.commit()
    return result
