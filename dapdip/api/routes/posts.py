"""
dapdip.api.routes.posts — Posts, feed, saves & reactions
==========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_optional_user_id, get_session
from dapdip.api.rate_limit import rate_limited
from dapdip.database.models import PrivacyLevel, ReactionType
from dapdip.services import post_service

router = APIRouter(prefix="/posts", tags=["posts"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PostCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    media_urls: list[str] = Field(default_factory=list)
    media_types: list[str] = Field(default_factory=list)
    media_titles: list[str] = Field(default_factory=list)
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC
    topic_ids: list[int] = Field(default_factory=list)
    parent_id: int | None = None


class PostUpdate(BaseModel):
    content: str | None = Field(None, min_length=1, max_length=5000)
    media_urls: list[str] | None = None
    media_types: list[str] | None = None
    media_titles: list[str] | None = None
    privacy_level: PrivacyLevel | None = None
    topic_ids: list[int] | None = None


class ReactionBody(BaseModel):
    type: ReactionType


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("/feed")
def get_feed(
    limit: int = Query(10, ge=1, le=100),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return post_service.get_feed(session, viewer_id, limit=limit, cursor=cursor)


@router.get("/saved")
def get_saved_posts(
    limit: int = Query(10, ge=1, le=100),
    cursor: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return post_service.get_saved_posts(session, user_id, limit=limit, cursor=cursor)


@router.get("/user/{user_id}")
def get_user_posts(
    user_id: int,
    limit: int = Query(10, ge=1, le=100),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return post_service.get_user_posts(session, user_id, viewer_id, limit=limit, cursor=cursor)


@router.get("/{post_id}")
def get_post(
    post_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    # Viewing records a PostView row, hence the commit on a GET.
    result = post_service.get_post(session, post_id, viewer_id)
    session.commit()
    return result


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
def create_post(
    body: PostCreate,
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
):
    result = post_service.create_post(session, user_id, body.model_dump())
    session.commit()
    return result


@router.patch("/{post_id}")
def update_post(
    post_id: int,
    body: PostUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = post_service.update_post(session, user_id, post_id, body.model_dump(exclude_unset=True))
    session.commit()
    return result


@router.delete("/{post_id}")
def delete_post(
    post_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = post_service.delete_post(session, user_id, post_id)
    session.commit()
    return result


@router.post("/{post_id}/save")
def save_post(
    post_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = post_service.save_post(session, user_id, post_id)
    session.commit()
    return result


@router.post("/{post_id}/reactions")
def toggle_reaction(
    post_id: int,
    body: ReactionBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = post_service.toggle_post_reaction(session, user_id, post_id, body.type)
    session.commit()
    return result
