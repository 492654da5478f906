"""
dapdip.api.routes.comments — Post comments, replies & reactions
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_optional_user_id, get_session
from dapdip.api.rate_limit import rate_limited
from dapdip.database.models import ReactionType
from dapdip.services import comment_service

router = APIRouter(prefix="/comments", tags=["comments"])


class CommentCreate(BaseModel):
    post_id: int
    content: str = Field(min_length=1, max_length=1000)
    parent_id: int | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class ReactionBody(BaseModel):
    type: ReactionType


@router.get("/post/{post_id}")
def get_post_comments(
    post_id: int,
    limit: int = Query(50, ge=1, le=100),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return comment_service.get_for_post(session, post_id, viewer_id, limit=limit, cursor=cursor)


@router.get("/{comment_id}/replies")
def get_replies(
    comment_id: int,
    limit: int = Query(10, ge=1, le=100),
    cursor: int | None = Query(None),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return comment_service.get_replies(session, comment_id, viewer_id, limit=limit, cursor=cursor)


@router.post("", status_code=201)
def create_comment(
    body: CommentCreate,
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
):
    result = comment_service.create(session, user_id, body.post_id, body.content, body.parent_id)
    session.commit()
    return result


@router.patch("/{comment_id}")
def update_comment(
    comment_id: int,
    body: CommentUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = comment_service.update(session, user_id, comment_id, body.content)
    session.commit()
    return result


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = comment_service.delete(session, user_id, comment_id)
    session.commit()
    return result


@router.post("/{comment_id}/reactions")
def toggle_reaction(
    comment_id: int,
    body: ReactionBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = comment_service.toggle_comment_reaction(session, user_id, comment_id, body.type)
    session.commit()
    return result
