"""
dapdip.api.routes.messages — Direct messages
==============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_session
from dapdip.api.rate_limit import rate_limited
from dapdip.services import message_service

router = APIRouter(prefix="/messages", tags=["messages"])


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1, max_length=2000)
    media_url: str | None = None
    media_type: str | None = None


@router.post("", status_code=201)
def send_message(
    body: MessageCreate,
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
):
    result = message_service.send_message(
        session, user_id, body.receiver_id, body.content, body.media_url, body.media_type
    )
    session.commit()
    return result


@router.get("/conversations")
def get_conversations(
    limit: int = Query(20, ge=1, le=50),
    cursor: int | None = Query(None, ge=0),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return message_service.get_conversations(session, user_id, limit=limit, cursor=cursor)


@router.get("/unread-count")
def get_unread_count(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return message_service.get_unread_count(session, user_id)


@router.get("/conversation/{other_user_id}")
def get_conversation(
    other_user_id: int,
    limit: int = Query(50, ge=1, le=100),
    cursor: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    # Opening a thread marks incoming messages read.
    result = message_service.get_conversation(
        session, user_id, other_user_id, limit=limit, cursor=cursor
    )
    session.commit()
    return result


@router.post("/{message_id}/read")
def mark_as_read(
    message_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = message_service.mark_as_read(session, user_id, message_id)
    session.commit()
    return result
