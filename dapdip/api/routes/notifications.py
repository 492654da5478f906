"""
dapdip.api.routes.notifications — Notification inbox
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_session
from dapdip.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def get_notifications(
    limit: int = Query(50, ge=1, le=100),
    cursor: int | None = Query(None),
    unread_only: bool = Query(False),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return notification_service.get_all(
        session, user_id, limit=limit, cursor=cursor, unread_only=unread_only
    )


@router.get("/unread-count")
def get_unread_count(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return notification_service.get_unread_count(session, user_id)


@router.post("/read-all")
def mark_all_as_read(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = notification_service.mark_all_as_read(session, user_id)
    session.commit()
    return result


@router.post("/{notification_id}/read")
def mark_as_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = notification_service.mark_as_read(session, user_id, notification_id)
    session.commit()
    return result


@router.delete("")
def delete_all(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = notification_service.delete_all(session, user_id)
    session.commit()
    return result


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = notification_service.delete(session, user_id, notification_id)
    session.commit()
    return result
