"""
dapdip.services.notification_service — Notification Inbox
============================================================

Rows are written by the other services through
:func:`dapdip.services.access.notify`; this module only reads and
manages a user's own inbox.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from dapdip.database.models import Notification
from dapdip.errors import ForbiddenError
from dapdip.services.access import count, get_or_404, iso, paginate, user_brief


def _notification_dict(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "content": n.content,
        "link": n.link,
        "read": n.read,
        "created_at": iso(n.created_at),
        "sender": user_brief(n.sender),
    }


def get_all(
    session: Session,
    user_id: int,
    *,
    limit: int = 50,
    cursor: int | None = None,
    unread_only: bool = False,
) -> dict[str, Any]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    rows, next_cursor = paginate(session, stmt, Notification.id, limit=limit, cursor=cursor)
    return {
        "notifications": [_notification_dict(n) for n in rows],
        "next_cursor": next_cursor,
    }


def _owned(session: Session, user_id: int, notification_id: int, action: str) -> Notification:
    row = get_or_404(session, Notification, notification_id, "Notification not found")
    if row.user_id != user_id:
        raise ForbiddenError(f"Cannot {action} this notification")
    return row


def mark_as_read(session: Session, user_id: int, notification_id: int) -> dict[str, bool]:
    _owned(session, user_id, notification_id, "mark").read = True
    session.flush()
    return {"success": True}


def mark_all_as_read(session: Session, user_id: int) -> dict[str, int]:
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session="evaluate")
    )
    return {"count": result.rowcount}


def get_unread_count(session: Session, user_id: int) -> dict[str, int]:
    return {
        "count": count(
            session,
            Notification.id,
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
    }


def delete(session: Session, user_id: int, notification_id: int) -> dict[str, bool]:
    session.delete(_owned(session, user_id, notification_id, "delete"))
    session.flush()
    return {"success": True}


def delete_all(session: Session, user_id: int) -> dict[str, int]:
    result = session.execute(
        sa_delete(Notification)
        .where(Notification.user_id == user_id)
        .execution_options(synchronize_session="evaluate")
    )
    return {"count": result.rowcount}
