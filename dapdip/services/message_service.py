"""
dapdip.services.message_service — Direct Messages
===================================================

One row per message.  A "conversation" is every message between two
users in either direction; the inbox view (:func:`get_conversations`)
shows the newest message per counterpart plus an unread count.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

from dapdip.database.models import Message, NotificationType, User
from dapdip.errors import ForbiddenError
from dapdip.services.access import (
    count,
    get_or_404,
    is_blocked_between,
    iso,
    notify,
    paginate,
    user_brief,
    utcnow,
)

logger = logging.getLogger(__name__)


def _message_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "content": message.content,
        "media_url": message.media_url,
        "media_type": message.media_type,
        "read": message.read,
        "read_at": iso(message.read_at),
        "created_at": iso(message.created_at),
    }


def _between(a: int, b: int):
    return or_(
        (Message.sender_id == a) & (Message.receiver_id == b),
        (Message.sender_id == b) & (Message.receiver_id == a),
    )


def create_message(
    session: Session,
    sender_id: int,
    receiver_id: int,
    *,
    content: str,
    media_url: str | None = None,
    media_type: str | None = None,
) -> Message:
    """Insert a message after the receiver and block checks, and notify."""
    get_or_404(session, User, receiver_id, "Receiver not found")
    if is_blocked_between(session, sender_id, receiver_id):
        raise ForbiddenError("Cannot send message to this user")

    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        media_url=media_url,
        media_type=media_type,
    )
    session.add(message)
    notify(
        session,
        user_id=receiver_id,
        sender_id=sender_id,
        type=NotificationType.MESSAGE,
        title="New Message",
        content="You have a new message",
        link=f"/messages/{sender_id}",
    )
    session.flush()
    return message


def send_message(
    session: Session,
    sender_id: int,
    receiver_id: int,
    content: str,
    media_url: str | None = None,
    media_type: str | None = None,
) -> dict[str, Any]:
    message = create_message(
        session, sender_id, receiver_id,
        content=content, media_url=media_url, media_type=media_type,
    )
    return _message_dict(message)


def get_conversation(
    session: Session,
    current_user_id: int,
    other_user_id: int,
    *,
    limit: int = 50,
    cursor: int | None = None,
) -> dict[str, Any]:
    """One page of the thread with *other_user_id*, oldest first.

    Opening the conversation marks every unread incoming message as read.
    """
    rows, next_cursor = paginate(
        session,
        select(Message).where(_between(current_user_id, other_user_id)),
        Message.id,
        limit=limit,
        cursor=cursor,
    )

    marked = session.execute(
        update(Message)
        .where(
            Message.sender_id == other_user_id,
            Message.receiver_id == current_user_id,
            Message.read.is_(False),
        )
        .values(read=True, read_at=utcnow())
        .execution_options(synchronize_session="evaluate")
    ).rowcount
    if marked:
        logger.debug("Marked %d messages from %s as read", marked, other_user_id)

    return {
        "messages": [_message_dict(m) for m in reversed(rows)],
        "next_cursor": next_cursor,
    }


def get_conversations(
    session: Session, user_id: int, *, limit: int = 20, cursor: int | None = None
) -> dict[str, Any]:
    """Inbox: the latest message per counterpart, newest first.

    *cursor* is an offset into the inbox (conversations have no stable id).
    """
    offset = cursor or 0
    counterpart = case(
        (Message.sender_id == user_id, Message.receiver_id),
        else_=Message.sender_id,
    ).label("counterpart")
    latest_ids = session.execute(
        select(counterpart, func.max(Message.id).label("latest_id"))
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .group_by(counterpart)
        .order_by(func.max(Message.id).desc())
        .offset(offset)
        .limit(limit + 1)
    ).all()

    next_cursor = None
    if len(latest_ids) > limit:
        latest_ids = latest_ids[:limit]
        next_cursor = offset + limit

    unread = dict(
        session.execute(
            select(Message.sender_id, func.count(Message.id))
            .where(Message.receiver_id == user_id, Message.read.is_(False))
            .group_by(Message.sender_id)
        ).all()
    )

    conversations = []
    for other_id, message_id in latest_ids:
        conversations.append({
            "message": _message_dict(session.get(Message, message_id)),
            "other_user": user_brief(session.get(User, other_id)),
            "unread_count": int(unread.get(other_id, 0)),
        })
    return {"conversations": conversations, "next_cursor": next_cursor}


def mark_as_read(session: Session, user_id: int, message_id: int) -> dict[str, bool]:
    message = get_or_404(session, Message, message_id, "Message not found")
    if message.receiver_id != user_id:
        raise ForbiddenError("Cannot mark this message as read")
    message.read = True
    message.read_at = utcnow()
    session.flush()
    return {"success": True}


def get_unread_count(session: Session, user_id: int) -> dict[str, int]:
    return {
        "count": count(
            session, Message.id, Message.receiver_id == user_id, Message.read.is_(False)
        )
    }
