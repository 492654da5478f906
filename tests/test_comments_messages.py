"""
tests/test_comments_messages.py — Comments, Messages & Notifications
======================================================================
Threaded comments and their notifications, direct-message threads and
the inbox, and notification inbox management.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select

from conftest import create_user
from dapdip.database.models import Notification
from dapdip.errors import BadRequestError, ForbiddenError, NotFoundError
from dapdip.services import (
    comment_service,
    follow_service,
    message_service,
    notification_service,
    post_service,
)


def _titles(session, user_id):
    return sorted(
        session.scalars(select(Notification.title).where(Notification.user_id == user_id)).all()
    )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
class TestComments:
    @pytest.fixture(autouse=True)
    def _post(self, db_session):
        self.author = create_user(db_session, "Author")
        self.fan = create_user(db_session, "Fan")
        self.other = create_user(db_session, "Other")
        self.post = post_service.create_post(db_session, self.author.id, {"content": "topic"})

    def test_comment_notifies_post_author(self, db_session):
        comment_service.create(db_session, self.fan.id, self.post["id"], "first!")
        assert _titles(db_session, self.author.id) == ["New Comment"]

    def test_own_comment_does_not_notify(self, db_session):
        comment_service.create(db_session, self.author.id, self.post["id"], "bump")
        assert _titles(db_session, self.author.id) == []

    def test_reply_notifies_parent_author(self, db_session):
        parent = comment_service.create(db_session, self.fan.id, self.post["id"], "question")
        comment_service.create(
            db_session, self.other.id, self.post["id"], "answer", parent_id=parent["id"]
        )
        assert _titles(db_session, self.fan.id) == ["New Reply"]
        assert _titles(db_session, self.author.id) == ["New Comment", "New Comment"]

    def test_reply_to_post_authors_comment_single_notification(self, db_session):
        parent = comment_service.create(db_session, self.author.id, self.post["id"], "pinned")
        comment_service.create(
            db_session, self.fan.id, self.post["id"], "reply", parent_id=parent["id"]
        )
        assert _titles(db_session, self.author.id) == ["New Comment"]

    def test_parent_must_belong_to_post(self, db_session):
        other_post = post_service.create_post(db_session, self.author.id, {"content": "other"})
        parent = comment_service.create(db_session, self.fan.id, other_post["id"], "elsewhere")
        with pytest.raises(BadRequestError, match="does not belong to this post"):
            comment_service.create(
                db_session, self.fan.id, self.post["id"], "reply", parent_id=parent["id"]
            )

    def test_top_level_newest_first_replies_oldest_first(self, db_session):
        parent = comment_service.create(db_session, self.fan.id, self.post["id"], "c1")
        comment_service.create(db_session, self.fan.id, self.post["id"], "c2")
        for text in ("r1", "r2"):
            comment_service.create(
                db_session, self.other.id, self.post["id"], text, parent_id=parent["id"]
            )

        top = comment_service.get_for_post(db_session, self.post["id"], None)["comments"]
        assert [c["content"] for c in top] == ["c2", "c1"]
        assert top[1]["replies_count"] == 2

        replies = comment_service.get_replies(db_session, parent["id"], None)["replies"]
        assert [r["content"] for r in replies] == ["r1", "r2"]

    def test_only_author_edits_and_deletes(self, db_session):
        comment = comment_service.create(db_session, self.fan.id, self.post["id"], "mine")
        with pytest.raises(ForbiddenError):
            comment_service.update(db_session, self.other.id, comment["id"], "theirs")
        with pytest.raises(ForbiddenError):
            comment_service.delete(db_session, self.other.id, comment["id"])

        assert comment_service.update(db_session, self.fan.id, comment["id"], "edited")["content"] == "edited"
        assert comment_service.delete(db_session, self.fan.id, comment["id"]) == {"success": True}

    def test_comment_reaction_toggle(self, db_session):
        comment = comment_service.create(db_session, self.fan.id, self.post["id"], "react")
        result = comment_service.toggle_comment_reaction(db_session, self.other.id, comment["id"], "HAHA")
        assert result == {"type": "HAHA"}
        listed = comment_service.get_for_post(db_session, self.post["id"], self.other.id)["comments"]
        assert listed[0]["user_reaction"] == "HAHA"


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
class TestMessages:
    def test_send_notifies_receiver(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        message_service.send_message(db_session, a.id, b.id, "hi")

        assert _titles(db_session, b.id) == ["New Message"]
        assert message_service.get_unread_count(db_session, b.id) == {"count": 1}

    def test_unknown_receiver(self, db_session):
        a = create_user(db_session)
        with pytest.raises(NotFoundError, match="Receiver not found"):
            message_service.send_message(db_session, a.id, 999, "hello?")

    def test_blocked_either_way(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.block_user(db_session, b.id, a.id)

        with pytest.raises(ForbiddenError, match="Cannot send message"):
            message_service.send_message(db_session, a.id, b.id, "hi")
        with pytest.raises(ForbiddenError):
            message_service.send_message(db_session, b.id, a.id, "hi")

    def test_conversation_chronological_and_marks_read(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        for text, (s, r) in [("one", (a, b)), ("two", (b, a)), ("three", (a, b))]:
            message_service.send_message(db_session, s.id, r.id, text)

        thread = message_service.get_conversation(db_session, b.id, a.id)
        assert [m["content"] for m in thread["messages"]] == ["one", "two", "three"]
        assert message_service.get_unread_count(db_session, b.id) == {"count": 0}
        # Messages b sent stay unread for a
        assert message_service.get_unread_count(db_session, a.id) == {"count": 1}

    def test_inbox_latest_per_counterpart(self, db_session):
        me = create_user(db_session, "Me")
        x = create_user(db_session, "Xavier")
        y = create_user(db_session, "Yvonne")
        message_service.send_message(db_session, x.id, me.id, "x1")
        message_service.send_message(db_session, y.id, me.id, "y1")
        message_service.send_message(db_session, x.id, me.id, "x2")

        inbox = message_service.get_conversations(db_session, me.id)["conversations"]
        assert [(c["other_user"]["name"], c["message"]["content"], c["unread_count"]) for c in inbox] == [
            ("Xavier", "x2", 2),
            ("Yvonne", "y1", 1),
        ]

    def test_inbox_offset_cursor(self, db_session):
        me = create_user(db_session, "Me")
        for name in ("Ann", "Bob", "Cid"):
            other = create_user(db_session, name)
            message_service.send_message(db_session, me.id, other.id, f"to {name}")

        page = message_service.get_conversations(db_session, me.id, limit=2)
        assert page["next_cursor"] == 2
        rest = message_service.get_conversations(db_session, me.id, limit=2, cursor=2)
        assert [c["other_user"]["name"] for c in rest["conversations"]] == ["Ann"]
        assert rest["next_cursor"] is None

    def test_only_receiver_marks_read(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        msg = message_service.send_message(db_session, a.id, b.id, "hi")

        with pytest.raises(ForbiddenError, match="Cannot mark this message as read"):
            message_service.mark_as_read(db_session, a.id, msg["id"])
        assert message_service.mark_as_read(db_session, b.id, msg["id"]) == {"success": True}


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class TestNotifications:
    @pytest.fixture(autouse=True)
    def _inbox(self, db_session):
        self.me = create_user(db_session, "Me")
        self.sender = create_user(db_session, "Sender")
        for text in ("a", "b", "c"):
            message_service.send_message(db_session, self.sender.id, self.me.id, text)

    def test_list_and_unread_only(self, db_session):
        listed = notification_service.get_all(db_session, self.me.id)
        assert len(listed["notifications"]) == 3
        assert listed["notifications"][0]["sender"]["name"] == "Sender"

        first_id = listed["notifications"][0]["id"]
        notification_service.mark_as_read(db_session, self.me.id, first_id)
        unread = notification_service.get_all(db_session, self.me.id, unread_only=True)
        assert first_id not in [n["id"] for n in unread["notifications"]]
        assert notification_service.get_unread_count(db_session, self.me.id) == {"count": 2}

    def test_mark_all(self, db_session):
        assert notification_service.mark_all_as_read(db_session, self.me.id) == {"count": 3}
        assert notification_service.get_unread_count(db_session, self.me.id) == {"count": 0}

    def test_other_users_cannot_touch(self, db_session):
        note_id = notification_service.get_all(db_session, self.me.id)["notifications"][0]["id"]
        with pytest.raises(ForbiddenError, match="Cannot mark this notification"):
            notification_service.mark_as_read(db_session, self.sender.id, note_id)
        with pytest.raises(ForbiddenError, match="Cannot delete this notification"):
            notification_service.delete(db_session, self.sender.id, note_id)

    def test_delete_one_and_all(self, db_session):
        note_id = notification_service.get_all(db_session, self.me.id)["notifications"][0]["id"]
        assert notification_service.delete(db_session, self.me.id, note_id) == {"success": True}
        assert notification_service.delete_all(db_session, self.me.id) == {"count": 2}
        assert notification_service.get_all(db_session, self.me.id)["notifications"] == []
