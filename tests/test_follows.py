"""
tests/test_follows.py — Social Graph Tests
============================================
Follow toggling, mutual promotion to ACCEPTED, blocking and the
follower/following listings in :mod:`dapdip.services.follow_service`.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select

from conftest import create_user
from dapdip.database.models import Notification
from dapdip.errors import BadRequestError, ForbiddenError, NotFoundError
from dapdip.services import follow_service, user_service
from dapdip.services.access import follow_row


class TestFollowToggle:
    def test_cannot_follow_self(self, db_session):
        me = create_user(db_session)
        with pytest.raises(BadRequestError, match="You cannot follow yourself"):
            follow_service.follow_user(db_session, me.id, me.id)

    def test_unknown_target(self, db_session):
        me = create_user(db_session)
        with pytest.raises(NotFoundError):
            follow_service.follow_user(db_session, me.id, 999)

    def test_one_way_follow_is_pending_and_notifies(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")

        result = follow_service.follow_user(db_session, a.id, b.id)
        assert result == {"following": True, "status": "PENDING"}

        note = db_session.scalar(select(Notification).where(Notification.user_id == b.id))
        assert note.type == "FOLLOW"
        assert note.sender_id == a.id

    def test_follow_back_promotes_both(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.follow_user(db_session, a.id, b.id)

        result = follow_service.follow_user(db_session, b.id, a.id)
        assert result["status"] == "ACCEPTED"
        assert follow_row(db_session, a.id, b.id).status == "ACCEPTED"

    def test_unfollow_demotes_reverse(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.follow_user(db_session, a.id, b.id)
        follow_service.follow_user(db_session, b.id, a.id)

        assert follow_service.follow_user(db_session, a.id, b.id) == {"following": False}
        assert follow_row(db_session, a.id, b.id) is None
        assert follow_row(db_session, b.id, a.id).status == "PENDING"


class TestBlocking:
    def test_block_toggle(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")

        assert follow_service.block_user(db_session, a.id, b.id) == {"blocked": True}
        assert follow_service.get_follow_status(db_session, a.id, b.id)["is_blocked"] is True
        assert follow_service.block_user(db_session, a.id, b.id) == {"blocked": False}
        assert follow_row(db_session, a.id, b.id) is None

    def test_blocked_row_cannot_be_followed_over(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.block_user(db_session, a.id, b.id)

        with pytest.raises(ForbiddenError, match="Cannot follow this user"):
            follow_service.follow_user(db_session, a.id, b.id)

    def test_block_ends_friendship(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.follow_user(db_session, a.id, b.id)
        follow_service.follow_user(db_session, b.id, a.id)

        follow_service.block_user(db_session, a.id, b.id)
        assert follow_row(db_session, b.id, a.id).status == "PENDING"

    def test_blocks_excluded_from_counts(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.block_user(db_session, a.id, b.id)

        assert user_service.get_by_id(db_session, b.id)["followers_count"] == 0
        assert user_service.get_by_id(db_session, a.id)["following_count"] == 0


class TestListings:
    def test_owner_sees_pending_others_do_not(self, db_session):
        star = create_user(db_session, "Star")
        fan = create_user(db_session, "Fan")
        friend = create_user(db_session, "Friend")
        follow_service.follow_user(db_session, fan.id, star.id)
        follow_service.follow_user(db_session, friend.id, star.id)
        follow_service.follow_user(db_session, star.id, friend.id)

        own = follow_service.get_followers(db_session, star.id, star.id)["followers"]
        assert {f["name"] for f in own} == {"Fan", "Friend"}

        public = follow_service.get_followers(db_session, star.id, None)["followers"]
        assert [(f["name"], f["status"]) for f in public] == [("Friend", "ACCEPTED")]

    def test_following_listing(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.follow_user(db_session, a.id, b.id)

        following = follow_service.get_following(db_session, a.id, a.id)
        assert [f["id"] for f in following["following"]] == [b.id]
        assert following["next_cursor"] is None

    def test_status_flags(self, db_session):
        a = create_user(db_session, "Alpha")
        b = create_user(db_session, "Beta")
        follow_service.follow_user(db_session, b.id, a.id)

        status = follow_service.get_follow_status(db_session, a.id, b.id)
        assert status == {
            "is_following": False,
            "is_follower": True,
            "is_mutual": False,
            "is_blocked": False,
        }
