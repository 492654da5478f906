"""
tests/test_reels.py — Reel Service Tests
==========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select

from conftest import create_user
from dapdip.database.models import Follow, FollowStatus, Notification
from dapdip.errors import BadRequestError, ForbiddenError
from dapdip.services import reel_service


def _reel(session, author, **extra):
    data = {
        "video_url": "/api/uploads/video/clip.mp4",
        "thumbnail_url": "/api/uploads/image/clip.png",
        "duration": 12.5,
        **extra,
    }
    return reel_service.create_reel(session, author.id, data)


class TestCreateAndEdit:
    def test_tags_normalised_and_ordered(self, db_session):
        author = create_user(db_session)
        reel = _reel(db_session, author, tags=["#Dance", "fun", "DANCE", " "])
        assert reel["tags"] == ["dance", "fun"]
        assert reel["aspect_ratio"] == 0.5625

    def test_audio_fields_flattened(self, db_session):
        author = create_user(db_session)
        reel = _reel(db_session, author, audio={"id": "t1", "name": "Song", "artist": "Band"})
        assert reel["audio"] == {"id": "t1", "name": "Song", "artist": "Band"}

    def test_update_replaces_tags(self, db_session):
        author = create_user(db_session)
        reel = _reel(db_session, author, tags=["old"])
        updated = reel_service.update_reel(
            db_session, author.id, reel["id"], {"description": "new", "tags": ["fresh", "new"]}
        )
        assert updated["tags"] == ["fresh", "new"]
        assert updated["description"] == "new"

    def test_only_author_updates_or_deletes(self, db_session):
        author = create_user(db_session, "Author")
        other = create_user(db_session, "Other")
        reel = _reel(db_session, author)

        with pytest.raises(ForbiddenError, match="You can only update your own reels"):
            reel_service.update_reel(db_session, other.id, reel["id"], {"description": "x"})
        with pytest.raises(ForbiddenError, match="You can only delete your own reels"):
            reel_service.delete_reel(db_session, other.id, reel["id"])
        assert reel_service.delete_reel(db_session, author.id, reel["id"]) == {"success": True}


class TestEngagement:
    def test_like_toggle_notifies_once(self, db_session):
        author = create_user(db_session, "Author")
        fan = create_user(db_session, "Fan")
        reel = _reel(db_session, author)

        assert reel_service.toggle_like(db_session, fan.id, reel["id"]) == {"liked": True}
        assert reel_service.get_reel(db_session, reel["id"], fan.id)["is_liked"] is True
        assert reel_service.toggle_like(db_session, fan.id, reel["id"]) == {"liked": False}

        types = db_session.scalars(
            select(Notification.type).where(Notification.user_id == author.id)
        ).all()
        assert types == ["REEL_LIKE"]

    def test_view_upsert_keeps_latest_progress(self, db_session):
        author = create_user(db_session, "Author")
        viewer = create_user(db_session, "Viewer")
        reel = _reel(db_session, author)

        first = reel_service.record_view(
            db_session, viewer.id, reel["id"], watch_duration=3, watch_percentage=25
        )
        second = reel_service.record_view(
            db_session, viewer.id, reel["id"],
            watch_duration=12, watch_percentage=100, completed_view=True,
        )
        assert first["id"] == second["id"]
        assert second["completed_view"] is True
        assert reel_service.get_reel(db_session, reel["id"], None)["views_count"] == 1

    def test_comments_and_replies(self, db_session):
        author = create_user(db_session, "Author")
        fan = create_user(db_session, "Fan")
        reel = _reel(db_session, author)

        top = reel_service.comment(db_session, fan.id, reel["id"], "so good")
        reel_service.comment(db_session, author.id, reel["id"], "thanks!", parent_id=top["id"])

        comments = reel_service.get_comments(db_session, reel["id"], fan.id)["comments"]
        assert [c["content"] for c in comments] == ["so good"]
        assert comments[0]["replies_count"] == 1
        replies = reel_service.get_comment_replies(db_session, top["id"], None)["replies"]
        assert [r["content"] for r in replies] == ["thanks!"]

        titles = db_session.scalars(
            select(Notification.title).where(Notification.user_id == fan.id)
        ).all()
        assert titles == ["New Reply"]

    def test_reply_parent_must_match_reel(self, db_session):
        author = create_user(db_session)
        first = _reel(db_session, author)
        second = _reel(db_session, author)
        parent = reel_service.comment(db_session, author.id, first["id"], "here")

        with pytest.raises(BadRequestError, match="does not belong to this reel"):
            reel_service.comment(db_session, author.id, second["id"], "there", parent_id=parent["id"])

    def test_save_toggle(self, db_session):
        author = create_user(db_session)
        reel = _reel(db_session, author)
        assert reel_service.save_reel(db_session, author.id, reel["id"]) == {"saved": True}
        assert [r["id"] for r in reel_service.get_saved_reels(db_session, author.id)["reels"]] == [reel["id"]]
        assert reel_service.save_reel(db_session, author.id, reel["id"]) == {"saved": False}


class TestVisibility:
    def test_feed_includes_friends_reels_for_friends(self, db_session):
        author = create_user(db_session, "Author")
        friend = create_user(db_session, "Friend")
        db_session.add(Follow(follower_id=friend.id, following_id=author.id, status=FollowStatus.ACCEPTED))
        db_session.flush()
        _reel(db_session, author, description="public")
        _reel(db_session, author, description="friends", privacy_level="FRIENDS")
        _reel(db_session, author, description="private", privacy_level="PRIVATE")

        def descriptions(viewer):
            return [r["description"] for r in reel_service.get_feed(db_session, viewer, limit=10)["reels"]]

        assert descriptions(None) == ["public"]
        assert descriptions(friend.id) == ["friends", "public"]
        assert descriptions(author.id) == ["private", "friends", "public"]

    def test_private_reel_forbidden(self, db_session):
        author = create_user(db_session, "Author")
        other = create_user(db_session, "Other")
        reel = _reel(db_session, author, privacy_level="PRIVATE")
        with pytest.raises(ForbiddenError):
            reel_service.get_reel(db_session, reel["id"], other.id)

    def test_private_reel_refuses_interactions(self, db_session):
        author = create_user(db_session, "Author")
        other = create_user(db_session, "Other")
        reel = _reel(db_session, author, privacy_level="PRIVATE")
        top = reel_service.comment(db_session, author.id, reel["id"], "note to self")

        with pytest.raises(ForbiddenError):
            reel_service.get_comments(db_session, reel["id"], other.id)
        with pytest.raises(ForbiddenError):
            reel_service.get_comment_replies(db_session, top["id"], other.id)
        with pytest.raises(ForbiddenError):
            reel_service.comment(db_session, other.id, reel["id"], "hello?")
        with pytest.raises(ForbiddenError):
            reel_service.toggle_like(db_session, other.id, reel["id"])
        with pytest.raises(ForbiddenError):
            reel_service.save_reel(db_session, other.id, reel["id"])
        with pytest.raises(ForbiddenError):
            reel_service.record_view(
                db_session, other.id, reel["id"], watch_duration=3.0, watch_percentage=50.0
            )

        comments = reel_service.get_comments(db_session, reel["id"], author.id)["comments"]
        assert [c["content"] for c in comments] == ["note to self"]

    def test_by_tag_public_only(self, db_session):
        author = create_user(db_session)
        shown = _reel(db_session, author, tags=["#Cats"])
        _reel(db_session, author, tags=["cats"], privacy_level="FRIENDS")
        _reel(db_session, author, tags=["dogs"])

        found = reel_service.get_by_tag(db_session, "#CATS", None)["reels"]
        assert [r["id"] for r in found] == [shown["id"]]


class TestTrending:
    def test_ranked_by_likes_then_views(self, db_session):
        author = create_user(db_session, "Author")
        fans = [create_user(db_session, f"Fan {i}") for i in range(3)]
        quiet = _reel(db_session, author, description="quiet")
        watched = _reel(db_session, author, description="watched")
        loved = _reel(db_session, author, description="loved")
        _reel(db_session, author, description="hidden", privacy_level="PRIVATE")

        for fan in fans[:2]:
            reel_service.toggle_like(db_session, fan.id, loved["id"])
        reel_service.toggle_like(db_session, fans[2].id, watched["id"])
        reel_service.toggle_like(db_session, fans[0].id, quiet["id"])
        reel_service.record_view(db_session, fans[1].id, watched["id"], watch_duration=1, watch_percentage=10)

        trending = reel_service.get_trending(db_session, None, timeframe="day")["reels"]
        assert [r["description"] for r in trending] == ["loved", "watched", "quiet"]
