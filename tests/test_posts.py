"""
tests/test_posts.py — Post Service Tests
==========================================
Privacy filtering, ownership checks, reactions, saves, unique views and
cursor pagination for :mod:`dapdip.services.post_service`.
"""

from __future__ import annotations

import pytest

from conftest import create_user
from dapdip.database.models import Follow, FollowStatus, Topic
from dapdip.errors import BadRequestError, ForbiddenError, NotFoundError
from dapdip.services import comment_service, post_service


def _befriend(session, a, b):
    session.add_all([
        Follow(follower_id=a.id, following_id=b.id, status=FollowStatus.ACCEPTED),
        Follow(follower_id=b.id, following_id=a.id, status=FollowStatus.ACCEPTED),
    ])
    session.flush()


def _post(session, author, content="hello", **extra):
    return post_service.create_post(session, author.id, {"content": content, **extra})


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------
class TestCreatePost:
    def test_defaults(self, db_session):
        author = create_user(db_session)
        post = _post(db_session, author)

        assert post["privacy_level"] == "PUBLIC"
        assert post["media_urls"] == []
        assert post["author"]["id"] == author.id
        assert post["reactions_count"] == 0
        assert post["is_saved"] is False

    def test_topics_attached(self, db_session):
        author = create_user(db_session)
        topic = Topic(name="python")
        db_session.add(topic)
        db_session.flush()

        post = _post(db_session, author, topic_ids=[topic.id])
        assert post["topics"] == [{"id": topic.id, "name": "python"}]

    def test_unknown_topic_rejected(self, db_session):
        author = create_user(db_session)
        with pytest.raises(BadRequestError, match="topics not found"):
            _post(db_session, author, topic_ids=[999])

    def test_missing_parent_is_404(self, db_session):
        author = create_user(db_session)
        with pytest.raises(NotFoundError, match="Parent post not found"):
            _post(db_session, author, parent_id=999)


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------
class TestOwnership:
    def test_only_author_updates(self, db_session):
        author = create_user(db_session, "Author")
        other = create_user(db_session, "Other")
        post = _post(db_session, author)

        with pytest.raises(ForbiddenError, match="Not authorized to update this post"):
            post_service.update_post(db_session, other.id, post["id"], {"content": "hijack"})

        updated = post_service.update_post(db_session, author.id, post["id"], {"content": "edited"})
        assert updated["content"] == "edited"

    def test_only_author_deletes(self, db_session):
        author = create_user(db_session, "Author")
        other = create_user(db_session, "Other")
        post = _post(db_session, author)

        with pytest.raises(ForbiddenError, match="Not authorized to delete this post"):
            post_service.delete_post(db_session, other.id, post["id"])

        assert post_service.delete_post(db_session, author.id, post["id"]) == {"success": True}
        with pytest.raises(NotFoundError):
            post_service.get_post(db_session, post["id"], author.id)


# ---------------------------------------------------------------------------
# Privacy
# ---------------------------------------------------------------------------
class TestPrivacy:
    def test_friends_post_visible_to_friends_only(self, db_session):
        author = create_user(db_session, "Author")
        friend = create_user(db_session, "Friend")
        stranger = create_user(db_session, "Stranger")
        _befriend(db_session, author, friend)
        post = _post(db_session, author, privacy_level="FRIENDS")

        assert post_service.get_post(db_session, post["id"], friend.id)["id"] == post["id"]
        with pytest.raises(ForbiddenError):
            post_service.get_post(db_session, post["id"], stranger.id)
        with pytest.raises(ForbiddenError):
            post_service.get_post(db_session, post["id"], None)

    def test_private_post_visible_to_author_only(self, db_session):
        author = create_user(db_session, "Author")
        friend = create_user(db_session, "Friend")
        _befriend(db_session, author, friend)
        post = _post(db_session, author, privacy_level="PRIVATE")

        with pytest.raises(ForbiddenError):
            post_service.get_post(db_session, post["id"], friend.id)
        assert post_service.get_post(db_session, post["id"], author.id)["id"] == post["id"]

    def test_hidden_post_refuses_interactions(self, db_session):
        author = create_user(db_session, "Author")
        stranger = create_user(db_session, "Stranger")
        post = _post(db_session, author, privacy_level="PRIVATE")
        comment_service.create(db_session, author.id, post["id"], "private reply")

        with pytest.raises(ForbiddenError):
            comment_service.get_for_post(db_session, post["id"], stranger.id)
        with pytest.raises(ForbiddenError):
            comment_service.create(db_session, stranger.id, post["id"], "let me in")
        with pytest.raises(ForbiddenError):
            post_service.toggle_post_reaction(db_session, stranger.id, post["id"], "LIKE")
        with pytest.raises(ForbiddenError):
            post_service.save_post(db_session, stranger.id, post["id"])

        comments = comment_service.get_for_post(db_session, post["id"], author.id)["comments"]
        assert [c["content"] for c in comments] == ["private reply"]

    def test_hidden_post_hides_comment_threads(self, db_session):
        author = create_user(db_session, "Author")
        friend = create_user(db_session, "Friend")
        stranger = create_user(db_session, "Stranger")
        _befriend(db_session, author, friend)
        post = _post(db_session, author, privacy_level="FRIENDS")
        top = comment_service.create(db_session, friend.id, post["id"], "hi")

        with pytest.raises(ForbiddenError):
            comment_service.get_replies(db_session, top["id"], stranger.id)
        with pytest.raises(ForbiddenError):
            comment_service.toggle_comment_reaction(db_session, stranger.id, top["id"], "LIKE")
        assert comment_service.get_replies(db_session, top["id"], friend.id)["replies"] == []

    def test_pending_follow_is_not_friendship(self, db_session):
        author = create_user(db_session, "Author")
        fan = create_user(db_session, "Fan")
        db_session.add(Follow(follower_id=fan.id, following_id=author.id))
        db_session.flush()
        _post(db_session, author, "public")
        _post(db_session, author, "friends", privacy_level="FRIENDS")

        posts = post_service.get_user_posts(db_session, author.id, fan.id)["posts"]
        assert [p["content"] for p in posts] == ["public"]

    def test_user_posts_for_owner_include_everything(self, db_session):
        author = create_user(db_session)
        for level in ("PUBLIC", "FRIENDS", "PRIVATE"):
            _post(db_session, author, level, privacy_level=level)

        posts = post_service.get_user_posts(db_session, author.id, author.id)["posts"]
        assert [p["content"] for p in posts] == ["PRIVATE", "FRIENDS", "PUBLIC"]

    def test_feed_is_public_top_level_only(self, db_session):
        author = create_user(db_session)
        root = _post(db_session, author, "root")
        _post(db_session, author, "reply", parent_id=root["id"])
        _post(db_session, author, "hidden", privacy_level="FRIENDS")

        feed = post_service.get_feed(db_session, None)
        assert [p["content"] for p in feed["posts"]] == ["root"]


# ---------------------------------------------------------------------------
# Reactions, saves, views
# ---------------------------------------------------------------------------
class TestEngagement:
    def test_reaction_toggle_and_switch(self, db_session):
        author = create_user(db_session)
        post = _post(db_session, author)

        assert post_service.toggle_post_reaction(db_session, author.id, post["id"], "LIKE") == {"type": "LIKE"}
        assert post_service.toggle_post_reaction(db_session, author.id, post["id"], "WOW") == {"type": "WOW"}
        data = post_service.get_post(db_session, post["id"], author.id)
        assert data["reactions_count"] == 1
        assert data["user_reaction"] == "WOW"

        assert post_service.toggle_post_reaction(db_session, author.id, post["id"], "WOW") == {"type": None}
        assert post_service.get_post(db_session, post["id"], author.id)["reactions_count"] == 0

    def test_save_toggle_and_saved_list(self, db_session):
        author = create_user(db_session, "Author")
        reader = create_user(db_session, "Reader")
        post = _post(db_session, author)

        assert post_service.save_post(db_session, reader.id, post["id"]) == {"saved": True}
        saved = post_service.get_saved_posts(db_session, reader.id)["posts"]
        assert [p["id"] for p in saved] == [post["id"]]
        assert saved[0]["is_saved"] is True

        assert post_service.save_post(db_session, reader.id, post["id"]) == {"saved": False}
        assert post_service.get_saved_posts(db_session, reader.id)["posts"] == []

    def test_views_unique_per_viewer_and_skip_author(self, db_session):
        author = create_user(db_session, "Author")
        reader = create_user(db_session, "Reader")
        post = _post(db_session, author)

        post_service.get_post(db_session, post["id"], author.id)
        post_service.get_post(db_session, post["id"], reader.id)
        data = post_service.get_post(db_session, post["id"], reader.id)
        assert data["views_count"] == 1

    def test_reply_carries_parent_preview(self, db_session):
        author = create_user(db_session)
        root = _post(db_session, author, "root")
        reply = _post(db_session, author, "reply", parent_id=root["id"])

        data = post_service.get_post(db_session, reply["id"], None)
        assert data["parent"]["content"] == "root"


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------
class TestPagination:
    def test_cursor_walks_newest_first(self, db_session):
        author = create_user(db_session)
        ids = [_post(db_session, author, f"p{i}")["id"] for i in range(5)]

        first = post_service.get_feed(db_session, None, limit=2)
        assert [p["id"] for p in first["posts"]] == [ids[4], ids[3]]
        assert first["next_cursor"] == ids[2]

        second = post_service.get_feed(db_session, None, limit=2, cursor=first["next_cursor"])
        assert [p["id"] for p in second["posts"]] == [ids[2], ids[1]]

        last = post_service.get_feed(db_session, None, limit=2, cursor=second["next_cursor"])
        assert [p["id"] for p in last["posts"]] == [ids[0]]
        assert last["next_cursor"] is None
