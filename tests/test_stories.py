"""
tests/test_stories.py — Story Service Tests
=============================================
Expiry, visibility, one-per-user interactions (views, reactions, poll
votes, answers, slider responses) and highlight bookkeeping.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import create_user
from dapdip.database.models import Follow, FollowStatus, Notification, Story
from dapdip.errors import BadRequestError, ForbiddenError, NotFoundError
from dapdip.services import story_service
from dapdip.services.access import as_utc, utcnow


def _story(session, author, **extra):
    data = {"media_url": "/api/uploads/image/s.png", "media_type": "IMAGE", **extra}
    return story_service.create_story(session, author.id, data)


def _expire(session, story_id):
    session.get(Story, story_id).expires_at = utcnow() - timedelta(minutes=1)
    session.flush()


@pytest.fixture
def people(db_session):
    return create_user(db_session, "Author"), create_user(db_session, "Viewer")


# ---------------------------------------------------------------------------
# Lifetime & visibility
# ---------------------------------------------------------------------------
class TestLifetime:
    def test_expires_after_a_day(self, db_session, people):
        author, _ = people
        story = _story(db_session, author)
        row = db_session.get(Story, story["id"])
        remaining = as_utc(row.expires_at) - utcnow()
        assert timedelta(hours=23, minutes=59) < remaining <= timedelta(hours=24)

    def test_expired_story_refuses_interactions(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        _expire(db_session, story["id"])

        with pytest.raises(BadRequestError, match="Story has expired"):
            story_service.view_story(db_session, viewer.id, story["id"])
        with pytest.raises(BadRequestError, match="Story has expired"):
            story_service.add_reaction(db_session, viewer.id, story["id"], "🔥")
        with pytest.raises(BadRequestError, match="Story has expired"):
            story_service.add_response(db_session, viewer.id, story["id"], "nice")

    def test_expired_story_still_readable(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        _expire(db_session, story["id"])
        assert story_service.get_story(db_session, story["id"], viewer.id)["has_expired"] is True

    def test_feed_hides_expired_and_archived(self, db_session, people):
        author, viewer = people
        live = _story(db_session, author)
        expired = _story(db_session, author)
        archived = _story(db_session, author)
        _expire(db_session, expired["id"])
        story_service.update_story(db_session, author.id, archived["id"], {"is_archived": True})

        feed = story_service.get_feed(db_session, viewer.id)
        assert [s["id"] for s in feed["stories"]] == [live["id"]]
        with_expired = story_service.get_feed(db_session, viewer.id, filters={"include_expired": True})
        assert [s["id"] for s in with_expired["stories"]] == [expired["id"], live["id"]]

    def test_friends_story_needs_accepted_follow(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author, privacy_level="FRIENDS")
        with pytest.raises(ForbiddenError, match="permission to view this story"):
            story_service.view_story(db_session, viewer.id, story["id"])

        db_session.add(Follow(follower_id=viewer.id, following_id=author.id, status=FollowStatus.ACCEPTED))
        db_session.flush()
        assert story_service.view_story(db_session, viewer.id, story["id"]) == {"success": True}

    def test_my_active_stories(self, db_session, people):
        author, _ = people
        live = _story(db_session, author)
        old = _story(db_session, author)
        _expire(db_session, old["id"])
        assert [s["id"] for s in story_service.get_my_active_stories(db_session, author.id)] == [live["id"]]


# ---------------------------------------------------------------------------
# Views, reactions, responses
# ---------------------------------------------------------------------------
class TestInteractions:
    def test_view_is_unique_and_notifies_once(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)

        assert story_service.view_story(db_session, viewer.id, story["id"]) == {"success": True}
        assert story_service.view_story(db_session, viewer.id, story["id"], 4.0) == {"already_viewed": True}

        data = story_service.get_story(db_session, story["id"], viewer.id)
        assert data["views_count"] == 1
        assert data["is_viewed"] is True
        notes = db_session.scalars(select(Notification).where(Notification.user_id == author.id)).all()
        assert [n.content for n in notes] == ["Viewer viewed your story"]

    def test_reaction_replaced_not_duplicated(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        story_service.add_reaction(db_session, viewer.id, story["id"], "🔥")
        story_service.add_reaction(db_session, viewer.id, story["id"], "😂")

        data = story_service.get_story(db_session, story["id"], viewer.id)
        assert data["reactions_count"] == 1
        assert data["user_reaction"] == "😂"

    def test_responses_can_be_disabled(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author, allow_responses=False)
        with pytest.raises(BadRequestError, match="Responses are not allowed"):
            story_service.add_response(db_session, viewer.id, story["id"], "hey")

    def test_long_response_preview_truncated(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        story_service.add_response(db_session, viewer.id, story["id"], "x" * 80)

        note = db_session.scalar(select(Notification).where(Notification.user_id == author.id))
        assert note.content == f'Viewer responded to your story: "{"x" * 50}..."'

    def test_links_appended(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        story_service.add_link(db_session, author.id, story["id"], url="https://a.example", label="A", position=None)
        story_service.add_link(db_session, author.id, story["id"], url="https://b.example", label=None, position=None)
        assert [l["url"] for l in story_service.get_story(db_session, story["id"], viewer.id)["links"]] == [
            "https://a.example",
            "https://b.example",
        ]
        with pytest.raises(ForbiddenError):
            story_service.add_link(db_session, viewer.id, story["id"], url="https://c.example", label=None, position=None)


# ---------------------------------------------------------------------------
# Poll, question, slider
# ---------------------------------------------------------------------------
class TestStickers:
    def test_poll_revote_moves_vote(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        poll = story_service.create_poll(db_session, author.id, story["id"], "Tea or coffee?", ["Tea", "Coffee"])
        assert [o["id"] for o in poll["options"]] == ["option-0", "option-1"]

        story_service.vote_on_poll(db_session, viewer.id, poll["id"], "option-0")
        story_service.vote_on_poll(db_session, viewer.id, poll["id"], "option-1")

        results = story_service.get_poll_results(db_session, viewer.id, poll["id"])
        assert results["total_votes"] == 1
        assert results["user_vote"] == "option-1"
        assert [(o["votes"], o["percentage"]) for o in results["options"]] == [(0, 0), (1, 100)]
        # Voter identities are for the author only
        assert results["voters"] == []
        assert story_service.get_poll_results(db_session, author.id, poll["id"])["voters"][0]["id"] == viewer.id

    def test_story_poll_hides_voters_from_viewers(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        poll = story_service.create_poll(db_session, author.id, story["id"], "?", ["a", "b"])
        story_service.vote_on_poll(db_session, viewer.id, poll["id"], "option-1")

        seen = story_service.get_story(db_session, story["id"], viewer.id)["polls"][0]
        assert "votes" not in seen
        assert seen["vote_counts"] == {"option-1": 1}

        own = story_service.get_story(db_session, story["id"], author.id)["polls"][0]
        assert own["votes"] == {"option-1": [viewer.id]}

    def test_poll_rejects_unknown_option(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        poll = story_service.create_poll(db_session, author.id, story["id"], "?", ["a", "b"])
        with pytest.raises(BadRequestError, match="Invalid option ID"):
            story_service.vote_on_poll(db_session, viewer.id, poll["id"], "option-9")

    def test_only_author_adds_stickers(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        with pytest.raises(ForbiddenError, match="Only the story author can create polls"):
            story_service.create_poll(db_session, viewer.id, story["id"], "?", ["a", "b"])
        with pytest.raises(ForbiddenError):
            story_service.create_question(db_session, viewer.id, story["id"], "?")
        with pytest.raises(ForbiddenError):
            story_service.create_slider(db_session, viewer.id, story["id"], "?")

    def test_answer_replaced_and_scoped(self, db_session, people):
        author, viewer = people
        other = create_user(db_session, "Other")
        story = _story(db_session, author)
        question = story_service.create_question(db_session, author.id, story["id"], "Favourite city?")

        story_service.answer_question(db_session, viewer.id, question["id"], "Paris")
        story_service.answer_question(db_session, viewer.id, question["id"], "Lisbon")
        story_service.answer_question(db_session, other.id, question["id"], "Oslo")

        mine = story_service.get_question_answers(db_session, viewer.id, question["id"])
        assert [a["answer"] for a in mine["answers"]] == ["Lisbon"]
        assert mine["user_answer"] == "Lisbon"
        assert story_service.get_question_answers(db_session, author.id, question["id"])["total_answers"] == 2

    def test_slider_average_and_replacement(self, db_session, people):
        author, viewer = people
        other = create_user(db_session, "Other")
        story = _story(db_session, author)
        slider = story_service.create_slider(db_session, author.id, story["id"], "How hyped?", "🔥")

        story_service.respond_to_slider(db_session, viewer.id, slider["id"], 10)
        story_service.respond_to_slider(db_session, viewer.id, slider["id"], 40)
        story_service.respond_to_slider(db_session, other.id, slider["id"], 80)

        summary = story_service.get_slider_responses(db_session, viewer.id, slider["id"])
        assert summary["total_responses"] == 2
        assert summary["average_value"] == 60
        assert summary["user_response"] == 40
        assert summary["responses"] == []
        assert len(story_service.get_slider_responses(db_session, author.id, slider["id"])["responses"]) == 2

    def test_slider_value_range(self, db_session, people):
        author, viewer = people
        story = _story(db_session, author)
        slider = story_service.create_slider(db_session, author.id, story["id"], "?")
        with pytest.raises(BadRequestError, match="between 0 and 100"):
            story_service.respond_to_slider(db_session, viewer.id, slider["id"], 101)


# ---------------------------------------------------------------------------
# Highlights
# ---------------------------------------------------------------------------
class TestHighlights:
    def test_create_and_append_skips_duplicates(self, db_session, people):
        author, _ = people
        s1, s2, s3 = (_story(db_session, author) for _ in range(3))
        highlight = story_service.create_highlight(
            db_session, author.id, name="Trip", story_ids=[s1["id"], s2["id"], s1["id"]]
        )
        assert [i["order"] for i in highlight["items"]] == [0, 1]

        story_service.add_stories_to_highlight(db_session, author.id, highlight["id"], [s2["id"], s3["id"]])
        full = story_service.get_highlight_by_id(db_session, highlight["id"])
        assert [(i["story"]["id"], i["order"]) for i in full["items"]] == [
            (s1["id"], 0), (s2["id"], 1), (s3["id"], 2),
        ]
        assert full["user"]["id"] == author.id

    def test_only_own_stories(self, db_session, people):
        author, viewer = people
        theirs = _story(db_session, viewer)
        with pytest.raises(ForbiddenError):
            story_service.create_highlight(db_session, author.id, name="x", story_ids=[theirs["id"]])
        with pytest.raises(BadRequestError, match="One or more stories not found"):
            story_service.create_highlight(db_session, author.id, name="x", story_ids=[999])

    def test_removing_last_story_deletes_highlight(self, db_session, people):
        author, _ = people
        s1, s2 = _story(db_session, author), _story(db_session, author)
        highlight = story_service.create_highlight(
            db_session, author.id, name="Pair", story_ids=[s1["id"], s2["id"]]
        )

        first = story_service.remove_story_from_highlight(db_session, author.id, highlight["id"], s1["id"])
        assert first == {"success": True, "highlight_deleted": False}
        last = story_service.remove_story_from_highlight(db_session, author.id, highlight["id"], s2["id"])
        assert last == {"success": True, "highlight_deleted": True}
        with pytest.raises(NotFoundError):
            story_service.get_highlight_by_id(db_session, highlight["id"])

    def test_remove_missing_item(self, db_session, people):
        author, _ = people
        s1 = _story(db_session, author)
        highlight = story_service.create_highlight(db_session, author.id, name="One", story_ids=[s1["id"]])
        with pytest.raises(NotFoundError, match="Story not found in highlight"):
            story_service.remove_story_from_highlight(db_session, author.id, highlight["id"], 999)

    def test_user_highlights_preview_first_item(self, db_session, people):
        author, _ = people
        s1, s2 = _story(db_session, author), _story(db_session, author)
        story_service.create_highlight(db_session, author.id, name="Both", story_ids=[s1["id"], s2["id"]])

        [listed] = story_service.get_user_highlights(db_session, author.id)
        assert listed["items_count"] == 2
        assert len(listed["items"]) == 1
