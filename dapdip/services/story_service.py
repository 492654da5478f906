"""
dapdip.services.story_service — Ephemeral Stories
===================================================

A story lives for :data:`dapdip.constants.STORY_TTL` after creation.
Interactions (views, reactions, responses, poll votes, answers, slider
responses) are refused once it has expired; the author's highlights keep
stories around for later browsing.

Interactive stickers:

* **Poll** — options ``[{"id": "option-<i>", "text": ...}]`` with votes
  stored as ``{option_id: [user_id, ...]}``; a user holds at most one vote.
* **Question** — free-text answers, one per user (re-answering replaces).
* **Slider** — a 0-100 value per user (re-responding replaces).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dapdip.constants import STORY_TTL
from dapdip.database.models import (
    Follow,
    FollowStatus,
    NotificationType,
    PrivacyLevel,
    Story,
    StoryHighlight,
    StoryHighlightItem,
    StoryPoll,
    StoryQuestion,
    StoryQuestionAnswer,
    StoryReaction,
    StoryResponse,
    StorySlider,
    StorySliderResponse,
    StoryTopic,
    StoryView,
    Topic,
    User,
)
from dapdip.errors import BadRequestError, ForbiddenError, NotFoundError
from dapdip.services.access import (
    as_utc,
    count,
    display_name,
    feed_visibility_clause,
    get_or_404,
    is_accepted_follower,
    iso,
    notify,
    paginate,
    user_brief,
    utcnow,
)

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 50


def _preview(text: str) -> str:
    if len(text) > PREVIEW_CHARS:
        return text[:PREVIEW_CHARS] + "..."
    return text


def _is_expired(story: Story) -> bool:
    return utcnow() > as_utc(story.expires_at)


def _require_live(story: Story) -> None:
    if _is_expired(story):
        raise BadRequestError("Story has expired")


def _can_view(session: Session, story: Story, viewer_id: int | None) -> bool:
    if story.privacy_level == PrivacyLevel.PUBLIC:
        return True
    if viewer_id is not None and story.author_id == viewer_id:
        return True
    return (
        story.privacy_level == PrivacyLevel.FRIENDS
        and is_accepted_follower(session, viewer_id, story.author_id)
    )


def _require_visible(session: Session, story: Story, viewer_id: int | None) -> None:
    if not _can_view(session, story, viewer_id):
        raise ForbiddenError("You do not have permission to view this story")


def _author_story(session: Session, story_id: int, user_id: int, what: str) -> Story:
    story = get_or_404(session, Story, story_id, "Story not found")
    if story.author_id != user_id:
        raise ForbiddenError(f"Only the story author can {what}")
    return story


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _story_dict(session: Session, story: Story, viewer_id: int | None = None) -> dict[str, Any]:
    data = {
        "id": story.id,
        "author": user_brief(story.author),
        "media_url": story.media_url,
        "thumbnail_url": story.thumbnail_url,
        "media_type": story.media_type,
        "duration": story.duration,
        "caption": story.caption,
        "location": story.location,
        "background_color": story.background_color,
        "text_overlays": story.text_overlays,
        "draw_elements": story.draw_elements,
        "stickers": story.stickers,
        "links": story.links or [],
        "filter": story.filter,
        "music": {
            "track_url": story.music_track_url,
            "artist": story.music_artist,
            "title": story.music_title,
        },
        "allow_responses": story.allow_responses,
        "privacy_level": story.privacy_level,
        "is_archived": story.is_archived,
        "expires_at": iso(story.expires_at),
        "created_at": iso(story.created_at),
        "topics": [{"id": t.id, "name": t.name} for t in story.topics],
        "views_count": count(session, StoryView.id, StoryView.story_id == story.id),
        "reactions_count": count(session, StoryReaction.id, StoryReaction.story_id == story.id),
        "is_viewed": False,
        "has_reacted": False,
        "user_reaction": None,
    }
    if viewer_id is not None:
        data["is_viewed"] = session.scalar(
            select(StoryView.id).where(StoryView.story_id == story.id, StoryView.user_id == viewer_id)
        ) is not None
        data["user_reaction"] = session.scalar(
            select(StoryReaction.emoji).where(
                StoryReaction.story_id == story.id, StoryReaction.user_id == viewer_id
            )
        )
        data["has_reacted"] = data["user_reaction"] is not None
    return data


def _poll_dict(poll: StoryPoll, *, show_voters: bool = True) -> dict[str, Any]:
    """Serialize a poll; voter ids only when *show_voters* (the story author)."""
    votes = poll.votes or {}
    data = {
        "id": poll.id,
        "story_id": poll.story_id,
        "question": poll.question,
        "options": poll.options,
        "vote_counts": {option_id: len(ids) for option_id, ids in votes.items()},
    }
    if show_voters:
        data["votes"] = votes
    return data


def _highlight_dict(highlight: StoryHighlight, items: list[StoryHighlightItem]) -> dict[str, Any]:
    return {
        "id": highlight.id,
        "user_id": highlight.user_id,
        "name": highlight.name,
        "cover_image_url": highlight.cover_image_url,
        "created_at": iso(highlight.created_at),
        "items": [
            {
                "id": item.id,
                "order": item.order,
                "story": {
                    "id": item.story.id,
                    "media_url": item.story.media_url,
                    "thumbnail_url": item.story.thumbnail_url,
                    "media_type": item.story.media_type,
                    "caption": item.story.caption,
                    "created_at": iso(item.story.created_at),
                },
            }
            for item in items
        ],
    }


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------
def create_story(session: Session, author_id: int, data: dict[str, Any]) -> dict[str, Any]:
    topic_ids = data.pop("topic_ids", None) or []
    music = data.pop("music", None) or {}
    story = Story(
        author_id=author_id,
        music_track_url=music.get("track_url"),
        music_artist=music.get("artist"),
        music_title=music.get("title"),
        expires_at=utcnow() + STORY_TTL,
        **data,
    )
    if topic_ids:
        topics = list(session.scalars(select(Topic).where(Topic.id.in_(topic_ids))).all())
        if len(topics) != len(set(topic_ids)):
            raise BadRequestError("One or more topics not found")
        story.topics = topics
    session.add(story)
    session.flush()
    logger.debug("User %s created story %s", author_id, story.id)
    return _story_dict(session, story, author_id)


def _owned_story(session: Session, story_id: int, user_id: int, action: str) -> Story:
    story = get_or_404(session, Story, story_id, "Story not found")
    if story.author_id != user_id:
        raise ForbiddenError(f"You can only {action} your own stories")
    return story


def update_story(
    session: Session, user_id: int, story_id: int, changes: dict[str, Any]
) -> dict[str, Any]:
    story = _owned_story(session, story_id, user_id, "update")
    for key, value in changes.items():
        setattr(story, key, value)
    session.flush()
    return _story_dict(session, story, user_id)


def delete_story(session: Session, user_id: int, story_id: int) -> dict[str, bool]:
    session.delete(_owned_story(session, story_id, user_id, "delete"))
    session.flush()
    return {"success": True}


# ---------------------------------------------------------------------------
# Viewing & reacting
# ---------------------------------------------------------------------------
def view_story(
    session: Session, user_id: int, story_id: int, view_duration: float | None = None
) -> dict[str, bool]:
    story = get_or_404(session, Story, story_id, "Story not found")
    _require_live(story)
    _require_visible(session, story, user_id)

    existing = session.scalar(
        select(StoryView).where(StoryView.story_id == story_id, StoryView.user_id == user_id)
    )
    if existing is not None:
        if view_duration:
            existing.view_duration = view_duration
            session.flush()
        return {"already_viewed": True}

    session.add(StoryView(story_id=story_id, user_id=user_id, view_duration=view_duration))
    notify(
        session,
        user_id=story.author_id,
        sender_id=user_id,
        type=NotificationType.STORY_VIEW,
        title="Story View",
        content=f"{display_name(session.get(User, user_id))} viewed your story",
        link=f"/stories/{story_id}",
    )
    session.flush()
    return {"success": True}


def add_reaction(session: Session, user_id: int, story_id: int, emoji: str) -> dict[str, bool]:
    story = get_or_404(session, Story, story_id, "Story not found")
    _require_live(story)

    existing = session.scalar(
        select(StoryReaction).where(
            StoryReaction.story_id == story_id, StoryReaction.user_id == user_id
        )
    )
    if existing is not None:
        existing.emoji = emoji
    else:
        session.add(StoryReaction(story_id=story_id, user_id=user_id, emoji=emoji))
        notify(
            session,
            user_id=story.author_id,
            sender_id=user_id,
            type=NotificationType.STORY_REACTION,
            title="Story Reaction",
            content=f"{display_name(session.get(User, user_id))} reacted to your story with {emoji}",
            link=f"/stories/{story_id}",
        )
    session.flush()
    return {"success": True}


def create_story_response(
    session: Session, user_id: int, *, story_id: int, content: str | None
) -> StoryResponse:
    """Insert a response; *content* is None when an audio clip carries it."""
    story = get_or_404(session, Story, story_id, "Story not found")
    _require_live(story)
    if not story.allow_responses:
        raise BadRequestError("Responses are not allowed for this story")

    response = StoryResponse(story_id=story_id, user_id=user_id, content=content)
    session.add(response)
    name = display_name(session.get(User, user_id))
    notify(
        session,
        user_id=story.author_id,
        sender_id=user_id,
        type=NotificationType.STORY_REACTION,
        title="Story Response",
        content=(
            f'{name} responded to your story: "{_preview(content)}"'
            if content else f"{name} responded to your story"
        ),
        link=f"/stories/{story_id}",
    )
    session.flush()
    return response


def add_response(session: Session, user_id: int, story_id: int, content: str) -> dict[str, Any]:
    response = create_story_response(session, user_id, story_id=story_id, content=content)
    return {
        "id": response.id,
        "story_id": response.story_id,
        "user_id": response.user_id,
        "content": response.content,
        "created_at": iso(response.created_at),
    }


# ---------------------------------------------------------------------------
# Poll
# ---------------------------------------------------------------------------
def create_poll(
    session: Session, user_id: int, story_id: int, question: str, options: list[str]
) -> dict[str, Any]:
    _author_story(session, story_id, user_id, "create polls")
    if not 2 <= len(options) <= 10:
        raise BadRequestError("A poll needs between 2 and 10 options")
    poll = StoryPoll(
        story_id=story_id,
        question=question,
        options=[{"id": f"option-{i}", "text": text} for i, text in enumerate(options)],
        votes={},
    )
    session.add(poll)
    session.flush()
    return _poll_dict(poll)


def vote_on_poll(session: Session, user_id: int, poll_id: int, option_id: str) -> dict[str, bool]:
    poll = get_or_404(session, StoryPoll, poll_id, "Poll not found")
    _require_live(session.get(Story, poll.story_id))

    if not any(option["id"] == option_id for option in poll.options):
        raise BadRequestError("Invalid option ID")

    # Rebuild the dict so the JSON column registers the change.
    votes = {
        key: [uid for uid in voters if uid != user_id]
        for key, voters in (poll.votes or {}).items()
    }
    votes.setdefault(option_id, []).append(user_id)
    poll.votes = votes
    session.flush()
    return {"success": True}


def get_poll_results(session: Session, user_id: int, poll_id: int) -> dict[str, Any]:
    poll = get_or_404(session, StoryPoll, poll_id, "Poll not found")
    story = session.get(Story, poll.story_id)
    votes = poll.votes or {}
    is_author = story.author_id == user_id

    results = []
    for option in poll.options:
        voter_ids = votes.get(option["id"], [])
        results.append({
            "id": option["id"],
            "text": option["text"],
            "votes": len(voter_ids),
            "voter_ids": voter_ids if is_author else [],
        })
    total = sum(r["votes"] for r in results)
    for r in results:
        r["percentage"] = round(r["votes"] / total * 100) if total else 0

    voters: list[dict[str, Any]] = []
    if is_author:
        all_ids = {uid for ids in votes.values() for uid in ids}
        if all_ids:
            voters = [
                user_brief(u)
                for u in session.scalars(select(User).where(User.id.in_(all_ids))).all()
            ]

    user_vote = next((key for key, ids in votes.items() if user_id in ids), None)
    return {
        "id": poll.id,
        "story_id": poll.story_id,
        "question": poll.question,
        "options": results,
        "total_votes": total,
        "voters": voters,
        "user_vote": user_vote,
    }


# ---------------------------------------------------------------------------
# Question
# ---------------------------------------------------------------------------
def create_question(session: Session, user_id: int, story_id: int, question: str) -> dict[str, Any]:
    _author_story(session, story_id, user_id, "create questions")
    row = StoryQuestion(story_id=story_id, question=question)
    session.add(row)
    session.flush()
    return {"id": row.id, "story_id": story_id, "question": row.question}


def answer_question(
    session: Session, user_id: int, question_id: int, answer: str
) -> dict[str, bool]:
    question = get_or_404(session, StoryQuestion, question_id, "Question not found")
    story = session.get(Story, question.story_id)
    _require_live(story)

    existing = session.scalar(
        select(StoryQuestionAnswer).where(
            StoryQuestionAnswer.question_id == question_id,
            StoryQuestionAnswer.user_id == user_id,
        )
    )
    if existing is not None:
        existing.answer = answer
    else:
        session.add(StoryQuestionAnswer(question_id=question_id, user_id=user_id, answer=answer))

    notify(
        session,
        user_id=story.author_id,
        sender_id=user_id,
        type=NotificationType.STORY_REACTION,
        title="Question Answer",
        content=(
            f"{display_name(session.get(User, user_id))} answered your question: "
            f'"{_preview(answer)}"'
        ),
        link=f"/stories/{story.id}",
    )
    session.flush()
    return {"success": True}


def get_question_answers(session: Session, user_id: int, question_id: int) -> dict[str, Any]:
    """The author sees every answer; anyone else sees only their own."""
    question = get_or_404(session, StoryQuestion, question_id, "Question not found")
    story = session.get(Story, question.story_id)

    stmt = select(StoryQuestionAnswer).where(StoryQuestionAnswer.question_id == question_id)
    if story.author_id != user_id:
        stmt = stmt.where(StoryQuestionAnswer.user_id == user_id)
    rows = session.scalars(stmt.order_by(StoryQuestionAnswer.id.desc())).all()

    answers = [
        {
            "id": row.id,
            "answer": row.answer,
            "user": user_brief(row.user),
            "created_at": iso(row.created_at),
        }
        for row in rows
    ]
    own = next((row.answer for row in rows if row.user_id == user_id), None)
    return {
        "id": question.id,
        "story_id": question.story_id,
        "question": question.question,
        "answers": answers,
        "total_answers": len(answers),
        "user_answer": own,
    }


# ---------------------------------------------------------------------------
# Slider
# ---------------------------------------------------------------------------
def create_slider(
    session: Session, user_id: int, story_id: int, question: str, emoji: str | None = None
) -> dict[str, Any]:
    _author_story(session, story_id, user_id, "create sliders")
    slider = StorySlider(story_id=story_id, question=question, emoji=emoji)
    session.add(slider)
    session.flush()
    return {"id": slider.id, "story_id": story_id, "question": slider.question, "emoji": slider.emoji}


def respond_to_slider(
    session: Session, user_id: int, slider_id: int, value: float
) -> dict[str, bool]:
    if not 0 <= value <= 100:
        raise BadRequestError("Slider value must be between 0 and 100")
    slider = get_or_404(session, StorySlider, slider_id, "Slider not found")
    _require_live(session.get(Story, slider.story_id))

    existing = session.scalar(
        select(StorySliderResponse).where(
            StorySliderResponse.slider_id == slider_id,
            StorySliderResponse.user_id == user_id,
        )
    )
    if existing is not None:
        existing.value = value
    else:
        session.add(StorySliderResponse(slider_id=slider_id, user_id=user_id, value=value))
    session.flush()
    return {"success": True}


def get_slider_responses(session: Session, user_id: int, slider_id: int) -> dict[str, Any]:
    slider = get_or_404(session, StorySlider, slider_id, "Slider not found")
    story = session.get(Story, slider.story_id)
    rows = session.scalars(
        select(StorySliderResponse).where(StorySliderResponse.slider_id == slider_id)
    ).all()

    total = len(rows)
    average = round(sum(r.value for r in rows) / total) if total else 0
    own = next((r.value for r in rows if r.user_id == user_id), None)
    responses = []
    if story.author_id == user_id:
        responses = [{"value": r.value, "user": user_brief(r.user)} for r in rows]
    return {
        "id": slider.id,
        "story_id": slider.story_id,
        "question": slider.question,
        "emoji": slider.emoji,
        "average_value": average,
        "total_responses": total,
        "user_response": own,
        "responses": responses,
    }


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------
def add_link(
    session: Session, user_id: int, story_id: int, *, url: str, label: str | None, position: dict | None
) -> dict[str, Any]:
    story = _author_story(session, story_id, user_id, "add links")
    link = {"url": url, "label": label, "position": position}
    story.links = [*(story.links or []), link]
    session.flush()
    return link


# ---------------------------------------------------------------------------
# Highlights
# ---------------------------------------------------------------------------
def _own_stories(session: Session, user_id: int, story_ids: list[int]) -> list[Story]:
    stories = list(session.scalars(select(Story).where(Story.id.in_(story_ids))).all())
    if len(stories) != len(set(story_ids)):
        raise BadRequestError("One or more stories not found")
    if any(s.author_id != user_id for s in stories):
        raise ForbiddenError("You can only add your own stories to highlights")
    return stories


def create_highlight(
    session: Session,
    user_id: int,
    *,
    name: str,
    story_ids: list[int],
    cover_image_url: str | None = None,
) -> dict[str, Any]:
    _own_stories(session, user_id, story_ids)
    highlight = StoryHighlight(user_id=user_id, name=name, cover_image_url=cover_image_url)
    highlight.items = [
        StoryHighlightItem(story_id=sid, order=i) for i, sid in enumerate(dict.fromkeys(story_ids))
    ]
    session.add(highlight)
    session.flush()
    return _highlight_dict(highlight, highlight.items)


def _owned_highlight(session: Session, user_id: int, highlight_id: int, message: str) -> StoryHighlight:
    highlight = get_or_404(session, StoryHighlight, highlight_id, "Highlight not found")
    if highlight.user_id != user_id:
        raise ForbiddenError(message)
    return highlight


def add_stories_to_highlight(
    session: Session, user_id: int, highlight_id: int, story_ids: list[int]
) -> dict[str, bool]:
    highlight = _owned_highlight(
        session, user_id, highlight_id, "You can only add stories to your own highlights"
    )
    _own_stories(session, user_id, story_ids)

    present = {item.story_id for item in highlight.items}
    highest = session.scalar(
        select(func.max(StoryHighlightItem.order)).where(
            StoryHighlightItem.highlight_id == highlight_id
        )
    )
    next_order = (highest if highest is not None else -1) + 1
    for sid in dict.fromkeys(story_ids):
        if sid in present:
            continue
        highlight.items.append(StoryHighlightItem(story_id=sid, order=next_order))
        next_order += 1
    session.flush()
    return {"success": True}


def remove_story_from_highlight(
    session: Session, user_id: int, highlight_id: int, story_id: int
) -> dict[str, bool]:
    item = session.scalar(
        select(StoryHighlightItem).where(
            StoryHighlightItem.highlight_id == highlight_id,
            StoryHighlightItem.story_id == story_id,
        )
    )
    if item is None:
        raise NotFoundError("Story not found in highlight")
    highlight = item.highlight
    if highlight.user_id != user_id:
        raise ForbiddenError("You can only remove stories from your own highlights")

    highlight.items.remove(item)
    session.flush()
    if not highlight.items:
        session.delete(highlight)
        session.flush()
        return {"success": True, "highlight_deleted": True}
    return {"success": True, "highlight_deleted": False}


def delete_highlight(session: Session, user_id: int, highlight_id: int) -> dict[str, bool]:
    session.delete(
        _owned_highlight(session, user_id, highlight_id, "You can only delete your own highlights")
    )
    session.flush()
    return {"success": True}


def get_user_highlights(session: Session, user_id: int) -> list[dict[str, Any]]:
    highlights = session.scalars(
        select(StoryHighlight)
        .where(StoryHighlight.user_id == user_id)
        .order_by(StoryHighlight.id.desc())
    ).all()
    return [
        {**_highlight_dict(h, h.items[:1]), "items_count": len(h.items)}
        for h in highlights
    ]


def get_highlight_by_id(session: Session, highlight_id: int) -> dict[str, Any]:
    highlight = get_or_404(session, StoryHighlight, highlight_id, "Highlight not found")
    data = _highlight_dict(highlight, highlight.items)
    data["user"] = user_brief(session.get(User, highlight.user_id))
    return data


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_my_active_stories(session: Session, user_id: int) -> list[dict[str, Any]]:
    stories = session.scalars(
        select(Story)
        .where(
            Story.author_id == user_id,
            Story.expires_at >= utcnow(),
            Story.is_archived.is_(False),
        )
        .order_by(Story.id.desc())
    ).all()
    return [_story_dict(session, s, user_id) for s in stories]


def get_feed(
    session: Session,
    viewer_id: int | None,
    *,
    limit: int = 10,
    cursor: int | None = None,
    filters: dict[str, Any] | None = None,
) -> dict[str, Any]:
    filters = filters or {}
    stmt = select(Story).where(
        Story.is_archived.is_(False),
        feed_visibility_clause(session, Story, viewer_id),
    )
    if not filters.get("include_expired"):
        stmt = stmt.where(Story.expires_at >= utcnow())
    if filters.get("user_id") is not None:
        stmt = stmt.where(Story.author_id == filters["user_id"])
    if filters.get("media_type"):
        stmt = stmt.where(Story.media_type == filters["media_type"])
    if filters.get("has_music"):
        stmt = stmt.where(Story.music_track_url.is_not(None))
    if filters.get("has_location"):
        stmt = stmt.where(Story.location.is_not(None))
    if filters.get("topic_ids"):
        stmt = stmt.where(
            Story.id.in_(
                select(StoryTopic.story_id).where(StoryTopic.topic_id.in_(filters["topic_ids"]))
            )
        )
    if filters.get("following") and viewer_id is not None:
        stmt = stmt.where(
            Story.author_id.in_(
                select(Follow.following_id).where(
                    Follow.follower_id == viewer_id, Follow.status == FollowStatus.ACCEPTED
                )
            )
        )

    rows, next_cursor = paginate(session, stmt, Story.id, limit=limit, cursor=cursor)
    return {
        "stories": [_story_dict(session, s, viewer_id) for s in rows],
        "next_cursor": next_cursor,
    }


def get_story(session: Session, story_id: int, viewer_id: int | None) -> dict[str, Any]:
    story = get_or_404(session, Story, story_id, "Story not found")
    _require_visible(session, story, viewer_id)

    data = _story_dict(session, story, viewer_id)
    data["responses_count"] = count(session, StoryResponse.id, StoryResponse.story_id == story.id)
    data["has_expired"] = _is_expired(story)
    is_author = viewer_id == story.author_id
    data["polls"] = [_poll_dict(p, show_voters=is_author) for p in story.polls]
    data["questions"] = [{"id": q.id, "question": q.question} for q in story.questions]
    data["sliders"] = [
        {"id": s.id, "question": s.question, "emoji": s.emoji} for s in story.sliders
    ]
    return data
