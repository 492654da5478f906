"""
dapdip.api.routes.stories — Ephemeral stories & interactive stickers
======================================================================

Stories expire 24 hours after creation.  Polls, questions and sliders
hang off a story and stop accepting input once it has expired;
highlights keep chosen stories around past their expiry.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_optional_user_id, get_session
from dapdip.api.rate_limit import rate_limited
from dapdip.database.models import PrivacyLevel, StoryMediaType
from dapdip.services import story_service

router = APIRouter(prefix="/stories", tags=["stories"])


# ---------------------------------------------------------------------------
# Pydantic schemas: overlays
# ---------------------------------------------------------------------------
class Position(BaseModel):
    x: float
    y: float


class TextOverlay(BaseModel):
    text: str = Field(min_length=1, max_length=200)
    position: Position
    color: str | None = None
    font: str | None = None
    size: float | None = Field(None, gt=0)
    rotation: float = 0


class DrawElement(BaseModel):
    points: list[Position] = Field(min_length=1)
    color: str
    width: float = Field(gt=0)


class Sticker(BaseModel):
    type: str = Field(min_length=1, max_length=50)
    position: Position
    content: str | None = None
    scale: float = 1
    rotation: float = 0


class StoryLinkBody(BaseModel):
    url: str = Field(min_length=1)
    label: str | None = Field(None, max_length=100)
    position: Position | None = None


class StoryMusic(BaseModel):
    track_url: str
    artist: str | None = Field(None, max_length=100)
    title: str | None = Field(None, max_length=100)


# ---------------------------------------------------------------------------
# Pydantic schemas: requests
# ---------------------------------------------------------------------------
class StoryCreate(BaseModel):
    media_url: str = Field(min_length=1)
    media_type: StoryMediaType
    thumbnail_url: str | None = None
    duration: float | None = Field(None, gt=0)
    caption: str | None = Field(None, max_length=2200)
    location: str | None = Field(None, max_length=100)
    background_color: str | None = Field(None, max_length=10)
    text_overlays: list[TextOverlay] | None = None
    draw_elements: list[DrawElement] | None = None
    stickers: list[Sticker] | None = None
    links: list[StoryLinkBody] | None = None
    filter: str | None = Field(None, max_length=50)
    music: StoryMusic | None = None
    allow_responses: bool = True
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC
    topic_ids: list[int] = Field(default_factory=list)


class StoryUpdate(BaseModel):
    caption: str | None = Field(None, max_length=2200)
    location: str | None = Field(None, max_length=100)
    privacy_level: PrivacyLevel | None = None
    is_archived: bool | None = None


class ViewBody(BaseModel):
    view_duration: float | None = Field(None, ge=0)


class ReactionBody(BaseModel):
    emoji: str = Field(min_length=1, max_length=10)


class ResponseBody(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class PollCreate(BaseModel):
    question: str = Field(min_length=1, max_length=200)
    options: list[str] = Field(min_length=2, max_length=10)


class PollVote(BaseModel):
    option_id: str


class QuestionCreate(BaseModel):
    question: str = Field(min_length=1, max_length=200)


class AnswerBody(BaseModel):
    answer: str = Field(min_length=1, max_length=1000)


class SliderCreate(BaseModel):
    question: str = Field(min_length=1, max_length=200)
    emoji: str | None = Field(None, max_length=10)


class SliderResponseBody(BaseModel):
    value: float = Field(ge=0, le=100)


class HighlightCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    story_ids: list[int] = Field(min_length=1)
    cover_image_url: str | None = None


class HighlightAdd(BaseModel):
    story_ids: list[int] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("/feed")
def get_feed(
    limit: int = Query(10, ge=1, le=50),
    cursor: int | None = Query(None),
    user_id: int | None = Query(None),
    include_expired: bool = Query(False),
    media_type: StoryMediaType | None = Query(None),
    has_music: bool = Query(False),
    has_location: bool = Query(False),
    topic_ids: list[int] | None = Query(None),
    following: bool = Query(False),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    filters = {
        "user_id": user_id,
        "include_expired": include_expired,
        "media_type": media_type,
        "has_music": has_music,
        "has_location": has_location,
        "topic_ids": topic_ids,
        "following": following,
    }
    return story_service.get_feed(session, viewer_id, limit=limit, cursor=cursor, filters=filters)


@router.get("/me/active")
def get_my_active_stories(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return {"stories": story_service.get_my_active_stories(session, user_id)}


@router.get("/polls/{poll_id}/results")
def get_poll_results(
    poll_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return story_service.get_poll_results(session, user_id, poll_id)


@router.get("/questions/{question_id}/answers")
def get_question_answers(
    question_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return story_service.get_question_answers(session, user_id, question_id)


@router.get("/sliders/{slider_id}/responses")
def get_slider_responses(
    slider_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return story_service.get_slider_responses(session, user_id, slider_id)


@router.get("/highlights/user/{user_id}")
def get_user_highlights(user_id: int, session: Session = Depends(get_session)):
    return {"highlights": story_service.get_user_highlights(session, user_id)}


@router.get("/highlights/{highlight_id}")
def get_highlight(highlight_id: int, session: Session = Depends(get_session)):
    return story_service.get_highlight_by_id(session, highlight_id)


@router.get("/{story_id}")
def get_story(
    story_id: int,
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return story_service.get_story(session, story_id, viewer_id)


# ---------------------------------------------------------------------------
# Story mutations
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
def create_story(
    body: StoryCreate,
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
):
    result = story_service.create_story(session, user_id, body.model_dump())
    session.commit()
    return result


@router.patch("/{story_id}")
def update_story(
    story_id: int,
    body: StoryUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.update_story(
        session, user_id, story_id, body.model_dump(exclude_unset=True)
    )
    session.commit()
    return result


@router.delete("/{story_id}")
def delete_story(
    story_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.delete_story(session, user_id, story_id)
    session.commit()
    return result


@router.post("/{story_id}/view")
def view_story(
    story_id: int,
    body: ViewBody | None = None,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    duration = body.view_duration if body is not None else None
    result = story_service.view_story(session, user_id, story_id, duration)
    session.commit()
    return result


@router.post("/{story_id}/reactions")
def add_reaction(
    story_id: int,
    body: ReactionBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.add_reaction(session, user_id, story_id, body.emoji)
    session.commit()
    return result


@router.post("/{story_id}/responses", status_code=201)
def add_response(
    story_id: int,
    body: ResponseBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.add_response(session, user_id, story_id, body.content)
    session.commit()
    return result


@router.post("/{story_id}/links", status_code=201)
def add_link(
    story_id: int,
    body: StoryLinkBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    position = body.position.model_dump() if body.position is not None else None
    result = story_service.add_link(
        session, user_id, story_id, url=body.url, label=body.label, position=position
    )
    session.commit()
    return result


# ---------------------------------------------------------------------------
# Polls, questions & sliders
# ---------------------------------------------------------------------------
@router.post("/{story_id}/polls", status_code=201)
def create_poll(
    story_id: int,
    body: PollCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.create_poll(session, user_id, story_id, body.question, body.options)
    session.commit()
    return result


@router.post("/polls/{poll_id}/vote")
def vote_on_poll(
    poll_id: int,
    body: PollVote,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.vote_on_poll(session, user_id, poll_id, body.option_id)
    session.commit()
    return result


@router.post("/{story_id}/questions", status_code=201)
def create_question(
    story_id: int,
    body: QuestionCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.create_question(session, user_id, story_id, body.question)
    session.commit()
    return result


@router.post("/questions/{question_id}/answers")
def answer_question(
    question_id: int,
    body: AnswerBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.answer_question(session, user_id, question_id, body.answer)
    session.commit()
    return result


@router.post("/{story_id}/sliders", status_code=201)
def create_slider(
    story_id: int,
    body: SliderCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.create_slider(session, user_id, story_id, body.question, body.emoji)
    session.commit()
    return result


@router.post("/sliders/{slider_id}/responses")
def respond_to_slider(
    slider_id: int,
    body: SliderResponseBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.respond_to_slider(session, user_id, slider_id, body.value)
    session.commit()
    return result


# ---------------------------------------------------------------------------
# Highlights
# ---------------------------------------------------------------------------
@router.post("/highlights", status_code=201)
def create_highlight(
    body: HighlightCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.create_highlight(
        session,
        user_id,
        name=body.name,
        story_ids=body.story_ids,
        cover_image_url=body.cover_image_url,
    )
    session.commit()
    return result


@router.post("/highlights/{highlight_id}/stories")
def add_stories_to_highlight(
    highlight_id: int,
    body: HighlightAdd,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.add_stories_to_highlight(session, user_id, highlight_id, body.story_ids)
    session.commit()
    return result


@router.delete("/highlights/{highlight_id}/stories/{story_id}")
def remove_story_from_highlight(
    highlight_id: int,
    story_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.remove_story_from_highlight(session, user_id, highlight_id, story_id)
    session.commit()
    return result


@router.delete("/highlights/{highlight_id}")
def delete_highlight(
    highlight_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = story_service.delete_highlight(session, user_id, highlight_id)
    session.commit()
    return result
