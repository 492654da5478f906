"""
dapdip.services.audio_service — Voice Clips & Transcription
=============================================================

An audio clip always hangs off a *carrier*: a direct message, a post
comment, a reel comment or a story response.  Creating the clip creates
an empty carrier row (or attaches to an existing comment) so the clip
shows up wherever that kind of content is listed.

When the owner has AI enabled and a positive balance, the clip starts in
``PROCESSING`` and :func:`process_audio` runs as a FastAPI background
task: transcribe, score sentiment, tag, charge, then ``COMPLETED``.
Any failure there marks the clip ``FAILED``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy import Engine, or_, select, update
from sqlalchemy.orm import Session

from dapdip.constants import COST_AUDIO_TRANSCRIPTION, MODEL_WHISPER
from dapdip.database.engine import get_session
from dapdip.database.models import (
    AudioMessage,
    AudioProcessingStatus,
    Comment,
    Message,
    Post,
    ReelComment,
    StoryResponse,
    UserSettings,
)
from dapdip.errors import BadRequestError, ForbiddenError, InternalError
from dapdip.services.access import (
    LIKE_ESCAPE,
    contains_pattern,
    get_or_404,
    get_visible_or_403,
    iso,
    paginate,
    user_brief,
)
from dapdip.services.ai_service import track_token_usage
from dapdip.services.comment_service import create_comment
from dapdip.services.content_model import ContentModel
from dapdip.services.message_service import create_message
from dapdip.services.reel_service import create_reel_comment
from dapdip.services.story_service import create_story_response
from dapdip.services.upload_service import delete_upload

logger = logging.getLogger(__name__)

MIN_DURATION = 0.5
MAX_DURATION = 60.0
MIN_WAVEFORM_SAMPLES = 10


def _audio_dict(audio: AudioMessage) -> dict[str, Any]:
    return {
        "id": audio.id,
        "url": audio.url,
        "duration": audio.duration,
        "waveform": audio.waveform,
        "transcription": audio.transcription,
        "sentiment": audio.sentiment,
        "ai_tags": audio.ai_tags,
        "language_code": audio.language_code,
        "processing_status": audio.processing_status,
        "message_id": audio.message_id,
        "comment_id": audio.comment_id,
        "reel_comment_id": audio.reel_comment_id,
        "story_response_id": audio.story_response_id,
        "post_id": audio.post_id,
        "reel_id": audio.reel_id,
        "story_id": audio.story_id,
        "created_at": iso(audio.created_at),
        "sender": user_brief(audio.user),
    }


def validate_clip(duration: float, waveform: list[float]) -> None:
    if not MIN_DURATION <= duration <= MAX_DURATION:
        raise BadRequestError("Audio must be between 0.5 and 60 seconds")
    if len(waveform) < MIN_WAVEFORM_SAMPLES:
        raise BadRequestError("Waveform needs at least 10 samples")
    if any(not 0 <= v <= 100 for v in waveform):
        raise BadRequestError("Waveform samples must be between 0 and 100")


def require_target(**targets: int | None) -> None:
    if all(v is None for v in targets.values()):
        raise BadRequestError(
            "Audio message must be associated with a chat, comment, post, reel, or story"
        )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def create_audio_message(
    session: Session,
    user_id: int,
    *,
    url: str,
    duration: float,
    waveform: list[float],
    chat_id: int | None = None,
    comment_id: int | None = None,
    post_id: int | None = None,
    reel_id: int | None = None,
    story_id: int | None = None,
) -> tuple[dict[str, Any], bool]:
    """Store the clip with its carrier.

    Returns the serialized clip and whether background processing should
    be scheduled for it.
    """
    validate_clip(duration, waveform)
    require_target(
        chat_id=chat_id, comment_id=comment_id, post_id=post_id, reel_id=reel_id, story_id=story_id
    )

    settings = session.get(UserSettings, user_id)
    enable_ai = bool(settings and settings.ai_enabled and settings.ai_tokens_remaining > 0)

    audio = AudioMessage(
        user_id=user_id,
        url=url,
        duration=duration,
        waveform=waveform,
        processing_status=(
            AudioProcessingStatus.PROCESSING if enable_ai else AudioProcessingStatus.COMPLETED
        ),
    )
    if chat_id is not None:
        audio.message_id = create_message(session, user_id, chat_id, content="").id
    elif comment_id is not None:
        parent = get_or_404(session, Comment, comment_id, "Comment not found")
        get_visible_or_403(session, Post, parent.post_id, user_id, "Post")
        audio.comment_id = comment_id
        audio.post_id = post_id
    elif reel_id is not None:
        audio.reel_comment_id = create_reel_comment(
            session, user_id, reel_id=reel_id, content=None
        ).id
        audio.reel_id = reel_id
    elif post_id is not None:
        audio.comment_id = create_comment(session, user_id, post_id=post_id, content=None).id
        audio.post_id = post_id
    else:
        audio.story_response_id = create_story_response(
            session, user_id, story_id=story_id, content=None
        ).id
        audio.story_id = story_id

    session.add(audio)
    session.flush()
    logger.info("Audio %s stored for user %s (ai=%s)", audio.id, user_id, enable_ai)
    return _audio_dict(audio), enable_ai


# ---------------------------------------------------------------------------
# Background processing
# ---------------------------------------------------------------------------
def process_audio(
    engine: Engine,
    model: ContentModel,
    audio_id: int,
    user_id: int,
    *,
    language: str | None = None,
    delay: float = 0.0,
) -> None:
    """Transcribe, score and tag one clip, then charge the owner.

    Runs after the response is sent.  A failure is logged and recorded as
    ``FAILED`` on the clip.
    """
    if delay > 0:
        time.sleep(delay)
    try:
        with get_session(engine) as session:
            audio = session.get(AudioMessage, audio_id)
            if audio is None:
                logger.warning("Audio %s vanished before processing", audio_id)
                return
            transcription = model.transcribe(audio.url, language)
            audio.transcription = transcription
            audio.sentiment = model.analyze_sentiment(transcription)
            audio.ai_tags = model.generate_tags(transcription)
            audio.language_code = language or "en"
            if not track_token_usage(
                session, user_id, COST_AUDIO_TRANSCRIPTION, "audio_transcription", MODEL_WHISPER
            ):
                raise InternalError("Insufficient tokens for transcription")
            audio.processing_status = AudioProcessingStatus.COMPLETED
    except Exception:
        logger.exception("Error processing audio %s", audio_id)
        with get_session(engine) as session:
            session.execute(
                update(AudioMessage)
                .where(AudioMessage.id == audio_id)
                .values(processing_status=AudioProcessingStatus.FAILED)
            )
        return
    logger.info("Audio %s transcribed", audio_id)


def start_transcription(
    session: Session, user_id: int, audio_id: int
) -> tuple[dict[str, Any], bool]:
    """Mark a clip PROCESSING; returns the payload and whether to schedule."""
    audio = get_or_404(session, AudioMessage, audio_id, "Audio message not found")
    if audio.transcription:
        return {"transcription": audio.transcription}, False
    if audio.processing_status == AudioProcessingStatus.PROCESSING:
        raise BadRequestError("Transcription is already in progress")

    settings = session.get(UserSettings, user_id)
    if settings is None or not settings.ai_enabled:
        raise ForbiddenError("AI features are not enabled for your account")
    if settings.ai_tokens_remaining < COST_AUDIO_TRANSCRIPTION:
        raise ForbiddenError("Insufficient tokens for transcription")

    audio.processing_status = AudioProcessingStatus.PROCESSING
    session.flush()
    return {"success": True, "message": "Transcription started successfully"}, True


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_messages(
    session: Session,
    user_id: int,
    *,
    chat_id: int | None = None,
    comment_id: int | None = None,
    post_id: int | None = None,
    reel_id: int | None = None,
    story_id: int | None = None,
    limit: int = 20,
    cursor: int | None = None,
) -> dict[str, Any]:
    require_target(
        chat_id=chat_id, comment_id=comment_id, post_id=post_id, reel_id=reel_id, story_id=story_id
    )
    stmt = select(AudioMessage)
    if chat_id is not None:
        stmt = stmt.join(Message, AudioMessage.message_id == Message.id).where(
            or_(
                (Message.sender_id == chat_id) & (Message.receiver_id == user_id),
                (Message.sender_id == user_id) & (Message.receiver_id == chat_id),
            )
        )
    elif comment_id is not None:
        stmt = stmt.where(AudioMessage.comment_id == comment_id)
    elif post_id is not None:
        stmt = stmt.where(AudioMessage.post_id == post_id)
    elif reel_id is not None:
        stmt = stmt.where(AudioMessage.reel_id == reel_id)
    else:
        stmt = stmt.where(AudioMessage.story_id == story_id)

    rows, next_cursor = paginate(session, stmt, AudioMessage.id, limit=limit, cursor=cursor)
    return {"items": [_audio_dict(a) for a in rows], "next_cursor": next_cursor}


def get_audio(session: Session, audio_id: int) -> dict[str, Any]:
    return _audio_dict(get_or_404(session, AudioMessage, audio_id, "Audio message not found"))


def search(
    session: Session, user_id: int, query: str, *, limit: int = 10, cursor: int | None = None
) -> dict[str, Any]:
    rows, next_cursor = paginate(
        session,
        select(AudioMessage).where(
            AudioMessage.user_id == user_id,
            AudioMessage.transcription.ilike(contains_pattern(query), escape=LIKE_ESCAPE),
        ),
        AudioMessage.id,
        limit=limit,
        cursor=cursor,
    )
    return {"items": [_audio_dict(a) for a in rows], "next_cursor": next_cursor}


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------
def _owned_audio(session: Session, user_id: int, audio_id: int, action: str) -> AudioMessage:
    audio = get_or_404(session, AudioMessage, audio_id, "Audio message not found")
    if audio.user_id != user_id:
        raise ForbiddenError(f"You are not authorized to {action} this audio message")
    return audio


def update_transcription(
    session: Session, user_id: int, audio_id: int, transcription: str
) -> dict[str, Any]:
    audio = _owned_audio(session, user_id, audio_id, "update")
    audio.transcription = transcription
    session.flush()
    return _audio_dict(audio)


def delete_audio(session: Session, user_id: int, audio_id: int) -> dict[str, bool]:
    """Delete the clip and the carrier rows the caller authored for it."""
    audio = _owned_audio(session, user_id, audio_id, "delete")
    url = audio.url
    carriers = [
        (Comment, audio.comment_id, "author_id"),
        (ReelComment, audio.reel_comment_id, "author_id"),
        (Message, audio.message_id, "sender_id"),
        (StoryResponse, audio.story_response_id, "user_id"),
    ]
    session.delete(audio)
    session.flush()

    for model, pk, owner_attr in carriers:
        if pk is None:
            continue
        row = session.get(model, pk)
        if row is not None and getattr(row, owner_attr) == user_id:
            session.delete(row)
    session.flush()
    delete_upload(url)
    return {"success": True}
