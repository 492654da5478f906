"""
dapdip.api.routes.audio — Voice clips & transcription
=======================================================

Clips arrive as multipart uploads: the audio file plus form fields.  The
waveform is sent as a JSON array in a single form field.
"""

from __future__ import annotations

import json
import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Form,
    HTTPException,
    Query,
    UploadFile,
)
from pydantic import BaseModel, Field
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from dapdip.api.deps import (
    get_config,
    get_content_model,
    get_current_user_id,
    get_engine,
    get_session,
)
from dapdip.api.rate_limit import rate_limited
from dapdip.config import DapDipConfig
from dapdip.errors import ServiceError
from dapdip.services import audio_service
from dapdip.services.content_model import ContentModel
from dapdip.services.upload_service import delete_upload, save_upload

router = APIRouter(prefix="/audio", tags=["audio"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class TranscribeBody(BaseModel):
    language: str | None = Field(None, min_length=2, max_length=10)


class TranscriptionUpdate(BaseModel):
    transcription: str = Field(min_length=1, max_length=10000)


def _parse_waveform(raw: str) -> list[float]:
    try:
        values = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(400, "Waveform must be a JSON array of numbers") from exc
    if not isinstance(values, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
    ):
        raise HTTPException(400, "Waveform must be a JSON array of numbers")
    return [float(v) for v in values]


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
async def create_audio_message(
    background_tasks: BackgroundTasks,
    file: UploadFile,
    duration: float = Form(...),
    waveform: str = Form(...),
    chat_id: int | None = Form(None),
    comment_id: int | None = Form(None),
    post_id: int | None = Form(None),
    reel_id: int | None = Form(None),
    story_id: int | None = Form(None),
    user_id: int = Depends(rate_limited("content")),
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    model: ContentModel = Depends(get_content_model),
    cfg: DapDipConfig = Depends(get_config),
):
    """Store a voice clip on its chat, comment, post, reel or story."""
    samples = _parse_waveform(waveform)
    targets = dict(
        chat_id=chat_id, comment_id=comment_id, post_id=post_id, reel_id=reel_id, story_id=story_id
    )
    # Reject bad metadata before anything touches the disk.
    audio_service.validate_clip(duration, samples)
    audio_service.require_target(**targets)

    content = await file.read()
    try:
        url = await save_upload(
            file.filename or "clip.webm", content, file.content_type, kind="audio"
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc

    try:
        result, enable_ai = audio_service.create_audio_message(
            session, user_id, url=url, duration=duration, waveform=samples, **targets
        )
    except ServiceError:
        # Missing carrier, block or closed responses: nothing references the file.
        delete_upload(url)
        raise
    session.commit()

    if enable_ai:
        background_tasks.add_task(
            audio_service.process_audio,
            engine,
            model,
            result["id"],
            user_id,
            delay=cfg.audio_processing_delay,
        )
    return result


@router.post("/{audio_id}/transcribe")
def transcribe(
    audio_id: int,
    background_tasks: BackgroundTasks,
    body: TranscribeBody | None = None,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    model: ContentModel = Depends(get_content_model),
    cfg: DapDipConfig = Depends(get_config),
):
    payload, schedule = audio_service.start_transcription(session, user_id, audio_id)
    session.commit()
    if schedule:
        background_tasks.add_task(
            audio_service.process_audio,
            engine,
            model,
            audio_id,
            user_id,
            language=body.language if body is not None else None,
            delay=cfg.audio_processing_delay,
        )
    return payload


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("")
def get_messages(
    chat_id: int | None = Query(None),
    comment_id: int | None = Query(None),
    post_id: int | None = Query(None),
    reel_id: int | None = Query(None),
    story_id: int | None = Query(None),
    limit: int = Query(20, ge=1, le=50),
    cursor: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return audio_service.get_messages(
        session,
        user_id,
        chat_id=chat_id,
        comment_id=comment_id,
        post_id=post_id,
        reel_id=reel_id,
        story_id=story_id,
        limit=limit,
        cursor=cursor,
    )


@router.get("/search")
def search(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    cursor: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return audio_service.search(session, user_id, q, limit=limit, cursor=cursor)


@router.get("/{audio_id}")
def get_audio(audio_id: int, session: Session = Depends(get_session)):
    return audio_service.get_audio(session, audio_id)


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------
@router.patch("/{audio_id}")
def update_transcription(
    audio_id: int,
    body: TranscriptionUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = audio_service.update_transcription(session, user_id, audio_id, body.transcription)
    session.commit()
    return result


@router.delete("/{audio_id}")
def delete_audio(
    audio_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = audio_service.delete_audio(session, user_id, audio_id)
    session.commit()
    return result
