"""
dapdip.api.routes.ai — Token-metered content intelligence
===========================================================

Every route except ``/trending-topics`` and ``/moderate`` spends the
caller's AI token balance.  A failed model call raises before the route
commits, so the charge is rolled back with it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_content_model, get_current_user_id, get_session
from dapdip.api.rate_limit import rate_limited
from dapdip.services import ai_service
from dapdip.services.content_model import ContentModel

router = APIRouter(prefix="/ai", tags=["ai"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AnalyzePostBody(BaseModel):
    post_id: int


class SuggestionsBody(BaseModel):
    topic: str = Field(min_length=1, max_length=100)


class SentimentBody(BaseModel):
    text: str = Field(min_length=1, max_length=1000)


class TopicsBody(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class ModerateBody(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class SummarizeBody(BaseModel):
    text: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/analyze-post")
def analyze_post(
    body: AnalyzePostBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = ai_service.analyze_post_content(session, model, user_id, body.post_id)
    session.commit()
    return result


@router.post("/suggestions")
def generate_suggestions(
    body: SuggestionsBody,
    user_id: int = Depends(rate_limited("ai")),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = ai_service.generate_post_suggestions(session, model, user_id, body.topic)
    session.commit()
    return result


@router.post("/sentiment")
def get_sentiment(
    body: SentimentBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = ai_service.get_sentiment(session, model, user_id, body.text)
    session.commit()
    return result


@router.post("/topics")
def extract_topics(
    body: TopicsBody,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = ai_service.extract_topics(session, model, user_id, body.text)
    session.commit()
    return result


@router.post("/moderate")
def moderate(
    body: ModerateBody,
    user_id: int = Depends(get_current_user_id),
    model: ContentModel = Depends(get_content_model),
):
    return ai_service.moderate_content(model, body.text)


@router.post("/summarize")
def summarize(
    body: SummarizeBody,
    user_id: int = Depends(rate_limited("ai")),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = ai_service.summarize_content(session, model, user_id, body.text)
    session.commit()
    return result


@router.get("/trending-topics")
def trending_topics(session: Session = Depends(get_session)):
    return ai_service.get_trending_topics(session)
