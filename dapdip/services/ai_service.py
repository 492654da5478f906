"""
dapdip.services.ai_service — Token Accounting & AI Content Features
=====================================================================

Every paid AI call follows the same pattern:

  1. :func:`require_ai_enabled` — the account has AI switched on
  2. :func:`charge` — atomically decrement the balance and append an
     ``ai_token_usage`` row in the caller's transaction
  3. call the :class:`~dapdip.services.content_model.ContentModel`

Because the charge is part of the request transaction, a model failure
(which raises :class:`~dapdip.errors.InternalError`) rolls the charge
back with everything else.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from dapdip.constants import (
    COST_CONTENT_ANALYSIS,
    COST_CONTENT_SUGGESTIONS,
    COST_SENTIMENT,
    COST_TOPIC_EXTRACTION,
    MODEL_FLASH,
    MODEL_PRO,
    TRENDING_WINDOW,
    summarization_cost,
)
from dapdip.database.models import AITokenUsage, Post, PrivacyLevel, UserSettings
from dapdip.errors import BadRequestError, ForbiddenError, InternalError
from dapdip.services.access import get_or_404, utcnow
from dapdip.services.content_model import ContentModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSUFFICIENT_TOKENS = "Insufficient AI tokens for this operation"
MAX_ANALYSIS_LENGTH = 5000


# ---------------------------------------------------------------------------
# Token accounting
# ---------------------------------------------------------------------------
def track_token_usage(
    session: Session,
    user_id: int,
    amount: int,
    feature: str,
    model_name: str = MODEL_PRO,
) -> bool:
    """Deduct *amount* tokens and record the usage; False if unaffordable.

    The decrement is a single guarded ``UPDATE … WHERE remaining >= amount``
    so concurrent charges can never drive the balance below zero.
    """
    result = session.execute(
        update(UserSettings)
        .where(
            UserSettings.user_id == user_id,
            UserSettings.ai_tokens_remaining >= amount,
        )
        .values(ai_tokens_remaining=UserSettings.ai_tokens_remaining - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("Token charge refused: user=%s amount=%d feature=%s", user_id, amount, feature)
        return False

    cached = session.identity_map.get(Session.identity_key(UserSettings, user_id))
    if cached is not None:
        session.expire(cached, ["ai_tokens_remaining"])

    session.add(AITokenUsage(user_id=user_id, amount=amount, feature=feature, model_name=model_name))
    session.flush()
    logger.debug("Charged %d tokens to user %s for %s", amount, user_id, feature)
    return True


def require_ai_enabled(session: Session, user_id: int) -> UserSettings:
    settings = session.get(UserSettings, user_id)
    if settings is None or not settings.ai_enabled:
        raise ForbiddenError("AI features are disabled for this account")
    return settings


def charge(
    session: Session,
    user_id: int,
    amount: int,
    feature: str,
    model_name: str = MODEL_PRO,
    *,
    message: str = INSUFFICIENT_TOKENS,
) -> None:
    if not track_token_usage(session, user_id, amount, feature, model_name):
        raise ForbiddenError(message)


def call_model(failure_message: str, fn: Callable[..., T], *args: Any) -> T:
    """Invoke a content-model method, turning any failure into InternalError."""
    try:
        return fn(*args)
    except Exception as exc:
        logger.exception("Content model call %s failed", getattr(fn, "__name__", fn))
        raise InternalError(failure_message) from exc


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------
def analyze_post_content(
    session: Session, model: ContentModel, user_id: int, post_id: int
) -> dict[str, Any]:
    require_ai_enabled(session, user_id)
    post = get_or_404(session, Post, post_id, "Post not found")
    if post.author_id != user_id:
        raise ForbiddenError("Not authorized to analyze this post")
    if len(post.content) > MAX_ANALYSIS_LENGTH:
        raise BadRequestError("Content too long for analysis (max 5000 chars)")

    moderation = call_model("Failed to analyze post content", model.moderate, post.content)
    if not moderation["is_safe"]:
        raise BadRequestError(
            "Content moderation failed: " + ", ".join(moderation["issues"])
        )

    charge(session, user_id, COST_CONTENT_ANALYSIS, "content_analysis", MODEL_PRO)
    result = call_model("Failed to analyze post content", model.analyze_post, post.content)

    post.sentiment = result["sentiment"]
    post.ai_analysis = {**result["analysis"], "topics": result["topics"]}
    session.flush()
    logger.info("Post %s analyzed by user %s", post_id, user_id)
    return result


def generate_post_suggestions(
    session: Session, model: ContentModel, user_id: int, topic: str
) -> dict[str, Any]:
    require_ai_enabled(session, user_id)
    charge(session, user_id, COST_CONTENT_SUGGESTIONS, "content_suggestions", MODEL_PRO)
    suggestions = call_model(
        "Failed to generate post suggestions", model.generate_suggestions, topic
    )
    return {"suggestions": suggestions}


def get_sentiment(
    session: Session, model: ContentModel, user_id: int, text: str
) -> dict[str, float]:
    require_ai_enabled(session, user_id)
    charge(session, user_id, COST_SENTIMENT, "sentiment_analysis", MODEL_FLASH)
    return {"sentiment": call_model("Failed to analyze sentiment", model.analyze_sentiment, text)}


def extract_topics(
    session: Session, model: ContentModel, user_id: int, text: str
) -> dict[str, list[str]]:
    require_ai_enabled(session, user_id)
    charge(session, user_id, COST_TOPIC_EXTRACTION, "topic_extraction", MODEL_FLASH)
    topics = call_model("Failed to extract topics", model.extract_topics, text)
    return {"topics": topics[:5]}


def moderate_content(model: ContentModel, text: str) -> dict[str, Any]:
    return call_model("Failed to moderate content", model.moderate, text)


def summarize_content(
    session: Session, model: ContentModel, user_id: int, text: str
) -> dict[str, str]:
    require_ai_enabled(session, user_id)
    charge(session, user_id, summarization_cost(text), "content_summarization", MODEL_FLASH)
    return {"summary": call_model("Failed to summarize content", model.summarize, text)}


def get_trending_topics(session: Session) -> dict[str, list[dict[str, Any]]]:
    """Top 10 topics across PUBLIC posts analysed in the last 7 days."""
    analyses = session.scalars(
        select(Post.ai_analysis)
        .where(
            Post.privacy_level == PrivacyLevel.PUBLIC,
            Post.created_at >= utcnow() - TRENDING_WINDOW,
        )
        .order_by(Post.id.desc())
        .limit(100)
    ).all()

    counts: Counter[str] = Counter()
    for analysis in analyses:
        if isinstance(analysis, dict) and isinstance(analysis.get("topics"), list):
            counts.update(str(t) for t in analysis["topics"])

    return {"topics": [{"topic": t, "count": c} for t, c in counts.most_common(10)]}
