"""
dapdip.services.user_service — Profiles, Settings & AI Plans
==============================================================
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from passlib.context import CryptContext
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from dapdip.constants import DEFAULT_AI_TOKENS, PLAN_TOKEN_ALLOWANCE, next_token_reset
from dapdip.database.models import (
    AIPlan,
    AITokenUsage,
    Follow,
    FollowStatus,
    Post,
    PrivacyLevel,
    User,
    UserSettings,
)
from dapdip.errors import BadRequestError, ConflictError, NotFoundError
from dapdip.services.access import (
    LIKE_ESCAPE,
    as_utc,
    contains_pattern,
    count,
    get_or_404,
    iso,
    paginate,
    utcnow,
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

DEFAULT_SETTINGS: dict[str, Any] = {
    "theme": "system",
    "primary_color": None,
    "secondary_color": None,
    "font_preference": None,
    "animations_enabled": True,
    "language": "en",
    "privacy_level": PrivacyLevel.PUBLIC.value,
    "email_notifications": True,
    "push_notifications": True,
    "message_notifications": True,
    "ai_enabled": True,
    "ai_plan": AIPlan.FREE.value,
    "ai_tokens_remaining": DEFAULT_AI_TOKENS,
    "ai_tokens_reset": None,
}

SETTINGS_FIELDS = tuple(DEFAULT_SETTINGS)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
def get_or_create_user(
    session: Session,
    *,
    email: str,
    name: str | None = None,
    image: str | None = None,
) -> User:
    """Find a user by (normalised) email or create one with default settings."""
    email = email.strip().lower()
    user = session.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(email=email, name=name, image=image)
        user.settings = UserSettings()
        session.add(user)
        session.flush()
        logger.info("Created user %s for %s", user.id, email)
    return user


def touch_last_active(user: User) -> None:
    user.last_active = utcnow()


def authenticate(session: Session, email: str, password: str | None) -> User | None:
    """Return the user for *email* when *password* matches its stored hash.

    Accounts created through GitHub have no hash until they set a
    password, so they never authenticate here.
    """
    user = session.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None or not user.password_hash or not password:
        return None
    if not pwd_context.verify(password, user.password_hash):
        return None
    return user


def set_password(session: Session, user_id: int, password: str) -> dict[str, bool]:
    user = get_or_404(session, User, user_id, "User not found")
    user.password_hash = pwd_context.hash(password)
    session.flush()
    logger.info("Password set for user %s", user_id)
    return {"success": True}


def _user_dict(session: Session, user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "image": user.image,
        "cover_image": user.cover_image,
        "bio": user.bio,
        "last_active": iso(user.last_active),
        "created_at": iso(user.created_at),
        "followers_count": count(
            session, Follow.id, Follow.following_id == user.id, Follow.status != FollowStatus.BLOCKED
        ),
        "following_count": count(
            session, Follow.id, Follow.follower_id == user.id, Follow.status != FollowStatus.BLOCKED
        ),
        "posts_count": count(session, Post.id, Post.author_id == user.id),
    }


def get_by_id(session: Session, user_id: int) -> dict[str, Any]:
    return _user_dict(session, get_or_404(session, User, user_id, "User not found"))


def get_profile(session: Session, user_id: int) -> dict[str, Any]:
    user = get_or_404(session, User, user_id, "User not found")
    data = _user_dict(session, user)
    data["settings"] = get_settings(session, user_id)
    return data


def update_profile(session: Session, user_id: int, changes: dict[str, Any]) -> dict[str, Any]:
    user = get_or_404(session, User, user_id, "User not found")

    username = changes.get("username")
    if username:
        taken = session.scalar(
            select(User.id).where(User.username == username, User.id != user_id)
        )
        if taken is not None:
            raise ConflictError("Username already taken")

    for key in ("name", "username", "bio", "image", "cover_image"):
        if key in changes:
            setattr(user, key, changes[key])
    session.flush()
    return _user_dict(session, user)


def search_users(
    session: Session, query: str, viewer_id: int | None = None
) -> list[dict[str, Any]]:
    pattern = contains_pattern(query.lower())
    stmt = select(User).where(
        or_(
            func.lower(User.name).like(pattern, escape=LIKE_ESCAPE),
            func.lower(User.username).like(pattern, escape=LIKE_ESCAPE),
        )
    )
    if viewer_id is not None:
        stmt = stmt.where(User.id != viewer_id)
    users = session.scalars(stmt.order_by(User.id).limit(10)).all()
    return [
        {"id": u.id, "name": u.name, "username": u.username, "image": u.image, "bio": u.bio}
        for u in users
    ]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
def _settings_dict(settings: UserSettings) -> dict[str, Any]:
    data = {key: getattr(settings, key) for key in SETTINGS_FIELDS}
    data["ai_tokens_reset"] = iso(settings.ai_tokens_reset)
    return data


def get_settings(session: Session, user_id: int) -> dict[str, Any]:
    settings = session.get(UserSettings, user_id)
    if settings is None:
        return dict(DEFAULT_SETTINGS)
    return _settings_dict(settings)


def _upsert_settings(session: Session, user_id: int) -> UserSettings:
    settings = session.get(UserSettings, user_id)
    if settings is None:
        get_or_404(session, User, user_id, "User not found")
        settings = UserSettings(user_id=user_id)
        session.add(settings)
        session.flush()
    return settings


def update_settings(session: Session, user_id: int, changes: dict[str, Any]) -> dict[str, Any]:
    settings = _upsert_settings(session, user_id)
    for key, value in changes.items():
        if key in SETTINGS_FIELDS and key not in ("ai_tokens_remaining", "ai_tokens_reset", "ai_plan"):
            setattr(settings, key, value)
    session.flush()
    return _settings_dict(settings)


def update_theme_settings(
    session: Session, user_id: int, changes: dict[str, Any]
) -> dict[str, Any]:
    theme_keys = ("theme", "primary_color", "secondary_color", "font_preference", "animations_enabled")
    return update_settings(
        session, user_id, {k: v for k, v in changes.items() if k in theme_keys}
    )


def update_ai_plan(session: Session, user_id: int, plan: str) -> dict[str, Any]:
    settings = _upsert_settings(session, user_id)
    settings.ai_plan = plan
    settings.ai_tokens_remaining = PLAN_TOKEN_ALLOWANCE[plan]
    settings.ai_tokens_reset = utcnow() + timedelta(hours=24)
    session.flush()
    logger.info("User %s switched to AI plan %s", user_id, plan)
    return _settings_dict(settings)


def reset_ai_tokens(session: Session, user_id: int) -> dict[str, Any]:
    settings = session.get(UserSettings, user_id)
    if settings is None:
        raise NotFoundError("User settings not found")

    now = utcnow()
    reset_at = as_utc(settings.ai_tokens_reset)
    if reset_at is not None and reset_at > now:
        raise BadRequestError(f"Tokens will reset at {reset_at.isoformat()}")

    settings.ai_tokens_remaining = PLAN_TOKEN_ALLOWANCE.get(settings.ai_plan, DEFAULT_AI_TOKENS)
    settings.ai_tokens_reset = next_token_reset(settings.ai_plan, now)
    session.flush()
    return _settings_dict(settings)


def get_token_usage_history(
    session: Session, user_id: int, *, limit: int = 30, cursor: int | None = None
) -> dict[str, Any]:
    rows, next_cursor = paginate(
        session,
        select(AITokenUsage).where(AITokenUsage.user_id == user_id),
        AITokenUsage.id,
        limit=limit,
        cursor=cursor,
    )

    since = utcnow() - timedelta(days=30)
    per_feature = session.execute(
        select(AITokenUsage.feature, func.sum(AITokenUsage.amount))
        .where(AITokenUsage.user_id == user_id, AITokenUsage.created_at >= since)
        .group_by(AITokenUsage.feature)
    ).all()
    feature_usage = {feature: int(total or 0) for feature, total in per_feature}

    return {
        "history": [
            {
                "id": r.id,
                "amount": r.amount,
                "feature": r.feature,
                "model_name": r.model_name,
                "created_at": iso(r.created_at),
            }
            for r in rows
        ],
        "stats": {
            "feature_usage": feature_usage,
            "total_usage": sum(feature_usage.values()),
        },
        "next_cursor": next_cursor,
    }
