"""
dapdip.api.routes.users — Profiles, settings & AI plan
========================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, HttpUrl
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id, get_optional_user_id, get_session
from dapdip.database.models import AIPlan, PrivacyLevel
from dapdip.services import user_service

router = APIRouter(prefix="/users", tags=["users"])

Theme = Literal["light", "dark", "dusk", "system"]


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=50)
    username: str | None = Field(None, min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$")
    bio: str | None = Field(None, max_length=500)
    image: HttpUrl | None = None
    cover_image: HttpUrl | None = None


class SettingsUpdate(BaseModel):
    theme: Theme | None = None
    primary_color: str | None = None
    secondary_color: str | None = None
    font_preference: str | None = None
    animations_enabled: bool | None = None
    language: str | None = Field(None, max_length=10)
    privacy_level: PrivacyLevel | None = None
    email_notifications: bool | None = None
    push_notifications: bool | None = None
    message_notifications: bool | None = None
    ai_enabled: bool | None = None


class ThemeUpdate(BaseModel):
    theme: Theme
    primary_color: str | None = None
    secondary_color: str | None = None
    font_preference: str | None = None
    animations_enabled: bool | None = None


class PasswordUpdate(BaseModel):
    password: str = Field(min_length=8, max_length=128)


class AIPlanUpdate(BaseModel):
    plan: AIPlan


# ---------------------------------------------------------------------------
# Own account
# ---------------------------------------------------------------------------
@router.get("/me")
def get_my_profile(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return user_service.get_profile(session, user_id)


@router.patch("/me")
def update_my_profile(
    body: ProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    changes = body.model_dump(exclude_unset=True, mode="json")
    result = user_service.update_profile(session, user_id, changes)
    session.commit()
    return result


@router.put("/me/password")
def set_my_password(
    body: PasswordUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Enable email sign-in for the current account."""
    result = user_service.set_password(session, user_id, body.password)
    session.commit()
    return result


@router.get("/me/settings")
def get_my_settings(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return user_service.get_settings(session, user_id)


@router.put("/me/settings")
def update_my_settings(
    body: SettingsUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = user_service.update_settings(session, user_id, body.model_dump(exclude_unset=True))
    session.commit()
    return result


@router.put("/me/settings/theme")
def update_my_theme(
    body: ThemeUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = user_service.update_theme_settings(
        session, user_id, body.model_dump(exclude_unset=True)
    )
    session.commit()
    return result


@router.put("/me/ai-plan")
def update_my_ai_plan(
    body: AIPlanUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = user_service.update_ai_plan(session, user_id, body.plan)
    session.commit()
    return result


@router.post("/me/ai-tokens/reset")
def reset_my_ai_tokens(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = user_service.reset_ai_tokens(session, user_id)
    session.commit()
    return result


@router.get("/me/ai-tokens/history")
def get_my_token_history(
    limit: int = Query(30, ge=1, le=100),
    cursor: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return user_service.get_token_usage_history(session, user_id, limit=limit, cursor=cursor)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------
@router.get("/search")
def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    viewer_id: int | None = Depends(get_optional_user_id),
    session: Session = Depends(get_session),
):
    return {"users": user_service.search_users(session, q, viewer_id)}


@router.get("/{user_id}")
def get_user(user_id: int, session: Session = Depends(get_session)):
    return user_service.get_by_id(session, user_id)
