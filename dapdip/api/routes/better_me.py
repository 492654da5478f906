"""
dapdip.api.routes.better_me — Health profile, logs & AI wellness plans
========================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dapdip.api.deps import get_content_model, get_current_user_id, get_session
from dapdip.database.models import ActivityLevel, PrivacyLevel
from dapdip.services import better_me_service
from dapdip.services.content_model import ContentModel

router = APIRouter(prefix="/better-me", tags=["better-me"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class HealthProfileUpdate(BaseModel):
    height: float | None = Field(None, ge=50, le=250)
    weight: float | None = Field(None, ge=30, le=500)
    birthdate: datetime | None = None
    gender: str | None = Field(None, max_length=30)
    activity_level: ActivityLevel | None = None
    primary_goal: str | None = Field(None, max_length=200)
    secondary_goals: list[str] | None = None
    target_weight: float | None = Field(None, ge=30, le=500)
    target_date: datetime | None = None
    dietary_preferences: list[str] | None = None
    food_allergies: list[str] | None = None
    food_preferences: dict | None = None
    health_conditions: list[str] | None = None
    medications: list[str] | None = None
    sleep_goal_hours: float | None = Field(None, ge=4, le=12)
    stress_level: int | None = Field(None, ge=1, le=10)
    energy_level: int | None = Field(None, ge=1, le=10)
    privacy_level: PrivacyLevel | None = None
    share_progress: bool | None = None
    share_meals: bool | None = None
    share_workouts: bool | None = None
    measurement_system: Literal["metric", "imperial"] | None = None
    notifications_enabled: bool | None = None


class MealPlanOptions(BaseModel):
    days: int = Field(7, ge=1, le=28)
    calories_per_day: int | None = Field(None, ge=800, le=6000)
    meals_per_day: int = Field(3, ge=1, le=6)
    include_snacks: bool = False
    include_grocery_list: bool = True


class WorkoutPlanOptions(BaseModel):
    weeks: int = Field(4, ge=1, le=12)
    days_per_week: int = Field(3, ge=1, le=7)
    difficulty: Literal["Beginner", "Intermediate", "Advanced"] = "Beginner"
    focus_areas: list[str] = Field(default_factory=list)
    duration_minutes: int | None = Field(None, ge=10, le=180)


class RecommendationOptions(BaseModel):
    include_nutrition: bool = True
    include_exercise: bool = True
    include_sleep: bool = True
    include_stress_management: bool = True
    include_hydration: bool = True


class AssistantMessage(BaseModel):
    message: str = Field(min_length=1, max_length=1000)
    include_profile_context: bool = True


class HealthLogCreate(BaseModel):
    date: datetime | None = None
    weight: float | None = Field(None, ge=30, le=500)
    body_fat_percentage: float | None = Field(None, ge=0, le=100)
    waist_circumference: float | None = Field(None, gt=0)
    hip_circumference: float | None = Field(None, gt=0)
    chest_circumference: float | None = Field(None, gt=0)
    energy_level: int | None = Field(None, ge=1, le=10)
    mood_rating: int | None = Field(None, ge=1, le=10)
    stress_level: int | None = Field(None, ge=1, le=10)
    notes: str | None = Field(None, max_length=1000)
    photo_url: str | None = None


class WaterLogCreate(BaseModel):
    amount: int = Field(ge=1, le=5000)
    date: datetime | None = None


class SleepLogCreate(BaseModel):
    date: datetime
    start_time: datetime
    end_time: datetime
    quality: int | None = Field(None, ge=1, le=10)
    notes: str | None = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
@router.get("/profile")
def get_profile(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return {"profile": better_me_service.get_profile(session, user_id)}


@router.put("/profile")
def update_profile(
    body: HealthProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    # New profiles start PRIVATE via the column default.
    result = better_me_service.update_profile(session, user_id, body.model_dump(exclude_none=True))
    session.commit()
    return result


# ---------------------------------------------------------------------------
# AI generators
# ---------------------------------------------------------------------------
@router.post("/meal-plan")
def generate_meal_plan(
    body: MealPlanOptions,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = better_me_service.generate_meal_plan(session, model, user_id, body.model_dump())
    session.commit()
    return result


@router.post("/workout-plan")
def generate_workout_plan(
    body: WorkoutPlanOptions,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = better_me_service.generate_workout_plan(session, model, user_id, body.model_dump())
    session.commit()
    return result


@router.post("/recommendations")
def generate_recommendations(
    body: RecommendationOptions,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = better_me_service.generate_recommendations(session, model, user_id, body.model_dump())
    session.commit()
    return result


@router.post("/assistant")
def chat_with_assistant(
    body: AssistantMessage,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    model: ContentModel = Depends(get_content_model),
):
    result = better_me_service.chat_with_assistant(
        session, model, user_id, body.message, body.include_profile_context
    )
    session.commit()
    return result


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------
@router.post("/health-logs", status_code=201)
def add_health_log(
    body: HealthLogCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = better_me_service.add_health_log(session, user_id, body.model_dump(exclude_none=True))
    session.commit()
    return result


@router.get("/health-logs")
def get_health_logs(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    limit: int = Query(30, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    logs = better_me_service.get_health_logs(
        session, user_id, start_date=start_date, end_date=end_date, limit=limit
    )
    return {"logs": logs}


@router.post("/water-logs", status_code=201)
def add_water_log(
    body: WaterLogCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = better_me_service.add_water_log(session, user_id, body.amount, body.date)
    session.commit()
    return result


@router.get("/water-logs/today")
def get_today_water_logs(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return better_me_service.get_today_water_logs(session, user_id)


@router.post("/sleep-logs", status_code=201)
def add_sleep_log(
    body: SleepLogCreate,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = better_me_service.add_sleep_log(
        session,
        user_id,
        log_date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        quality=body.quality,
        notes=body.notes,
    )
    session.commit()
    return result


@router.get("/sleep-logs")
def get_sleep_logs(
    days: int = Query(7, ge=1, le=90),
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return {"logs": better_me_service.get_sleep_logs(session, user_id, days)}


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------
@router.get("/meal-plan/active")
def get_active_meal_plan(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return {"meal_plan": better_me_service.get_active_meal_plan(session, user_id)}


@router.get("/workout-plan/active")
def get_active_workout_plan(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return {"workout_plan": better_me_service.get_active_workout_plan(session, user_id)}


@router.post("/workouts/{workout_id}/complete")
def complete_workout(
    workout_id: int,
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    result = better_me_service.complete_workout(session, user_id, workout_id)
    session.commit()
    return result
