"""
dapdip.services.better_me_service — Health Profile, Logs & AI Plans
=====================================================================

Everything here hangs off the caller's :class:`HealthProfile`.  The
generators (meal plan, workout plan, recommendations, assistant) are
paid AI features: they check ``ai_enabled``, charge the documented cost
through :func:`dapdip.services.ai_service.charge`, ask the content model,
and persist what it produced.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dapdip.constants import (
    COST_ASSISTANT_CHAT,
    MODEL_PRO,
    meal_plan_cost,
    recommendations_cost,
    workout_plan_cost,
)
from dapdip.database.models import (
    Exercise,
    HealthLog,
    HealthProfile,
    Meal,
    MealPlan,
    SleepLog,
    WaterLog,
    Workout,
    WorkoutPlan,
)
from dapdip.errors import BadRequestError, ForbiddenError, NotFoundError
from dapdip.services.access import as_utc, iso, utcnow
from dapdip.services.ai_service import call_model, charge, require_ai_enabled
from dapdip.services.content_model import ContentModel

logger = logging.getLogger(__name__)

PROFILE_REQUIRED = "Health profile not found. Please create a profile first."

_PROFILE_FIELDS = (
    "height", "weight", "birthdate", "gender", "activity_level", "primary_goal",
    "secondary_goals", "target_weight", "target_date", "dietary_preferences",
    "food_allergies", "food_preferences", "health_conditions", "medications",
    "sleep_goal_hours", "stress_level", "energy_level", "privacy_level",
    "share_progress", "share_meals", "share_workouts", "measurement_system",
    "notifications_enabled",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def age_from_birthdate(birthdate: datetime | date | None, today: date | None = None) -> int | None:
    if birthdate is None:
        return None
    if isinstance(birthdate, datetime):
        birthdate = birthdate.date()
    today = today or date.today()
    age = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def _profile_dict(profile: HealthProfile) -> dict[str, Any]:
    data: dict[str, Any] = {"id": profile.id, "user_id": profile.user_id}
    for name in _PROFILE_FIELDS:
        value = getattr(profile, name)
        data[name] = iso(value) if isinstance(value, datetime) else value
    data["created_at"] = iso(profile.created_at)
    data["updated_at"] = iso(profile.updated_at)
    return data


def _model_profile(profile: HealthProfile) -> dict[str, Any]:
    """The profile facts the content model plans around."""
    return {
        "height": profile.height,
        "weight": profile.weight,
        "age": age_from_birthdate(profile.birthdate),
        "gender": profile.gender,
        "activity_level": profile.activity_level,
        "primary_goal": profile.primary_goal,
        "secondary_goals": profile.secondary_goals or [],
        "target_weight": profile.target_weight,
        "dietary_preferences": profile.dietary_preferences or [],
        "food_allergies": profile.food_allergies or [],
        "food_preferences": profile.food_preferences,
        "health_conditions": profile.health_conditions or [],
        "medications": profile.medications or [],
        "sleep_goal_hours": profile.sleep_goal_hours,
    }


def _find_profile(session: Session, user_id: int) -> HealthProfile | None:
    return session.scalar(select(HealthProfile).where(HealthProfile.user_id == user_id))


def require_profile(session: Session, user_id: int) -> HealthProfile:
    profile = _find_profile(session, user_id)
    if profile is None:
        raise BadRequestError(PROFILE_REQUIRED)
    return profile


def _row_dict(row: Any, *fields: str) -> dict[str, Any]:
    data = {"id": row.id}
    for name in fields:
        value = getattr(row, name)
        data[name] = iso(value) if isinstance(value, datetime) else value
    return data


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
def get_profile(session: Session, user_id: int) -> dict[str, Any] | None:
    profile = _find_profile(session, user_id)
    return _profile_dict(profile) if profile else None


def update_profile(session: Session, user_id: int, data: dict[str, Any]) -> dict[str, Any]:
    """Create or update the caller's profile from already-validated fields."""
    profile = _find_profile(session, user_id)
    if profile is None:
        profile = HealthProfile(user_id=user_id)
        session.add(profile)
    for key, value in data.items():
        if key in _PROFILE_FIELDS:
            setattr(profile, key, value)
    session.flush()
    return _profile_dict(profile)


# ---------------------------------------------------------------------------
# AI generators
# ---------------------------------------------------------------------------
def generate_meal_plan(
    session: Session, model: ContentModel, user_id: int, options: dict[str, Any]
) -> dict[str, Any]:
    profile = require_profile(session, user_id)
    require_ai_enabled(session, user_id)
    days = options["days"]
    charge(session, user_id, meal_plan_cost(days), "better_me_meal_plan", MODEL_PRO)

    result = call_model(
        "Failed to generate meal plan", model.meal_plan, _model_profile(profile), options
    )
    summary = result["nutrition_summary"]
    now = utcnow()
    plan = MealPlan(
        profile_id=profile.id,
        name=f"{days}-Day Meal Plan",
        start_date=now,
        end_date=now + timedelta(days=days),
        total_calories=summary["average_calories"],
        protein=summary["average_protein"],
        carbs=summary["average_carbs"],
        fat=summary["average_fat"],
        generated_by_ai=True,
    )
    plan.meals = [
        Meal(
            day=day["day"],
            type=meal["type"],
            name=meal["name"],
            recipe=meal.get("recipe"),
            calories=meal.get("calories"),
            protein=meal.get("protein"),
            carbs=meal.get("carbs"),
            fat=meal.get("fat"),
            ingredients=meal.get("ingredients") or [],
        )
        for day in result["plan"]
        for meal in day["meals"]
    ]
    session.add(plan)
    session.flush()
    logger.info("Meal plan %s generated for user %s (%d days)", plan.id, user_id, days)
    return {"meal_plan": result, "saved_plan_id": plan.id}


def generate_workout_plan(
    session: Session, model: ContentModel, user_id: int, options: dict[str, Any]
) -> dict[str, Any]:
    profile = require_profile(session, user_id)
    require_ai_enabled(session, user_id)
    weeks, days_per_week = options["weeks"], options["days_per_week"]
    charge(
        session, user_id, workout_plan_cost(weeks, days_per_week),
        "better_me_workout_plan", MODEL_PRO,
    )

    result = call_model(
        "Failed to generate workout plan", model.workout_plan, _model_profile(profile), options
    )
    now = utcnow()
    plan = WorkoutPlan(
        profile_id=profile.id,
        name=f"{weeks}-Week {options['difficulty']} Plan",
        start_date=now,
        end_date=now + timedelta(weeks=weeks),
        difficulty=options["difficulty"],
        focus_area=options.get("focus_areas") or [],
        days_per_week=days_per_week,
        generated_by_ai=True,
    )
    for day in result["plan"]:
        workout = Workout(
            day=day["day"],
            name=day["name"],
            instructions=(
                f"Focus: {day['focus_area']}\nWarmup: {day['warmup']}\nCooldown: {day['cooldown']}"
            ),
            duration_minutes=day.get("duration_minutes"),
            calories_burned=day.get("calories_burned"),
        )
        workout.exercises = [
            Exercise(
                name=ex["name"],
                sets=ex.get("sets"),
                reps=ex.get("reps"),
                duration=ex.get("duration"),
                rest_seconds=ex.get("rest_seconds"),
                instructions=ex.get("instructions"),
            )
            for ex in day["exercises"]
        ]
        plan.workouts.append(workout)
    session.add(plan)
    session.flush()
    logger.info("Workout plan %s generated for user %s", plan.id, user_id)
    return {"workout_plan": result, "saved_plan_id": plan.id}


def generate_recommendations(
    session: Session, model: ContentModel, user_id: int, options: dict[str, Any]
) -> dict[str, Any]:
    profile = require_profile(session, user_id)
    require_ai_enabled(session, user_id)
    cost = recommendations_cost(
        nutrition=options.get("include_nutrition", True),
        exercise=options.get("include_exercise", True),
        sleep=options.get("include_sleep", True),
        stress=options.get("include_stress_management", True),
        hydration=options.get("include_hydration", True),
    )
    charge(session, user_id, cost, "better_me_recommendations", MODEL_PRO)
    return call_model(
        "Failed to generate recommendations",
        model.recommendations,
        _model_profile(profile),
        options,
    )


def chat_with_assistant(
    session: Session,
    model: ContentModel,
    user_id: int,
    message: str,
    include_profile_context: bool = True,
) -> dict[str, str]:
    require_ai_enabled(session, user_id)
    profile_data = None
    if include_profile_context:
        profile = _find_profile(session, user_id)
        if profile is not None:
            profile_data = _model_profile(profile)
    charge(session, user_id, COST_ASSISTANT_CHAT, "better_me_assistant", MODEL_PRO)
    reply = call_model("Failed to get assistant response", model.assistant_reply, message, profile_data)
    return {"response": reply}


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------
_HEALTH_LOG_FIELDS = (
    "date", "weight", "body_fat_percentage", "waist_circumference", "hip_circumference",
    "chest_circumference", "energy_level", "mood_rating", "stress_level", "notes", "photo_url",
)


def add_health_log(session: Session, user_id: int, data: dict[str, Any]) -> dict[str, Any]:
    profile = require_profile(session, user_id)
    log = HealthLog(profile_id=profile.id, **data)
    if log.date is None:
        log.date = utcnow()
    session.add(log)
    session.flush()
    return _row_dict(log, *_HEALTH_LOG_FIELDS)


def get_health_logs(
    session: Session,
    user_id: int,
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 30,
) -> list[dict[str, Any]]:
    profile = _find_profile(session, user_id)
    if profile is None:
        return []
    stmt = select(HealthLog).where(HealthLog.profile_id == profile.id)
    if start_date is not None:
        stmt = stmt.where(HealthLog.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(HealthLog.date <= end_date)
    rows = session.scalars(stmt.order_by(HealthLog.date.desc()).limit(limit)).all()
    return [_row_dict(r, *_HEALTH_LOG_FIELDS) for r in rows]


def add_water_log(
    session: Session, user_id: int, amount: int, when: datetime | None = None
) -> dict[str, Any]:
    if not 1 <= amount <= 5000:
        raise BadRequestError("Water amount must be between 1 and 5000 ml")
    profile = require_profile(session, user_id)
    log = WaterLog(profile_id=profile.id, amount=amount, date=when or utcnow())
    session.add(log)
    session.flush()
    return _row_dict(log, "date", "amount")


def get_today_water_logs(session: Session, user_id: int) -> dict[str, Any]:
    profile = _find_profile(session, user_id)
    if profile is None:
        return {"logs": [], "total_ml": 0}
    start = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    rows = session.scalars(
        select(WaterLog)
        .where(
            WaterLog.profile_id == profile.id,
            WaterLog.date >= start,
            WaterLog.date < start + timedelta(days=1),
        )
        .order_by(WaterLog.date.asc())
    ).all()
    return {
        "logs": [_row_dict(r, "date", "amount") for r in rows],
        "total_ml": sum(r.amount for r in rows),
    }


def add_sleep_log(
    session: Session,
    user_id: int,
    *,
    log_date: datetime,
    start_time: datetime,
    end_time: datetime,
    quality: int | None = None,
    notes: str | None = None,
) -> dict[str, Any]:
    profile = require_profile(session, user_id)
    start, end = as_utc(start_time), as_utc(end_time)
    if end <= start:
        raise BadRequestError("End time must be after start time")
    log = SleepLog(
        profile_id=profile.id,
        date=log_date,
        start_time=start,
        end_time=end,
        duration=round((end - start).total_seconds() / 3600, 2),
        quality=quality,
        notes=notes,
    )
    session.add(log)
    session.flush()
    return _row_dict(log, "date", "start_time", "end_time", "duration", "quality", "notes")


def get_sleep_logs(session: Session, user_id: int, days: int = 7) -> list[dict[str, Any]]:
    profile = _find_profile(session, user_id)
    if profile is None:
        return []
    rows = session.scalars(
        select(SleepLog)
        .where(SleepLog.profile_id == profile.id, SleepLog.date >= utcnow() - timedelta(days=days))
        .order_by(SleepLog.date.desc())
    ).all()
    return [
        _row_dict(r, "date", "start_time", "end_time", "duration", "quality", "notes")
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Active plans
# ---------------------------------------------------------------------------
def _meal_plan_dict(plan: MealPlan) -> dict[str, Any]:
    data = _row_dict(
        plan, "name", "start_date", "end_date", "total_calories", "protein", "carbs", "fat",
        "generated_by_ai",
    )
    data["meals"] = [
        _row_dict(m, "day", "type", "name", "recipe", "calories", "protein", "carbs", "fat", "ingredients")
        for m in plan.meals
    ]
    return data


def _workout_plan_dict(plan: WorkoutPlan) -> dict[str, Any]:
    data = _row_dict(
        plan, "name", "start_date", "end_date", "difficulty", "focus_area", "days_per_week",
        "generated_by_ai",
    )
    data["workouts"] = [
        {
            **_row_dict(
                w, "day", "name", "instructions", "duration_minutes", "calories_burned",
                "completed", "completed_date",
            ),
            "exercises": [
                _row_dict(e, "name", "sets", "reps", "duration", "rest_seconds", "instructions")
                for e in w.exercises
            ],
        }
        for w in plan.workouts
    ]
    return data


def get_active_meal_plan(session: Session, user_id: int) -> dict[str, Any] | None:
    profile = _find_profile(session, user_id)
    if profile is None:
        return None
    now = utcnow()
    plan = session.scalar(
        select(MealPlan)
        .where(MealPlan.profile_id == profile.id, MealPlan.start_date <= now, MealPlan.end_date >= now)
        .order_by(MealPlan.id.desc())
        .limit(1)
    )
    return _meal_plan_dict(plan) if plan else None


def get_active_workout_plan(session: Session, user_id: int) -> dict[str, Any] | None:
    profile = _find_profile(session, user_id)
    if profile is None:
        return None
    now = utcnow()
    plan = session.scalar(
        select(WorkoutPlan)
        .where(
            WorkoutPlan.profile_id == profile.id,
            WorkoutPlan.start_date <= now,
            WorkoutPlan.end_date >= now,
        )
        .order_by(WorkoutPlan.id.desc())
        .limit(1)
    )
    return _workout_plan_dict(plan) if plan else None


def complete_workout(session: Session, user_id: int, workout_id: int) -> dict[str, Any]:
    workout = session.get(Workout, workout_id)
    if workout is None:
        raise NotFoundError("Workout not found")
    profile = session.get(HealthProfile, workout.workout_plan.profile_id)
    if profile is None or profile.user_id != user_id:
        raise ForbiddenError("You don't have permission to update this workout")
    workout.completed = True
    workout.completed_date = utcnow()
    session.flush()
    return _row_dict(workout, "day", "name", "completed", "completed_date")
