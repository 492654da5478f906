"""
dapdip.constants — Shared Constants & Helpers
===============================================

Single source of truth for plan allowances, AI token costs and model
names.  Import from here instead of duplicating in services and routers.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

# ---------------------------------------------------------------------------
# AI plans: daily/monthly token allowance per plan
# ---------------------------------------------------------------------------
PLAN_TOKEN_ALLOWANCE: dict[str, int] = {
    "FREE": 150,
    "BASIC": 500,
    "PRO": 2000,
    "ENTERPRISE": 10000,
}

DEFAULT_AI_TOKENS = PLAN_TOKEN_ALLOWANCE["FREE"]


def next_token_reset(plan: str, now: datetime | None = None) -> datetime:
    """When a freshly refilled balance may next be reset.

    FREE refills daily; paid plans refill every 30 days.
    """
    now = now or datetime.now(UTC)
    if plan == "FREE":
        return now + timedelta(hours=24)
    return now + timedelta(days=30)


# ---------------------------------------------------------------------------
# Model names recorded on every ledger row
# ---------------------------------------------------------------------------
MODEL_PRO = "gemini-1.5-pro"
MODEL_FLASH = "gemini-1.5-flash"
MODEL_WHISPER = "whisper"

# ---------------------------------------------------------------------------
# Token costs (feature name -> tokens)
# ---------------------------------------------------------------------------
COST_CONTENT_ANALYSIS = 10
COST_CONTENT_SUGGESTIONS = 5
COST_SENTIMENT = 1
COST_TOPIC_EXTRACTION = 2
COST_AUDIO_TRANSCRIPTION = 10
COST_ASSISTANT_CHAT = 5


def summarization_cost(content: str) -> int:
    return max(3, math.ceil(len(content) / 1000))


def meal_plan_cost(days: int) -> int:
    return 20 + 5 * days


def workout_plan_cost(weeks: int, days_per_week: int) -> int:
    return 15 + 2 * weeks * days_per_week


def recommendations_cost(
    *,
    nutrition: bool,
    exercise: bool,
    sleep: bool,
    stress: bool,
    hydration: bool,
) -> int:
    return (
        10
        + (3 if nutrition else 0)
        + (3 if exercise else 0)
        + (2 if sleep else 0)
        + (2 if stress else 0)
        + (2 if hydration else 0)
    )


# ---------------------------------------------------------------------------
# Content lifetimes
# ---------------------------------------------------------------------------
STORY_TTL = timedelta(hours=24)
TRENDING_WINDOW = timedelta(days=7)
REEL_TRENDING_WINDOWS: dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}

REACTION_TYPES: frozenset[str] = frozenset({"LIKE", "LOVE", "HAHA", "WOW", "SAD", "ANGRY"})
