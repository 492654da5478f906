"""
dapdip.services.content_model — Pluggable Text, Audio & Health Model
======================================================================

Every AI feature talks to a :class:`ContentModel`.  The default
:class:`HeuristicContentModel` is deterministic and local: a sentiment
lexicon, keyword topics, a moderation word list, and template-driven
meal/workout/recommendation generators.  Tests swap in a
``MagicMock(spec=ContentModel)``; a hosted model can be dropped in the
same way through :func:`set_content_model`.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import date, timedelta
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-zA-Z']+")
_HASHTAG_RE = re.compile(r"#(\w+)")

MOCK_TRANSCRIPTION = (
    "This is a mock transcription of the audio message. In a real "
    "implementation, this would use an AI service to transcribe the audio "
    "content."
)
MOCK_AUDIO_TAGS = ["audio", "message", "voice", "recording"]


class ContentModel(Protocol):
    """Operations the AI-backed routers rely on."""

    def analyze_sentiment(self, text: str) -> float: ...

    def extract_topics(self, text: str) -> list[str]: ...

    def analyze_post(self, text: str) -> dict[str, Any]: ...

    def generate_suggestions(self, topic: str) -> list[dict[str, Any]]: ...

    def moderate(self, text: str) -> dict[str, Any]: ...

    def summarize(self, text: str) -> str: ...

    def transcribe(self, audio_url: str, language: str | None = None) -> str: ...

    def generate_tags(self, text: str) -> list[str]: ...

    def meal_plan(self, profile: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]: ...

    def workout_plan(self, profile: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]: ...

    def recommendations(
        self, profile: dict[str, Any], options: dict[str, Any]
    ) -> dict[str, Any]: ...

    def assistant_reply(self, message: str, profile: dict[str, Any] | None) -> str: ...


# ---------------------------------------------------------------------------
# Lexicons
# ---------------------------------------------------------------------------
_POSITIVE = {
    "good", "great", "love", "loved", "happy", "awesome", "amazing", "excellent",
    "wonderful", "fantastic", "nice", "best", "enjoy", "enjoyed", "fun", "glad",
    "beautiful", "thanks", "thank", "excited", "proud", "win", "yay", "cool",
}
_NEGATIVE = {
    "bad", "sad", "hate", "hated", "awful", "terrible", "worst", "angry", "upset",
    "boring", "poor", "horrible", "annoying", "tired", "sick", "fail", "failed",
    "cry", "lonely", "ugly", "disappointed", "broken", "lost", "pain",
}
_STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "is", "are", "was", "were", "be", "been",
    "to", "of", "in", "on", "at", "for", "with", "this", "that", "it", "its", "i",
    "you", "we", "they", "he", "she", "my", "your", "our", "their", "me", "so",
    "just", "very", "really", "have", "has", "had", "do", "does", "did", "not",
    "from", "by", "as", "about", "what", "when", "how", "all", "can", "will",
    "would", "there", "here", "today", "im", "i'm", "it's", "get", "got",
}
_MODERATION_TERMS: dict[str, set[str]] = {
    "harassment": {"idiot", "stupid", "loser", "moron"},
    "hate_speech": {"hateful", "subhuman"},
    "violence": {"kill", "murder", "attack", "shoot"},
    "self_harm": {"suicide", "selfharm"},
    "spam": {"giveaway", "crypto-bonus", "click-here"},
}
_EMOTIONS = {
    "joy": {"happy", "love", "glad", "fun", "yay", "excited", "enjoy"},
    "sadness": {"sad", "cry", "lonely", "lost", "disappointed"},
    "anger": {"angry", "hate", "annoying", "upset"},
    "gratitude": {"thanks", "thank", "grateful"},
    "pride": {"proud", "win"},
}


def _words(text: str) -> list[str]:
    return [w.lower() for w in _WORD_RE.findall(text)]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Meal / workout templates
# ---------------------------------------------------------------------------
_MEALS: dict[str, list[dict[str, Any]]] = {
    "breakfast": [
        {"name": "Overnight Oats with Berries", "ingredients": ["rolled oats", "milk", "chia seeds", "blueberries", "honey"], "veg": True, "prep": 10},
        {"name": "Spinach Egg Scramble", "ingredients": ["eggs", "spinach", "whole grain toast", "olive oil"], "veg": True, "prep": 15},
        {"name": "Greek Yogurt Parfait", "ingredients": ["greek yogurt", "granola", "strawberries", "walnuts"], "veg": True, "prep": 5},
        {"name": "Tofu Breakfast Bowl", "ingredients": ["tofu", "sweet potato", "avocado", "black beans"], "veg": True, "vegan": True, "prep": 20},
    ],
    "lunch": [
        {"name": "Grilled Chicken Quinoa Salad", "ingredients": ["chicken breast", "quinoa", "cucumber", "cherry tomatoes", "lemon"], "prep": 25},
        {"name": "Lentil Vegetable Soup", "ingredients": ["lentils", "carrots", "celery", "onion", "vegetable stock"], "veg": True, "vegan": True, "prep": 35},
        {"name": "Turkey Avocado Wrap", "ingredients": ["whole wheat tortilla", "turkey", "avocado", "lettuce"], "prep": 10},
        {"name": "Chickpea Buddha Bowl", "ingredients": ["chickpeas", "brown rice", "kale", "tahini", "carrots"], "veg": True, "vegan": True, "prep": 25},
    ],
    "dinner": [
        {"name": "Baked Salmon with Asparagus", "ingredients": ["salmon", "asparagus", "garlic", "lemon", "olive oil"], "prep": 30},
        {"name": "Vegetable Stir-Fry with Tofu", "ingredients": ["tofu", "broccoli", "bell pepper", "soy sauce", "brown rice"], "veg": True, "vegan": True, "prep": 25},
        {"name": "Lean Beef Chili", "ingredients": ["lean beef", "kidney beans", "tomatoes", "onion", "chili powder"], "prep": 40},
        {"name": "Mushroom Whole Wheat Pasta", "ingredients": ["whole wheat pasta", "mushrooms", "spinach", "parmesan"], "veg": True, "prep": 25},
    ],
    "snack": [
        {"name": "Apple with Almond Butter", "ingredients": ["apple", "almond butter"], "veg": True, "vegan": True, "prep": 2},
        {"name": "Hummus and Veggie Sticks", "ingredients": ["hummus", "carrots", "cucumber"], "veg": True, "vegan": True, "prep": 5},
        {"name": "Cottage Cheese and Pineapple", "ingredients": ["cottage cheese", "pineapple"], "veg": True, "prep": 2},
    ],
}
_MEAL_SHARE = {"breakfast": 0.25, "lunch": 0.35, "dinner": 0.3, "snack": 0.1}

_EXERCISES: dict[str, list[dict[str, Any]]] = {
    "Upper Body": [
        {"name": "Push-ups", "muscles": ["chest", "triceps", "shoulders"]},
        {"name": "Dumbbell Rows", "muscles": ["back", "biceps"]},
        {"name": "Overhead Press", "muscles": ["shoulders", "triceps"]},
        {"name": "Bicep Curls", "muscles": ["biceps"]},
    ],
    "Lower Body": [
        {"name": "Squats", "muscles": ["quads", "glutes"]},
        {"name": "Lunges", "muscles": ["quads", "glutes", "hamstrings"]},
        {"name": "Glute Bridges", "muscles": ["glutes", "hamstrings"]},
        {"name": "Calf Raises", "muscles": ["calves"]},
    ],
    "Core": [
        {"name": "Plank", "muscles": ["core"], "timed": True},
        {"name": "Bicycle Crunches", "muscles": ["abs", "obliques"]},
        {"name": "Dead Bug", "muscles": ["core"]},
    ],
    "Cardio": [
        {"name": "Jumping Jacks", "muscles": ["full body"], "timed": True},
        {"name": "Mountain Climbers", "muscles": ["core", "shoulders"], "timed": True},
        {"name": "High Knees", "muscles": ["legs"], "timed": True},
    ],
}
_DIFFICULTY = {
    "Beginner": {"sets": 2, "reps": 10, "rest": 90, "hold": 30, "burn": 6},
    "Intermediate": {"sets": 3, "reps": 12, "rest": 60, "hold": 45, "burn": 8},
    "Advanced": {"sets": 4, "reps": 15, "rest": 45, "hold": 60, "burn": 10},
}


class HeuristicContentModel:
    """Deterministic stand-in for a hosted generative model."""

    # -- text ---------------------------------------------------------------
    def analyze_sentiment(self, text: str) -> float:
        words = _words(text)
        pos = sum(1 for w in words if w in _POSITIVE)
        neg = sum(1 for w in words if w in _NEGATIVE)
        if pos + neg == 0:
            return 0.0
        return round(_clamp((pos - neg) / (pos + neg), -1.0, 1.0), 1)

    def extract_topics(self, text: str) -> list[str]:
        hashtags = [tag.lower() for tag in _HASHTAG_RE.findall(text)]
        counts = Counter(
            w for w in _words(_HASHTAG_RE.sub(" ", text))
            if len(w) > 3 and w not in _STOPWORDS
        )
        topics: list[str] = []
        for candidate in hashtags + [w for w, _ in counts.most_common()]:
            if candidate not in topics:
                topics.append(candidate)
        return topics[:5]

    def analyze_post(self, text: str) -> dict[str, Any]:
        sentiment = self.analyze_sentiment(text)
        topics = self.extract_topics(text)
        words = set(_words(text))
        emotions = [name for name, lexicon in _EMOTIONS.items() if words & lexicon]
        if sentiment > 0.2:
            tone = "positive"
        elif sentiment < -0.2:
            tone = "negative"
        else:
            tone = "neutral"

        suggestions = []
        if "?" not in text:
            suggestions.append("Ask a question to invite replies.")
        if not _HASHTAG_RE.search(text):
            suggestions.append("Add a hashtag or two so people can find this post.")
        if len(text) < 40:
            suggestions.append("Add a little more detail to give readers context.")

        return {
            "sentiment": sentiment,
            "topics": topics,
            "analysis": {
                "tone": tone,
                "emotions": emotions or ["neutral"],
                "key_themes": topics[:3],
                "engagement": "high" if abs(sentiment) >= 0.5 or "?" in text else "medium",
                "suggestions": suggestions,
            },
        }

    def generate_suggestions(self, topic: str) -> list[dict[str, Any]]:
        tag = re.sub(r"\W+", "", topic.title())
        return [
            {
                "title": f"Share your take on {topic}",
                "content": f"Here's what I've been thinking about {topic} lately. What's your view?",
                "hashtags": [f"#{tag}", "#Thoughts"],
            },
            {
                "title": f"{topic}: a quick tip",
                "content": f"One small thing that made {topic} easier for me. Try it and tell me how it goes!",
                "hashtags": [f"#{tag}", "#Tips"],
            },
            {
                "title": f"Ask the community about {topic}",
                "content": f"Curious: how did you first get into {topic}?",
                "hashtags": [f"#{tag}", "#Community"],
            },
        ]

    def moderate(self, text: str) -> dict[str, Any]:
        words = set(_words(text)) | {w.lower() for w in text.split()}
        categories = sorted(
            category for category, terms in _MODERATION_TERMS.items() if words & terms
        )
        issues = [f"Content may contain {c.replace('_', ' ')}" for c in categories]
        return {"is_safe": not categories, "issues": issues, "categories": categories}

    def summarize(self, text: str) -> str:
        sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s.strip()]
        if len(sentences) <= 2:
            return text.strip()
        return " ".join(sentences[:2])

    # -- audio --------------------------------------------------------------
    def transcribe(self, audio_url: str, language: str | None = None) -> str:
        return MOCK_TRANSCRIPTION

    def generate_tags(self, text: str) -> list[str]:
        return list(MOCK_AUDIO_TAGS)

    # -- health -------------------------------------------------------------
    def meal_plan(self, profile: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]:
        days = options["days"]
        calories = options.get("calories_per_day") or self._daily_calories(profile)
        meal_types = ["breakfast", "lunch", "dinner"][: max(1, min(options.get("meals_per_day") or 3, 3))]
        if options.get("include_snacks") or (options.get("meals_per_day") or 3) > 3:
            meal_types.append("snack")
        share_total = sum(_MEAL_SHARE[t] for t in meal_types)

        prefs = {p.lower() for p in profile.get("dietary_preferences") or []}
        allergies = [a.lower() for a in profile.get("food_allergies") or []]
        start = date.today()

        plan: list[dict[str, Any]] = []
        grocery: list[str] = []
        for day in range(1, days + 1):
            meals = []
            for meal_type in meal_types:
                template = self._pick_meal(meal_type, day, prefs, allergies)
                meal_cal = round(calories * _MEAL_SHARE[meal_type] / share_total)
                meals.append({
                    "type": meal_type,
                    "name": template["name"],
                    "recipe": "Combine " + ", ".join(template["ingredients"]) + " and serve.",
                    "calories": meal_cal,
                    "protein": round(meal_cal * 0.3 / 4),
                    "carbs": round(meal_cal * 0.4 / 4),
                    "fat": round(meal_cal * 0.3 / 9),
                    "ingredients": list(template["ingredients"]),
                    "prep_time_minutes": template["prep"],
                })
                grocery.extend(i for i in template["ingredients"] if i not in grocery)
            plan.append({
                "day": day,
                "date": (start + timedelta(days=day - 1)).isoformat(),
                "meals": meals,
                "total_calories": sum(m["calories"] for m in meals),
                "total_protein": sum(m["protein"] for m in meals),
                "total_carbs": sum(m["carbs"] for m in meals),
                "total_fat": sum(m["fat"] for m in meals),
            })

        def _avg(key: str) -> int:
            return round(sum(d[key] for d in plan) / len(plan))

        result: dict[str, Any] = {
            "plan": plan,
            "nutrition_summary": {
                "average_calories": _avg("total_calories"),
                "average_protein": _avg("total_protein"),
                "average_carbs": _avg("total_carbs"),
                "average_fat": _avg("total_fat"),
            },
            "tips": [
                "Prep ingredients for the next two days in one session.",
                "Drink a glass of water with every meal.",
            ],
        }
        if options.get("include_grocery_list", True):
            result["grocery_list"] = sorted(grocery)
        return result

    def workout_plan(self, profile: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]:
        days_per_week = options["days_per_week"]
        difficulty = options["difficulty"]
        duration = options.get("duration_minutes") or 45
        level = _DIFFICULTY[difficulty]
        focus_cycle = [f for f in (options.get("focus_areas") or []) if f in _EXERCISES] or list(_EXERCISES)
        weight = profile.get("weight") or 70

        plan = []
        for day in range(1, days_per_week + 1):
            focus = focus_cycle[(day - 1) % len(focus_cycle)]
            exercises = []
            for move in _EXERCISES[focus]:
                timed = move.get("timed", False)
                exercises.append({
                    "name": move["name"],
                    "sets": level["sets"],
                    "reps": None if timed else level["reps"],
                    "duration": level["hold"] if timed else None,
                    "rest_seconds": level["rest"],
                    "instructions": f"Keep controlled form throughout each {'interval' if timed else 'rep'}.",
                    "target_muscles": list(move["muscles"]),
                })
            plan.append({
                "day": day,
                "name": f"Day {day}: {focus}",
                "focus_area": focus,
                "warmup": "5 minutes of light cardio and dynamic stretches",
                "exercises": exercises,
                "cooldown": "5 minutes of walking and static stretches",
                "duration_minutes": duration,
                "calories_burned": round(level["burn"] * duration * weight / 70),
            })

        return {
            "plan": plan,
            "weekly_schedule": [d["name"] for d in plan],
            "progression_strategy": (
                "Add one set or 2 reps per exercise every week while form stays solid."
            ),
            "tips": [
                "Rest at least one day between sessions that train the same muscles.",
                "Log each session so progress is easy to see.",
            ],
        }

    def recommendations(self, profile: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]:
        sleep_goal = profile.get("sleep_goal_hours") or 8
        weight = profile.get("weight") or 70
        result: dict[str, Any] = {}
        if options.get("include_nutrition", True):
            result["nutrition"] = {
                "recommendations": ["Build each plate around vegetables and a lean protein."],
                "foods_to_increase": ["leafy greens", "legumes", "whole grains"],
                "foods_to_decrease": ["sugary drinks", "ultra-processed snacks"],
                "meal_timing_tips": ["Eat breakfast within two hours of waking."],
            }
        if options.get("include_exercise", True):
            result["exercise"] = {
                "recommendations": ["Aim for 150 minutes of moderate activity each week."],
                "suggested_activities": ["brisk walking", "cycling", "bodyweight strength"],
                "frequency_and_intensity_tips": ["Alternate hard and easy days."],
            }
        if options.get("include_sleep", True):
            result["sleep"] = {
                "recommendations": [f"Protect a consistent {sleep_goal:g}-hour sleep window."],
                "bedtime_routine_tips": ["Dim screens 60 minutes before bed."],
                "environmental_factors": ["Keep the bedroom cool, dark and quiet."],
            }
        if options.get("include_stress_management", True):
            result["stress_management"] = {
                "recommendations": ["Schedule short breaks through the workday."],
                "techniques": ["box breathing", "journaling"],
                "daily_practices": ["A 10-minute walk outside."],
            }
        if options.get("include_hydration", True):
            result["hydration"] = {
                "recommendations": ["Carry a refillable bottle."],
                "optimal_intake": f"{round(weight * 33)} ml per day",
                "hydration_schedule": ["On waking", "With each meal", "Before and after exercise"],
            }
        result["general_tips"] = ["Small daily habits beat occasional big efforts."]
        return result

    def assistant_reply(self, message: str, profile: dict[str, Any] | None) -> str:
        topic = next(iter(self.extract_topics(message)), "your health")
        reply = f"Good question about {topic}. "
        if profile and profile.get("primary_goal"):
            reply += f"Keeping your goal of {profile['primary_goal']} in mind, "
        reply += (
            "start with one small, sustainable change this week and track how you feel. "
            "For specific medical concerns, please consult a healthcare professional."
        )
        return reply

    # -- helpers ------------------------------------------------------------
    @staticmethod
    def _daily_calories(profile: dict[str, Any]) -> int:
        weight = profile.get("weight") or 70
        height = profile.get("height") or 170
        age = profile.get("age") or 30
        bmr = 10 * weight + 6.25 * height - 5 * age
        factors = {
            "SEDENTARY": 1.2, "LIGHT": 1.375, "MODERATE": 1.55,
            "ACTIVE": 1.725, "VERY_ACTIVE": 1.9,
        }
        return int(round(bmr * factors.get(profile.get("activity_level") or "", 1.4), -1))

    @staticmethod
    def _pick_meal(
        meal_type: str, day: int, prefs: set[str], allergies: list[str]
    ) -> dict[str, Any]:
        options = _MEALS[meal_type]
        if "vegan" in prefs:
            options = [m for m in options if m.get("vegan")] or options
        elif "vegetarian" in prefs:
            options = [m for m in options if m.get("veg")] or options
        if allergies:
            safe = [
                m for m in options
                if not any(a in ing for a in allergies for ing in m["ingredients"])
            ]
            options = safe or options
        return options[(day - 1) % len(options)]


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------
_model: ContentModel = HeuristicContentModel()


def get_content_model() -> ContentModel:
    return _model


def set_content_model(model: ContentModel) -> None:
    global _model
    _model = model
    logger.info("Content model set to %s", type(model).__name__)
