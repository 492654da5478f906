"""Initial DapDip schema

Revision ID: 7c2d4e9a1b3f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2d4e9a1b3f"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONB = postgresql.JSONB(astext_type=sa.Text())

# Creation order; downgrade drops in reverse.
TABLES = (
    "users", "user_settings", "ai_token_usage", "follows",
    "topics", "posts", "post_topics", "post_reactions", "post_views", "saved_posts",
    "comments", "comment_reactions",
    "reels", "reel_tags", "reel_likes", "reel_views", "saved_reels", "reel_comments",
    "stories", "story_topics", "story_views", "story_reactions", "story_responses",
    "story_polls", "story_questions", "story_question_answers",
    "story_sliders", "story_slider_responses", "story_highlights", "story_highlight_items",
    "messages", "notifications", "audio_messages",
    "health_profiles", "health_logs", "water_logs", "sleep_logs",
    "meal_plans", "meals", "workout_plans", "workouts", "exercises",
    "oauth_states", "rate_limit_events",
)


def _pk() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


def _fk(name: str, target: str, *, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name, sa.Integer(), sa.ForeignKey(f"{target}.id", ondelete=ondelete), nullable=nullable
    )


def _ts(name: str = "created_at", *, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable
    )


def _when(name: str, *, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _privacy(default: str = "PUBLIC") -> sa.Column:
    return sa.Column("privacy_level", sa.String(10), nullable=False, server_default=default)


def upgrade() -> None:
    """Create every DapDip table."""
    # -- accounts ------------------------------------------------------------
    op.create_table(
        "users",
        _pk(),
        sa.Column("name", sa.String(50)),
        sa.Column("username", sa.String(30), unique=True),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("password_hash", sa.String(255)),
        sa.Column("image", sa.Text()),
        sa.Column("cover_image", sa.Text()),
        sa.Column("bio", sa.Text()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _when("last_active"),
        _ts(),
        _ts("updated_at"),
    )
    op.create_table(
        "user_settings",
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("theme", sa.String(10), nullable=False, server_default="system"),
        sa.Column("primary_color", sa.String(20)),
        sa.Column("secondary_color", sa.String(20)),
        sa.Column("font_preference", sa.String(50)),
        sa.Column("animations_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        _privacy(),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("push_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("message_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("ai_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("ai_plan", sa.String(12), nullable=False, server_default="FREE"),
        sa.Column("ai_tokens_remaining", sa.Integer(), nullable=False, server_default="150"),
        _when("ai_tokens_reset"),
    )
    op.create_table(
        "ai_token_usage",
        _pk(),
        _fk("user_id", "users"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("feature", sa.String(64), nullable=False),
        sa.Column("model_name", sa.String(64), nullable=False),
        _ts(),
    )
    op.create_index("ix_ai_token_usage_user_ts", "ai_token_usage", ["user_id", "created_at"])

    op.create_table(
        "follows",
        _pk(),
        _fk("follower_id", "users"),
        _fk("following_id", "users"),
        sa.Column("status", sa.String(10), nullable=False, server_default="PENDING"),
        _ts(),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
    )
    op.create_index("ix_follows_following_status", "follows", ["following_id", "status"])

    # -- posts & comments ----------------------------------------------------
    op.create_table(
        "topics",
        _pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
    )
    op.create_table(
        "posts",
        _pk(),
        _fk("author_id", "users"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("media_urls", JSONB),
        sa.Column("media_types", JSONB),
        sa.Column("media_titles", JSONB),
        _privacy(),
        _fk("parent_id", "posts", nullable=True),
        sa.Column("sentiment", sa.Float()),
        sa.Column("ai_analysis", JSONB),
        _ts(),
        _ts("updated_at"),
    )
    op.create_index("ix_posts_author", "posts", ["author_id"])
    op.create_index("ix_posts_privacy_created", "posts", ["privacy_level", "created_at"])

    op.create_table(
        "post_topics",
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column(
            "topic_id", sa.Integer(), sa.ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "post_reactions",
        _pk(),
        _fk("post_id", "posts"),
        _fk("user_id", "users"),
        sa.Column("type", sa.String(10), nullable=False),
        _ts(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_reactions_post_user"),
    )
    op.create_table(
        "post_views",
        _pk(),
        _fk("post_id", "posts"),
        _fk("user_id", "users"),
        _ts(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_views_post_user"),
    )
    op.create_table(
        "saved_posts",
        _pk(),
        _fk("post_id", "posts"),
        _fk("user_id", "users"),
        _ts(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_saved_posts_post_user"),
    )
    op.create_table(
        "comments",
        _pk(),
        sa.Column("content", sa.Text()),
        _fk("post_id", "posts"),
        _fk("author_id", "users"),
        _fk("parent_id", "comments", nullable=True),
        _ts(),
        _ts("updated_at"),
    )
    op.create_index("ix_comments_post_parent", "comments", ["post_id", "parent_id"])
    op.create_table(
        "comment_reactions",
        _pk(),
        _fk("comment_id", "comments"),
        _fk("user_id", "users"),
        sa.Column("type", sa.String(10), nullable=False),
        sa.UniqueConstraint("comment_id", "user_id", name="uq_comment_reactions_comment_user"),
    )

    # -- reels ---------------------------------------------------------------
    op.create_table(
        "reels",
        _pk(),
        _fk("author_id", "users"),
        sa.Column("video_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("aspect_ratio", sa.Float(), nullable=False, server_default="0.5625"),
        sa.Column("audio_id", sa.String(100)),
        sa.Column("audio_name", sa.String(200)),
        sa.Column("audio_artist", sa.String(200)),
        _privacy(),
        _ts(),
        _ts("updated_at"),
    )
    op.create_index("ix_reels_author", "reels", ["author_id"])
    op.create_index("ix_reels_privacy_created", "reels", ["privacy_level", "created_at"])
    op.create_table(
        "reel_tags",
        sa.Column(
            "reel_id", sa.Integer(), sa.ForeignKey("reels.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("tag", sa.String(100), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_reel_tags_tag", "reel_tags", ["tag"])
    op.create_table(
        "reel_likes",
        _pk(),
        _fk("reel_id", "reels"),
        _fk("user_id", "users"),
        _ts(),
        sa.UniqueConstraint("reel_id", "user_id", name="uq_reel_likes_reel_user"),
    )
    op.create_table(
        "reel_views",
        _pk(),
        _fk("reel_id", "reels"),
        _fk("user_id", "users"),
        sa.Column("watch_duration", sa.Float(), nullable=False, server_default="0"),
        sa.Column("watch_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_view", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts(),
        sa.UniqueConstraint("reel_id", "user_id", name="uq_reel_views_reel_user"),
    )
    op.create_table(
        "saved_reels",
        _pk(),
        _fk("reel_id", "reels"),
        _fk("user_id", "users"),
        _ts(),
        sa.UniqueConstraint("reel_id", "user_id", name="uq_saved_reels_reel_user"),
    )
    op.create_table(
        "reel_comments",
        _pk(),
        _fk("reel_id", "reels"),
        _fk("author_id", "users"),
        sa.Column("content", sa.Text()),
        _fk("parent_id", "reel_comments", nullable=True),
        _ts(),
    )
    op.create_index("ix_reel_comments_reel_parent", "reel_comments", ["reel_id", "parent_id"])

    # -- stories -------------------------------------------------------------
    op.create_table(
        "stories",
        _pk(),
        _fk("author_id", "users"),
        sa.Column("media_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text()),
        sa.Column("media_type", sa.String(10), nullable=False),
        sa.Column("duration", sa.Float()),
        sa.Column("caption", sa.Text()),
        sa.Column("location", sa.String(100)),
        sa.Column("background_color", sa.String(10)),
        sa.Column("text_overlays", JSONB),
        sa.Column("draw_elements", JSONB),
        sa.Column("stickers", JSONB),
        sa.Column("links", JSONB),
        sa.Column("filter", sa.String(50)),
        sa.Column("music_track_url", sa.Text()),
        sa.Column("music_artist", sa.String(100)),
        sa.Column("music_title", sa.String(100)),
        sa.Column("allow_responses", sa.Boolean(), nullable=False, server_default=sa.true()),
        _privacy(),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        _when("expires_at", nullable=False),
        _ts(),
    )
    op.create_index("ix_stories_author_expires", "stories", ["author_id", "expires_at"])
    op.create_table(
        "story_topics",
        sa.Column(
            "story_id", sa.Integer(), sa.ForeignKey("stories.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column(
            "topic_id", sa.Integer(), sa.ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "story_views",
        _pk(),
        _fk("story_id", "stories"),
        _fk("user_id", "users"),
        sa.Column("view_duration", sa.Float()),
        _ts(),
        sa.UniqueConstraint("story_id", "user_id", name="uq_story_views_story_user"),
    )
    op.create_table(
        "story_reactions",
        _pk(),
        _fk("story_id", "stories"),
        _fk("user_id", "users"),
        sa.Column("emoji", sa.String(10), nullable=False),
        sa.UniqueConstraint("story_id", "user_id", name="uq_story_reactions_story_user"),
    )
    op.create_table(
        "story_responses",
        _pk(),
        _fk("story_id", "stories"),
        _fk("user_id", "users"),
        sa.Column("content", sa.Text()),
        _ts(),
    )
    op.create_table(
        "story_polls",
        _pk(),
        _fk("story_id", "stories"),
        sa.Column("question", sa.String(200), nullable=False),
        sa.Column("options", JSONB, nullable=False),
        sa.Column("votes", JSONB, nullable=False),
    )
    op.create_table(
        "story_questions",
        _pk(),
        _fk("story_id", "stories"),
        sa.Column("question", sa.String(200), nullable=False),
    )
    op.create_table(
        "story_question_answers",
        _pk(),
        _fk("question_id", "story_questions"),
        _fk("user_id", "users"),
        sa.Column("answer", sa.Text(), nullable=False),
        _ts(),
    )
    op.create_table(
        "story_sliders",
        _pk(),
        _fk("story_id", "stories"),
        sa.Column("question", sa.String(200), nullable=False),
        sa.Column("emoji", sa.String(10)),
    )
    op.create_table(
        "story_slider_responses",
        _pk(),
        _fk("slider_id", "story_sliders"),
        _fk("user_id", "users"),
        sa.Column("value", sa.Float(), nullable=False),
    )
    op.create_table(
        "story_highlights",
        _pk(),
        _fk("user_id", "users"),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("cover_image_url", sa.Text()),
        _ts(),
    )
    op.create_table(
        "story_highlight_items",
        _pk(),
        _fk("highlight_id", "story_highlights"),
        _fk("story_id", "stories"),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("highlight_id", "story_id", name="uq_highlight_items_highlight_story"),
    )

    # -- messaging -----------------------------------------------------------
    op.create_table(
        "messages",
        _pk(),
        _fk("sender_id", "users"),
        _fk("receiver_id", "users"),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("media_url", sa.Text()),
        sa.Column("media_type", sa.String(20)),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _when("read_at"),
        _ts(),
    )
    op.create_index("ix_messages_pair", "messages", ["sender_id", "receiver_id"])
    op.create_index("ix_messages_receiver_read", "messages", ["receiver_id", "read"])
    op.create_table(
        "notifications",
        _pk(),
        _fk("user_id", "users"),
        _fk("sender_id", "users", nullable=True, ondelete="SET NULL"),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("link", sa.String(255)),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts(),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    op.create_table(
        "audio_messages",
        _pk(),
        _fk("user_id", "users"),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("waveform", JSONB, nullable=False),
        sa.Column("transcription", sa.Text()),
        sa.Column("sentiment", sa.Float()),
        sa.Column("ai_tags", JSONB),
        sa.Column("language_code", sa.String(10)),
        sa.Column("processing_status", sa.String(12), nullable=False, server_default="PENDING"),
        _fk("message_id", "messages", nullable=True, ondelete="SET NULL"),
        _fk("comment_id", "comments", nullable=True, ondelete="SET NULL"),
        _fk("reel_comment_id", "reel_comments", nullable=True, ondelete="SET NULL"),
        _fk("story_response_id", "story_responses", nullable=True, ondelete="SET NULL"),
        _fk("post_id", "posts", nullable=True, ondelete="SET NULL"),
        _fk("reel_id", "reels", nullable=True, ondelete="SET NULL"),
        _fk("story_id", "stories", nullable=True, ondelete="SET NULL"),
        _ts(),
    )

    # -- better me -----------------------------------------------------------
    op.create_table(
        "health_profiles",
        _pk(),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False, unique=True,
        ),
        sa.Column("height", sa.Float()),
        sa.Column("weight", sa.Float()),
        _when("birthdate"),
        sa.Column("gender", sa.String(30)),
        sa.Column("activity_level", sa.String(20)),
        sa.Column("primary_goal", sa.String(200)),
        sa.Column("secondary_goals", JSONB),
        sa.Column("target_weight", sa.Float()),
        _when("target_date"),
        sa.Column("dietary_preferences", JSONB),
        sa.Column("food_allergies", JSONB),
        sa.Column("food_preferences", JSONB),
        sa.Column("health_conditions", JSONB),
        sa.Column("medications", JSONB),
        sa.Column("sleep_goal_hours", sa.Float()),
        sa.Column("stress_level", sa.Integer()),
        sa.Column("energy_level", sa.Integer()),
        _privacy("PRIVATE"),
        sa.Column("share_progress", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("share_meals", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("share_workouts", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("measurement_system", sa.String(10), nullable=False, server_default="metric"),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts(),
        _ts("updated_at"),
    )
    op.create_table(
        "health_logs",
        _pk(),
        _fk("profile_id", "health_profiles"),
        _when("date", nullable=False),
        sa.Column("weight", sa.Float()),
        sa.Column("body_fat_percentage", sa.Float()),
        sa.Column("waist_circumference", sa.Float()),
        sa.Column("hip_circumference", sa.Float()),
        sa.Column("chest_circumference", sa.Float()),
        sa.Column("energy_level", sa.Integer()),
        sa.Column("mood_rating", sa.Integer()),
        sa.Column("stress_level", sa.Integer()),
        sa.Column("notes", sa.Text()),
        sa.Column("photo_url", sa.Text()),
    )
    op.create_index("ix_health_logs_profile_date", "health_logs", ["profile_id", "date"])
    op.create_table(
        "water_logs",
        _pk(),
        _fk("profile_id", "health_profiles"),
        _when("date", nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
    )
    op.create_index("ix_water_logs_profile_date", "water_logs", ["profile_id", "date"])
    op.create_table(
        "sleep_logs",
        _pk(),
        _fk("profile_id", "health_profiles"),
        _when("date", nullable=False),
        _when("start_time", nullable=False),
        _when("end_time", nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("quality", sa.Integer()),
        sa.Column("notes", sa.Text()),
    )
    op.create_index("ix_sleep_logs_profile_date", "sleep_logs", ["profile_id", "date"])

    op.create_table(
        "meal_plans",
        _pk(),
        _fk("profile_id", "health_profiles"),
        sa.Column("name", sa.String(100), nullable=False),
        _when("start_date", nullable=False),
        _when("end_date", nullable=False),
        sa.Column("total_calories", sa.Float()),
        sa.Column("protein", sa.Float()),
        sa.Column("carbs", sa.Float()),
        sa.Column("fat", sa.Float()),
        sa.Column("generated_by_ai", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts(),
    )
    op.create_table(
        "meals",
        _pk(),
        _fk("meal_plan_id", "meal_plans"),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("recipe", sa.Text()),
        sa.Column("calories", sa.Float()),
        sa.Column("protein", sa.Float()),
        sa.Column("carbs", sa.Float()),
        sa.Column("fat", sa.Float()),
        sa.Column("ingredients", JSONB),
    )
    op.create_table(
        "workout_plans",
        _pk(),
        _fk("profile_id", "health_profiles"),
        sa.Column("name", sa.String(100), nullable=False),
        _when("start_date", nullable=False),
        _when("end_date", nullable=False),
        sa.Column("difficulty", sa.String(20), nullable=False),
        sa.Column("focus_area", JSONB),
        sa.Column("days_per_week", sa.Integer(), nullable=False),
        sa.Column("generated_by_ai", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts(),
    )
    op.create_table(
        "workouts",
        _pk(),
        _fk("workout_plan_id", "workout_plans"),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("instructions", sa.Text()),
        sa.Column("duration_minutes", sa.Integer()),
        sa.Column("calories_burned", sa.Integer()),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _when("completed_date"),
    )
    op.create_table(
        "exercises",
        _pk(),
        _fk("workout_id", "workouts"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("sets", sa.Integer()),
        sa.Column("reps", sa.Integer()),
        sa.Column("duration", sa.Integer()),
        sa.Column("rest_seconds", sa.Integer()),
        sa.Column("instructions", sa.Text()),
    )

    # -- infrastructure ------------------------------------------------------
    op.create_table(
        "oauth_states",
        sa.Column("state", sa.String(128), primary_key=True),
        _ts(nullable=False),
    )
    op.create_index("ix_oauth_states_created_at", "oauth_states", ["created_at"])

    op.create_table(
        "rate_limit_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(128), nullable=False),
        _ts("timestamp", nullable=False),
    )
    op.create_index(
        "ix_rate_limit_key_ts",
        "rate_limit_events",
        ["key", sa.text("timestamp DESC")],
    )
    op.create_index("ix_rate_limit_ts", "rate_limit_events", ["timestamp"])


def downgrade() -> None:
    """Drop every DapDip table (indexes go with them)."""
    for table in reversed(TABLES):
        op.drop_table(table)
