"""
dapdip.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- users, user_settings, ai_token_usage      — accounts, preferences, AI ledger
- follows                                   — social graph with status
- posts, topics, post_topics                — feed content
- post_reactions, post_views, saved_posts   — per-user post interactions
- comments, comment_reactions               — threaded post comments
- reels, reel_tags, reel_likes, reel_views, saved_reels, reel_comments
- stories, story_topics, story_views, story_reactions, story_responses
- story_polls, story_questions, story_question_answers
- story_sliders, story_slider_responses
- story_highlights, story_highlight_items
- messages, notifications
- audio_messages                            — voice notes + transcription
- health_profiles, health_logs, water_logs, sleep_logs
- meal_plans, meals, workout_plans, workouts, exercises
- oauth_states, rate_limit_events           — durable infrastructure state

All primary keys are autoincrement integers, so ``id DESC`` doubles as
"newest first" and a cursor is simply the id of the next row.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all DapDip ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PrivacyLevel(enum.StrEnum):
    PUBLIC = "PUBLIC"
    FRIENDS = "FRIENDS"
    PRIVATE = "PRIVATE"


class FollowStatus(enum.StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    BLOCKED = "BLOCKED"


class ReactionType(enum.StrEnum):
    LIKE = "LIKE"
    LOVE = "LOVE"
    HAHA = "HAHA"
    WOW = "WOW"
    SAD = "SAD"
    ANGRY = "ANGRY"


class NotificationType(enum.StrEnum):
    """Kinds of notification rows written by the routers."""
    COMMENT = "COMMENT"
    FOLLOW = "FOLLOW"
    MESSAGE = "MESSAGE"
    REEL_LIKE = "REEL_LIKE"
    REEL_COMMENT = "REEL_COMMENT"
    STORY_VIEW = "STORY_VIEW"
    STORY_REACTION = "STORY_REACTION"


class AIPlan(enum.StrEnum):
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class StoryMediaType(enum.StrEnum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    TEXT = "TEXT"


class AudioProcessingStatus(enum.StrEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ActivityLevel(enum.StrEnum):
    SEDENTARY = "SEDENTARY"
    LIGHT = "LIGHT"
    MODERATE = "MODERATE"
    ACTIVE = "ACTIVE"
    VERY_ACTIVE = "VERY_ACTIVE"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(50), default=None)
    username: Mapped[str | None] = mapped_column(String(30), unique=True, default=None)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    password_hash: Mapped[str | None] = mapped_column(String(255), default=None)
    image: Mapped[str | None] = mapped_column(Text, default=None)
    cover_image: Mapped[str | None] = mapped_column(Text, default=None)
    bio: Mapped[str | None] = mapped_column(Text, default=None)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    settings: Mapped[UserSettings | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    health_profile: Mapped[HealthProfile | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


class UserSettings(Base):
    __tablename__ = "user_settings"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    theme: Mapped[str] = mapped_column(String(10), default="system")
    primary_color: Mapped[str | None] = mapped_column(String(20), default=None)
    secondary_color: Mapped[str | None] = mapped_column(String(20), default=None)
    font_preference: Mapped[str | None] = mapped_column(String(50), default=None)
    animations_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    language: Mapped[str] = mapped_column(String(10), default="en")
    privacy_level: Mapped[str] = mapped_column(String(10), default=PrivacyLevel.PUBLIC)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    push_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    message_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    ai_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    ai_plan: Mapped[str] = mapped_column(String(12), default=AIPlan.FREE)
    ai_tokens_remaining: Mapped[int] = mapped_column(Integer, default=150)
    ai_tokens_reset: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    user: Mapped[User] = relationship(back_populates="settings")

    def __repr__(self) -> str:
        return f"<UserSettings user={self.user_id} plan={self.ai_plan} tokens={self.ai_tokens_remaining}>"


class AITokenUsage(Base):
    """Append-only ledger of AI token charges."""
    __tablename__ = "ai_token_usage"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    feature: Mapped[str] = mapped_column(String(64), nullable=False)
    model_name: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_ai_token_usage_user_ts", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AITokenUsage user={self.user_id} amount={self.amount} feature={self.feature!r}>"


# ---------------------------------------------------------------------------
# Follows: one row per directed edge
# ---------------------------------------------------------------------------
class Follow(Base):
    __tablename__ = "follows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    follower_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    following_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(10), default=FollowStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    follower: Mapped[User] = relationship(foreign_keys=[follower_id])
    following: Mapped[User] = relationship(foreign_keys=[following_id])

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        Index("ix_follows_following_status", "following_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Follow {self.follower_id}->{self.following_id} {self.status}>"


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
class Topic(Base):
    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Topic id={self.id} name={self.name!r}>"


class PostTopic(Base):
    __tablename__ = "post_topics"

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    media_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    media_types: Mapped[list | None] = mapped_column(JSONB, default=list)
    media_titles: Mapped[list | None] = mapped_column(JSONB, default=list)
    privacy_level: Mapped[str] = mapped_column(String(10), default=PrivacyLevel.PUBLIC)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), default=None
    )
    sentiment: Mapped[float | None] = mapped_column(Float, default=None)
    ai_analysis: Mapped[dict | None] = mapped_column(JSONB, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author: Mapped[User] = relationship()
    topics: Mapped[list[Topic]] = relationship(secondary="post_topics")

    __table_args__ = (
        Index("ix_posts_author", "author_id"),
        Index("ix_posts_privacy_created", "privacy_level", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} author={self.author_id}>"


class PostReaction(Base):
    __tablename__ = "post_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_reactions_post_user"),
    )


class PostView(Base):
    __tablename__ = "post_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_views_post_user"),
    )


class SavedPost(Base):
    __tablename__ = "saved_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_saved_posts_post_user"),
    )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str | None] = mapped_column(Text, default=None)  # None for audio comments
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author: Mapped[User] = relationship()

    __table_args__ = (
        Index("ix_comments_post_parent", "post_id", "parent_id"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id} post={self.post_id} parent={self.parent_id}>"


class CommentReaction(Base):
    __tablename__ = "comment_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_reactions_comment_user"),
    )


# ---------------------------------------------------------------------------
# Reels
# ---------------------------------------------------------------------------
class Reel(Base):
    __tablename__ = "reels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    video_url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    duration: Mapped[float] = mapped_column(Float, nullable=False)
    aspect_ratio: Mapped[float] = mapped_column(Float, default=0.5625)
    audio_id: Mapped[str | None] = mapped_column(String(100), default=None)
    audio_name: Mapped[str | None] = mapped_column(String(200), default=None)
    audio_artist: Mapped[str | None] = mapped_column(String(200), default=None)
    privacy_level: Mapped[str] = mapped_column(String(10), default=PrivacyLevel.PUBLIC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author: Mapped[User] = relationship()
    tags: Mapped[list[ReelTag]] = relationship(
        back_populates="reel", cascade="all, delete-orphan", order_by="ReelTag.position"
    )

    __table_args__ = (
        Index("ix_reels_author", "author_id"),
        Index("ix_reels_privacy_created", "privacy_level", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Reel id={self.id} author={self.author_id}>"


class ReelTag(Base):
    __tablename__ = "reel_tags"

    reel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reels.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(100), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    reel: Mapped[Reel] = relationship(back_populates="tags")

    __table_args__ = (
        Index("ix_reel_tags_tag", "tag"),
    )


class ReelLike(Base):
    __tablename__ = "reel_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reels.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("reel_id", "user_id", name="uq_reel_likes_reel_user"),
    )


class ReelView(Base):
    __tablename__ = "reel_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reels.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    watch_duration: Mapped[float] = mapped_column(Float, default=0.0)
    watch_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    completed_view: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("reel_id", "user_id", name="uq_reel_views_reel_user"),
    )


class SavedReel(Base):
    __tablename__ = "saved_reels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reels.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("reel_id", "user_id", name="uq_saved_reels_reel_user"),
    )


class ReelComment(Base):
    __tablename__ = "reel_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reels.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str | None] = mapped_column(Text, default=None)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("reel_comments.id", ondelete="CASCADE"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    author: Mapped[User] = relationship()

    __table_args__ = (
        Index("ix_reel_comments_reel_parent", "reel_id", "parent_id"),
    )


# ---------------------------------------------------------------------------
# Stories: ephemeral media that expires 24h after creation
# ---------------------------------------------------------------------------
class Story(Base):
    __tablename__ = "stories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    media_url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, default=None)
    media_type: Mapped[str] = mapped_column(String(10), nullable=False)
    duration: Mapped[float | None] = mapped_column(Float, default=None)
    caption: Mapped[str | None] = mapped_column(Text, default=None)
    location: Mapped[str | None] = mapped_column(String(100), default=None)
    background_color: Mapped[str | None] = mapped_column(String(10), default=None)
    text_overlays: Mapped[list | None] = mapped_column(JSONB, default=None)
    draw_elements: Mapped[list | None] = mapped_column(JSONB, default=None)
    stickers: Mapped[list | None] = mapped_column(JSONB, default=None)
    links: Mapped[list | None] = mapped_column(JSONB, default=None)
    filter: Mapped[str | None] = mapped_column(String(50), default=None)
    music_track_url: Mapped[str | None] = mapped_column(Text, default=None)
    music_artist: Mapped[str | None] = mapped_column(String(100), default=None)
    music_title: Mapped[str | None] = mapped_column(String(100), default=None)
    allow_responses: Mapped[bool] = mapped_column(Boolean, default=True)
    privacy_level: Mapped[str] = mapped_column(String(10), default=PrivacyLevel.PUBLIC)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    author: Mapped[User] = relationship()
    topics: Mapped[list[Topic]] = relationship(secondary="story_topics")
    polls: Mapped[list[StoryPoll]] = relationship(cascade="all, delete-orphan")
    questions: Mapped[list[StoryQuestion]] = relationship(cascade="all, delete-orphan")
    sliders: Mapped[list[StorySlider]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_stories_author_expires", "author_id", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Story id={self.id} author={self.author_id} expires={self.expires_at}>"


class StoryTopic(Base):
    __tablename__ = "story_topics"

    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), primary_key=True
    )
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )


class StoryView(Base):
    __tablename__ = "story_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    view_duration: Mapped[float | None] = mapped_column(Float, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("story_id", "user_id", name="uq_story_views_story_user"),
    )


class StoryReaction(Base):
    __tablename__ = "story_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    emoji: Mapped[str] = mapped_column(String(10), nullable=False)

    __table_args__ = (
        UniqueConstraint("story_id", "user_id", name="uq_story_reactions_story_user"),
    )


class StoryResponse(Base):
    __tablename__ = "story_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class StoryPoll(Base):
    """Poll attached to a story.

    ``options`` is ``[{"id": "option-0", "text": ...}, ...]`` and ``votes``
    maps option id -> list of voter user ids.
    """
    __tablename__ = "story_polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(String(200), nullable=False)
    options: Mapped[list] = mapped_column(JSONB, nullable=False)
    votes: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)


class StoryQuestion(Base):
    __tablename__ = "story_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(String(200), nullable=False)


class StoryQuestionAnswer(Base):
    __tablename__ = "story_question_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("story_questions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship()


class StorySlider(Base):
    __tablename__ = "story_sliders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(String(200), nullable=False)
    emoji: Mapped[str | None] = mapped_column(String(10), default=None)


class StorySliderResponse(Base):
    __tablename__ = "story_slider_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slider_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("story_sliders.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[float] = mapped_column(Float, nullable=False)

    user: Mapped[User] = relationship()


class StoryHighlight(Base):
    __tablename__ = "story_highlights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    cover_image_url: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    items: Mapped[list[StoryHighlightItem]] = relationship(
        back_populates="highlight",
        cascade="all, delete-orphan",
        order_by="StoryHighlightItem.order",
    )

    def __repr__(self) -> str:
        return f"<StoryHighlight id={self.id} name={self.name!r}>"


class StoryHighlightItem(Base):
    __tablename__ = "story_highlight_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    highlight_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("story_highlights.id", ondelete="CASCADE"), nullable=False
    )
    story_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, default=0)

    highlight: Mapped[StoryHighlight] = relationship(back_populates="items")
    story: Mapped[Story] = relationship()

    __table_args__ = (
        UniqueConstraint("highlight_id", "story_id", name="uq_highlight_items_highlight_story"),
    )


# ---------------------------------------------------------------------------
# Messaging & notifications
# ---------------------------------------------------------------------------
class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_url: Mapped[str | None] = mapped_column(Text, default=None)
    media_type: Mapped[str | None] = mapped_column(String(20), default=None)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sender: Mapped[User] = relationship(foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship(foreign_keys=[receiver_id])

    __table_args__ = (
        Index("ix_messages_pair", "sender_id", "receiver_id"),
        Index("ix_messages_receiver_read", "receiver_id", "read"),
    )

    def __repr__(self) -> str:
        return f"<Message id={self.id} {self.sender_id}->{self.receiver_id}>"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(255), default=None)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sender: Mapped[User | None] = relationship(foreign_keys=[sender_id])

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type}>"


# ---------------------------------------------------------------------------
# Audio messages: voice notes attached to chats, comments, reels, stories
# ---------------------------------------------------------------------------
class AudioMessage(Base):
    __tablename__ = "audio_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[float] = mapped_column(Float, nullable=False)
    waveform: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    transcription: Mapped[str | None] = mapped_column(Text, default=None)
    sentiment: Mapped[float | None] = mapped_column(Float, default=None)
    ai_tags: Mapped[list | None] = mapped_column(JSONB, default=None)
    language_code: Mapped[str | None] = mapped_column(String(10), default=None)
    processing_status: Mapped[str] = mapped_column(
        String(12), default=AudioProcessingStatus.PENDING
    )
    message_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("messages.id", ondelete="SET NULL"), default=None
    )
    comment_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="SET NULL"), default=None
    )
    reel_comment_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("reel_comments.id", ondelete="SET NULL"), default=None
    )
    story_response_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("story_responses.id", ondelete="SET NULL"), default=None
    )
    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="SET NULL"), default=None
    )
    reel_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("reels.id", ondelete="SET NULL"), default=None
    )
    story_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("stories.id", ondelete="SET NULL"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship()
    message: Mapped[Message | None] = relationship()

    def __repr__(self) -> str:
        return f"<AudioMessage id={self.id} status={self.processing_status}>"


# ---------------------------------------------------------------------------
# Better Me: health profile, logs, AI-generated plans
# ---------------------------------------------------------------------------
class HealthProfile(Base):
    __tablename__ = "health_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    height: Mapped[float | None] = mapped_column(Float, default=None)
    weight: Mapped[float | None] = mapped_column(Float, default=None)
    birthdate: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    gender: Mapped[str | None] = mapped_column(String(30), default=None)
    activity_level: Mapped[str | None] = mapped_column(String(20), default=None)
    primary_goal: Mapped[str | None] = mapped_column(String(200), default=None)
    secondary_goals: Mapped[list] = mapped_column(JSONB, default=list)
    target_weight: Mapped[float | None] = mapped_column(Float, default=None)
    target_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    dietary_preferences: Mapped[list] = mapped_column(JSONB, default=list)
    food_allergies: Mapped[list] = mapped_column(JSONB, default=list)
    food_preferences: Mapped[dict | None] = mapped_column(JSONB, default=None)
    health_conditions: Mapped[list] = mapped_column(JSONB, default=list)
    medications: Mapped[list] = mapped_column(JSONB, default=list)
    sleep_goal_hours: Mapped[float | None] = mapped_column(Float, default=None)
    stress_level: Mapped[int | None] = mapped_column(Integer, default=None)
    energy_level: Mapped[int | None] = mapped_column(Integer, default=None)
    privacy_level: Mapped[str] = mapped_column(String(10), default=PrivacyLevel.PRIVATE)
    share_progress: Mapped[bool] = mapped_column(Boolean, default=False)
    share_meals: Mapped[bool] = mapped_column(Boolean, default=False)
    share_workouts: Mapped[bool] = mapped_column(Boolean, default=False)
    measurement_system: Mapped[str] = mapped_column(String(10), default="metric")
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="health_profile")

    def __repr__(self) -> str:
        return f"<HealthProfile id={self.id} user={self.user_id}>"


class HealthLog(Base):
    __tablename__ = "health_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("health_profiles.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    weight: Mapped[float | None] = mapped_column(Float, default=None)
    body_fat_percentage: Mapped[float | None] = mapped_column(Float, default=None)
    waist_circumference: Mapped[float | None] = mapped_column(Float, default=None)
    hip_circumference: Mapped[float | None] = mapped_column(Float, default=None)
    chest_circumference: Mapped[float | None] = mapped_column(Float, default=None)
    energy_level: Mapped[int | None] = mapped_column(Integer, default=None)
    mood_rating: Mapped[int | None] = mapped_column(Integer, default=None)
    stress_level: Mapped[int | None] = mapped_column(Integer, default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    photo_url: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (
        Index("ix_health_logs_profile_date", "profile_id", "date"),
    )


class WaterLog(Base):
    __tablename__ = "water_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("health_profiles.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # millilitres

    __table_args__ = (
        Index("ix_water_logs_profile_date", "profile_id", "date"),
    )


class SleepLog(Base):
    __tablename__ = "sleep_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("health_profiles.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[float] = mapped_column(Float, nullable=False)  # hours
    quality: Mapped[int | None] = mapped_column(Integer, default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (
        Index("ix_sleep_logs_profile_date", "profile_id", "date"),
    )


class MealPlan(Base):
    __tablename__ = "meal_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("health_profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_calories: Mapped[float | None] = mapped_column(Float, default=None)
    protein: Mapped[float | None] = mapped_column(Float, default=None)
    carbs: Mapped[float | None] = mapped_column(Float, default=None)
    fat: Mapped[float | None] = mapped_column(Float, default=None)
    generated_by_ai: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    meals: Mapped[list[Meal]] = relationship(
        back_populates="meal_plan",
        cascade="all, delete-orphan",
        order_by="Meal.id",
    )


class Meal(Base):
    __tablename__ = "meals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meal_plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipe: Mapped[str | None] = mapped_column(Text, default=None)
    calories: Mapped[float | None] = mapped_column(Float, default=None)
    protein: Mapped[float | None] = mapped_column(Float, default=None)
    carbs: Mapped[float | None] = mapped_column(Float, default=None)
    fat: Mapped[float | None] = mapped_column(Float, default=None)
    ingredients: Mapped[list] = mapped_column(JSONB, default=list)

    meal_plan: Mapped[MealPlan] = relationship(back_populates="meals")


class WorkoutPlan(Base):
    __tablename__ = "workout_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("health_profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    focus_area: Mapped[list] = mapped_column(JSONB, default=list)
    days_per_week: Mapped[int] = mapped_column(Integer, nullable=False)
    generated_by_ai: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    workouts: Mapped[list[Workout]] = relationship(
        back_populates="workout_plan", cascade="all, delete-orphan", order_by="Workout.day"
    )


class Workout(Base):
    __tablename__ = "workouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workout_plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("workout_plans.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    instructions: Mapped[str | None] = mapped_column(Text, default=None)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    calories_burned: Mapped[int | None] = mapped_column(Integer, default=None)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    workout_plan: Mapped[WorkoutPlan] = relationship(back_populates="workouts")
    exercises: Mapped[list[Exercise]] = relationship(
        back_populates="workout", cascade="all, delete-orphan", order_by="Exercise.id"
    )


class Exercise(Base):
    __tablename__ = "exercises"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workout_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sets: Mapped[int | None] = mapped_column(Integer, default=None)
    reps: Mapped[int | None] = mapped_column(Integer, default=None)
    duration: Mapped[int | None] = mapped_column(Integer, default=None)  # seconds
    rest_seconds: Mapped[int | None] = mapped_column(Integer, default=None)
    instructions: Mapped[str | None] = mapped_column(Text, default=None)

    workout: Mapped[Workout] = relationship(back_populates="exercises")


# ---------------------------------------------------------------------------
# OAuthState: one-time CSRF state for the login redirect
# ---------------------------------------------------------------------------
class OAuthState(Base):
    __tablename__ = "oauth_states"

    state: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_oauth_states_created_at", "created_at"),
    )


# ---------------------------------------------------------------------------
# RateLimitEvent: durable sliding-window state, keyed "<bucket>:<user>"
# ---------------------------------------------------------------------------
class RateLimitEvent(Base):
    __tablename__ = "rate_limit_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_rate_limit_key_ts", "key", timestamp.desc()),
        Index("ix_rate_limit_ts", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<RateLimitEvent key={self.key!r} ts={self.timestamp}>"
