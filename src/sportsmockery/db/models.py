"""SQLAlchemy ORM models for the SportsMockery content database.

Content tables (posts, categories, authors, polls, hub items), fan engagement
(chat, Scout events), the X bot's bookkeeping, GM trades and the AI usage log.
The schema is the only place consistency is enforced.
"""

from __future__ import annotations

from datetime import UTC, date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC.

    SQLite hands back naive datetimes, and every stored time is UTC. Aware
    values in another zone are converted, since the driver drops tzinfo
    when binding and would compare wall-clock times.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# --- Content -------------------------------------------------------------


class CategoryRow(Base):
    __tablename__ = "sm_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wp_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    parent_wp_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    posts: Mapped[list[PostRow]] = relationship(back_populates="category")


class AuthorRow(Base):
    __tablename__ = "sm_authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wp_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(200), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    twitter: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(50), default="author")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    posts: Mapped[list[PostRow]] = relationship(back_populates="author")


class PostRow(Base):
    __tablename__ = "sm_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wp_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    slug: Mapped[str] = mapped_column(String(300), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    featured_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("sm_categories.id"), nullable=True
    )
    author_id: Mapped[int | None] = mapped_column(ForeignKey("sm_authors.id"), nullable=True)
    category_wp_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    author_wp_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    seo_title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    views: Mapped[int] = mapped_column(Integer, default=0)
    importance_score: Mapped[int] = mapped_column(Integer, default=0)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    category: Mapped[CategoryRow | None] = relationship(back_populates="posts")
    author: Mapped[AuthorRow | None] = relationship(back_populates="posts")

    __table_args__ = (
        Index("ix_sm_posts_status_published", "status", "published_at"),
        Index("ix_sm_posts_category_id", "category_id"),
    )


class HubItemRow(Base):
    """CMS-authored content card shown on a team hub page."""

    __tablename__ = "sm_hub_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    page_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    item_type: Mapped[str] = mapped_column(String(30), default="trade_rumor")
    headline: Mapped[str] = mapped_column(String(300), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="")
    source_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="published")
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    __table_args__ = (Index("ix_sm_hub_items_team_page", "team_slug", "page_slug"),)


# --- Polls ---------------------------------------------------------------


class PollRow(Base):
    __tablename__ = "sm_polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    poll_type: Mapped[str] = mapped_column(String(20), default="single")
    status: Mapped[str] = mapped_column(String(20), default="active")
    team_theme: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)
    show_results: Mapped[bool] = mapped_column(Boolean, default=True)
    show_live_results: Mapped[bool] = mapped_column(Boolean, default=True)
    is_multi_select: Mapped[bool] = mapped_column(Boolean, default=False)
    scale_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scale_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scale_labels: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    total_votes: Mapped[int] = mapped_column(Integer, default=0)
    starts_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    options: Mapped[list[PollOptionRow]] = relationship(
        back_populates="poll",
        cascade="all, delete-orphan",
        order_by="PollOptionRow.display_order",
    )


class PollOptionRow(Base):
    __tablename__ = "sm_poll_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("sm_polls.id"), nullable=False)
    option_text: Mapped[str] = mapped_column(String(300), nullable=False)
    option_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    team_tag: Mapped[str | None] = mapped_column(String(50), nullable=True)
    emoji: Mapped[str | None] = mapped_column(String(16), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)

    poll: Mapped[PollRow] = relationship(back_populates="options")


class PollVoteRow(Base):
    __tablename__ = "sm_poll_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("sm_polls.id"), nullable=False)
    option_id: Mapped[int] = mapped_column(ForeignKey("sm_poll_options.id"), nullable=False)
    voter_key: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (
        Index("ix_sm_poll_votes_poll_voter", "poll_id", "voter_key"),
        UniqueConstraint("poll_id", "voter_key", "option_id", name="uq_poll_vote_option"),
    )


class PollBallotRow(Base):
    """One row per voter per poll. The unique key is the one-ballot rule."""

    __tablename__ = "sm_poll_ballots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("sm_polls.id"), nullable=False)
    voter_key: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (UniqueConstraint("poll_id", "voter_key", name="uq_poll_ballot_voter"),)


# --- Fan engagement ------------------------------------------------------


class ScoutEventRow(Base):
    __tablename__ = "sm_scout_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    anon_id: Mapped[str] = mapped_column(String(100), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    event: Mapped[str] = mapped_column(String(50), nullable=False)
    path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    team_slug: Mapped[str | None] = mapped_column(String(100), nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class ChatUserRow(Base):
    __tablename__ = "chat_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    badge: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False)
    ban_reason: Mapped[str | None] = mapped_column(String(300), nullable=True)
    ban_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    muted_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    warnings_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class ChatMessageRow(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("chat_users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), default="text")
    gif_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reply_to_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    moderation_status: Mapped[str] = mapped_column(String(20), default="approved")
    moderation_flags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    moderation_score: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    user: Mapped[ChatUserRow] = relationship()

    __table_args__ = (Index("ix_chat_messages_room_created", "room_id", "created_at"),)


class ChatModerationLogRow(Base):
    __tablename__ = "chat_moderation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("chat_users.id"), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(300), nullable=True)
    triggered_rules: Mapped[list | None] = mapped_column(JSON, nullable=True)
    original_content: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


# --- GM ------------------------------------------------------------------


class GMTradeRow(Base):
    __tablename__ = "gm_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    chicago_team: Mapped[str] = mapped_column(String(30), nullable=False)
    sport: Mapped[str] = mapped_column(String(10), nullable=False)
    trade_partner: Mapped[str] = mapped_column(String(100), nullable=False)
    players_sent: Mapped[list] = mapped_column(JSON, default=list)
    players_received: Mapped[list] = mapped_column(JSON, default=list)
    draft_picks_sent: Mapped[list] = mapped_column(JSON, default=list)
    draft_picks_received: Mapped[list] = mapped_column(JSON, default=list)
    grade: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grade_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    trade_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="graded")
    session_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shared_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_gm_trades_user_created", "user_id", "created_at"),)


# --- X bot ---------------------------------------------------------------


class BotConfigRow(Base):
    __tablename__ = "sm_bot_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_slug: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    community_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    daily_reply_limit: Mapped[int] = mapped_column(Integer, default=20)
    daily_post_limit: Mapped[int] = mapped_column(Integer, default=5)
    min_delay_seconds: Mapped[int] = mapped_column(Integer, default=30)
    max_delay_seconds: Mapped[int] = mapped_column(Integer, default=120)
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)


class BotDailyActivityRow(Base):
    __tablename__ = "sm_bot_daily_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    replies_sent: Mapped[int] = mapped_column(Integer, default=0)
    original_posts: Mapped[int] = mapped_column(Integer, default=0)
    tweets_monitored: Mapped[int] = mapped_column(Integer, default=0)
    total_tokens_used: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("team_slug", "activity_date", name="uq_bot_activity_team_date"),
    )


class MonitoredTweetRow(Base):
    __tablename__ = "sm_bot_monitored_tweets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tweet_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    community_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    team_slug: Mapped[str | None] = mapped_column(String(50), nullable=True)
    author_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    author_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    likes_count: Mapped[int] = mapped_column(Integer, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, default=0)
    retweet_count: Mapped[int] = mapped_column(Integer, default=0)
    processed: Mapped[bool] = mapped_column(Boolean, default=False)
    should_reply: Mapped[bool] = mapped_column(Boolean, default=False)
    reply_priority: Mapped[int] = mapped_column(Integer, default=0)
    tweet_created_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    discovered_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class BotResponseRow(Base):
    __tablename__ = "sm_bot_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    response_type: Mapped[str] = mapped_column(String(20), nullable=False)
    in_reply_to_tweet_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    our_tweet_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    claude_model: Mapped[str] = mapped_column(String(100), default="")
    prompt_used: Mapped[str | None] = mapped_column(Text, nullable=True)
    tokens_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    article_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_sm_bot_responses_status", "status", "created_at"),)


class BotKeywordRow(Base):
    __tablename__ = "sm_bot_keywords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_slug: Mapped[str | None] = mapped_column(String(50), nullable=True)
    keyword: Mapped[str] = mapped_column(String(100), nullable=False)
    priority_boost: Mapped[int] = mapped_column(Integer, default=0)
    is_negative: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class BlockedUserRow(Base):
    __tablename__ = "sm_bot_blocked_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    twitter_user_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    twitter_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(300), nullable=True)
    blocked_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class BotLogRow(Base):
    __tablename__ = "sm_bot_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_slug: Mapped[str | None] = mapped_column(String(50), nullable=True)
    log_level: Mapped[str] = mapped_column(String(10), default="info")
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


# --- AI usage ------------------------------------------------------------


class AIUsageLogRow(Base):
    __tablename__ = "ai_usage_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    call_type: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0)
    cache_read_tokens: Mapped[int] = mapped_column(Integer, default=0)
    cache_creation_tokens: Mapped[int] = mapped_column(Integer, default=0)
    latency_ms: Mapped[float] = mapped_column(Float, default=0.0)
    cost_usd: Mapped[float] = mapped_column(Float, default=0.0)
    team_slug: Mapped[str] = mapped_column(String(50), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (Index("ix_ai_usage_log_call_type", "call_type"),)
