"""Repository pattern for database access.

Wraps SQLAlchemy async sessions. Callers own the transaction: helpers only
flush, the request dependency (or ``get_session``) commits.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from sportsmockery.db.models import (
    AuthorRow,
    BlockedUserRow,
    BotConfigRow,
    BotDailyActivityRow,
    BotKeywordRow,
    BotLogRow,
    BotResponseRow,
    CategoryRow,
    ChatMessageRow,
    ChatModerationLogRow,
    ChatUserRow,
    GMTradeRow,
    HubItemRow,
    MonitoredTweetRow,
    PollBallotRow,
    PollOptionRow,
    PollRow,
    PollVoteRow,
    PostRow,
    ScoutEventRow,
    as_utc,
)


def _today() -> date:
    return datetime.now(UTC).date()


def _apply(row: object, fields: dict[str, Any]) -> None:
    for key, value in fields.items():
        setattr(row, key, value)


class Repository:
    """Async repository for all database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _add(self, row: Any) -> Any:
        self.session.add(row)
        await self.session.flush()
        return row

    # --- Categories / Authors ---

    async def list_categories(self) -> list[CategoryRow]:
        """All categories, alphabetically."""
        result = await self.session.execute(select(CategoryRow).order_by(CategoryRow.name))
        return list(result.scalars().all())

    async def get_category_by_slug(self, slug: str) -> CategoryRow | None:
        stmt = select(CategoryRow).where(CategoryRow.slug == slug)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_category_by_wp_id(self, wp_id: int) -> CategoryRow | None:
        """Category imported from WordPress term *wp_id*."""
        stmt = select(CategoryRow).where(CategoryRow.wp_id == wp_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create_category(
        self,
        name: str,
        slug: str,
        wp_id: int | None = None,
        parent_wp_id: int | None = None,
    ) -> CategoryRow:
        return await self._add(
            CategoryRow(name=name, slug=slug, wp_id=wp_id, parent_wp_id=parent_wp_id)
        )

    async def list_authors(self) -> list[AuthorRow]:
        result = await self.session.execute(select(AuthorRow).order_by(AuthorRow.display_name))
        return list(result.scalars().all())

    async def get_author(self, author_id: int) -> AuthorRow | None:
        """Author by primary key."""
        return await self.session.get(AuthorRow, author_id)

    async def get_author_by_wp_id(self, wp_id: int) -> AuthorRow | None:
        stmt = select(AuthorRow).where(AuthorRow.wp_id == wp_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create_author(self, display_name: str, **fields: Any) -> AuthorRow:
        return await self._add(AuthorRow(display_name=display_name, **fields))

    # --- Posts ---

    async def list_posts(
        self,
        *,
        category_slug: str | None = None,
        author_id: int | None = None,
        status: str | None = "published",
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[PostRow], int]:
        """Filtered page of posts, newest first, plus the unpaged total."""
        conditions = []
        if status:
            conditions.append(PostRow.status == status)
        if author_id is not None:
            conditions.append(PostRow.author_id == author_id)
        if category_slug:
            conditions.append(PostRow.category.has(CategoryRow.slug == category_slug))
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(PostRow.title.ilike(pattern), PostRow.excerpt.ilike(pattern)))

        total = await self.session.scalar(select(func.count(PostRow.id)).where(*conditions))
        stmt = (
            select(PostRow)
            .where(*conditions)
            .options(selectinload(PostRow.category), selectinload(PostRow.author))
            .order_by(PostRow.published_at.desc().nulls_last(), PostRow.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def get_post(self, post_id: int) -> PostRow | None:
        """Post by id with its category and author loaded."""
        stmt = (
            select(PostRow)
            .where(PostRow.id == post_id)
            .options(selectinload(PostRow.category), selectinload(PostRow.author))
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_post_by_slug(self, slug: str, status: str | None = None) -> PostRow | None:
        """Post by slug, optionally restricted to one status."""
        stmt = (
            select(PostRow)
            .where(PostRow.slug == slug)
            .options(selectinload(PostRow.category), selectinload(PostRow.author))
        )
        if status:
            stmt = stmt.where(PostRow.status == status)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        """True when another post already uses *slug*."""
        stmt = select(PostRow.id).where(PostRow.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(PostRow.id != exclude_id)
        return (await self.session.execute(stmt.limit(1))).first() is not None

    async def create_post(self, title: str, slug: str, **fields: Any) -> PostRow:
        row = await self._add(PostRow(title=title, slug=slug, **fields))
        await self.session.refresh(row, attribute_names=["category", "author"])
        return row

    async def update_post(self, post: PostRow, fields: dict[str, Any]) -> PostRow:
        """Apply *fields* to the post and flush."""
        _apply(post, fields)
        post.updated_at = datetime.now(UTC)
        await self.session.flush()
        await self.session.refresh(post, attribute_names=["category", "author"])
        return post

    async def delete_post(self, post: PostRow) -> None:
        await self.session.delete(post)
        await self.session.flush()

    async def increment_post_views(self, post: PostRow) -> None:
        """Increment views in SQL and mirror the new count on *post*."""
        await self.session.execute(
            update(PostRow)
            .where(PostRow.id == post.id)
            .values(views=PostRow.views + 1)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(post, "views", (post.views or 0) + 1)

    async def get_existing_wp_post_ids(self, wp_ids: Iterable[int]) -> set[int]:
        """Subset of *wp_ids* already imported."""
        ids = list(wp_ids)
        if not ids:
            return set()
        stmt = select(PostRow.wp_id).where(PostRow.wp_id.in_(ids))
        result = await self.session.execute(stmt)
        return {wp_id for wp_id in result.scalars().all() if wp_id is not None}

    async def get_posts_updated_since(self, since: datetime) -> list[PostRow]:
        """Published posts changed after *since*, newest first."""
        stmt = (
            select(PostRow)
            .where(PostRow.status == "published", PostRow.updated_at >= as_utc(since))
            .options(selectinload(PostRow.category))
            .order_by(PostRow.updated_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_recent_post_titles(self, category_slug: str | None = None, limit: int = 5) -> list[str]:
        """Latest published titles, used as context for bot copy."""
        posts, _ = await self.list_posts(category_slug=category_slug, limit=limit)
        return [post.title for post in posts]

    # --- Hub items ---

    async def list_hub_items(
        self,
        team_slug: str | None = None,
        page_slug: str | None = None,
        status: str | None = "published",
    ) -> list[HubItemRow]:
        stmt = select(HubItemRow)
        if team_slug:
            stmt = stmt.where(HubItemRow.team_slug == team_slug)
        if page_slug:
            stmt = stmt.where(HubItemRow.page_slug == page_slug)
        if status:
            stmt = stmt.where(HubItemRow.status == status)
        stmt = stmt.order_by(HubItemRow.created_at.desc(), HubItemRow.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_hub_item(self, item_id: int) -> HubItemRow | None:
        """Hub item by primary key."""
        return await self.session.get(HubItemRow, item_id)

    async def create_hub_item(self, **fields: Any) -> HubItemRow:
        return await self._add(HubItemRow(**fields))

    async def update_hub_item(self, item: HubItemRow, fields: dict[str, Any]) -> HubItemRow:
        _apply(item, fields)
        item.updated_at = datetime.now(UTC)
        await self.session.flush()
        return item

    async def delete_hub_item(self, item: HubItemRow) -> None:
        await self.session.delete(item)
        await self.session.flush()

    # --- Polls ---

    async def list_polls(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        team: str | None = None,
        poll_type: str | None = None,
        include_archived: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[PollRow], int]:
        """Archived polls are hidden unless requested or filtered for by status."""
        conditions = []
        if status:
            conditions.append(PollRow.status == status)
        elif not include_archived:
            conditions.append(PollRow.status != "archived")
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(PollRow.title.ilike(pattern), PollRow.question.ilike(pattern)))
        if team:
            conditions.append(PollRow.team_theme == team)
        if poll_type:
            conditions.append(PollRow.poll_type == poll_type)

        total = await self.session.scalar(select(func.count(PollRow.id)).where(*conditions))
        stmt = (
            select(PollRow)
            .where(*conditions)
            .options(selectinload(PollRow.options))
            .order_by(PollRow.created_at.desc(), PollRow.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def get_poll(self, poll_id: int) -> PollRow | None:
        """Poll by id with its options loaded in display order."""
        stmt = select(PollRow).where(PollRow.id == poll_id).options(selectinload(PollRow.options))
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create_poll(self, options: list[dict[str, Any]], **fields: Any) -> PollRow:
        """Create a poll and its options, numbering options in the given order."""
        poll = PollRow(**fields)
        poll.options = [
            PollOptionRow(display_order=index, **option) for index, option in enumerate(options)
        ]
        await self._add(poll)
        return poll

    async def has_voted(self, poll_id: int, voter_key: str) -> bool:
        """True when *voter_key* already cast a ballot in the poll."""
        stmt = (
            select(PollBallotRow.id)
            .where(PollBallotRow.poll_id == poll_id, PollBallotRow.voter_key == voter_key)
            .limit(1)
        )
        return (await self.session.execute(stmt)).first() is not None

    async def record_votes(self, poll: PollRow, option_ids: list[int], voter_key: str) -> PollRow:
        """Store the ballot and its vote rows, then bump the counters in SQL.

        Raises ``IntegrityError`` when the voter already has a ballot for
        this poll, including one written by a concurrent request.
        """
        self.session.add(PollBallotRow(poll_id=poll.id, voter_key=voter_key))
        for option_id in option_ids:
            self.session.add(PollVoteRow(poll_id=poll.id, option_id=option_id, voter_key=voter_key))
        await self.session.flush()

        await self.session.execute(
            update(PollOptionRow)
            .where(PollOptionRow.id.in_(option_ids))
            .values(vote_count=PollOptionRow.vote_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            update(PollRow)
            .where(PollRow.id == poll.id)
            .values(total_votes=PollRow.total_votes + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(poll, attribute_names=["total_votes"])
        for option in poll.options:
            await self.session.refresh(option, attribute_names=["vote_count"])
        return poll

    # --- Scout ---

    async def add_scout_event(self, anon_id: str, event: str, **fields: Any) -> ScoutEventRow:
        """Record one anonymous Scout analytics event."""
        return await self._add(ScoutEventRow(anon_id=anon_id, event=event, **fields))

    # --- Chat ---

    async def get_or_create_chat_user(self, user_id: str, display_name: str) -> ChatUserRow:
        """Chat profile for *user_id*, created on first use."""
        stmt = select(ChatUserRow).where(ChatUserRow.user_id == user_id)
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = await self._add(ChatUserRow(user_id=user_id, display_name=display_name))
        return row

    async def get_recent_chat_messages_for_user(
        self, chat_user_id: int, room_id: str, since: datetime
    ) -> list[ChatMessageRow]:
        stmt = (
            select(ChatMessageRow)
            .where(
                ChatMessageRow.user_id == chat_user_id,
                ChatMessageRow.room_id == room_id,
                ChatMessageRow.created_at >= since,
            )
            .order_by(ChatMessageRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_last_chat_message(self, chat_user_id: int, room_id: str) -> ChatMessageRow | None:
        """Most recent message by the user in the room, whatever its moderation status."""
        stmt = (
            select(ChatMessageRow)
            .where(ChatMessageRow.user_id == chat_user_id, ChatMessageRow.room_id == room_id)
            .order_by(ChatMessageRow.created_at.desc(), ChatMessageRow.id.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create_chat_message(self, room_id: str, chat_user: ChatUserRow, content: str, **fields: Any) -> ChatMessageRow:
        row = ChatMessageRow(room_id=room_id, user_id=chat_user.id, content=content, **fields)
        row.user = chat_user
        return await self._add(row)

    async def list_chat_messages(
        self, room_id: str, limit: int = 50, before: datetime | None = None
    ) -> list[ChatMessageRow]:
        """Approved messages, oldest first, ending at ``before`` when given."""
        stmt = (
            select(ChatMessageRow)
            .where(ChatMessageRow.room_id == room_id, ChatMessageRow.moderation_status == "approved")
            .options(selectinload(ChatMessageRow.user))
            .order_by(ChatMessageRow.created_at.desc(), ChatMessageRow.id.desc())
            .limit(limit)
        )
        if before is not None:
            stmt = stmt.where(ChatMessageRow.created_at < as_utc(before))
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def log_moderation(
        self,
        chat_user: ChatUserRow,
        action: str,
        reason: str | None,
        triggered_rules: list[dict[str, Any]],
        original_content: str,
    ) -> ChatModerationLogRow:
        return await self._add(
            ChatModerationLogRow(
                user_id=chat_user.id,
                action=action,
                reason=reason,
                triggered_rules=triggered_rules,
                original_content=original_content,
            )
        )

    # --- GM ---

    async def count_gm_trades_since(self, user_id: str, since: datetime) -> int:
        """Trades graded for the user since *since*, for the daily cap."""
        stmt = select(func.count(GMTradeRow.id)).where(
            GMTradeRow.user_id == user_id, GMTradeRow.created_at >= since
        )
        return int(await self.session.scalar(stmt) or 0)

    async def create_gm_trade(self, **fields: Any) -> GMTradeRow:
        return await self._add(GMTradeRow(**fields))

    async def get_gm_trade_by_code(self, shared_code: str) -> GMTradeRow | None:
        """Shared trade by its public code."""
        stmt = select(GMTradeRow).where(GMTradeRow.shared_code == shared_code)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    # --- Bot config / activity ---

    async def list_bot_configs(self) -> list[BotConfigRow]:
        result = await self.session.execute(select(BotConfigRow).order_by(BotConfigRow.team_slug))
        return list(result.scalars().all())

    async def get_bot_config(self, team_slug: str) -> BotConfigRow | None:
        """Bot settings for one team, or None when never configured."""
        stmt = select(BotConfigRow).where(BotConfigRow.team_slug == team_slug)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def upsert_bot_config(self, team_slug: str, fields: dict[str, Any]) -> BotConfigRow:
        """Create or update a team's bot settings."""
        row = await self.get_bot_config(team_slug)
        if row is None:
            return await self._add(BotConfigRow(team_slug=team_slug, **fields))
        _apply(row, fields)
        row.updated_at = datetime.now(UTC)
        await self.session.flush()
        return row

    async def get_daily_activity(
        self, team_slug: str, activity_date: date | None = None
    ) -> BotDailyActivityRow | None:
        stmt = select(BotDailyActivityRow).where(
            BotDailyActivityRow.team_slug == team_slug,
            BotDailyActivityRow.activity_date == (activity_date or _today()),
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def increment_daily_activity(
        self,
        team_slug: str,
        *,
        replies: int = 0,
        posts: int = 0,
        monitored: int = 0,
        tokens: int = 0,
    ) -> BotDailyActivityRow:
        """Upsert today's row for the team and add the given counts."""
        row = await self.get_daily_activity(team_slug)
        if row is None:
            row = BotDailyActivityRow(
                team_slug=team_slug,
                activity_date=_today(),
                replies_sent=0,
                original_posts=0,
                tweets_monitored=0,
                total_tokens_used=0,
            )
            self.session.add(row)
        row.replies_sent += replies
        row.original_posts += posts
        row.tweets_monitored += monitored
        row.total_tokens_used += tokens
        await self.session.flush()
        return row

    # --- Bot keywords / blocks ---

    async def get_bot_keywords(self, team_slug: str) -> list[BotKeywordRow]:
        """Team keywords plus global ones (``team_slug`` NULL), highest boost first."""
        stmt = (
            select(BotKeywordRow)
            .where(or_(BotKeywordRow.team_slug == team_slug, BotKeywordRow.team_slug.is_(None)))
            .order_by(BotKeywordRow.priority_boost.desc(), BotKeywordRow.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_bot_keyword(
        self,
        keyword: str,
        team_slug: str | None = None,
        priority_boost: int = 0,
        is_negative: bool = False,
    ) -> BotKeywordRow:
        return await self._add(
            BotKeywordRow(
                keyword=keyword,
                team_slug=team_slug,
                priority_boost=priority_boost,
                is_negative=is_negative,
            )
        )

    async def get_blocked_user_ids(self) -> set[str]:
        """Twitter ids the bot never replies to."""
        result = await self.session.execute(select(BlockedUserRow.twitter_user_id))
        return set(result.scalars().all())

    async def block_user(
        self, twitter_user_id: str, username: str | None = None, reason: str | None = None
    ) -> BlockedUserRow:
        return await self._add(
            BlockedUserRow(twitter_user_id=twitter_user_id, twitter_username=username, reason=reason)
        )

    # --- Monitored tweets ---

    async def get_seen_tweet_ids(self, tweet_ids: Iterable[str]) -> set[str]:
        """Subset of *tweet_ids* already stored as monitored."""
        ids = list(tweet_ids)
        if not ids:
            return set()
        stmt = select(MonitoredTweetRow.tweet_id).where(MonitoredTweetRow.tweet_id.in_(ids))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def add_monitored_tweet(self, tweet_id: str, **fields: Any) -> MonitoredTweetRow:
        return await self._add(MonitoredTweetRow(tweet_id=tweet_id, **fields))

    async def mark_tweet_processed(self, tweet: MonitoredTweetRow) -> None:
        """Flag a monitored tweet as handled."""
        tweet.processed = True
        tweet.processed_at = datetime.now(UTC)
        await self.session.flush()

    # --- Bot responses ---

    async def create_bot_response(
        self, team_slug: str, response_type: str, content: str, **fields: Any
    ) -> BotResponseRow:
        return await self._add(
            BotResponseRow(team_slug=team_slug, response_type=response_type, content=content, **fields)
        )

    async def get_bot_response(self, response_id: int) -> BotResponseRow | None:
        return await self.session.get(BotResponseRow, response_id)

    async def get_pending_responses(self, team_slug: str | None = None, limit: int = 5) -> list[BotResponseRow]:
        """Queued responses, oldest first."""
        stmt = select(BotResponseRow).where(BotResponseRow.status == "pending")
        if team_slug:
            stmt = stmt.where(BotResponseRow.team_slug == team_slug)
        stmt = stmt.order_by(BotResponseRow.created_at, BotResponseRow.id).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_pending_responses(self, team_slug: str) -> int:
        """Queued responses for the team."""
        stmt = select(func.count(BotResponseRow.id)).where(
            BotResponseRow.team_slug == team_slug, BotResponseRow.status == "pending"
        )
        return int(await self.session.scalar(stmt) or 0)

    async def mark_response_posted(self, response: BotResponseRow, tweet_id: str) -> None:
        """Record the posted tweet id on a queued response."""
        response.status = "posted"
        response.our_tweet_id = tweet_id
        response.posted_at = datetime.now(UTC)
        response.error_message = None
        await self.session.flush()

    async def mark_response_failed(self, response: BotResponseRow, error: str) -> None:
        """Mark a queued response failed with the error text."""
        response.status = "failed"
        response.error_message = error
        await self.session.flush()

    # --- Bot logs ---

    async def add_bot_log(
        self,
        action: str,
        message: str | None = None,
        *,
        team_slug: str | None = None,
        level: str = "info",
        meta: dict[str, Any] | None = None,
    ) -> BotLogRow:
        return await self._add(
            BotLogRow(team_slug=team_slug, log_level=level, action=action, message=message, meta=meta)
        )

    async def list_bot_logs(
        self, team_slug: str | None = None, level: str | None = None, limit: int = 50
    ) -> list[BotLogRow]:
        stmt = select(BotLogRow)
        if team_slug:
            stmt = stmt.where(BotLogRow.team_slug == team_slug)
        if level:
            stmt = stmt.where(BotLogRow.log_level == level)
        stmt = stmt.order_by(BotLogRow.created_at.desc(), BotLogRow.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
