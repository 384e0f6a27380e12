"""Bot orchestration: monitoring, reply queueing, posting and quotas.

``BotService`` ties the repository, the X client and the response generator
together. Every step leaves a row in ``sm_bot_logs`` so the admin page can
show what the bot did and why.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from sportsmockery.bot.generator import GenerationContext, GenerationError, ResponseGenerator
from sportsmockery.bot.twitter import TwitterAPIError, TwitterClient, users_by_id
from sportsmockery.config import Settings
from sportsmockery.core.teams import TEAM_SHORT_NAMES, TEAM_SLUGS
from sportsmockery.db.models import BotConfigRow, BotResponseRow
from sportsmockery.db.repository import Repository

logger = logging.getLogger(__name__)

MONITOR_MAX_RESULTS = 20
MONITOR_KEYWORD_LIMIT = 5

CONFIG_FIELDS = frozenset(
    {
        "enabled",
        "community_id",
        "daily_reply_limit",
        "daily_post_limit",
        "min_delay_seconds",
        "max_delay_seconds",
        "system_prompt",
    }
)


@dataclass
class MonitorResult:
    team_slug: str
    tweets_found: int = 0
    tweets_processed: int = 0
    replies_queued: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PostResult:
    success: bool
    tweet_id: str | None = None
    response_id: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


class BotService:
    """One instance per unit of work; shares the caller's repository session."""

    def __init__(
        self,
        repo: Repository,
        twitter: TwitterClient,
        generator: ResponseGenerator,
        settings: Settings,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.repo = repo
        self.twitter = twitter
        self.generator = generator
        self.settings = settings
        self._sleep = sleep

    # --- logging ---

    async def log(
        self,
        action: str,
        message: str | None = None,
        *,
        team_slug: str | None = None,
        level: str = "info",
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Persist a bot log row. Never raises."""
        try:
            await self.repo.add_bot_log(action, message, team_slug=team_slug, level=level, meta=meta)
        except SQLAlchemyError:
            logger.warning("bot_log_write_failed action=%s team=%s", action, team_slug, exc_info=True)

    async def _human_delay(self, min_seconds: float, max_seconds: float) -> None:
        if not self.settings.bot_human_delay or max_seconds <= 0:
            return
        await self._sleep(random.uniform(min_seconds, max(min_seconds, max_seconds)))

    # --- configuration ---

    async def get_config(self, team_slug: str) -> BotConfigRow | None:
        return await self.repo.get_bot_config(team_slug)

    async def list_configs(self) -> list[BotConfigRow]:
        return await self.repo.list_bot_configs()

    async def update_config(self, team_slug: str, updates: dict[str, Any]) -> BotConfigRow:
        """Apply the known config fields; unknown keys raise ValueError."""
        unknown = set(updates) - CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        row = await self.repo.upsert_bot_config(team_slug, updates)
        await self.log("update_config", "Configuration updated", team_slug=team_slug, meta=updates)
        return row

    # --- quotas ---

    async def can_perform_action(self, team_slug: str, is_reply: bool = True) -> bool:
        config = await self.repo.get_bot_config(team_slug)
        if config is None or not config.enabled:
            return False
        activity = await self.repo.get_daily_activity(team_slug)
        if is_reply:
            sent = activity.replies_sent if activity else 0
            return sent < config.daily_reply_limit
        posted = activity.original_posts if activity else 0
        return posted < config.daily_post_limit

    async def record_activity(self, team_slug: str, is_reply: bool, tokens_used: int = 0) -> None:
        await self.repo.increment_daily_activity(
            team_slug,
            replies=1 if is_reply else 0,
            posts=0 if is_reply else 1,
            tokens=tokens_used,
        )

    async def get_status(self, team_slug: str | None = None) -> list[dict[str, Any]]:
        """Config and today's counts for each configured team, or just *team_slug*."""
        if team_slug:
            config = await self.repo.get_bot_config(team_slug)
            configs = [config] if config else []
        else:
            configs = await self.repo.list_bot_configs()

        statuses = []
        for config in configs:
            activity = await self.repo.get_daily_activity(config.team_slug)
            replies = activity.replies_sent if activity else 0
            posts = activity.original_posts if activity else 0
            statuses.append(
                {
                    "team_slug": config.team_slug,
                    "enabled": config.enabled,
                    "community_id": config.community_id,
                    "today_replies": replies,
                    "today_posts": posts,
                    "daily_reply_limit": config.daily_reply_limit,
                    "daily_post_limit": config.daily_post_limit,
                    "can_reply": config.enabled and replies < config.daily_reply_limit,
                    "can_post": config.enabled and posts < config.daily_post_limit,
                    "pending_responses": await self.repo.count_pending_responses(config.team_slug),
                }
            )
        return statuses

    # --- monitoring ---

    async def monitor(self, team_slug: str | None = None) -> list[MonitorResult]:
        """Search X for fan tweets about each team and queue replies worth sending."""
        teams = [team_slug] if team_slug else list(TEAM_SLUGS)

        if not self.twitter.is_configured():
            await self.log("monitor", "Twitter client not configured", level="error")
            return [MonitorResult(team_slug=teams[0], errors=["Twitter client not configured"])]

        results = []
        for team in teams:
            result = MonitorResult(team_slug=team)
            try:
                async with self.repo.session.begin_nested():
                    await self._monitor_team(team, result)
            except (TwitterAPIError, GenerationError, SQLAlchemyError) as exc:
                logger.warning("bot_monitor_failed team=%s error=%s", team, exc)
                # The team's rows were rolled back with its savepoint.
                result.tweets_processed = 0
                result.replies_queued = 0
                result.errors.append(str(exc))
                await self.log("monitor", str(exc), team_slug=team, level="error")
            results.append(result)
        return results

    async def _monitor_team(self, team: str, result: MonitorResult) -> None:
        config = await self.repo.get_bot_config(team)
        if config is None or not config.enabled:
            result.errors.append(f"Bot not enabled for {team}")
            return

        keywords = await self.repo.get_bot_keywords(team)
        positive = [kw.keyword for kw in keywords if not kw.is_negative]
        search = await self.twitter.search_team_tweets(
            TEAM_SHORT_NAMES[team],
            positive[:MONITOR_KEYWORD_LIMIT],
            max_results=MONITOR_MAX_RESULTS,
        )
        tweets = search.get("data") or []
        if not tweets:
            result.errors.append("No tweets found")
            return
        result.tweets_found = len(tweets)

        authors = users_by_id(search)
        blocked = await self.repo.get_blocked_user_ids()
        seen = await self.repo.get_seen_tweet_ids(tweet["id"] for tweet in tweets)
        recent_titles = await self.repo.get_recent_post_titles(category_slug=team)

        for tweet in tweets:
            if tweet.get("author_id") in blocked or tweet["id"] in seen:
                continue
            text = tweet.get("text", "")
            analysis = await self.generator.analyze_tweet(text, team, db_session=self.repo.session)

            lowered = text.lower()
            priority = analysis.priority + sum(
                kw.priority_boost for kw in keywords if kw.keyword.lower() in lowered
            )
            priority = max(0, min(100, priority))

            author = authors.get(tweet.get("author_id", ""), {})
            metrics = tweet.get("public_metrics") or {}
            monitored = await self.repo.add_monitored_tweet(
                tweet["id"],
                team_slug=team,
                community_id=config.community_id,
                author_username=author.get("username"),
                author_id=tweet.get("author_id"),
                content=text,
                likes_count=metrics.get("like_count", 0),
                reply_count=metrics.get("reply_count", 0),
                retweet_count=metrics.get("retweet_count", 0),
                reply_priority=priority,
                should_reply=analysis.should_respond,
                tweet_created_at=tweet.get("created_at"),
            )
            result.tweets_processed += 1

            if analysis.should_respond and await self.can_perform_action(team, is_reply=True):
                try:
                    reply = await self.generator.generate_reply(
                        team,
                        text,
                        author.get("username"),
                        GenerationContext(recent_articles=recent_titles),
                        system_prompt=config.system_prompt,
                        db_session=self.repo.session,
                    )
                except GenerationError as exc:
                    logger.warning("bot_reply_generation_failed team=%s tweet=%s error=%s", team, tweet["id"], exc)
                    result.errors.append(f"Failed to generate reply for {tweet['id']}")
                else:
                    await self.repo.create_bot_response(
                        team,
                        "reply",
                        reply.content,
                        in_reply_to_tweet_id=tweet["id"],
                        claude_model=reply.model,
                        prompt_used=reply.prompt_used,
                        tokens_used=reply.tokens_used,
                    )
                    result.replies_queued += 1
                    await self.log(
                        "queue_reply",
                        f"Queued reply to tweet {tweet['id']}",
                        team_slug=team,
                        meta={"priority": priority, "suggested_tone": analysis.suggested_tone},
                    )

            await self.repo.mark_tweet_processed(monitored)
            await self._human_delay(0.5, 1.5)

        await self.repo.increment_daily_activity(team, monitored=result.tweets_processed)
        await self.log("monitor_complete", "Monitoring complete", team_slug=team, meta=result.to_dict())

    # --- posting ---

    async def post_response(self, response_id: int) -> PostResult:
        if not self.twitter.is_configured():
            return PostResult(success=False, error="Twitter client not configured")

        response = await self.repo.get_bot_response(response_id)
        if response is None:
            return PostResult(success=False, error="Response not found")
        if response.status != "pending":
            return PostResult(success=False, error=f"Response is {response.status}, not pending")

        is_reply = response.response_type == "reply"
        if not await self.can_perform_action(response.team_slug, is_reply):
            return PostResult(success=False, error="Daily limit reached")

        config = await self.repo.get_bot_config(response.team_slug)
        if config is not None:
            await self._human_delay(config.min_delay_seconds, config.max_delay_seconds)

        try:
            tweet_id = await self._dispatch(response)
        except ValueError as exc:
            return PostResult(success=False, error=str(exc))
        except TwitterAPIError as exc:
            await self.repo.mark_response_failed(response, str(exc))
            await self.log(
                "post_response",
                str(exc),
                team_slug=response.team_slug,
                level="error",
                meta={"response_id": response_id},
            )
            return PostResult(success=False, error=str(exc), response_id=response_id)

        await self.repo.mark_response_posted(response, tweet_id)
        await self.record_activity(response.team_slug, is_reply, response.tokens_used or 0)
        await self.log(
            "post_response",
            f"Posted {response.response_type}",
            team_slug=response.team_slug,
            meta={"response_id": response_id, "tweet_id": tweet_id},
        )
        return PostResult(success=True, tweet_id=tweet_id, response_id=response_id)

    async def _dispatch(self, response: BotResponseRow) -> str:
        """Send the response to X and return the new tweet id."""
        if response.response_type == "reply":
            if not response.in_reply_to_tweet_id:
                raise ValueError("No tweet to reply to")
            data = await self.twitter.reply_to_tweet(response.content, response.in_reply_to_tweet_id)
        elif response.response_type == "original_post":
            data = await self.twitter.post_tweet(response.content)
        elif response.response_type == "quote_tweet":
            if not response.in_reply_to_tweet_id:
                raise ValueError("No tweet to quote")
            data = await self.twitter.quote_tweet(response.content, response.in_reply_to_tweet_id)
        else:
            raise ValueError("Unknown response type")
        return str(data["data"]["id"])

    async def post_pending(self, team_slug: str | None = None, limit: int = 5) -> list[PostResult]:
        """Post the oldest pending responses, pausing between posts."""
        pending = await self.repo.get_pending_responses(team_slug, limit)
        results = []
        for index, response in enumerate(pending):
            if index:
                await self._human_delay(30, 120)
            results.append(await self.post_response(response.id))
        return results

    # --- article promotion ---

    async def queue_article_promotion(self, team_slug: str, post_id: int) -> PostResult:
        """Write a promo tweet for the article and leave it pending for review."""
        post = await self.repo.get_post(post_id)
        if post is None:
            return PostResult(success=False, error="Article not found")
        if not await self.can_perform_action(team_slug, is_reply=False):
            return PostResult(success=False, error="Daily post limit reached")

        category_slug = post.category.slug if post.category else team_slug
        url = f"{self.settings.site_url.rstrip('/')}/{category_slug}/{post.slug}"
        try:
            promo = await self.generator.generate_article_promo(
                team_slug, post.title, post.excerpt or "", url, db_session=self.repo.session
            )
        except GenerationError as exc:
            return PostResult(success=False, error=str(exc))

        response = await self.repo.create_bot_response(
            team_slug,
            "original_post",
            promo.content,
            claude_model=promo.model,
            prompt_used=promo.prompt_used,
            tokens_used=promo.tokens_used,
            article_id=post.id,
        )
        await self.log(
            "queue_article_promo",
            f'Queued article promotion for "{post.title}"',
            team_slug=team_slug,
            meta={"article_id": post.id, "response_id": response.id},
        )
        return PostResult(success=True, response_id=response.id)
