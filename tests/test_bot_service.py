"""Tests for bot orchestration: monitoring, posting, quotas and promotions."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select

from conftest import fake_anthropic
from sportsmockery.bot.generator import ResponseGenerator
from sportsmockery.bot.service import BotService
from sportsmockery.bot.twitter import TwitterClient
from sportsmockery.config import Settings
from sportsmockery.db.models import MonitoredTweetRow
from sportsmockery.db.repository import Repository

SEARCH_RESPONSE = {
    "data": [
        {
            "id": "t1",
            "author_id": "1",
            "text": "Should the Bears trade for a WR?",
            "public_metrics": {"like_count": 4, "reply_count": 1, "retweet_count": 0},
            "created_at": "2025-10-01T12:00:00Z",
        },
        {"id": "t2", "author_id": "666", "text": "spam spam"},
        {"id": "t3", "author_id": "2", "text": "lol"},
    ],
    "includes": {"users": [{"id": "1", "username": "fan1"}, {"id": "2", "username": "fan2"}]},
}


class FakeX:
    """Records X API requests and answers search and post calls."""

    def __init__(self, search: dict | None = None, post_status: int = 201) -> None:
        self.search = search if search is not None else SEARCH_RESPONSE
        self.post_status = post_status
        self.requests: list[httpx.Request] = []
        self.posted = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/tweets/search/recent"):
            return httpx.Response(200, json=self.search)
        if request.method == "POST" and request.url.path.endswith("/tweets"):
            if self.post_status >= 400:
                return httpx.Response(self.post_status, text="Forbidden")
            self.posted += 1
            return httpx.Response(self.post_status, json={"data": {"id": f"posted-{self.posted}"}})
        return httpx.Response(404, text="not found")

    def client(self) -> TwitterClient:
        return TwitterClient(
            api_key="ck",
            api_secret="cs",
            access_token="at",
            access_token_secret="ats",
            bearer_token="bearer",
            transport=httpx.MockTransport(self),
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(bot_human_delay=False, site_url="https://sportsmockery.com")


def _service(repo: Repository, settings: Settings, x: FakeX, *texts: str, **kwargs) -> BotService:
    return BotService(repo, x.client(), ResponseGenerator(client=fake_anthropic(*texts)), settings, **kwargs)


async def _enable(repo: Repository, team: str = "chicago-bears", **fields) -> None:
    await repo.upsert_bot_config(team, {"enabled": True, **fields})


class TestMonitor:
    async def test_queues_replies(self, repo: Repository, settings: Settings):
        await _enable(repo)
        await repo.add_bot_keyword("trade", "chicago-bears", priority_boost=10)
        await repo.block_user("666", "spammer")
        x = FakeX()
        service = _service(
            repo,
            settings,
            x,
            '{"should_respond": true, "priority": 60, "reason": "question"}',
            "Great question! A WR would help Caleb. Who's your pick?",
            '{"should_respond": false, "priority": 10, "reason": "low value"}',
        )

        [result] = await service.monitor("chicago-bears")

        assert result.errors == []
        assert result.tweets_found == 3
        assert result.tweets_processed == 2
        assert result.replies_queued == 1

        search = x.requests[0]
        assert search.url.params["query"] == "(Bears (trade)) -is:retweet lang:en"
        assert search.url.params["max_results"] == "20"

        pending = await repo.get_pending_responses("chicago-bears")
        assert len(pending) == 1
        assert pending[0].in_reply_to_tweet_id == "t1"
        assert pending[0].response_type == "reply"
        assert pending[0].content.startswith("Great question!")

        activity = await repo.get_daily_activity("chicago-bears")
        assert activity.tweets_monitored == 2
        assert activity.replies_sent == 0

    async def test_keyword_boost_and_metadata_stored(self, repo: Repository, settings: Settings):
        await _enable(repo)
        await repo.add_bot_keyword("trade", "chicago-bears", priority_boost=50)
        service = _service(
            repo,
            settings,
            FakeX(search={"data": [SEARCH_RESPONSE["data"][0]], "includes": SEARCH_RESPONSE["includes"]}),
            '{"should_respond": false, "priority": 70}',
        )
        await service.monitor("chicago-bears")

        assert await repo.get_seen_tweet_ids(["t1"]) == {"t1"}
        row = (await repo.session.execute(select(MonitoredTweetRow))).scalar_one()
        assert row.reply_priority == 100
        assert row.author_username == "fan1"
        assert row.likes_count == 4
        assert row.processed is True

    async def test_seen_tweets_skipped(self, repo: Repository, settings: Settings):
        await _enable(repo)
        await repo.add_monitored_tweet("t1", team_slug="chicago-bears")
        await repo.add_monitored_tweet("t2", team_slug="chicago-bears")
        await repo.add_monitored_tweet("t3", team_slug="chicago-bears")
        service = _service(repo, settings, FakeX())

        [result] = await service.monitor("chicago-bears")
        assert result.tweets_found == 3
        assert result.tweets_processed == 0

    async def test_quota_exhausted_no_reply(self, repo: Repository, settings: Settings):
        await _enable(repo, daily_reply_limit=0)
        service = _service(
            repo,
            settings,
            FakeX(search={"data": [SEARCH_RESPONSE["data"][0]]}),
            '{"should_respond": true, "priority": 90}',
        )
        [result] = await service.monitor("chicago-bears")
        assert result.tweets_processed == 1
        assert result.replies_queued == 0

    async def test_not_configured(self, repo: Repository, settings: Settings):
        service = BotService(repo, TwitterClient(), ResponseGenerator(), settings)
        results = await service.monitor()
        assert len(results) == 1
        assert results[0].errors == ["Twitter client not configured"]

    async def test_disabled_team(self, repo: Repository, settings: Settings):
        [result] = await _service(repo, settings, FakeX()).monitor("chicago-bulls")
        assert result.errors == ["Bot not enabled for chicago-bulls"]

    async def test_no_tweets(self, repo: Repository, settings: Settings):
        await _enable(repo)
        [result] = await _service(repo, settings, FakeX(search={"meta": {}})).monitor("chicago-bears")
        assert result.errors == ["No tweets found"]

    async def test_all_teams(self, repo: Repository, settings: Settings):
        results = await _service(repo, settings, FakeX()).monitor()
        assert [r.team_slug for r in results] == [
            "chicago-bears",
            "chicago-bulls",
            "chicago-cubs",
            "chicago-white-sox",
            "chicago-blackhawks",
        ]

    async def test_search_failure_logged(self, repo: Repository, settings: Settings):
        await _enable(repo)
        x = TwitterClient(
            api_key="ck",
            api_secret="cs",
            access_token="at",
            access_token_secret="ats",
            bearer_token="bearer",
            transport=httpx.MockTransport(lambda r: httpx.Response(503, text="down")),
        )
        service = BotService(repo, x, ResponseGenerator(client=fake_anthropic()), settings)
        [result] = await service.monitor("chicago-bears")
        assert len(result.errors) == 1
        assert "503" in result.errors[0]
        logs = await repo.list_bot_logs("chicago-bears", level="error")
        assert logs[0].action == "monitor"


    async def test_failed_team_rolled_back_others_kept(
        self, repo: Repository, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ):
        await _enable(repo, "chicago-bears")
        await _enable(repo, "chicago-bulls")
        # Another sweep already stored the Bears tweet after our seen check.
        await repo.add_monitored_tweet("dup", team_slug="chicago-bears")
        monkeypatch.setattr(repo, "get_seen_tweet_ids", AsyncMock(return_value=set()))

        searches = {
            "Bears": {"data": [{"id": "dup", "author_id": "1", "text": "Bears trade talk"}]},
            "Bulls": {"data": [{"id": "b1", "author_id": "1", "text": "Who starts for the Bulls?"}]},
        }

        def route(request: httpx.Request) -> httpx.Response:
            query = request.url.params.get("query", "")
            [name] = [name for name in searches if name in query]
            return httpx.Response(200, json=searches[name])

        service = BotService(
            repo,
            TwitterClient(
                api_key="ck",
                api_secret="cs",
                access_token="at",
                access_token_secret="ats",
                bearer_token="bearer",
                transport=httpx.MockTransport(route),
            ),
            ResponseGenerator(
                client=fake_anthropic(
                    '{"should_respond": true, "priority": 60, "reason": "question"}',
                    '{"should_respond": true, "priority": 60, "reason": "question"}',
                    "Depends on the matchup. Who do you want out there?",
                )
            ),
            settings,
        )

        results = await service.monitor()
        by_team = {r.team_slug: r for r in results}

        assert by_team["chicago-bears"].errors
        assert by_team["chicago-bears"].tweets_processed == 0
        assert by_team["chicago-bulls"].errors == []
        assert by_team["chicago-bulls"].replies_queued == 1

        await repo.session.commit()
        [pending] = await repo.get_pending_responses("chicago-bulls")
        assert pending.in_reply_to_tweet_id == "b1"
        assert await repo.get_pending_responses("chicago-bears") == []


class TestPosting:
    async def test_post_reply(self, repo: Repository, settings: Settings):
        await _enable(repo)
        response = await repo.create_bot_response(
            "chicago-bears", "reply", "Agreed!", in_reply_to_tweet_id="t1", tokens_used=30
        )
        x = FakeX()
        result = await _service(repo, settings, x).post_response(response.id)

        assert result.success
        assert result.tweet_id == "posted-1"
        assert json.loads(x.requests[0].content)["reply"] == {"in_reply_to_tweet_id": "t1"}
        assert response.status == "posted"
        assert response.our_tweet_id == "posted-1"
        activity = await repo.get_daily_activity("chicago-bears")
        assert activity.replies_sent == 1
        assert activity.total_tokens_used == 30

    async def test_post_original(self, repo: Repository, settings: Settings):
        await _enable(repo)
        response = await repo.create_bot_response("chicago-bears", "original_post", "Thoughts on the D?")
        x = FakeX()
        result = await _service(repo, settings, x).post_response(response.id)
        assert result.success
        assert json.loads(x.requests[0].content) == {"text": "Thoughts on the D?"}
        assert (await repo.get_daily_activity("chicago-bears")).original_posts == 1

    async def test_missing_response(self, repo: Repository, settings: Settings):
        result = await _service(repo, settings, FakeX()).post_response(404)
        assert result.to_dict() == {"success": False, "error": "Response not found"}

    async def test_not_pending(self, repo: Repository, settings: Settings):
        await _enable(repo)
        response = await repo.create_bot_response("chicago-bears", "reply", "x", in_reply_to_tweet_id="1")
        await repo.mark_response_posted(response, "55")
        result = await _service(repo, settings, FakeX()).post_response(response.id)
        assert result.error == "Response is posted, not pending"

    async def test_daily_limit(self, repo: Repository, settings: Settings):
        await _enable(repo, daily_reply_limit=1)
        await repo.increment_daily_activity("chicago-bears", replies=1)
        response = await repo.create_bot_response("chicago-bears", "reply", "x", in_reply_to_tweet_id="1")
        result = await _service(repo, settings, FakeX()).post_response(response.id)
        assert result.error == "Daily limit reached"
        assert response.status == "pending"

    async def test_reply_without_target(self, repo: Repository, settings: Settings):
        await _enable(repo)
        response = await repo.create_bot_response("chicago-bears", "reply", "x")
        result = await _service(repo, settings, FakeX()).post_response(response.id)
        assert result.error == "No tweet to reply to"

    async def test_twitter_failure_marks_failed(self, repo: Repository, settings: Settings):
        await _enable(repo)
        response = await repo.create_bot_response("chicago-bears", "reply", "x", in_reply_to_tweet_id="1")
        result = await _service(repo, settings, FakeX(post_status=403)).post_response(response.id)
        assert not result.success
        assert result.response_id == response.id
        assert response.status == "failed"
        assert "403" in response.error_message

    async def test_post_pending_with_delays(self, repo: Repository):
        await _enable(repo, min_delay_seconds=30, max_delay_seconds=120)
        first = await repo.create_bot_response("chicago-bears", "original_post", "one")
        second = await repo.create_bot_response("chicago-bears", "original_post", "two")
        sleep = AsyncMock()
        service = _service(repo, Settings(bot_human_delay=True), FakeX(), sleep=sleep)

        results = await service.post_pending("chicago-bears")

        assert [r.response_id for r in results] == [first.id, second.id]
        assert all(r.success for r in results)
        # One config delay per post plus one pause between posts.
        assert sleep.await_count == 3
        for call in sleep.await_args_list:
            assert 30 <= call.args[0] <= 120


class TestConfigAndStatus:
    async def test_update_config_upserts_and_logs(self, repo: Repository, settings: Settings):
        service = _service(repo, settings, FakeX())
        config = await service.update_config("chicago-cubs", {"enabled": True, "daily_reply_limit": 5})
        assert config.enabled
        assert config.daily_reply_limit == 5
        logs = await repo.list_bot_logs("chicago-cubs")
        assert logs[0].action == "update_config"

    async def test_update_config_unknown_field(self, repo: Repository, settings: Settings):
        with pytest.raises(ValueError, match="bogus"):
            await _service(repo, settings, FakeX()).update_config("chicago-cubs", {"bogus": 1})

    async def test_status(self, repo: Repository, settings: Settings):
        await _enable(repo, daily_reply_limit=2)
        await repo.increment_daily_activity("chicago-bears", replies=2)
        await repo.create_bot_response("chicago-bears", "reply", "x", in_reply_to_tweet_id="1")
        [status] = await _service(repo, settings, FakeX()).get_status("chicago-bears")
        assert status["today_replies"] == 2
        assert status["can_reply"] is False
        assert status["can_post"] is True
        assert status["pending_responses"] == 1


class TestArticlePromotion:
    async def test_queues_promo(self, repo: Repository, settings: Settings):
        await _enable(repo)
        category = await repo.create_category("Chicago Bears", "chicago-bears")
        post = await repo.create_post(
            "Bears Sign Edge Rusher", "bears-sign-edge-rusher", category_id=category.id, status="published"
        )
        service = _service(repo, settings, FakeX(), "This signing changes the whole D line.")

        result = await service.queue_article_promotion("chicago-bears", post.id)

        assert result.success
        response = await repo.get_bot_response(result.response_id)
        assert response.response_type == "original_post"
        assert response.article_id == post.id
        assert response.content.endswith(
            "\n\nhttps://sportsmockery.com/chicago-bears/bears-sign-edge-rusher"
        )

    async def test_missing_article(self, repo: Repository, settings: Settings):
        await _enable(repo)
        result = await _service(repo, settings, FakeX()).queue_article_promotion("chicago-bears", 99)
        assert result.error == "Article not found"

    async def test_post_limit(self, repo: Repository, settings: Settings):
        await _enable(repo, daily_post_limit=0)
        post = await repo.create_post("T", "t", status="published")
        result = await _service(repo, settings, FakeX()).queue_article_promotion("chicago-bears", post.id)
        assert result.error == "Daily post limit reached"
