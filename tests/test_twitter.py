"""Tests for the X API client: OAuth signing, search and posting."""

import json

import httpx
import pytest

from sportsmockery.bot.twitter import (
    TwitterAPIError,
    TwitterClient,
    build_team_query,
    oauth1_header,
    users_by_id,
)
from sportsmockery.config import Settings


class TestOAuth1:
    def test_reference_signature(self):
        """Worked example from X's "Creating a signature" guide."""
        header = oauth1_header(
            "POST",
            "https://api.twitter.com/1.1/statuses/update.json",
            consumer_key="xvz1evFS4wEEPTGEFPHBog",
            consumer_secret="kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw",
            token="370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb",
            token_secret="LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE",
            params={
                "include_entities": "true",
                "status": "Hello Ladies + Gentlemen, a signed OAuth request!",
            },
            timestamp="1318622958",
            nonce="kYjzVBB8Y0ZFabxSWbWovY3uYSQ2pTgmZeNu2VS4cg",
        )
        assert header.startswith("OAuth ")
        assert 'oauth_signature="hCtSmYh%2BiHYCEqBWrE7C7hYmtUk%3D"' in header
        assert "include_entities" not in header

    def test_keys_sorted(self):
        header = oauth1_header(
            "GET",
            "https://api.twitter.com/2/users/me",
            consumer_key="ck",
            consumer_secret="cs",
            token="t",
            token_secret="ts",
            timestamp="1",
            nonce="n",
        )
        keys = [part.split("=")[0] for part in header.removeprefix("OAuth ").split(", ")]
        assert keys == sorted(keys)
        assert "oauth_signature" in keys


class TestHelpers:
    def test_team_query_with_keywords(self):
        assert build_team_query("Bears", ["trade", "draft"]) == "(Bears (trade OR draft)) -is:retweet lang:en"

    def test_team_query_plain(self):
        assert build_team_query("White Sox", []) == "(White Sox) -is:retweet lang:en"

    def test_users_by_id(self):
        response = {"includes": {"users": [{"id": "1", "username": "fan"}]}}
        assert users_by_id(response) == {"1": {"id": "1", "username": "fan"}}
        assert users_by_id({}) == {}


def _client(handler, **kwargs) -> TwitterClient:
    return TwitterClient(
        api_key="ck",
        api_secret="cs",
        access_token="at",
        access_token_secret="ats",
        bearer_token="bearer",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestClient:
    def test_is_configured(self):
        assert _client(lambda r: httpx.Response(200)).is_configured()
        assert not TwitterClient(api_key="ck").is_configured()

    def test_from_settings(self):
        settings = Settings(twitter_api_key="k", twitter_bearer_token="b")
        client = TwitterClient.from_settings(settings)
        assert client.api_key == "k"
        assert client.bearer_token == "b"
        assert not client.is_configured()

    async def test_search_uses_bearer_token(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [{"id": "1", "text": "go bears"}]})

        result = await _client(handler).search_team_tweets("Bears", ["trade"], max_results=5)
        request = seen[0]
        assert request.url.path == "/2/tweets/search/recent"
        assert request.url.params["query"] == "(Bears (trade)) -is:retweet lang:en"
        assert request.url.params["max_results"] == "10"
        assert request.headers["authorization"] == "Bearer bearer"
        assert result["data"][0]["id"] == "1"

    async def test_reply_is_oauth_signed(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"data": {"id": "99", "text": "hi"}})

        result = await _client(handler).reply_to_tweet("hi", "42")
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/2/tweets"
        assert request.headers["authorization"].startswith("OAuth ")
        assert json.loads(request.content) == {"text": "hi", "reply": {"in_reply_to_tweet_id": "42"}}
        assert result["data"]["id"] == "99"

    async def test_quote_body(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"data": {"id": "5"}})

        await _client(handler).quote_tweet("look", "7")
        assert json.loads(seen[0].content) == {"text": "look", "quote_tweet_id": "7"}

    async def test_error_status(self):
        client = _client(lambda r: httpx.Response(429, text="Too Many Requests"))
        with pytest.raises(TwitterAPIError) as exc_info:
            await client.post_tweet("hello")
        assert exc_info.value.status == 429
        assert "Too Many Requests" in str(exc_info.value)

    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TwitterAPIError) as exc_info:
            await _client(handler).get_tweet("1")
        assert exc_info.value.status is None
