"""X (Twitter) API v2 client.

Reads (search, lookups) use the app-only bearer token. Writes (post, reply,
quote, delete) are signed per request with OAuth 1.0a HMAC-SHA1 user
context.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import time
from typing import Any
from urllib.parse import quote

import httpx

from sportsmockery.config import Settings

logger = logging.getLogger(__name__)

TWITTER_API_BASE = "https://api.twitter.com/2"

TWEET_FIELDS = "created_at,public_metrics,conversation_id,in_reply_to_user_id,referenced_tweets,author_id"
USER_FIELDS = "name,username,description,public_metrics"
SEARCH_EXPANSIONS = "author_id,referenced_tweets.id"

_TIMEOUT = httpx.Timeout(15.0, connect=5.0)


class TwitterAPIError(Exception):
    """X returned a non-2xx response or could not be reached."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(f"Twitter API error: {status} - {message}")
        self.status = status
        self.message = message


def _pct(value: str) -> str:
    """RFC 3986 percent-encoding, as OAuth 1.0a requires."""
    return quote(value, safe="~-._")


def oauth1_header(
    method: str,
    url: str,
    *,
    consumer_key: str,
    consumer_secret: str,
    token: str,
    token_secret: str,
    params: dict[str, str] | None = None,
    timestamp: str | None = None,
    nonce: str | None = None,
) -> str:
    """Build an ``Authorization: OAuth ...`` header value.

    JSON request bodies are not part of the signature base string; only query
    parameters and the oauth_* parameters are.
    """
    oauth_params = {
        "oauth_consumer_key": consumer_key,
        "oauth_nonce": nonce or secrets.token_hex(16),
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": timestamp or str(int(time.time())),
        "oauth_token": token,
        "oauth_version": "1.0",
    }
    all_params = {**(params or {}), **oauth_params}
    param_string = "&".join(f"{_pct(k)}={_pct(all_params[k])}" for k in sorted(all_params))
    base_string = "&".join((method.upper(), _pct(url), _pct(param_string)))
    signing_key = f"{_pct(consumer_secret)}&{_pct(token_secret)}"
    digest = hmac.new(signing_key.encode(), base_string.encode(), hashlib.sha1).digest()

    signed = {**oauth_params, "oauth_signature": base64.b64encode(digest).decode()}
    header = ", ".join(f'{_pct(k)}="{_pct(signed[k])}"' for k in sorted(signed))
    return f"OAuth {header}"


class TwitterClient:
    """Async X API v2 client.

    ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        api_secret: str = "",
        access_token: str = "",
        access_token_secret: str = "",
        bearer_token: str = "",
        base_url: str = TWITTER_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.access_token = access_token
        self.access_token_secret = access_token_secret
        self.bearer_token = bearer_token
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> TwitterClient:
        return cls(
            api_key=settings.twitter_api_key,
            api_secret=settings.twitter_api_secret,
            access_token=settings.twitter_access_token,
            access_token_secret=settings.twitter_access_token_secret,
            bearer_token=settings.twitter_bearer_token,
            **kwargs,
        )

    def is_configured(self) -> bool:
        return all(
            (
                self.api_key,
                self.api_secret,
                self.access_token,
                self.access_token_secret,
                self.bearer_token,
            )
        )

    # --- transport ---

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT, transport=self._transport) as client:
                resp = await client.request(method, url, params=params, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("twitter_unreachable method=%s path=%s error=%s", method, path, exc)
            raise TwitterAPIError(None, str(exc)) from exc

        if resp.is_error:
            logger.warning("twitter_error method=%s path=%s status=%d", method, path, resp.status_code)
            raise TwitterAPIError(resp.status_code, resp.text)
        result: dict[str, Any] = resp.json()
        return result

    async def _bearer_get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.bearer_token}"}
        return await self._send("GET", path, headers=headers, params=params)

    async def _oauth_request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        header = oauth1_header(
            method,
            f"{self.base_url}{path}",
            consumer_key=self.api_key,
            consumer_secret=self.api_secret,
            token=self.access_token,
            token_secret=self.access_token_secret,
            params=params,
        )
        headers = {"Authorization": header}
        return await self._send(method, path, headers=headers, params=params, body=body)

    # --- search / read ---

    async def search_recent_tweets(
        self,
        query: str,
        *,
        max_results: int = 10,
        since_id: str | None = None,
    ) -> dict[str, Any]:
        # The recent search endpoint accepts 10..100 results.
        params = {
            "query": query,
            "max_results": str(min(max(max_results, 10), 100)),
            "tweet.fields": TWEET_FIELDS,
            "user.fields": USER_FIELDS,
            "expansions": SEARCH_EXPANSIONS,
        }
        if since_id:
            params["since_id"] = since_id
        return await self._bearer_get("/tweets/search/recent", params)

    async def search_team_tweets(
        self,
        team_name: str,
        keywords: list[str] | None = None,
        *,
        max_results: int = 10,
        since_id: str | None = None,
    ) -> dict[str, Any]:
        """Recent English original tweets about a team, optionally narrowed by keywords."""
        return await self.search_recent_tweets(
            build_team_query(team_name, keywords or []),
            max_results=max_results,
            since_id=since_id,
        )

    async def search_community_tweets(
        self, community_id: str, *, max_results: int = 10
    ) -> dict[str, Any]:
        return await self.search_recent_tweets(
            f"conversation_id:{community_id} -is:retweet", max_results=max_results
        )

    async def get_tweet(self, tweet_id: str) -> dict[str, Any]:
        params = {"tweet.fields": TWEET_FIELDS, "expansions": "author_id"}
        return await self._bearer_get(f"/tweets/{tweet_id}", params)

    async def get_user_by_username(self, username: str) -> dict[str, Any]:
        return await self._bearer_get(
            f"/users/by/username/{username}", {"user.fields": "description,public_metrics"}
        )

    async def get_me(self) -> dict[str, Any]:
        return await self._oauth_request("GET", "/users/me")

    # --- write ---

    async def post_tweet(self, text: str) -> dict[str, Any]:
        return await self._oauth_request("POST", "/tweets", {"text": text})

    async def reply_to_tweet(self, text: str, reply_to_tweet_id: str) -> dict[str, Any]:
        body = {"text": text, "reply": {"in_reply_to_tweet_id": reply_to_tweet_id}}
        return await self._oauth_request("POST", "/tweets", body)

    async def quote_tweet(self, text: str, quote_tweet_id: str) -> dict[str, Any]:
        body = {"text": text, "quote_tweet_id": quote_tweet_id}
        return await self._oauth_request("POST", "/tweets", body)

    async def delete_tweet(self, tweet_id: str) -> dict[str, Any]:
        return await self._oauth_request("DELETE", f"/tweets/{tweet_id}")


def build_team_query(team_name: str, keywords: list[str]) -> str:
    """``(Bears (trade OR draft)) -is:retweet lang:en``"""
    keyword_part = f" ({' OR '.join(keywords)})" if keywords else ""
    return f"({team_name}{keyword_part}) -is:retweet lang:en"


def users_by_id(search_response: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Index the ``includes.users`` expansion by user id."""
    users = (search_response.get("includes") or {}).get("users") or []
    return {user["id"]: user for user in users if "id" in user}
