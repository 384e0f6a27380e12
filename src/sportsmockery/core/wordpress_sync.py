"""Nightly import of new WordPress posts.

Pulls the newest pages from the ``sm-export`` WordPress plugin, keeps posts
whose ``wp_id`` we have not seen, creates any categories and authors they
reference, and inserts them as published.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from sportsmockery.db.repository import Repository

logger = logging.getLogger(__name__)

FETCH_RETRIES = 3
_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

Sleep = Callable[[float], Awaitable[Any]]


class WordPressSyncError(Exception):
    """WordPress could not be read after all retries."""


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    retries: int = FETCH_RETRIES,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """GET a JSON document, retrying with a linear 1s, 2s, ... backoff."""
    for attempt in range(retries):
        try:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            if attempt == retries - 1:
                raise WordPressSyncError(f"{url}: {exc}") from exc
            logger.info("wp_sync_retry attempt=%d/%d url=%s error=%s", attempt + 1, retries, url, exc)
            await sleep(1.0 * (attempt + 1))
    raise WordPressSyncError("Max retries reached")


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


async def sync_wordpress(
    repo: Repository,
    *,
    base_url: str,
    max_pages: int = 3,
    per_page: int = 100,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Sleep = asyncio.sleep,
) -> dict[str, Any]:
    """Import new posts. Returns counts and the run duration.

    Raises WordPressSyncError when WordPress stays unreachable.
    """
    started = time.monotonic()
    base_url = base_url.rstrip("/")

    async with httpx.AsyncClient(timeout=_TIMEOUT, transport=transport) as client:
        wp_posts: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            data = await fetch_with_retry(
                client, f"{base_url}/posts?page={page}&per_page={per_page}", sleep=sleep
            )
            wp_posts.extend(data.get("posts") or [])
            if page >= int(data.get("total_pages") or 1):
                break
        logger.info("wp_sync_fetched posts=%d", len(wp_posts))

        existing = await repo.get_existing_wp_post_ids(post["id"] for post in wp_posts)
        new_posts = [post for post in wp_posts if post["id"] not in existing]

        new_categories = 0
        new_authors = 0
        category_ids: dict[int, int] = {}
        author_ids: dict[int, int] = {}

        if new_posts:
            wanted_categories = {p["category_id"] for p in new_posts if p.get("category_id")}
            for wp_id in list(wanted_categories):
                row = await repo.get_category_by_wp_id(wp_id)
                if row is not None:
                    category_ids[wp_id] = row.id
                    wanted_categories.discard(wp_id)
            if wanted_categories:
                for cat in await fetch_with_retry(client, f"{base_url}/categories", sleep=sleep):
                    if cat["id"] not in wanted_categories:
                        continue
                    if await repo.get_category_by_slug(cat["slug"]) is not None:
                        logger.warning("wp_sync_category_slug_taken slug=%s", cat["slug"])
                        continue
                    row = await repo.create_category(
                        cat["name"], cat["slug"], wp_id=cat["id"], parent_wp_id=cat.get("parent_id")
                    )
                    category_ids[cat["id"]] = row.id
                    new_categories += 1

            wanted_authors = {p["author_id"] for p in new_posts if p.get("author_id")}
            for wp_id in list(wanted_authors):
                row = await repo.get_author_by_wp_id(wp_id)
                if row is not None:
                    author_ids[wp_id] = row.id
                    wanted_authors.discard(wp_id)
            if wanted_authors:
                for author in await fetch_with_retry(client, f"{base_url}/authors", sleep=sleep):
                    if author["id"] not in wanted_authors:
                        continue
                    row = await repo.create_author(
                        author["display_name"],
                        wp_id=author["id"],
                        email=author.get("email"),
                        bio=author.get("bio") or None,
                        avatar_url=author.get("avatar_url") or None,
                        role=author.get("role") or "author",
                    )
                    author_ids[author["id"]] = row.id
                    new_authors += 1

    inserted = 0
    for post in new_posts:
        if await repo.slug_exists(post["slug"]):
            logger.warning("wp_sync_slug_taken wp_id=%s slug=%s", post["id"], post["slug"])
            continue
        await repo.create_post(
            post["title"],
            post["slug"],
            wp_id=post["id"],
            content=post.get("content") or "",
            excerpt=post.get("excerpt") or None,
            featured_image=post.get("featured_image") or None,
            category_wp_id=post.get("category_id"),
            author_wp_id=post.get("author_id"),
            category_id=category_ids.get(post.get("category_id")),
            author_id=author_ids.get(post.get("author_id")),
            seo_title=post.get("seo_title") or None,
            seo_description=post.get("seo_description") or None,
            published_at=_parse_datetime(post.get("published_at")),
            status="published",
        )
        inserted += 1

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "wp_sync_complete new_posts=%d new_categories=%d new_authors=%d duration_ms=%d",
        inserted,
        new_categories,
        new_authors,
        duration_ms,
    )
    return {
        "success": True,
        "newPosts": inserted,
        "newCategories": new_categories,
        "newAuthors": new_authors,
        "skipped": len(wp_posts) - inserted,
        "duration": f"{duration_ms}ms",
    }
