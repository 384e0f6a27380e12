"""Cron endpoints. Guarded by the shared cron secret."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from sportsmockery.api.deps import BotServiceDep, RepoDep, SettingsDep
from sportsmockery.auth.deps import require_cron_secret
from sportsmockery.core.wordpress_sync import WordPressSyncError, sync_wordpress
from sportsmockery.db.models import as_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])

DEFAULT_REVALIDATE_WINDOW = timedelta(hours=1)


@router.get("/sync-wordpress")
async def cron_sync_wordpress(request: Request, repo: RepoDep, settings: SettingsDep):
    """Import new WordPress posts (scheduled nightly at 04:00 UTC)."""
    try:
        return await sync_wordpress(
            repo,
            base_url=settings.wp_base_url,
            max_pages=settings.wp_sync_max_pages,
            per_page=settings.wp_sync_per_page,
            transport=getattr(request.app.state, "wp_transport", None),
        )
    except WordPressSyncError as exc:
        logger.error("wp_sync_failed error=%s", exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


@router.get("/bot-monitor")
async def cron_bot_monitor(service: BotServiceDep) -> dict:
    results = await service.monitor()
    return {
        "success": all(not r.errors for r in results),
        "results": [r.to_dict() for r in results],
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/revalidate")
async def cron_revalidate(repo: RepoDep, since: str | None = None) -> dict:
    """Paths whose published posts changed since ``since`` (default: the last hour)."""
    if since:
        try:
            cutoff = as_utc(datetime.fromisoformat(since.replace("Z", "+00:00")))
        except ValueError as exc:
            raise HTTPException(400, "since must be an ISO timestamp") from exc
    else:
        cutoff = datetime.now(UTC) - DEFAULT_REVALIDATE_WINDOW

    posts = await repo.get_posts_updated_since(cutoff)
    paths: list[str] = []
    for post in posts:
        category = post.category.slug if post.category else None
        candidates = [f"/{category}/{post.slug}", f"/{category}"] if category else [f"/{post.slug}"]
        for path in candidates:
            if path not in paths:
                paths.append(path)
    if paths:
        paths.insert(0, "/")
    return {"since": cutoff.isoformat(), "count": len(posts), "paths": paths}
