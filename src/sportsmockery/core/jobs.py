"""Scheduled jobs: nightly WordPress import and the bot monitoring sweep.

Invoked by APScheduler on the crons in ``settings.sm_wp_sync_cron`` and
``settings.sm_bot_monitor_cron``. Each run opens its own session. Errors are
logged but never propagated so the scheduler keeps running.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from sportsmockery.bot.generator import ResponseGenerator
from sportsmockery.bot.service import BotService
from sportsmockery.bot.twitter import TwitterClient
from sportsmockery.config import Settings
from sportsmockery.core.wordpress_sync import WordPressSyncError, sync_wordpress
from sportsmockery.db.engine import get_session
from sportsmockery.db.repository import Repository

logger = logging.getLogger(__name__)


async def run_wordpress_sync(engine: AsyncEngine, settings: Settings) -> dict | None:
    try:
        async with get_session(engine) as session:
            result = await sync_wordpress(
                Repository(session),
                base_url=settings.wp_base_url,
                max_pages=settings.wp_sync_max_pages,
                per_page=settings.wp_sync_per_page,
            )
    except (WordPressSyncError, SQLAlchemyError):
        logger.exception("scheduled_wp_sync_failed")
        return None
    return result


async def run_bot_monitor(
    engine: AsyncEngine,
    settings: Settings,
    twitter: TwitterClient,
    generator: ResponseGenerator,
) -> list[dict] | None:
    try:
        async with get_session(engine) as session:
            service = BotService(Repository(session), twitter, generator, settings)
            results = await service.monitor()
    except SQLAlchemyError:
        logger.exception("scheduled_bot_monitor_failed")
        return None
    queued = sum(r.replies_queued for r in results)
    logger.info("scheduled_bot_monitor_complete teams=%d replies_queued=%d", len(results), queued)
    return [r.to_dict() for r in results]
