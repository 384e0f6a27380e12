"""Tests for the scheduled job wrappers."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from conftest import fake_anthropic
from sportsmockery.bot.generator import ResponseGenerator
from sportsmockery.bot.twitter import TwitterClient
from sportsmockery.config import Settings
from sportsmockery.core.jobs import run_bot_monitor
from sportsmockery.db.engine import get_session
from sportsmockery.db.models import BotLogRow


async def test_bot_monitor_job_reports_and_logs(engine: AsyncEngine):
    results = await run_bot_monitor(
        engine,
        Settings(bot_human_delay=False),
        TwitterClient(),
        ResponseGenerator(client=fake_anthropic()),
    )
    assert results[0]["errors"] == ["Twitter client not configured"]

    async with get_session(engine) as session:
        logs = (await session.execute(select(BotLogRow))).scalars().all()
    assert [log.log_level for log in logs] == ["error"]
