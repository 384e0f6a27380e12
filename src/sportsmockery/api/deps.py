"""FastAPI dependency injection for sessions, the repository and shared clients."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from sportsmockery.ai.datalab import DataLabClient
from sportsmockery.bot.generator import ResponseGenerator
from sportsmockery.bot.service import BotService
from sportsmockery.bot.twitter import TwitterClient
from sportsmockery.config import Settings
from sportsmockery.db.engine import create_session_factory
from sportsmockery.db.repository import Repository


async def get_engine(request: Request) -> AsyncEngine:
    """Get the database engine from app state."""
    return request.app.state.engine


async def get_session(
    engine: Annotated[AsyncEngine, Depends(get_engine)],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session."""
    factory = create_session_factory(engine)
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:  # Re-raise pattern: must catch all to ensure rollback on any error
            await session.rollback()
            raise


async def get_repo(session: Annotated[AsyncSession, Depends(get_session)]) -> Repository:
    """Get a repository instance bound to the current session."""
    return Repository(session)


RepoDep = Annotated[Repository, Depends(get_repo)]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_datalab(request: Request) -> DataLabClient:
    return request.app.state.datalab


DataLabDep = Annotated[DataLabClient, Depends(get_datalab)]


def get_bot_service(request: Request, repo: RepoDep) -> BotService:
    """Bot service bound to the request's repository."""
    state = request.app.state
    return BotService(repo, state.twitter, state.generator, state.settings)


BotServiceDep = Annotated[BotService, Depends(get_bot_service)]


def build_bot_clients(settings: Settings) -> tuple[TwitterClient, ResponseGenerator]:
    return TwitterClient.from_settings(settings), ResponseGenerator(settings.anthropic_api_key)
