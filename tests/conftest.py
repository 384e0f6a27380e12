"""Shared test fixtures."""

import random
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from sportsmockery.ai.chat_responder import ChatResponder
from sportsmockery.ai.datalab import DataLabClient
from sportsmockery.auth.deps import SESSION_COOKIE_NAME, SessionUser, sign_session
from sportsmockery.bot.generator import ResponseGenerator
from sportsmockery.bot.twitter import TwitterClient
from sportsmockery.config import Settings
from sportsmockery.db.engine import create_engine, get_session
from sportsmockery.db.models import Base
from sportsmockery.db.repository import Repository
from sportsmockery.main import create_app


@pytest.fixture
def settings() -> Settings:
    """Test settings with defaults."""
    return Settings(
        sm_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        bot_human_delay=False,
    )


@pytest.fixture
async def engine() -> AsyncEngine:
    """Create an in-memory SQLite engine with all tables."""
    eng = create_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def repo(engine: AsyncEngine) -> Repository:
    """Yield a repository with a session bound to the in-memory database."""
    async with get_session(engine) as session:
        yield Repository(session)


def fake_message(text: str, input_tokens: int = 40, output_tokens: int = 20) -> SimpleNamespace:
    """Stand-in for an Anthropic ``Message`` with a single text block."""
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_read_input_tokens=0,
            cache_creation_input_tokens=0,
        ),
        model="claude-sonnet-4-20250514",
    )


def fake_anthropic(*texts: str) -> MagicMock:
    """Mock client whose ``messages.create`` returns *texts* in order."""
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=[fake_message(t) for t in texts])
    return client


def mock_transport(routes: dict[str, object], status: int = 200) -> httpx.MockTransport:
    """MockTransport answering each request path with the JSON in *routes*.

    Requests are recorded on ``transport.requests``.
    """
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path not in routes:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(status, json=routes[request.url.path])

    transport = httpx.MockTransport(handler)
    transport.requests = requests  # type: ignore[attr-defined]
    return transport


def session_cookies(settings: Settings, user_id: str = "user-1", display_name: str = "Fan One") -> dict[str, str]:
    user = SessionUser(user_id=user_id, email=f"{user_id}@example.com", display_name=display_name)
    return {SESSION_COOKIE_NAME: sign_session(settings, user)}


@pytest.fixture
def datalab_routes() -> dict[str, object]:
    """Canned DataLab answers keyed by request path. Tests may mutate it."""
    return {}


@pytest.fixture
async def app(settings: Settings, datalab_routes: dict[str, object]):
    """App wired to an in-memory database and offline clients."""
    application = create_app(settings)
    eng = create_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    application.state.engine = eng
    application.state.datalab = DataLabClient(
        "https://datalab.test", "key", transport=mock_transport(datalab_routes)
    )
    application.state.twitter = TwitterClient()
    application.state.generator = ResponseGenerator(client=fake_anthropic())
    application.state.chat_responder = ChatResponder(client=fake_anthropic(), rng=random.Random(7))
    yield application
    await eng.dispose()


@pytest.fixture
async def client(app) -> AsyncClient:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
