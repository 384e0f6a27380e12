"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from sportsmockery.ai.chat_responder import MAX_REPLIES_PER_HOUR, MIN_SECONDS_BETWEEN_REPLIES, ChatResponder
from sportsmockery.ai.datalab import DataLabClient
from sportsmockery.api.admin_usage import router as admin_usage_router
from sportsmockery.api.bot_admin import router as bot_admin_router
from sportsmockery.api.chat import router as chat_router
from sportsmockery.api.cron import router as cron_router
from sportsmockery.api.deps import build_bot_clients
from sportsmockery.api.gm import router as gm_router
from sportsmockery.api.hub import router as hub_router
from sportsmockery.api.polls import router as polls_router
from sportsmockery.api.posts import router as posts_router
from sportsmockery.api.scout import router as scout_router
from sportsmockery.config import Settings
from sportsmockery.core.rate_limit import FixedWindowLimiter
from sportsmockery.db.engine import auto_migrate_schema, create_engine
from sportsmockery.db.models import Base

logger = logging.getLogger(__name__)

CHAT_MESSAGES_PER_MINUTE = 10


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: create engine/tables and clients, optionally start the scheduler."""
    settings: Settings = app.state.settings
    engine = create_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await auto_migrate_schema(conn)
    app.state.engine = engine

    # Tests may install stand-ins before startup.
    if getattr(app.state, "datalab", None) is None:
        app.state.datalab = DataLabClient(
            settings.datalab_api_url,
            settings.datalab_api_key,
            timeout=settings.datalab_timeout_seconds,
        )
    if getattr(app.state, "twitter", None) is None or getattr(app.state, "generator", None) is None:
        app.state.twitter, app.state.generator = build_bot_clients(settings)
    if getattr(app.state, "chat_responder", None) is None:
        app.state.chat_responder = ChatResponder(settings.anthropic_api_key)

    scheduler = None
    if settings.sm_scheduler_enabled:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from apscheduler.triggers.cron import CronTrigger

        from sportsmockery.core.jobs import run_bot_monitor, run_wordpress_sync

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_wordpress_sync,
            trigger=CronTrigger.from_crontab(settings.sm_wp_sync_cron),
            kwargs={"engine": engine, "settings": settings},
            id="wp_sync",
            name="Import new WordPress posts",
            replace_existing=True,
        )
        scheduler.add_job(
            run_bot_monitor,
            trigger=CronTrigger.from_crontab(settings.sm_bot_monitor_cron),
            kwargs={
                "engine": engine,
                "settings": settings,
                "twitter": app.state.twitter,
                "generator": app.state.generator,
            },
            id="bot_monitor",
            name="Monitor X for fan tweets",
            replace_existing=True,
        )
        scheduler.start()
        logger.info(
            "scheduler_started wp_sync_cron=%s bot_monitor_cron=%s",
            settings.sm_wp_sync_cron,
            settings.sm_bot_monitor_cron,
        )
    else:
        logger.info("scheduler_disabled")
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")

    await engine.dispose()


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return JSONResponse({"error": "Invalid request", "details": details}, status_code=400)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the SportsMockery FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.sm_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="SportsMockery",
        version="0.1.0",
        description="Chicago sports content, fan engagement and AI features",
        docs_url="/docs" if settings.sm_env != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.scout_limiter = FixedWindowLimiter(
        limit=settings.scout_track_limit,
        window_seconds=settings.scout_track_window_seconds,
        max_keys=settings.scout_track_max_keys,
    )
    app.state.chat_limiter = FixedWindowLimiter(
        limit=CHAT_MESSAGES_PER_MINUTE,
        window_seconds=60.0,
        max_keys=settings.scout_track_max_keys,
    )
    # Keyed by persona id.
    app.state.ai_chat_gap_limiter = FixedWindowLimiter(limit=1, window_seconds=MIN_SECONDS_BETWEEN_REPLIES)
    app.state.ai_chat_hourly_limiter = FixedWindowLimiter(limit=MAX_REPLIES_PER_HOUR, window_seconds=3600.0)

    app.add_exception_handler(HTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)

    app.include_router(posts_router)
    app.include_router(polls_router)
    app.include_router(hub_router)
    app.include_router(scout_router)
    app.include_router(gm_router)
    app.include_router(chat_router)
    app.include_router(bot_admin_router)
    app.include_router(admin_usage_router)
    app.include_router(cron_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.sm_env}

    return app


app = create_app()
