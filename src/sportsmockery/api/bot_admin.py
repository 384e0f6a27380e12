"""Admin controls for the X bot: status, config, monitoring, posting, promos, logs."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from sportsmockery.api.deps import BotServiceDep, RepoDep
from sportsmockery.auth.deps import AdminUser
from sportsmockery.core.teams import is_team_slug
from sportsmockery.db.models import BotConfigRow

router = APIRouter(prefix="/api/admin/bot", tags=["bot"])


class BotConfigUpdateRequest(BaseModel):
    enabled: bool | None = None
    community_id: str | None = None
    daily_reply_limit: int | None = Field(default=None, ge=0, le=500)
    daily_post_limit: int | None = Field(default=None, ge=0, le=100)
    min_delay_seconds: int | None = Field(default=None, ge=0)
    max_delay_seconds: int | None = Field(default=None, ge=0)
    system_prompt: str | None = None

    @field_validator(
        "enabled",
        "daily_reply_limit",
        "daily_post_limit",
        "min_delay_seconds",
        "max_delay_seconds",
    )
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class MonitorRequest(BaseModel):
    team_slug: str | None = None


class PostPendingRequest(BaseModel):
    team_slug: str | None = None
    limit: int = Field(default=5, ge=1, le=20)


class PromoteRequest(BaseModel):
    team_slug: str
    post_id: int


def _check_team(team_slug: str | None) -> None:
    if team_slug is not None and not is_team_slug(team_slug):
        raise HTTPException(400, f"Unknown team: {team_slug}")


def _config_dict(config: BotConfigRow) -> dict:
    return {
        "team_slug": config.team_slug,
        "enabled": config.enabled,
        "community_id": config.community_id,
        "daily_reply_limit": config.daily_reply_limit,
        "daily_post_limit": config.daily_post_limit,
        "min_delay_seconds": config.min_delay_seconds,
        "max_delay_seconds": config.max_delay_seconds,
        "system_prompt": config.system_prompt,
    }


@router.get("/status")
async def bot_status(service: BotServiceDep, _admin: AdminUser, team: str | None = None) -> dict:
    """Whether X credentials are set, plus each team's config and usage today."""
    _check_team(team)
    return {
        "configured": service.twitter.is_configured(),
        "statuses": await service.get_status(team),
    }


@router.patch("/config/{team_slug}")
async def update_config(
    team_slug: str,
    body: BotConfigUpdateRequest,
    service: BotServiceDep,
    _admin: AdminUser,
) -> dict:
    """Create or update a team's bot settings (admin)."""
    _check_team(team_slug)
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No config fields given")
    config = await service.update_config(team_slug, updates)
    if config.min_delay_seconds > config.max_delay_seconds:
        raise HTTPException(400, "min_delay_seconds must not exceed max_delay_seconds")
    return {"config": _config_dict(config)}


@router.post("/monitor")
async def run_monitor(body: MonitorRequest, service: BotServiceDep, _admin: AdminUser) -> dict:
    """Run one monitoring pass for every team, or just *team_slug*."""
    _check_team(body.team_slug)
    results = await service.monitor(body.team_slug)
    return {
        "success": all(not r.errors for r in results),
        "results": [r.to_dict() for r in results],
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.post("/post/{response_id}")
async def post_response(response_id: int, service: BotServiceDep, _admin: AdminUser) -> dict:
    return (await service.post_response(response_id)).to_dict()


@router.post("/post-pending")
async def post_pending(body: PostPendingRequest, service: BotServiceDep, _admin: AdminUser) -> dict:
    """Post queued responses, oldest first."""
    _check_team(body.team_slug)
    results = await service.post_pending(body.team_slug, body.limit)
    return {"results": [r.to_dict() for r in results]}


@router.post("/promote")
async def promote_article(body: PromoteRequest, service: BotServiceDep, _admin: AdminUser) -> dict:
    """Queue a promotion tweet for a published article."""
    _check_team(body.team_slug)
    return (await service.queue_article_promotion(body.team_slug, body.post_id)).to_dict()


@router.get("/logs")
async def bot_logs(
    repo: RepoDep,
    _admin: AdminUser,
    team: str | None = None,
    level: str | None = None,
    limit: int = Query(50, ge=1, le=200),
) -> dict:
    logs = await repo.list_bot_logs(team, level, limit)
    return {
        "logs": [
            {
                "id": row.id,
                "team_slug": row.team_slug,
                "log_level": row.log_level,
                "action": row.action,
                "message": row.message,
                "metadata": row.meta,
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }
            for row in logs
        ]
    }
