"""GM trade simulator: grading, draft grading and season simulation via DataLab.

All scoring happens in DataLab. This module validates input, throttles
users, stores graded trades for sharing, and relays results.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from sportsmockery.ai.datalab import DataLabError
from sportsmockery.api.deps import DataLabDep, RepoDep
from sportsmockery.auth.deps import CurrentUser
from sportsmockery.core.teams import SPORTS, TEAM_KEY_SPORTS, team_key
from sportsmockery.db.models import GMTradeRow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gm", tags=["gm"])

GRADES_PER_MINUTE = 10
ACCEPTED_GRADE = 75
MIN_SEASON_YEAR = 2000


class GradeTradeRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    chicago_team: str = ""
    trade_partner: str = ""
    players_sent: list[Any] = []
    players_received: list[Any] = []
    draft_picks_sent: list[Any] = []
    draft_picks_received: list[Any] = []
    session_id: str | None = None
    partner_team_key: str | None = None


class DraftGradeRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    chicago_team: str = ""
    picks: list[Any] = []


class SimSeasonRequest(BaseModel):
    sessionId: str | None = None
    sport: str = ""
    teamKey: str = ""
    seasonYear: int


def _upstream_error(exc: DataLabError, message: str) -> JSONResponse:
    logger.warning("gm_datalab_failed status=%s error=%s", exc.status, exc.message)
    return JSONResponse({"error": message, "detail": exc.message}, status_code=502)


def _trade_dict(trade: GMTradeRow) -> dict:
    return {
        "id": trade.id,
        "chicago_team": trade.chicago_team,
        "sport": trade.sport,
        "trade_partner": trade.trade_partner,
        "players_sent": trade.players_sent,
        "players_received": trade.players_received,
        "draft_picks_sent": trade.draft_picks_sent,
        "draft_picks_received": trade.draft_picks_received,
        "grade": trade.grade,
        "grade_reasoning": trade.grade_reasoning,
        "trade_summary": trade.trade_summary,
        "status": trade.status,
        "shared_code": trade.shared_code,
        "created_at": trade.created_at.isoformat() if trade.created_at else None,
    }


def _clamp_grade(value: Any) -> int | None:
    try:
        return max(0, min(100, round(float(value))))
    except (TypeError, ValueError):
        return None


@router.post("/grade")
async def grade_trade(body: GradeTradeRequest, user: CurrentUser, repo: RepoDep, datalab: DataLabDep):
    """Grade a proposed trade and store it under a shareable code."""
    since = datetime.now(UTC) - timedelta(minutes=1)
    if await repo.count_gm_trades_since(user.user_id, since) >= GRADES_PER_MINUTE:
        raise HTTPException(429, f"Rate limited. Max {GRADES_PER_MINUTE} trades per minute.")

    team = team_key(body.chicago_team) if body.chicago_team else None
    if team is None:
        raise HTTPException(400, "Invalid chicago_team")
    if not body.trade_partner.strip():
        raise HTTPException(400, "trade_partner required")
    if not (body.players_sent or body.draft_picks_sent):
        raise HTTPException(400, "Trade must send at least one player or pick")
    if not (body.players_received or body.draft_picks_received):
        raise HTTPException(400, "Trade must receive at least one player or pick")

    sport = TEAM_KEY_SPORTS[team]
    payload = {**body.model_dump(), "chicago_team": team, "sport": sport}
    try:
        result = await datalab.grade_trade(payload)
    except DataLabError as exc:
        return _upstream_error(exc, "Failed to grade trade")

    grade = _clamp_grade(result.get("grade"))
    shared_code = secrets.token_hex(6)
    trade = await repo.create_gm_trade(
        user_id=user.user_id,
        chicago_team=team,
        sport=sport,
        trade_partner=body.trade_partner.strip(),
        players_sent=body.players_sent,
        players_received=body.players_received,
        draft_picks_sent=body.draft_picks_sent,
        draft_picks_received=body.draft_picks_received,
        grade=grade,
        grade_reasoning=result.get("reasoning"),
        trade_summary=result.get("trade_summary"),
        status="accepted" if grade is not None and grade >= ACCEPTED_GRADE else "rejected",
        session_id=body.session_id,
        shared_code=shared_code,
        result=result,
    )
    logger.info("gm_trade_graded user=%s team=%s grade=%s", user.user_id, team, grade)
    return {**result, "trade_id": trade.id, "shared_code": shared_code}


@router.post("/draft/grade")
async def grade_draft(body: DraftGradeRequest, user: CurrentUser, datalab: DataLabDep):
    team = team_key(body.chicago_team) if body.chicago_team else None
    if team is None:
        raise HTTPException(400, "Invalid chicago_team")
    if not body.picks:
        raise HTTPException(400, "picks must be a non-empty list")
    payload = {**body.model_dump(), "chicago_team": team, "sport": TEAM_KEY_SPORTS[team], "user_id": user.user_id}
    try:
        return await datalab.grade_draft(payload)
    except DataLabError as exc:
        return _upstream_error(exc, "Failed to grade draft")


@router.post("/sim/season")
async def simulate_season(body: SimSeasonRequest, datalab: DataLabDep):
    """Relay a season simulation request. DataLab runs the simulation."""
    sport = body.sport.lower()
    if sport not in SPORTS:
        raise HTTPException(400, "Invalid sport")
    team = team_key(body.teamKey) if body.teamKey else None
    if team is None or TEAM_KEY_SPORTS[team] != sport:
        raise HTTPException(400, "teamKey must be a Chicago team in that sport")
    max_year = datetime.now(UTC).year + 1
    if not MIN_SEASON_YEAR <= body.seasonYear <= max_year:
        raise HTTPException(400, f"seasonYear must be between {MIN_SEASON_YEAR} and {max_year}")

    payload = {"sessionId": body.sessionId, "sport": sport, "teamKey": team, "seasonYear": body.seasonYear}
    try:
        return await datalab.simulate_season(payload)
    except DataLabError as exc:
        return _upstream_error(exc, "Failed to simulate season")


@router.get("/trades/{shared_code}")
async def get_shared_trade(shared_code: str, repo: RepoDep) -> dict:
    trade = await repo.get_gm_trade_by_code(shared_code)
    if trade is None:
        raise HTTPException(404, "Trade not found")
    return {"trade": _trade_dict(trade)}
