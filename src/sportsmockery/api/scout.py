"""Scout endpoints: AI questions, the since-last-visit digest and UI event tracking."""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from sportsmockery.ai.datalab import DataLabError
from sportsmockery.ai.scout import MIN_QUERY_LENGTH, ask_scout
from sportsmockery.api.deps import DataLabDep, RepoDep
from sportsmockery.core.rate_limit import FixedWindowLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["scout"])


class AskRequest(BaseModel):
    query: str | None = None
    sessionId: str | None = None


class SinceLastVisitRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    team: str | None = None
    lastVisit: str | None = None


class TrackEventRequest(BaseModel):
    """A Scout UI event. Unknown fields are kept as metadata."""

    model_config = ConfigDict(extra="allow")

    anon_id: str = ""
    session_id: str | None = None
    user_id: str | None = None
    event: str = Field(default="", max_length=50)
    path: str | None = Field(default=None, max_length=500)
    team_slug: str | None = None


def _validated_query(query: str | None) -> str:
    if not query or len(query.strip()) < MIN_QUERY_LENGTH:
        raise HTTPException(400, f"Query must be at least {MIN_QUERY_LENGTH} characters")
    return query


@router.post("/ask-ai")
async def ask_ai(body: AskRequest, datalab: DataLabDep) -> dict:
    """Ask Scout. Upstream failures still return 200 with a fallback answer."""
    query = _validated_query(body.query)
    return await ask_scout(datalab, query, body.sessionId)


@router.get("/ask-ai")
async def ask_ai_get(datalab: DataLabDep, q: str | None = None, sessionId: str | None = None) -> dict:
    return await ask_ai(AskRequest(query=q, sessionId=sessionId), datalab)


@router.post("/scout/since-last-visit")
async def since_last_visit(body: SinceLastVisitRequest, datalab: DataLabDep) -> dict:
    try:
        return await datalab.summarize_since_last_visit(body.model_dump(exclude_none=True))
    except DataLabError as exc:
        logger.warning("scout_since_last_visit_failed status=%s error=%s", exc.status, exc.message)
        raise HTTPException(502, "Failed to build summary") from exc


@router.post("/track-scout")
async def track_scout(body: TrackEventRequest, request: Request, repo: RepoDep) -> dict:
    """Record one Scout UI event, throttled per anonymous id."""
    anon_id = body.anon_id.strip()
    if not anon_id:
        raise HTTPException(400, "anon_id is required")
    if not body.event:
        raise HTTPException(400, "event is required")

    limiter: FixedWindowLimiter = request.app.state.scout_limiter
    decision = limiter.hit(anon_id)
    if not decision.allowed:
        raise HTTPException(
            429,
            "Too many events",
            headers={"Retry-After": str(max(1, math.ceil(decision.retry_after)))},
        )

    meta: dict[str, Any] = dict(body.model_extra or {})
    await repo.add_scout_event(
        anon_id,
        body.event,
        session_id=body.session_id,
        user_id=body.user_id,
        path=body.path,
        team_slug=body.team_slug,
        meta=meta or None,
    )
    return {"ok": True}
