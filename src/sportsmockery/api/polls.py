"""Polls API: listing, creation, voting and results."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError

from sportsmockery.api.deps import RepoDep, SettingsDep
from sportsmockery.auth.deps import AdminUser, OptionalUser
from sportsmockery.db.models import PollRow, as_utc

router = APIRouter(prefix="/api/polls", tags=["polls"])

PollType = Literal["single", "multiple", "scale", "emoji"]


class PollOptionInput(BaseModel):
    option_text: str = Field(min_length=1, max_length=300)
    option_image: str | None = None
    team_tag: str | None = None
    emoji: str | None = None


class CreatePollRequest(BaseModel):
    title: str = ""
    question: str = ""
    poll_type: PollType = "single"
    team_theme: str | None = None
    is_anonymous: bool = False
    show_results: bool = True
    show_live_results: bool = True
    is_multi_select: bool | None = None
    scale_min: int | None = None
    scale_max: int | None = None
    scale_labels: dict[str, str] | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    options: list[PollOptionInput] = []


class VoteRequest(BaseModel):
    option_ids: list[int] = Field(min_length=1)
    anon_id: str | None = None


def _poll_dict(poll: PollRow) -> dict:
    total = poll.total_votes or 0
    return {
        "id": poll.id,
        "title": poll.title,
        "question": poll.question,
        "poll_type": poll.poll_type,
        "status": poll.status,
        "team_theme": poll.team_theme,
        "is_anonymous": poll.is_anonymous,
        "show_results": poll.show_results,
        "show_live_results": poll.show_live_results,
        "is_multi_select": poll.is_multi_select,
        "scale_min": poll.scale_min,
        "scale_max": poll.scale_max,
        "scale_labels": poll.scale_labels,
        "total_votes": total,
        "starts_at": poll.starts_at.isoformat() if poll.starts_at else None,
        "ends_at": poll.ends_at.isoformat() if poll.ends_at else None,
        "options": [
            {
                "id": o.id,
                "option_text": o.option_text,
                "option_image": o.option_image,
                "team_tag": o.team_tag,
                "emoji": o.emoji,
                "display_order": o.display_order,
                "vote_count": o.vote_count,
                "percentage": round(o.vote_count * 100 / total) if total else 0,
            }
            for o in sorted(poll.options, key=lambda o: o.display_order)
        ],
    }


@router.get("")
async def list_polls(
    repo: RepoDep,
    status: str | None = None,
    search: str | None = None,
    team: str | None = None,
    type: str | None = None,
    archived: bool = False,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict:
    """Polls, newest first. Archived polls only when asked for."""
    polls, total = await repo.list_polls(
        status=None if status == "all" else status,
        search=search,
        team=team,
        poll_type=type,
        include_archived=archived,
        limit=limit,
        offset=offset,
    )
    return {"polls": [_poll_dict(p) for p in polls], "total": total, "limit": limit, "offset": offset}


@router.post("", status_code=201)
async def create_poll(
    body: CreatePollRequest,
    repo: RepoDep,
    settings: SettingsDep,
    _admin: AdminUser,
) -> dict:
    """Create a poll (admin). Scale polls get one option per step."""
    if not body.title.strip() or not body.question.strip():
        raise HTTPException(400, "Title and question are required")

    if body.poll_type == "scale":
        if body.scale_min is None or body.scale_max is None:
            raise HTTPException(400, "Scale polls require min and max values")
        if body.scale_min >= body.scale_max:
            raise HTTPException(400, "scale_min must be below scale_max")
        options = [{"option_text": str(i)} for i in range(body.scale_min, body.scale_max + 1)]
    else:
        if len(body.options) < 2:
            raise HTTPException(400, "At least 2 options are required")
        options = [o.model_dump() for o in body.options]

    now = datetime.now(UTC)
    starts_at = as_utc(body.starts_at) if body.starts_at else now
    multi = body.is_multi_select if body.is_multi_select is not None else body.poll_type == "multiple"
    poll = await repo.create_poll(
        options,
        title=body.title.strip(),
        question=body.question.strip(),
        poll_type=body.poll_type,
        status="scheduled" if starts_at > now else "active",
        team_theme=body.team_theme,
        is_anonymous=body.is_anonymous,
        show_results=body.show_results,
        show_live_results=body.show_live_results,
        is_multi_select=multi,
        scale_min=body.scale_min,
        scale_max=body.scale_max,
        scale_labels=body.scale_labels,
        total_votes=0,
        starts_at=starts_at,
        ends_at=body.ends_at,
    )
    return {
        "poll": _poll_dict(poll),
        "shortcode": f"[poll:{poll.id}]",
        "embed_url": f"{settings.site_url.rstrip('/')}/polls/embed/{poll.id}",
    }


@router.get("/{poll_id}")
async def get_poll(poll_id: int, repo: RepoDep) -> dict:
    """Poll with its options and vote percentages."""
    poll = await repo.get_poll(poll_id)
    if poll is None:
        raise HTTPException(404, "Poll not found")
    return {"poll": _poll_dict(poll)}


@router.post("/{poll_id}/vote")
async def vote(poll_id: int, body: VoteRequest, repo: RepoDep, user: OptionalUser) -> dict:
    """One ballot per signed-in user or anonymous id."""
    poll = await repo.get_poll(poll_id)
    if poll is None:
        raise HTTPException(404, "Poll not found")
    if poll.status != "active":
        raise HTTPException(400, "Poll is not active")
    if poll.ends_at is not None and as_utc(poll.ends_at) <= datetime.now(UTC):
        raise HTTPException(400, "Poll has ended")

    option_ids = list(dict.fromkeys(body.option_ids))
    if not poll.is_multi_select and len(option_ids) != 1:
        raise HTTPException(400, "This poll accepts exactly one option")
    valid_ids = {o.id for o in poll.options}
    if any(option_id not in valid_ids for option_id in option_ids):
        raise HTTPException(400, "Invalid option")

    if user is not None:
        voter_key = f"user:{user.user_id}"
    elif body.anon_id and body.anon_id.strip():
        voter_key = f"anon:{body.anon_id.strip()}"
    else:
        raise HTTPException(400, "anon_id is required for anonymous votes")

    if await repo.has_voted(poll.id, voter_key):
        raise HTTPException(400, "You have already voted in this poll")

    try:
        poll = await repo.record_votes(poll, option_ids, voter_key)
    except IntegrityError as exc:
        raise HTTPException(400, "You have already voted in this poll") from exc
    return {"success": True, "poll": _poll_dict(poll)}
