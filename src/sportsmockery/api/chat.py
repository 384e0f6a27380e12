"""Fan chat: moderated posting, room history and the room's AI fan."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from sportsmockery.ai.chat_responder import (
    AI_BADGE,
    STAFF_BADGES,
    TEAM_KNOWLEDGE,
    ChatResponder,
    RoomMessage,
    decide_trigger,
    persona_for_room,
)
from sportsmockery.api.deps import RepoDep
from sportsmockery.auth.deps import CurrentUser
from sportsmockery.core.moderation import ModerationContext, moderate_message
from sportsmockery.core.rate_limit import FixedWindowLimiter
from sportsmockery.db.models import ChatMessageRow, as_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

BAN_DURATION = timedelta(hours=24)
MAX_MESSAGE_LENGTH = 1000


class SendMessageRequest(BaseModel):
    room_id: str = ""
    content: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    content_type: Literal["text", "gif", "emoji"] = "text"
    gif_url: str | None = None
    reply_to_id: int | None = None


def _message_dict(message: ChatMessageRow) -> dict:
    return {
        "id": message.id,
        "room_id": message.room_id,
        "content": message.content,
        "content_type": message.content_type,
        "gif_url": message.gif_url,
        "reply_to_id": message.reply_to_id,
        "created_at": message.created_at.isoformat() if message.created_at else None,
        "user": {
            "user_id": message.user.user_id,
            "display_name": message.user.display_name,
            "badge": message.user.badge,
        },
    }


@router.post("/messages", status_code=201)
async def send_message(body: SendMessageRequest, request: Request, user: CurrentUser, repo: RepoDep):
    room_id = body.room_id.strip()
    content = body.content.strip()
    if not room_id or not content:
        raise HTTPException(400, "room_id and content are required")

    chat_user = await repo.get_or_create_chat_user(user.user_id, user.display_name or user.user_id)
    now = datetime.now(UTC)

    if chat_user.is_banned:
        if chat_user.ban_expires_at is None or as_utc(chat_user.ban_expires_at) > now:
            raise HTTPException(403, "You are banned from chat")
        chat_user.is_banned = False
        chat_user.ban_reason = None
        chat_user.ban_expires_at = None
    if chat_user.muted_until is not None and as_utc(chat_user.muted_until) > now:
        raise HTTPException(403, "You are temporarily muted")

    limiter: FixedWindowLimiter = request.app.state.chat_limiter
    decision = limiter.hit(f"{user.user_id}:{room_id}")
    if not decision.allowed:
        raise HTTPException(
            429,
            "Rate limit exceeded",
            headers={"Retry-After": str(max(1, math.ceil(decision.retry_after)))},
        )

    last = await repo.get_last_chat_message(chat_user.id, room_id)
    if last is not None and last.content == content:
        raise HTTPException(400, "Duplicate message")

    recent = await repo.get_recent_chat_messages_for_user(chat_user.id, room_id, now - timedelta(hours=1))
    ages = [(m.content, (now - as_utc(m.created_at)).total_seconds()) for m in recent]
    context = ModerationContext(
        message_count_last_minute=sum(1 for _, age in ages if age <= 60),
        message_count_last_hour=len(ages),
        is_new_user=not recent and (now - as_utc(chat_user.created_at)) < timedelta(minutes=1),
        seconds_since_last_message=ages[0][1] if ages else None,
        recent_messages=ages[:10],
    )
    result = moderate_message(content, context)
    flags = [flag.to_dict() for flag in result.flags]

    if not result.approved:
        await repo.log_moderation(chat_user, result.action, result.blocked_reason, flags, content)
        if result.action == "ban":
            chat_user.is_banned = True
            chat_user.ban_reason = f"Auto-moderation: {result.flags[0].category}"
            chat_user.ban_expires_at = now + BAN_DURATION
        logger.info(
            "chat_message_rejected user=%s room=%s action=%s score=%.2f",
            user.user_id,
            room_id,
            result.action,
            result.score,
        )
        return JSONResponse(
            {
                "error": result.blocked_reason,
                "moderation": {
                    "action": result.action,
                    "flags": [flag.category for flag in result.flags],
                    "score": result.score,
                },
            },
            status_code=400,
        )

    if result.action == "warn":
        chat_user.warnings_count = (chat_user.warnings_count or 0) + 1

    message = await repo.create_chat_message(
        room_id,
        chat_user,
        content,
        content_type=body.content_type,
        gif_url=body.gif_url,
        reply_to_id=body.reply_to_id,
        moderation_status="approved",
        moderation_flags=flags,
        moderation_score=result.score,
    )
    return {"message": _message_dict(message)}


@router.get("/messages")
async def list_messages(
    repo: RepoDep,
    room_id: str | None = None,
    limit: int = Query(50, ge=1, le=100),
    before: datetime | None = None,
) -> dict:
    if not room_id:
        raise HTTPException(400, "room_id is required")
    messages = await repo.list_chat_messages(room_id, limit, before)
    return {"messages": [_message_dict(m) for m in messages], "hasMore": len(messages) == limit}


class AIResponseRequest(BaseModel):
    room_id: str = ""
    content: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    users_online: int = Field(default=1, ge=0)


def _room_message(message: ChatMessageRow) -> RoomMessage:
    return RoomMessage(
        user_name=message.user.display_name,
        content=message.content,
        created_at=as_utc(message.created_at),
        is_staff=message.user.badge in STAFF_BADGES,
        is_ai=message.user.badge == AI_BADGE,
        user_id=message.user.user_id,
    )


@router.post("/ai-response")
async def ai_response(body: AIResponseRequest, request: Request, user: CurrentUser, repo: RepoDep):
    """Let the room's AI fan answer the message a fan just sent.

    Answers only when the fan is alone or tags the persona, and never while
    staff are active. The reply is stored as an approved chat message.
    """
    room_id = body.room_id.strip()
    content = body.content.strip()
    if not room_id or not content:
        raise HTTPException(400, "room_id and content are required")
    persona = persona_for_room(room_id)
    if persona is None:
        raise HTTPException(400, "No AI fan hosts this room")

    history = await repo.list_chat_messages(room_id, 20)
    recent = [_room_message(m) for m in history]
    decision = decide_trigger(content, persona, users_online=body.users_online, recent=recent)
    if not decision.should_respond:
        return {"shouldRespond": False, "hint": decision.hint}

    for limiter in (request.app.state.ai_chat_gap_limiter, request.app.state.ai_chat_hourly_limiter):
        limited = limiter.hit(persona.id)
        if not limited.allowed:
            raise HTTPException(
                429,
                "AI fan is catching its breath",
                headers={"Retry-After": str(max(1, math.ceil(limited.retry_after)))},
            )

    responder: ChatResponder = request.app.state.chat_responder
    reply = await responder.respond(
        persona,
        user.display_name or user.user_id,
        content,
        recent,
        decision.reason,
        hour=datetime.now().hour,
        db_session=repo.session,
    )

    ai_user = await repo.get_or_create_chat_user(f"ai:{persona.id}", persona.username)
    ai_user.badge = AI_BADGE
    message = await repo.create_chat_message(room_id, ai_user, reply.content, moderation_status="approved")
    logger.info(
        "chat_ai_reply room=%s persona=%s trigger=%s confidence=%.1f",
        room_id,
        persona.id,
        reply.trigger,
        reply.confidence,
    )
    return {
        "shouldRespond": True,
        "trigger": reply.trigger,
        "confidence": reply.confidence,
        "message": _message_dict(message),
    }


@router.get("/ai-response")
async def ai_persona(room_id: str = "") -> dict:
    persona = persona_for_room(room_id) if room_id else None
    if persona is None:
        raise HTTPException(404, "No AI fan hosts this room")
    info = TEAM_KNOWLEDGE[persona.team]
    return {
        "persona": {
            "id": persona.id,
            "username": persona.username,
            "team": persona.team,
            "team_name": info.name,
            "nickname": info.nickname,
            "fan_phrases": list(info.fan_phrases),
        }
    }
