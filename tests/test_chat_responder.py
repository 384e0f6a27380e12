"""Tests for the chat rooms' AI fan."""

import random
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import fake_anthropic
from sportsmockery.ai.chat_responder import (
    PERSONAS,
    ChatResponder,
    RoomMessage,
    build_user_prompt,
    clean_reply,
    decide_trigger,
    persona_for_room,
    quick_reply_for,
    team_for_room,
    time_of_day,
)
from sportsmockery.db.models import AIUsageLogRow
from sportsmockery.db.repository import Repository

NOW = datetime(2026, 10, 4, 18, 0, tzinfo=UTC)
BENNY = PERSONAS["bears"]


def _line(user: str, minutes_ago: float, *, staff: bool = False, ai: bool = False) -> RoomMessage:
    return RoomMessage(
        user_name=user,
        content="...",
        created_at=NOW - timedelta(minutes=minutes_ago),
        is_staff=staff,
        is_ai=ai,
        user_id=user,
    )


class TestRooms:
    @pytest.mark.parametrize(
        "room, team",
        [
            ("bears", "bears"),
            ("bears-game", "bears"),
            ("chicago-bulls", "bulls"),
            ("white-sox", "whitesox"),
            ("whitesox_live", "whitesox"),
            ("global", "bears"),
            ("Blackhawks", "blackhawks"),
            ("packers", None),
        ],
    )
    def test_team_for_room(self, room, team):
        assert team_for_room(room) == team

    def test_persona_for_room(self):
        assert persona_for_room("cubs-game").username == "WrigleyWill"
        assert persona_for_room("nowhere") is None

    def test_time_of_day(self):
        assert [time_of_day(h) for h in (6, 13, 19, 2)] == ["morning", "afternoon", "evening", "night"]


class TestDecideTrigger:
    def test_alone(self):
        decision = decide_trigger("Anyone here?", BENNY, users_online=1, recent=[], now=NOW)
        assert decision.should_respond
        assert decision.reason == "no_users_online"

    def test_other_fans_online(self):
        decision = decide_trigger("Big game", BENNY, users_online=3, recent=[], now=NOW)
        assert not decision.should_respond
        assert "@BearDownBenny" in decision.hint

    def test_recent_conversation_between_fans(self):
        recent = [_line("alice", 1), _line("bob", 2)]
        decision = decide_trigger("Big game", BENNY, users_online=1, recent=recent, now=NOW)
        assert not decision.should_respond

    def test_old_and_ai_lines_ignored(self):
        recent = [_line("alice", 10), _line("BearDownBenny", 1, ai=True), _line("bob", 1)]
        decision = decide_trigger("Big game", BENNY, users_online=1, recent=recent, now=NOW)
        assert decision.should_respond

    def test_mention_overrides_crowd(self):
        decision = decide_trigger("@beardownbenny who starts?", BENNY, users_online=5, recent=[], now=NOW)
        assert decision.reason == "direct_mention"

    def test_staff_take_precedence(self):
        recent = [_line("editor", 1, staff=True)]
        decision = decide_trigger("@BearDownBenny hi", BENNY, users_online=1, recent=recent, now=NOW)
        assert not decision.should_respond
        assert decision.hint == "Staff are answering in this room"

    def test_staff_window_expires(self):
        recent = [_line("editor", 5, staff=True)]
        decision = decide_trigger("Anyone?", BENNY, users_online=1, recent=recent, now=NOW)
        assert decision.should_respond


class TestQuickReplies:
    def test_greeting(self):
        reply = quick_reply_for("hey there!", "bears", "Fan One", random.Random(1))
        assert "Fan One" in reply

    def test_thanks(self):
        assert quick_reply_for("thanks man", "cubs", "Fan One", random.Random(1)) is not None

    def test_rival_jab(self):
        reply = quick_reply_for("The Packers are frauds", "bears", "Fan One", random.Random(1))
        assert reply in (
            "Green Bay? More like Green Boring.",
            "Cheeseheads can keep the cheese. We'll keep the history.",
        )

    def test_rival_question_goes_to_model(self):
        assert quick_reply_for("Can we beat the Packers?", "bears", "Fan One") is None

    def test_ordinary_message(self):
        assert quick_reply_for("That defense looked fast today", "bears", "Fan One") is None


class TestPrompts:
    def test_user_prompt_labels_history(self):
        recent = [_line("editor", 5, staff=True), _line("alice", 1)]
        prompt = build_user_prompt("bears", "Fan One", "Who starts at QB?", recent, "no_users_online")
        assert "[STAFF] editor: ..." in prompt
        assert "[FAN] alice: ..." in prompt
        assert "They asked a question" in prompt
        assert "BearDownBenny" in prompt

    def test_clean_reply(self):
        assert clean_reply("Caleb threw for 300 [1] yards [2].") == "Caleb threw for 300 yards ."


class TestRespond:
    async def test_model_reply(self, repo: Repository):
        responder = ChatResponder(client=fake_anthropic("Defense travels [1] this year!"))
        reply = await responder.respond(
            BENNY, "Fan One", "How's the defense?", [], "no_users_online", hour=19, db_session=repo.session
        )
        assert reply.content == "Defense travels this year!"
        assert reply.confidence == 0.9
        assert reply.model == "claude-sonnet-4-20250514"

        await repo.session.flush()
        usage = (await repo.session.execute(select(AIUsageLogRow))).scalars().all()
        assert [(u.call_type, u.team_slug) for u in usage] == [("chat.respond", "bears")]

    async def test_quick_reply_skips_model(self):
        client = fake_anthropic()
        reply = await ChatResponder(client=client).respond(
            BENNY, "Fan One", "hello", [], "no_users_online", hour=9
        )
        assert reply.confidence == 1.0
        client.messages.create.assert_not_called()

    async def test_falls_back_without_model(self):
        reply = await ChatResponder(rng=random.Random(3)).respond(
            BENNY, "Fan One", "How's the defense?", [], "no_users_online", hour=9
        )
        assert reply.confidence == 0.5
        assert reply.model is None
        assert "Fan One" in reply.content
