"""Tests for bot copy generation and tweet triage."""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest
from sqlalchemy import select

from conftest import fake_anthropic, fake_message
from sportsmockery.bot.generator import (
    GenerationContext,
    GenerationError,
    ResponseGenerator,
    build_system_prompt,
    build_user_prompt,
    parse_analysis,
)
from sportsmockery.db.models import AIUsageLogRow
from sportsmockery.db.repository import Repository


class TestPrompts:
    def test_system_prompt_layers(self):
        prompt = build_system_prompt("chicago-bears", "reply")
        assert "@sportsmockery" in prompt
        assert "BEARS CONTEXT" in prompt
        assert "Reply to a fan's post" in prompt

    def test_reply_prompt_quotes_author(self):
        prompt = build_user_prompt("chicago-cubs", "Bullpen is cooked", "reply", "wrigleyfan")
        assert 'TWEET TO RESPOND TO:\n@wrigleyfan: "Bullpen is cooked"' in prompt
        assert "Chicago Cubs (MLB)" in prompt

    def test_original_post_uses_topic(self):
        prompt = build_user_prompt("chicago-bulls", "Trade deadline", "original_post")
        assert "TOPIC: Trade deadline" in prompt
        assert "TWEET TO RESPOND TO" not in prompt

    def test_context_sections(self):
        context = GenerationContext(
            recent_articles=["Bears land edge rusher"],
            team_stats={"wins": 5},
            current_events=["Bye week"],
        )
        prompt = build_user_prompt("chicago-bears", "x", "reply", context=context)
        assert "- Bears land edge rusher" in prompt
        assert '"wins": 5' in prompt
        assert "- Bye week" in prompt


class TestParseAnalysis:
    def test_plain_json(self):
        analysis = parse_analysis('{"should_respond": true, "priority": 70, "reason": "question"}')
        assert analysis.should_respond
        assert analysis.priority == 70
        assert analysis.suggested_tone == "informative"

    def test_code_fence_and_clamp(self):
        text = '```json\n{"should_respond": false, "priority": 150, "suggested_tone": "playful"}\n```'
        analysis = parse_analysis(text)
        assert analysis.priority == 100
        assert analysis.suggested_tone == "playful"

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_analysis("not json")
        with pytest.raises(ValueError):
            parse_analysis("[1, 2]")


class TestGeneration:
    async def test_reply(self):
        client = fake_anthropic("  Great point! Defense has to step up. Thoughts?  ")
        generator = ResponseGenerator(client=client)
        result = await generator.generate_reply("chicago-bears", "D is bad", "fan")

        assert result.content == "Great point! Defense has to step up. Thoughts?"
        assert result.tokens_used == 60
        assert result.model == "claude-sonnet-4-20250514"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 100
        assert kwargs["system"][0]["cache_control"] == {"type": "ephemeral"}
        assert "BEARS CONTEXT" in kwargs["system"][0]["text"]

    async def test_override_prompt_appended(self):
        client = fake_anthropic("ok")
        generator = ResponseGenerator(client=client)
        await generator.generate_reply("chicago-bears", "x", system_prompt="Mention the bye week.")
        system_text = client.messages.create.call_args.kwargs["system"][0]["text"]
        assert system_text.endswith("Mention the bye week.")

    async def test_long_output_fitted(self):
        generator = ResponseGenerator(client=fake_anthropic("word " * 100))
        result = await generator.generate_original_post("chicago-cubs")
        assert len(result.content) <= 280

    async def test_records_usage(self, repo: Repository):
        generator = ResponseGenerator(client=fake_anthropic("Go Hawks"))
        await generator.generate_reply("chicago-blackhawks", "x", db_session=repo.session)
        rows = (await repo.session.execute(select(AIUsageLogRow))).scalars().all()
        assert len(rows) == 1
        assert rows[0].call_type == "bot.reply"
        assert rows[0].team_slug == "chicago-blackhawks"
        assert rows[0].input_tokens == 40

    async def test_article_promo_appends_url(self):
        generator = ResponseGenerator(client=fake_anthropic("x" * 300))
        result = await generator.generate_article_promo(
            "chicago-bears", "Title", "Excerpt", "https://sportsmockery.com/chicago-bears/title"
        )
        text, url = result.content.split("\n\n")
        assert len(text) <= 250
        assert url == "https://sportsmockery.com/chicago-bears/title"

    async def test_missing_key(self):
        with pytest.raises(GenerationError):
            await ResponseGenerator().generate_reply("chicago-bears", "x")

    async def test_no_text_block(self):
        client = MagicMock()
        message = fake_message("ignored")
        message.content = []
        client.messages.create = AsyncMock(return_value=message)
        with pytest.raises(GenerationError):
            await ResponseGenerator(client=client).generate_reply("chicago-bears", "x")

    async def test_api_error_wrapped(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create = AsyncMock(side_effect=anthropic.APIConnectionError(request=request))
        with pytest.raises(GenerationError):
            await ResponseGenerator(client=client).generate_reply("chicago-bears", "x")


class TestAnalyzeTweet:
    async def test_parsed(self):
        generator = ResponseGenerator(
            client=fake_anthropic('{"should_respond": true, "priority": 80, "reason": "good q"}')
        )
        analysis = await generator.analyze_tweet("Who starts at QB?", "chicago-bears")
        assert analysis.should_respond
        assert analysis.priority == 80

    async def test_no_system_prompt(self):
        client = fake_anthropic('{"should_respond": false, "priority": 0}')
        await ResponseGenerator(client=client).analyze_tweet("x", "chicago-bears")
        kwargs = client.messages.create.call_args.kwargs
        assert "system" not in kwargs
        assert kwargs["max_tokens"] == 200

    async def test_unparseable_declines(self):
        generator = ResponseGenerator(client=fake_anthropic("sure, I'd respond"))
        analysis = await generator.analyze_tweet("x", "chicago-bears")
        assert not analysis.should_respond
        assert analysis.reason == "Failed to parse analysis"

    async def test_api_failure_declines(self):
        analysis = await ResponseGenerator().analyze_tweet("x", "chicago-bears")
        assert not analysis.should_respond
        assert analysis.priority == 0
        assert analysis.reason == "Failed to analyze"
