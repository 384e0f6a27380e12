"""Claude-powered copy for the @sportsmockery X account.

Generates replies, discussion posts, quote tweets and article promos in the
account's Chicago-fan voice, and triages fan tweets before the bot answers.
Every call records its token usage when a database session is supplied.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

import anthropic
import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from sportsmockery.ai.usage import cacheable_system, extract_usage, record_ai_usage, track_latency
from sportsmockery.core.content import TWEET_LIMIT, truncate_post
from sportsmockery.core.teams import TEAM_DISPLAY_NAMES, TEAM_EMOJIS, TEAM_SHORT_NAMES, TEAM_SPORTS

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
PROMO_TEXT_LIMIT = 250

ResponseType = Literal["reply", "original_post", "quote_tweet"]

BASE_SYSTEM_PROMPT = """\
You are the voice of @sportsmockery, a passionate, knowledgeable, and fair Chicago sports \
personality. You represent sportsmockery.com, Chicago's premier source for sports news and analysis.

CORE PERSONALITY TRAITS:
- Passionate Chicago sports fan who lives and breathes local teams
- Analytical and stats-driven, but accessible to casual fans
- Funny and witty when it's organic, never forced
- Always respectful, even when being critical of teams or players
- Acknowledges fan opinions before sharing your take
- Confident in your analysis but open to discussion

COMMUNICATION STYLE:
- Speak like a real Chicago fan and use local references naturally
- Keep responses conversational and engaging
- Use emojis sparingly (1-2 per response max)
- Vary your response length and style
- Reference specific stats, games, or players when relevant
- When promoting articles, make it feel like a natural recommendation

RULES:
- Never be sarcastic or disrespectful to fans
- Never discuss politics, gambling, or controversial non-sports topics
- Never spam: quality over quantity
- Keep all responses under 280 characters

SPORTSMOCKERY BRAND:
- Fair and balanced: celebrate wins and honestly discuss losses
- Metrics-based, but we understand the emotional side of fandom
- Here to engage, educate, and entertain Chicago sports fans"""

TEAM_PROMPTS: dict[str, str] = {
    "chicago-bears": """\
BEARS CONTEXT:
- Reference "da Bears" occasionally but don't overuse it
- Soldier Field, the Monsters of the Midway legacy
- Key topics: Caleb Williams development, coaching decisions, NFC North competition
- History: '85 Bears, Walter Payton, the Ditka era
- Rivals: Packers (primary), Vikings, Lions""",
    "chicago-bulls": """\
BULLS CONTEXT:
- The United Center, the Jordan dynasty
- Key topics: roster decisions, trade rumors, Eastern Conference competition
- History: 6 championships, the MJ era, the Last Dance
- Rivals: Pistons, Celtics, Heat""",
    "chicago-cubs": """\
CUBS CONTEXT:
- Wrigley Field, the Friendly Confines, North Side pride
- The 2016 curse-breaking championship
- Key topics: young pitching, prospect development, NL Central competition
- History: 2016 World Series, Ernie Banks, Ryne Sandberg
- Rivals: Cardinals (primary), Brewers, White Sox (crosstown)""",
    "chicago-white-sox": """\
WHITE SOX CONTEXT:
- The South Side and its ballpark
- The 2005 World Series championship
- Key topics: rebuild timeline, prospect development, pitching staff
- History: 2005 championship, Frank Thomas
- Rivals: Cubs (crosstown), Twins, Tigers""",
    "chicago-blackhawks": """\
BLACKHAWKS CONTEXT:
- The United Center, "Chelsea Dagger" celebrations
- The 2010, 2013 and 2015 Stanley Cups
- Key topics: Connor Bedard development, rebuild progress, Central Division
- History: Bobby Hull, Stan Mikita
- Rivals: Blues, Red Wings, Wild""",
}

RESPONSE_TYPE_GUIDANCE: dict[str, str] = {
    "reply": """\
RESPONSE TYPE: Reply to a fan's post
- Start by acknowledging their point or question
- Add your analysis or perspective
- End with a question or conversation opener
- Keep it friendly and conversational""",
    "original_post": """\
RESPONSE TYPE: Original post to start a discussion
- Share an interesting stat, observation, or hot take
- Make it thought-provoking to encourage replies
- End with a question or a call for fan opinions""",
    "quote_tweet": """\
RESPONSE TYPE: Quote tweet with commentary
- Add context or analysis to the quoted content
- Enhance the original rather than repeating it
- Make it share-worthy""",
}

PROMO_GUIDANCE = """\
RESPONSE TYPE: Article promotion
- Make the article sound interesting and valuable to fans
- Frame it as sharing something you found interesting, not an ad
- The URL is added separately, so don't include it
- Keep it under 250 characters to leave room for the URL"""

ANALYSIS_PROMPT = """\
Analyze this {team_name} tweet to determine if @sportsmockery should respond.

TWEET: "{tweet}"

Respond in JSON format:
{{
  "should_respond": boolean (true if engaging would add value),
  "priority": number (0-100, higher = more important to respond),
  "reason": "brief explanation",
  "suggested_tone": "supportive|analytical|playful|empathetic|informative"
}}

Consider:
- Is this a genuine fan opinion or question?
- Would a response add value to the conversation?
- Is the topic appropriate for @sportsmockery?
- Avoid: spam, trolls, politics, gambling, negative drama

Return only valid JSON."""


class GenerationError(Exception):
    """The model call failed or returned no usable text."""


@dataclass
class GenerationContext:
    recent_articles: list[str] = field(default_factory=list)
    team_stats: dict[str, Any] | None = None
    current_events: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratedResponse:
    content: str
    tokens_used: int
    model: str
    prompt_used: str


@dataclass(frozen=True)
class TweetAnalysis:
    should_respond: bool
    priority: int
    reason: str
    suggested_tone: str = "informative"

    @classmethod
    def declined(cls, reason: str) -> TweetAnalysis:
        return cls(should_respond=False, priority=0, reason=reason)


def build_system_prompt(team_slug: str, response_type: str) -> str:
    parts = [BASE_SYSTEM_PROMPT, TEAM_PROMPTS.get(team_slug, ""), RESPONSE_TYPE_GUIDANCE.get(response_type, "")]
    return "\n\n".join(part for part in parts if part)


def build_user_prompt(
    team_slug: str,
    tweet_content: str,
    response_type: str,
    tweet_author: str | None = None,
    context: GenerationContext | None = None,
) -> str:
    team_name = TEAM_DISPLAY_NAMES[team_slug]
    sport = TEAM_SPORTS[team_slug]
    action = {
        "reply": "reply to this",
        "original_post": "new discussion post about the",
        "quote_tweet": "quote tweet response for this",
    }[response_type]

    lines = [
        f"Generate a {action} {team_name} ({sport}) post.",
        "",
        f"Team: {team_name} {TEAM_EMOJIS[team_slug]}",
        f"Sport: {sport}",
    ]
    if response_type == "original_post":
        lines += ["", f"TOPIC: {tweet_content}"]
    else:
        author = f"@{tweet_author}: " if tweet_author else ""
        lines += ["", "TWEET TO RESPOND TO:", f'{author}"{tweet_content}"']

    if context is not None:
        if context.recent_articles:
            lines += ["", "RECENT SPORTSMOCKERY ARTICLES (reference naturally if relevant):"]
            lines += [f"- {title}" for title in context.recent_articles]
        if context.team_stats:
            lines += ["", "RELEVANT STATS:", json.dumps(context.team_stats, indent=2)]
        if context.current_events:
            lines += ["", "CURRENT EVENTS/CONTEXT:"]
            lines += [f"- {event}" for event in context.current_events]

    lines += [
        "",
        "REQUIREMENTS:",
        f"- Response MUST be under {TWEET_LIMIT} characters",
        f"- Be authentic, engaging, and true to the {TEAM_SHORT_NAMES[team_slug]} fan perspective",
        "- Make the fan feel heard and valued",
        "- Use at most one hashtag",
        "",
        "Generate only the tweet text, nothing else.",
    ]
    return "\n".join(lines)


def _first_text(response: object) -> str:
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            return block.text
    raise GenerationError("No text response from model")


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


def parse_analysis(text: str) -> TweetAnalysis:
    """Parse the model's triage JSON. Raises ValueError on malformed output."""
    data = json.loads(_strip_code_fence(text))
    if not isinstance(data, dict):
        raise ValueError("analysis is not a JSON object")
    priority = int(data.get("priority", 0))
    return TweetAnalysis(
        should_respond=bool(data.get("should_respond", False)),
        priority=max(0, min(100, priority)),
        reason=str(data.get("reason", "")),
        suggested_tone=str(data.get("suggested_tone") or "informative"),
    )


class ResponseGenerator:
    """Anthropic Messages API wrapper for bot copy.

    ``client`` can be injected (tests pass a mock with ``messages.create``).
    """

    def __init__(
        self,
        api_key: str = "",
        *,
        model: str = DEFAULT_MODEL,
        client: Any | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise GenerationError("ANTHROPIC_API_KEY is not set")
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=httpx.Timeout(30.0, connect=5.0),
            )
        return self._client

    async def _create(
        self,
        *,
        call_type: str,
        system: str | None,
        prompt: str,
        max_tokens: int,
        team_slug: str,
        db_session: AsyncSession | None,
    ) -> tuple[str, int, str]:
        """Run one Messages API call. Returns (text, tokens_used, model)."""
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = cacheable_system(system)
        try:
            async with track_latency() as timing:
                response = await client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            logger.error("generation_api_error call_type=%s team=%s error=%s", call_type, team_slug, exc)
            raise GenerationError(str(exc)) from exc

        input_tok, output_tok, cache_tok, cache_create_tok = extract_usage(response)
        if db_session is not None:
            await record_ai_usage(
                session=db_session,
                call_type=call_type,
                model=self.model,
                input_tokens=input_tok,
                output_tokens=output_tok,
                cache_read_tokens=cache_tok,
                cache_creation_tokens=cache_create_tok,
                latency_ms=timing["latency_ms"],
                team_slug=team_slug,
            )
        model = getattr(response, "model", None) or self.model
        return _first_text(response), input_tok + output_tok, model

    async def generate_response(
        self,
        team_slug: str,
        tweet_content: str,
        response_type: ResponseType,
        *,
        tweet_author: str | None = None,
        context: GenerationContext | None = None,
        system_prompt: str | None = None,
        max_tokens: int = 100,
        db_session: AsyncSession | None = None,
    ) -> GeneratedResponse:
        """Generate tweet copy, trimmed and fitted to the tweet length limit.

        ``system_prompt`` (a team's configured override) is appended to the
        built-in persona.
        """
        system = build_system_prompt(team_slug, response_type)
        if system_prompt:
            system = f"{system}\n\n{system_prompt}"
        prompt = build_user_prompt(team_slug, tweet_content, response_type, tweet_author, context)
        text, tokens, model = await self._create(
            call_type=f"bot.{response_type}",
            system=system,
            prompt=prompt,
            max_tokens=max_tokens,
            team_slug=team_slug,
            db_session=db_session,
        )
        content = truncate_post(text.strip(), TWEET_LIMIT)
        if not content:
            raise GenerationError("Model returned empty text")
        return GeneratedResponse(content=content, tokens_used=tokens, model=model, prompt_used=prompt)

    async def generate_text(
        self,
        call_type: str,
        system: str,
        prompt: str,
        *,
        team_slug: str,
        max_tokens: int = 300,
        db_session: AsyncSession | None = None,
    ) -> GeneratedResponse:
        """Free-form completion for callers that bring their own prompts."""
        text, tokens, model = await self._create(
            call_type=call_type,
            system=system,
            prompt=prompt,
            max_tokens=max_tokens,
            team_slug=team_slug,
            db_session=db_session,
        )
        return GeneratedResponse(content=text.strip(), tokens_used=tokens, model=model, prompt_used=prompt)

    async def generate_reply(
        self,
        team_slug: str,
        tweet_content: str,
        tweet_author: str | None = None,
        context: GenerationContext | None = None,
        **kwargs: Any,
    ) -> GeneratedResponse:
        return await self.generate_response(
            team_slug,
            tweet_content,
            "reply",
            tweet_author=tweet_author,
            context=context,
            **kwargs,
        )

    async def generate_original_post(
        self,
        team_slug: str,
        topic: str | None = None,
        context: GenerationContext | None = None,
        **kwargs: Any,
    ) -> GeneratedResponse:
        topic = topic or (
            f"Generate a thought-provoking discussion post about the {TEAM_DISPLAY_NAMES[team_slug]}"
        )
        return await self.generate_response(team_slug, topic, "original_post", context=context, **kwargs)

    async def generate_article_promo(
        self,
        team_slug: str,
        article_title: str,
        article_excerpt: str,
        article_url: str,
        *,
        db_session: AsyncSession | None = None,
    ) -> GeneratedResponse:
        """Promo copy under 250 characters, followed by a blank line and the URL."""
        team_name = TEAM_DISPLAY_NAMES[team_slug]
        system = "\n\n".join((BASE_SYSTEM_PROMPT, TEAM_PROMPTS.get(team_slug, ""), PROMO_GUIDANCE))
        prompt = "\n".join(
            [
                f"Write a tweet to share this {team_name} article in a way that gets fans excited to read it.",
                "",
                f'ARTICLE TITLE: "{article_title}"',
                f'ARTICLE EXCERPT: "{article_excerpt}"',
                "",
                "Requirements:",
                f"- Under {PROMO_TEXT_LIMIT} characters (URL added separately)",
                "- Sound like a fan sharing something cool, not an ad",
                "- End with something that makes people want to click",
                f"- Can use the {TEAM_EMOJIS[team_slug]} emoji",
                "",
                "Generate only the tweet text, nothing else.",
            ]
        )
        text, tokens, model = await self._create(
            call_type="bot.article_promo",
            system=system,
            prompt=prompt,
            max_tokens=100,
            team_slug=team_slug,
            db_session=db_session,
        )
        content = truncate_post(text.strip(), PROMO_TEXT_LIMIT)
        return GeneratedResponse(
            content=f"{content}\n\n{article_url}",
            tokens_used=tokens,
            model=model,
            prompt_used=prompt,
        )

    async def analyze_tweet(
        self,
        tweet_content: str,
        team_slug: str,
        *,
        db_session: AsyncSession | None = None,
    ) -> TweetAnalysis:
        """Decide whether the bot should answer a fan tweet.

        Fails closed: any API or parse error yields ``should_respond=False``.
        """
        prompt = ANALYSIS_PROMPT.format(team_name=TEAM_DISPLAY_NAMES[team_slug], tweet=tweet_content)
        try:
            text, _, _ = await self._create(
                call_type="bot.analyze",
                system=None,
                prompt=prompt,
                max_tokens=200,
                team_slug=team_slug,
                db_session=db_session,
            )
        except GenerationError as exc:
            logger.warning("tweet_analysis_failed team=%s error=%s", team_slug, exc)
            return TweetAnalysis.declined("Failed to analyze")

        try:
            return parse_analysis(text)
        except (ValueError, TypeError) as exc:
            logger.warning("tweet_analysis_unparseable team=%s error=%s", team_slug, exc)
            return TweetAnalysis.declined("Failed to parse analysis")
