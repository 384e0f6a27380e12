"""AI fan in the team chat rooms.

Each team room has a persona, a die-hard fan account that answers when a fan
is chatting alone or tags it by name. Replies come from Claude with a team
knowledge base in the system prompt; when the model is unavailable a canned
greeting keeps the room from going silent. Staff who spoke in the last two
minutes always take precedence.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from sportsmockery.bot.generator import DEFAULT_MODEL, GenerationError, ResponseGenerator

logger = logging.getLogger(__name__)

TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
TriggerReason = Literal["direct_mention", "no_users_online"]
QuickResponseKind = Literal["greeting", "thanks", "agreement", "hype"]

CONTEXT_MESSAGES = 10
STAFF_PRIORITY_WINDOW = timedelta(minutes=2)
STAFF_BADGES = frozenset({"staff", "moderator", "admin"})
AI_BADGE = "ai"
MAX_REPLY_TOKENS = 300
MIN_SECONDS_BETWEEN_REPLIES = 30
MAX_REPLIES_PER_HOUR = 20


@dataclass(frozen=True)
class TeamKnowledge:
    name: str
    nickname: str
    league: str
    division: str
    stadium: str
    founded: int
    championships: tuple[str, ...]
    rivals: tuple[str, ...]
    legends: tuple[str, ...]
    highlights: tuple[str, ...]
    fan_phrases: tuple[str, ...]
    head_coach: str


TEAM_KNOWLEDGE: dict[str, TeamKnowledge] = {
    "bears": TeamKnowledge(
        name="Chicago Bears",
        nickname="Da Bears",
        league="NFL",
        division="NFC North",
        stadium="Soldier Field",
        founded=1920,
        championships=("1921", "1932", "1933", "1940", "1941", "1943", "1946", "1963", "1985"),
        rivals=("Green Bay Packers", "Minnesota Vikings", "Detroit Lions"),
        legends=(
            "Walter Payton (Sweetness)",
            "Mike Ditka",
            "Dick Butkus",
            "Gale Sayers",
            "Brian Urlacher",
            "Mike Singletary",
            "Devin Hester",
        ),
        highlights=(
            "2024 #1 overall pick Caleb Williams, the franchise QB hope",
            "Rome Odunze adds elite receiving depth",
            "DJ Moore coming off a 1,300+ yard season",
            "Montez Sweat anchoring the defense",
        ),
        fan_phrases=("Bear Down!", "Da Bears!", "Monsters of the Midway", "85 Bears forever"),
        head_coach="Ben Johnson",
    ),
    "cubs": TeamKnowledge(
        name="Chicago Cubs",
        nickname="Cubbies",
        league="MLB",
        division="NL Central",
        stadium="Wrigley Field",
        founded=1876,
        championships=("1907", "1908", "2016"),
        rivals=("St. Louis Cardinals", "Chicago White Sox", "Milwaukee Brewers"),
        legends=(
            "Ernie Banks (Mr. Cub)",
            "Ryne Sandberg",
            "Ron Santo",
            "Fergie Jenkins",
            "Billy Williams",
            "Kerry Wood",
            "Anthony Rizzo",
        ),
        highlights=(
            "2016 World Series champions, ending a 108-year drought",
            "Wrigley Field, the Friendly Confines",
            "A young core built for the future",
        ),
        fan_phrases=("Go Cubs Go!", "Fly the W!", "Let's play two!", "Cubs Win! Cubs Win!"),
        head_coach="Craig Counsell",
    ),
    "bulls": TeamKnowledge(
        name="Chicago Bulls",
        nickname="The Bulls",
        league="NBA",
        division="Central Division",
        stadium="United Center",
        founded=1966,
        championships=("1991", "1992", "1993", "1996", "1997", "1998"),
        rivals=("Detroit Pistons", "New York Knicks", "Miami Heat", "Cleveland Cavaliers"),
        legends=(
            "Michael Jordan (GOAT)",
            "Scottie Pippen",
            "Dennis Rodman",
            "Derrick Rose",
            "Joakim Noah",
            "Jerry Sloan",
        ),
        highlights=(
            "Six NBA titles in the 90s",
            "Coby White's development",
            "Josh Giddey running the offense",
        ),
        fan_phrases=("See Red!", "Bulls Nation", "6 rings!", "Run with us!"),
        head_coach="Billy Donovan",
    ),
    "whitesox": TeamKnowledge(
        name="Chicago White Sox",
        nickname="The South Siders",
        league="MLB",
        division="AL Central",
        stadium="Rate Field",
        founded=1901,
        championships=("1906", "1917", "2005"),
        rivals=("Chicago Cubs", "Minnesota Twins", "Detroit Tigers", "Cleveland Guardians"),
        legends=(
            "Frank Thomas (Big Hurt)",
            "Minnie Minoso",
            "Luis Aparicio",
            "Nellie Fox",
            "Paul Konerko",
            "Mark Buehrle",
            "Carlton Fisk",
        ),
        highlights=("2005 World Series champions", "South Side pride", "Rebuilding with young talent"),
        fan_phrases=("Go Go White Sox!", "South Side Pride", "Good Guys Wear Black", "Sox Win!"),
        head_coach="Will Venable",
    ),
    "blackhawks": TeamKnowledge(
        name="Chicago Blackhawks",
        nickname="Hawks",
        league="NHL",
        division="Central Division",
        stadium="United Center",
        founded=1926,
        championships=("1934", "1938", "1961", "2010", "2013", "2015"),
        rivals=("Detroit Red Wings", "St. Louis Blues", "Nashville Predators"),
        legends=(
            "Bobby Hull",
            "Stan Mikita",
            "Tony Esposito",
            "Denis Savard",
            "Jonathan Toews",
            "Patrick Kane",
            "Duncan Keith",
        ),
        highlights=(
            "3 Stanley Cups in 6 years (2010, 2013, 2015)",
            "Connor Bedard, a generational talent",
            "Rebuilding the dynasty",
        ),
        fan_phrases=("One Goal!", "Chelsea Dagger!", "Hawks Win!", "Lord Stanley!"),
        head_coach="Jeff Blashill",
    ),
}


@dataclass(frozen=True)
class Persona:
    id: str
    username: str
    team: str


PERSONAS: dict[str, Persona] = {
    "bears": Persona("bears-benny", "BearDownBenny", "bears"),
    "cubs": Persona("cubs-will", "WrigleyWill", "cubs"),
    "bulls": Persona("bulls-hoops", "WindyCityHoops", "bulls"),
    "whitesox": Persona("sox-sarah", "SouthSideSoxSarah", "whitesox"),
    "blackhawks": Persona("hawks-mike", "MadhouseMike", "blackhawks"),
}

# The site-wide room borrows the Bears persona.
GLOBAL_ROOM_TEAM = "bears"

GREETINGS: dict[str, tuple[str, ...]] = {
    "morning": (
        "Hey hey! Good morning from the Windy City!",
        "Rise and shine, Chicago style!",
        "Morning! Ready to talk some sports?",
    ),
    "afternoon": (
        "What's up! Perfect time to talk Chicago sports!",
        "Hey there! How's the afternoon treating ya?",
        "Afternoon! Let's get into it!",
    ),
    "evening": (
        "Evening! Prime time for sports talk!",
        "What's happening? Let's break it down!",
        "Evening vibes! What's on your mind?",
    ),
    "night": (
        "Late night crew! The real ones are still up!",
        "Night owl? Respect! Let's talk sports!",
        "Can't sleep without your sports fix? I got you!",
    ),
}

ENTHUSIASM_PHRASES = (
    "Man, I love this team!",
    "This is what it's all about!",
    "Chicago sports baby!",
    "You love to see it!",
    "This city runs on sports!",
)

RIVAL_TRASH_TALK: dict[str, tuple[str, ...]] = {
    "packers": (
        "Green Bay? More like Green Boring.",
        "Cheeseheads can keep the cheese. We'll keep the history.",
    ),
    "cardinals": (
        "St. Louis BBQ is mid at best. Fight me.",
        "The only thing red about Cardinals fans is their embarrassment!",
    ),
    "pistons": ("Bad Boys era was 30+ years ago, let it go!",),
    "red-wings": (
        "Original Six rivalry! But we got more recent Cups!",
        "Detroit might have cars, but we have championships this century!",
    ),
}
DEFAULT_TRASH_TALK = "Yeah, they're not on our level. Chicago > everywhere else!"

_QUESTION_START_RE = re.compile(
    r"^(what|who|when|where|why|how|is|are|do|does|can|could|would|should)\b", re.I
)
_GREETING_ONLY_RE = re.compile(
    r"^(hey|hi|hello|yo|sup|what'?s up|good (morning|afternoon|evening))( \w+)?[!. ]*$", re.I
)
_THANKS_RE = re.compile(r"^(thanks|thank you|thx|ty)\b", re.I)
_CITATION_RE = re.compile(r"\[\d+\]")
_SPACES_RE = re.compile(r"\s{2,}")


@dataclass(frozen=True)
class RoomMessage:
    """A recent chat line as the responder sees it."""

    user_name: str
    content: str
    created_at: datetime
    is_staff: bool = False
    is_ai: bool = False
    user_id: str | None = None


@dataclass(frozen=True)
class TriggerDecision:
    should_respond: bool
    reason: TriggerReason | None = None
    hint: str | None = None


@dataclass
class ChatReply:
    content: str
    persona: Persona
    trigger: TriggerReason
    confidence: float
    model: str | None = None


def team_for_room(room_id: str) -> str | None:
    """Team key whose persona hosts *room_id* (``bears``, ``bears-game``, ``global``...)."""
    key = room_id.strip().lower().removeprefix("chicago-").replace("-", "").replace("_", "")
    if key == "global":
        return GLOBAL_ROOM_TEAM
    for team in TEAM_KNOWLEDGE:
        if key.startswith(team):
            return team
    return None


def persona_for_room(room_id: str) -> Persona | None:
    team = team_for_room(room_id)
    return PERSONAS[team] if team else None


def time_of_day(hour: int) -> TimeOfDay:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def is_question(message: str) -> bool:
    return "?" in message or bool(_QUESTION_START_RE.match(message.strip()))


def mentions_persona(message: str, persona: Persona) -> bool:
    return persona.username.lower() in message.lower()


def decide_trigger(
    message: str,
    persona: Persona,
    *,
    users_online: int,
    recent: list[RoomMessage],
    now: datetime | None = None,
) -> TriggerDecision:
    """Whether the persona should answer *message*.

    Staff who spoke recently own the room. Otherwise the persona answers a
    direct tag, or a fan who is alone; it never joins a conversation between
    fans uninvited.
    """
    now = now or datetime.now(UTC)
    if any(m.is_staff and now - m.created_at < STAFF_PRIORITY_WINDOW for m in recent):
        return TriggerDecision(False, hint="Staff are answering in this room")

    if mentions_persona(message, persona):
        return TriggerDecision(True, "direct_mention")

    window_start = now - timedelta(minutes=3)
    recent_humans = {
        m.user_id or m.user_name for m in recent if not m.is_ai and m.created_at >= window_start
    }
    if users_online > 1 or len(recent_humans) >= 2:
        return TriggerDecision(
            False,
            hint=f"Tag @{persona.username} to get a response while other fans are chatting.",
        )
    return TriggerDecision(True, "no_users_online")


def build_system_prompt(team: str) -> str:
    info = TEAM_KNOWLEDGE[team]
    return f"""\
You are {PERSONAS[team].username}, a die-hard lifelong {info.name} fan chatting in the \
Sports Mockery fan chat. You know every Chicago team, but the {info.name} are your team.

PERSONALITY:
- Passionate, enthusiastic and fun to talk to, like a friend at the bar
- Chicago slang and references come naturally, never forced
- Self-deprecating humor about Chicago sports suffering is welcome
- Always supportive of Chicago teams, constructive when they struggle
- Playful trash talk about the {", ".join(info.rivals)}
- Phrases you use: "{'", "'.join(info.fan_phrases[:3])}"

KNOWLEDGE:
- {info.name} ({info.league}), {info.division}
- Home: {info.stadium}, founded {info.founded}
- Championships: {", ".join(info.championships)}
- Legends: {", ".join(info.legends)}
- Head coach: {info.head_coach}
- Lately: {"; ".join(info.highlights)}

RULES:
1. Never criticize Chicago teams harshly
2. Trash talk rivals playfully, never hatefully
3. If you don't know something, say so; never make up stats
4. Keep it to 1-3 sentences unless asked for detail, under 280 characters when possible
5. Use emojis sparingly
6. No politics, religion or controversial non-sports topics
7. Welcome every fan; steer negativity toward something positive
8. Sound like a fan texting, not an essay"""


def build_user_prompt(
    team: str,
    user_name: str,
    message: str,
    recent: list[RoomMessage],
    trigger: TriggerReason,
) -> str:
    def label(m: RoomMessage) -> str:
        return "[STAFF]" if m.is_staff else "[AI]" if m.is_ai else "[FAN]"

    context = "\n".join(f"{label(m)} {m.user_name}: {m.content}" for m in recent[-CONTEXT_MESSAGES:])
    guidance = {
        "direct_mention": "You were tagged. Respond directly to what was said.",
        "no_users_online": "The fan is alone in the room. Be welcoming and ask a follow-up question.",
    }[trigger]
    if is_question(message):
        guidance += " They asked a question: answer it with specific, accurate detail."
    return (
        f"Recent chat:\n{context or '(no earlier messages)'}\n\n"
        f'{user_name} just said: "{message}"\n\n'
        f"{guidance} Respond as {PERSONAS[team].username}, a real {TEAM_KNOWLEDGE[team].name} fan. "
        "Reply with the chat message only."
    )


def clean_reply(text: str) -> str:
    """Drop citation markers like ``[1]`` and collapse the gaps they leave."""
    return _SPACES_RE.sub(" ", _CITATION_RE.sub("", text)).strip()


def quick_response(
    kind: QuickResponseKind, team: str, user_name: str, rng: random.Random | None = None
) -> str:
    """Canned line for simple interactions; no model call."""
    rng = rng or random.Random()
    info = TEAM_KNOWLEDGE[team]
    phrase = info.fan_phrases[0]
    options = {
        "greeting": (
            f"Hey {user_name}! Welcome to {info.nickname} chat!",
            f"What's good {user_name}! Ready to talk {info.name}?",
            f"{user_name}! Let's go! {phrase}",
        ),
        "thanks": (
            "You got it! That's what we're here for!",
            f"Anytime! {info.nickname} fans stick together!",
            f"No problem! {phrase}",
        ),
        "agreement": (
            "100%! Couldn't agree more!",
            "This is the way! Big facts!",
            "Exactly! This person gets it!",
        ),
        "hype": (
            f"LET'S GOOOOO! {phrase}",
            f"I'M HYPED! {info.name.upper()} FOREVER!",
            rng.choice(ENTHUSIASM_PHRASES),
        ),
    }[kind]
    return rng.choice(options)


def rival_trash_talk(rival: str, rng: random.Random | None = None) -> str:
    rng = rng or random.Random()
    lines = RIVAL_TRASH_TALK.get(re.sub(r"\s+", "-", rival.strip().lower()))
    return rng.choice(lines) if lines else DEFAULT_TRASH_TALK


def quick_reply_for(
    message: str, team: str, user_name: str, rng: random.Random | None = None
) -> str | None:
    """Canned answer for a bare greeting, a thank-you or a rival jab; None otherwise."""
    text = message.strip()
    if _GREETING_ONLY_RE.match(text):
        return quick_response("greeting", team, user_name, rng)
    if _THANKS_RE.match(text) and not is_question(text):
        return quick_response("thanks", team, user_name, rng)
    lowered = text.lower()
    if not is_question(text):
        for rival in RIVAL_TRASH_TALK:
            if re.search(rf"\b{rival.replace('-', ' ')}\b", lowered):
                return rival_trash_talk(rival, rng)
    return None


def fallback_reply(team: str, user_name: str, when: TimeOfDay, rng: random.Random | None = None) -> str:
    rng = rng or random.Random()
    info = TEAM_KNOWLEDGE[team]
    return rng.choice(
        (
            f"Hey {user_name}! {rng.choice(GREETINGS[when])} The {info.name} chat is hopping today!",
            f"What's up {user_name}! Always great to see fans in here. {info.fan_phrases[0]}",
            f"{user_name}! Welcome to the {info.nickname} chat! What's on your mind?",
        )
    )


class ChatResponder:
    """Writes the persona's chat replies through the bot's Claude client."""

    def __init__(
        self,
        api_key: str = "",
        *,
        model: str = DEFAULT_MODEL,
        client: Any | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.generator = ResponseGenerator(api_key, model=model, client=client)
        self.rng = rng or random.Random()

    async def respond(
        self,
        persona: Persona,
        user_name: str,
        message: str,
        recent: list[RoomMessage],
        trigger: TriggerReason,
        *,
        hour: int,
        db_session: AsyncSession | None = None,
    ) -> ChatReply:
        """Model reply for the room, or a canned greeting when the model fails.

        Bare greetings, thank-yous and rival jabs get a canned line without a
        model call.
        """
        team = persona.team
        quick = quick_reply_for(message, team, user_name, self.rng)
        if quick is not None:
            return ChatReply(quick, persona, trigger, confidence=1.0)
        try:
            generated = await self.generator.generate_text(
                "chat.respond",
                build_system_prompt(team),
                build_user_prompt(team, user_name, message, recent, trigger),
                team_slug=team,
                max_tokens=MAX_REPLY_TOKENS,
                db_session=db_session,
            )
        except GenerationError as exc:
            logger.warning("chat_responder_fallback team=%s error=%s", team, exc)
            content = fallback_reply(team, user_name, time_of_day(hour), self.rng)
            return ChatReply(content, persona, trigger, confidence=0.5)

        content = clean_reply(generated.content)
        if not content:
            content = fallback_reply(team, user_name, time_of_day(hour), self.rng)
            return ChatReply(content, persona, trigger, confidence=0.5)
        return ChatReply(content, persona, trigger, confidence=0.9, model=generated.model)
