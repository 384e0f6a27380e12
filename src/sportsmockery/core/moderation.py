"""Rule-based chat moderation.

Every fan chat message runs through ``moderate_message`` before it is stored.
The text is normalised (homoglyphs, invisible characters, stretched letters,
inserted separators) and checked against word lists and regex rules. Each hit
becomes a ``ModerationFlag``; the highest severity decides the action:

    critical -> ban, high -> block, medium -> shadow_block, low -> warn

Word lists match whole words of the normalised text. Entries written with a
space ("kill yourself") are compound: they match consecutive words with the
separators removed, so "killyourself" and "kill-your-self" are caught too.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlsplit

Severity = Literal["low", "medium", "high", "critical"]
Action = Literal["allow", "warn", "shadow_block", "block", "ban"]

SEVERITY_ORDER: dict[str, int] = {"low": 1, "medium": 2, "high": 3, "critical": 4}
SEVERITY_WEIGHTS: dict[str, float] = {"low": 0.1, "medium": 0.3, "high": 0.6, "critical": 1.0}
CATEGORY_WEIGHTS: dict[str, float] = {
    "hate_speech": 0.15,
    "violence": 0.15,
    "nudity_sex": 0.1,
    "harassment": 0.1,
    "profanity": 0.05,
    "spam": 0.03,
    "sales": 0.03,
    "links": 0.02,
    "gambling": 0.08,
    "drugs_alcohol": 0.08,
    "evasion": 0.05,
}

MESSAGES_PER_MINUTE = 10
MESSAGES_PER_HOUR = 100
DUPLICATE_COOLDOWN_SECONDS = 30.0
SIMILAR_WINDOW_SECONDS = 60.0
SIMILARITY_THRESHOLD = 0.8
NEW_USER_COOLDOWN_SECONDS = 5.0

# Longest run of consecutive words a compound entry may span.
_MAX_COMPOUND_WORDS = 4


@dataclass(frozen=True)
class ModerationFlag:
    category: str
    rule: str
    severity: Severity
    matched_text: str

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category,
            "rule": self.rule,
            "severity": self.severity,
            "matched_text": self.matched_text,
        }


@dataclass
class ModerationResult:
    approved: bool
    action: Action
    flags: list[ModerationFlag] = field(default_factory=list)
    score: float = 0.0
    blocked_reason: str | None = None


@dataclass
class ModerationContext:
    """Recent activity for the sender, used for flood and duplicate checks.

    ``recent_messages`` holds ``(content, seconds_ago)`` pairs, newest first.
    """

    message_count_last_minute: int = 0
    message_count_last_hour: int = 0
    is_new_user: bool = False
    seconds_since_last_message: float | None = None
    recent_messages: list[tuple[str, float]] = field(default_factory=list)


# --- Normalisation -------------------------------------------------------

HOMOGLYPHS: dict[str, str] = {
    # Cyrillic
    "а": "a", "в": "b", "с": "c", "е": "e", "н": "h", "і": "i", "к": "k",
    "м": "m", "т": "t", "о": "o", "р": "p", "х": "x", "у": "y",
    # Greek
    "α": "a", "β": "b", "ε": "e", "η": "n", "ι": "i", "κ": "k", "ν": "v",
    "ο": "o", "ρ": "p", "τ": "t", "υ": "u", "χ": "x",
    # Leetspeak
    "0": "o", "1": "i", "3": "e", "4": "a", "5": "s", "7": "t", "8": "b",
    "@": "a", "$": "s", "!": "i", "|": "i", "+": "t",
    # Sub/superscripts and circled digits
    "₀": "o", "₁": "i", "₃": "e", "₄": "a", "₅": "s",
    "⁰": "o", "¹": "i", "³": "e", "⁴": "a", "⁵": "s",
    "ß": "ss",
}  # fmt: skip

_ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200f\u2028-\u202f\u2060-\u206f\ufeff\u00ad]")
_COMBINING_RE = re.compile(r"[\u0300-\u036f\u0489\u1dc0-\u1dff\u20d0-\u20ff\ufe20-\ufe2f]")
_REPEAT_RE = re.compile(r"(.)\1{2,}")
_WORD_RE = re.compile(r"[a-z0-9]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class NormalizedText:
    normalized: str
    words: frozenset[str]
    joined: frozenset[str]  # runs of 2+ consecutive words, separators removed


def normalize(content: str) -> NormalizedText:
    """Lowercase, undo homoglyphs and obfuscation, collapse stretched letters."""
    stretched = _ZERO_WIDTH_RE.sub("", content.lower())
    stretched = unicodedata.normalize("NFKD", stretched)
    stretched = _COMBINING_RE.sub("", stretched)
    stretched = "".join(HOMOGLYPHS.get(ch, ch) for ch in stretched)
    text = _REPEAT_RE.sub(r"\1\1", stretched)

    tokens = _WORD_RE.findall(text)
    words = set(tokens)
    # "fuuuuck" collapses to "fuuck" above; also try a single letter.
    words.update(_WORD_RE.findall(_REPEAT_RE.sub(r"\1", stretched)))
    # Symbols inside a word ("sh*t", "f-ck") are dropped.
    words.update(_NON_ALNUM_RE.sub("", chunk) for chunk in text.split())
    # Letters spelled out one at a time ("f u c k", "f.u.c.k") form one word.
    run: list[str] = []
    for token in [*tokens, ""]:
        if len(token) == 1:
            run.append(token)
            continue
        if len(run) > 1:
            words.add("".join(run))
        run = []
    # Raw lowercase words too, so numeric entries survive homoglyph mapping.
    words.update(_WORD_RE.findall(content.lower()))
    words.discard("")

    joined = {
        "".join(tokens[start:end])
        for start in range(len(tokens))
        for end in range(start + 2, min(start + _MAX_COMPOUND_WORDS, len(tokens)) + 1)
    }

    return NormalizedText(normalized=text, words=frozenset(words), joined=frozenset(joined))


# --- Word lists ----------------------------------------------------------

PROFANITY_WORDS = frozenset({
    "fuck", "fck", "fuk", "fuq", "phuck", "phuk", "fvck", "fukk", "fucking", "fucker",
    "fucked", "fucks", "fuckhead", "fuckface", "fucktard", "motherfucker",
    "motherfucking", "mofo", "shit", "sht", "shyt", "shite", "shitting", "shitty",
    "shithead", "bullshit", "horseshit", "dipshit", "shithole", "ass", "arse",
    "asshole", "arsehole", "asswipe", "asshat", "jackass", "dumbass", "fatass",
    "smartass", "bitch", "btch", "biatch", "biotch", "bitches", "bitchy", "bitching",
    "son of a bitch", "cunt", "cvnt", "dick", "dickhead", "dickwad", "cock",
    "cocksucker", "pussy", "pussies", "tits", "titties", "ballsack", "nutsack",
    "bastard", "whore", "slut", "skank", "goddamn", "goddammit", "piss", "pissed",
    "wanker", "wank", "twat", "bellend", "knobhead", "dildo", "jizz", "cumshot",
})  # fmt: skip

HATE_SPEECH_WORDS = frozenset({
    "nigger", "nigga", "negroid", "darkie", "sambo", "jigaboo", "spic", "wetback",
    "beaner", "chink", "gook", "zipperhead", "kike", "hymie", "raghead", "towelhead",
    "sand nigger", "camel jockey", "honky", "injun", "faggot", "fag", "faggy", "dyke",
    "tranny", "shemale", "sodomite", "retard", "retarded", "spastic", "mongoloid",
    "nazi", "gestapo", "kkk", "1488", "white power", "white pride", "subhuman",
    "untermensch",
})  # fmt: skip

VIOLENCE_WORDS = frozenset({
    "kill", "murder", "assassinate", "slaughter", "stab", "strangle", "suffocate",
    "behead", "decapitate", "dismember", "mutilate", "torture", "kys",
    "kill yourself", "neck yourself", "hang yourself", "slit your wrists",
    "shoot up", "mass shooting", "school shooting", "bombing", "terrorist",
    "terrorism", "rape", "rapist", "molest", "molester", "pedophile", "pedo",
    "self harm", "suicide", "suicidal",
})  # fmt: skip

NUDITY_SEX_WORDS = frozenset({
    "sex", "sexual", "sexy", "sexxx", "porn", "porno", "pornography", "pornhub",
    "xvideos", "xhamster", "hentai", "rule34", "nsfw", "masturbate", "masturbation",
    "jerk off", "jack off", "fap", "blow job", "hand job", "anal sex", "butt sex",
    "oral sex", "gangbang", "threesome", "orgy", "bdsm", "fetish", "incest", "milf",
    "nude", "nudes", "naked", "topless", "horny", "orgasm", "stripper",
    "striptease", "lap dance", "prostitute", "prostitution", "hooker", "brothel",
    "onlyfans", "fansly", "manyvids", "chaturbate",
})  # fmt: skip

GAMBLING_WORDS = frozenset({
    "gamble", "gambling", "gambler", "betting", "wager", "wagering", "moneyline",
    "parlay", "casino", "casinos", "slots", "jackpot", "poker", "blackjack",
    "roulette", "baccarat", "sportsbook", "bookie", "bookmaker", "bet365",
    "draftkings", "fanduel", "betmgm", "pointsbet", "bovada", "mybookie",
    "betonline", "sports betting", "free bet", "free bets", "betting tips",
    "sure bets", "guaranteed win", "handicapper", "tipster", "prop bet",
    "live betting",
})  # fmt: skip

DRUGS_ALCOHOL_WORDS = frozenset({
    "drug dealer", "weed", "marijuana", "cannabis", "ganja", "reefer", "bong",
    "edibles", "thc", "cocaine", "heroin", "meth", "methamphetamine", "lsd",
    "shrooms", "psilocybin", "ecstasy", "mdma", "ketamine", "fentanyl", "oxycontin",
    "percocet", "vicodin", "xanax", "purple drank", "sizzurp", "angel dust",
    "roofies", "rohypnol", "adderall", "stoned", "zooted", "drunk", "vodka",
    "whiskey", "tequila", "booze", "keg stand", "beer pong",
})  # fmt: skip

SPAM_KEYWORDS = frozenset({
    "bitcoin", "btc", "ethereum", "crypto", "cryptocurrency", "nft", "forex",
    "passive income", "get rich", "make money", "earn money", "work from home",
    "side hustle", "mlm", "network marketing", "financial freedom",
    "be your own boss", "hot singles", "camgirl", "sugar daddy", "sugar baby",
    "escort", "dm me for", "check my bio", "link in bio", "follow for follow",
    "f4f", "like for like", "l4l",
})  # fmt: skip

SALES_KEYWORDS = frozenset({
    "buy now", "order now", "shop now", "limited time", "act now", "special offer",
    "discount code", "promo code", "use code", "coupon", "free shipping",
    "click here", "check out my", "visit my website", "subscribe to", "freebie",
    "sponsored", "advertisement",
})  # fmt: skip

# Trash talk that reads as violent out of context.
SPORTS_ALLOWED_PHRASES = (
    "killed it", "killing it", "kill the clock", "kill the game", "murdered them",
    "murdered that defense", "murder that team", "slaughtered them",
    "slaughter rule",
)  # fmt: skip

SPORTS_CONTEXT_PATTERNS = (
    re.compile(r"bears|cubs|bulls|white\s*sox|blackhawks|fire|sky", re.I),
    re.compile(r"packers|vikings|lions|brewers|cardinals|lakers|celtics|yankees", re.I),
    re.compile(r"touchdown|home\s*run|three\s*pointer|goal|assist|rebound", re.I),
    re.compile(r"quarterback|pitcher|point\s*guard|goalie|receiver", re.I),
    re.compile(r"draft|trade|free\s*agent|contract|roster|lineup", re.I),
    re.compile(r"playoffs|championship|super\s*bowl|world\s*series|finals", re.I),
    re.compile(r"offense|defense|special\s*teams|pitching|batting", re.I),
    re.compile(r"score|stats|record|standings|schedule|game", re.I),
)

THREAT_PHRASES = (
    re.compile(r"\bi('m| am| will)?\s*(gonna|going to|will)\s*(kill|hurt|beat|shoot|stab|find) you", re.I),
    re.compile(r"\byou('re| are)?\s*(dead|gonna die|going to die)\b", re.I),
    re.compile(r"know where you (live|work)", re.I),
    re.compile(r"watch your back", re.I),
    re.compile(r"sleep with one eye open", re.I),
    re.compile(r"\bi('ll| will)\s*find (you|your)\b", re.I),
    re.compile(r"come to your (house|home|place)", re.I),
)

DOXXING_PATTERNS = (
    re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),  # phone
    re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.I),  # email
    re.compile(
        r"\b\d{1,5}\s+\w+\s+(st|street|ave|avenue|blvd|boulevard|rd|road|dr|drive"
        r"|ln|lane|ct|court)\b",
        re.I,
    ),  # street address
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),  # SSN
)

SCAM_PATTERNS = (
    re.compile(r"send\s*(me\s*)?(your\s*)?(bitcoin|btc|crypto|money|cash|venmo|cashapp|paypal)", re.I),
    re.compile(r"wire\s*(me\s*)?(money|funds|cash)", re.I),
    re.compile(r"\b(your|ur)\s*(password|login|credentials)\b", re.I),
    re.compile(r"social\s*security\s*number|\bssn\b", re.I),
    re.compile(r"bank\s*account|routing\s*number", re.I),
    re.compile(r"claim\s*(your)?\s*(prize|reward|winnings)", re.I),
    re.compile(r"verify\s*(your)?\s*(account|identity|email)", re.I),
    re.compile(r"click\s*here\s*to\s*(verify|confirm|claim)", re.I),
)

HARASSMENT_PATTERNS = (
    re.compile(r"send\s*(me\s*)?(nudes|pics|photos)", re.I),
    re.compile(r"show\s*(me\s*)?(your|ur)\s*(body|boobs|tits|ass|dick|cock)", re.I),
    re.compile(r"wanna\s*(hook\s*up|smash|bang|fuck)", re.I),
    re.compile(r"\bdtf\b", re.I),
)

SPAM_PATTERNS = (
    re.compile(r"(.)\1{5,}"),
    re.compile(r"(\b\w+\b)(\s+\1\b){3,}", re.I),
    re.compile(r"^[A-Z\s!?]{30,}$"),
    re.compile(r"dm\s*(me|us)\s*(for|to)", re.I),
    re.compile(r"check\s*(out\s*)?my\s*bio", re.I),
    re.compile(r"link\s*in\s*(my\s*)?bio", re.I),
    re.compile(r"follow\s*(me\s*)?(for|and|4)\s*(follow|more)", re.I),
)

ALLOWED_LINK_DOMAINS = frozenset({
    "sportsmockery.com", "espn.com", "espn.go.com", "bleacherreport.com", "si.com",
    "cbssports.com", "nbcsports.com", "foxsports.com", "theathletic.com",
    "sports.yahoo.com", "nfl.com", "mlb.com", "milb.com", "nba.com", "wnba.com",
    "nhl.com", "mlssoccer.com", "chicagobears.com", "cubs.com", "whitesox.com",
    "bulls.com", "blackhawks.nhl.com", "chicagofirefc.com", "ncaa.com", "bigten.org",
    "pro-football-reference.com", "baseball-reference.com",
    "basketball-reference.com", "hockey-reference.com", "chicagotribune.com",
    "suntimes.com", "dailyherald.com",
})  # fmt: skip

URL_RE = re.compile(
    r"https?://[^\s<>\"{}|\\^`\[\]]+"
    r"|www\.[^\s<>\"{}|\\^`\[\]]+"
    r"|\b[a-z0-9][-a-z0-9]*\.(?:com|net|org|io|co|tv|gg|me|info|biz|xyz|site|online"
    r"|app|dev|live|stream|club|shop|store|us|uk|ru|cn)\b[^\s]*",
    re.I,
)

_REVERSED_RE = re.compile(r"fuck|shit|bitch|cunt|nigger|faggot")
_NON_ASCII_RE = re.compile(r"[^\x00-\x7f]")
_SYMBOL_RE = re.compile(r"[^\w\s]")


# --- Helpers -------------------------------------------------------------


def extract_links(content: str) -> list[str]:
    return [m.group(0) for m in URL_RE.finditer(content)]


def is_allowed_link(url: str) -> bool:
    """True when *url* points at a whitelisted sports domain (or a subdomain)."""
    candidate = url.lower()
    if not candidate.startswith("http"):
        candidate = "https://" + candidate
    try:
        host = urlsplit(candidate).hostname or ""
    except ValueError:
        return False
    host = host.removeprefix("www.")
    return any(host == domain or host.endswith("." + domain) for domain in ALLOWED_LINK_DOMAINS)


def similarity(first: str, second: str) -> float:
    """Dice coefficient over character bigrams, case-insensitive."""
    a, b = first.lower(), second.lower()
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    bigrams: dict[str, int] = {}
    for i in range(len(a) - 1):
        pair = a[i : i + 2]
        bigrams[pair] = bigrams.get(pair, 0) + 1
    overlap = 0
    for i in range(len(b) - 1):
        pair = b[i : i + 2]
        if bigrams.get(pair, 0) > 0:
            bigrams[pair] -= 1
            overlap += 1
    return 2.0 * overlap / (len(a) + len(b) - 2)


def has_sports_context(content: str) -> bool:
    return any(pattern.search(content) for pattern in SPORTS_CONTEXT_PATTERNS)


def is_sports_allowed_phrase(content: str) -> bool:
    lowered = content.lower()
    return any(phrase in lowered for phrase in SPORTS_ALLOWED_PHRASES)


def _find_words(text: NormalizedText, entries: frozenset[str]) -> list[str]:
    hits = []
    for entry in sorted(entries):
        key = entry.replace(" ", "")
        if key in text.words or (" " in entry and key in text.joined):
            hits.append(entry)
    return hits


def _evasion_flags(content: str) -> list[ModerationFlag]:
    flags = []
    length = len(content)
    combining = len(_COMBINING_RE.findall(content))
    if length and combining / length > 0.3:
        flags.append(ModerationFlag("evasion", "zalgo_text", "high", "combining characters"))
    if len(_ZERO_WIDTH_RE.findall(content)) > 3:
        flags.append(ModerationFlag("evasion", "invisible_chars", "high", "hidden characters"))
    stripped = re.sub(r"\s", "", content)
    if length > 10 and re.fullmatch(r"[.\-/|\\]+", stripped):
        flags.append(ModerationFlag("evasion", "encoded_message", "high", "morse-like text"))
    elif re.fullmatch(r"[A-Za-z0-9+/]{20,}={0,2}", stripped) and re.search(r"\d", stripped):
        flags.append(ModerationFlag("evasion", "base64_or_hex", "high", "encoded content"))
    reversed_match = _REVERSED_RE.search(content.lower()[::-1])
    if reversed_match:
        flags.append(ModerationFlag("evasion", "reversed_text", "high", reversed_match.group(0)))
    return flags


def _rate_flags(content: str, context: ModerationContext) -> list[ModerationFlag]:
    flags = []
    if context.message_count_last_minute >= MESSAGES_PER_MINUTE:
        flags.append(
            ModerationFlag(
                "spam",
                "rate_limit_minute",
                "medium",
                f"{context.message_count_last_minute} messages in last minute",
            )
        )
    if context.message_count_last_hour >= MESSAGES_PER_HOUR:
        flags.append(
            ModerationFlag(
                "spam",
                "rate_limit_hour",
                "high",
                f"{context.message_count_last_hour} messages in last hour",
            )
        )
    if (
        context.is_new_user
        and context.seconds_since_last_message is not None
        and context.seconds_since_last_message < NEW_USER_COOLDOWN_SECONDS
    ):
        flags.append(ModerationFlag("spam", "new_user_cooldown", "low", "New user sending too fast"))

    for previous, seconds_ago in context.recent_messages:
        if content.lower() == previous.lower() and seconds_ago < DUPLICATE_COOLDOWN_SECONDS:
            flags.append(ModerationFlag("spam", "duplicate_message", "medium", "Duplicate message"))
            break
        ratio = similarity(content, previous)
        if ratio >= SIMILARITY_THRESHOLD and seconds_ago < SIMILAR_WINDOW_SECONDS:
            flags.append(
                ModerationFlag(
                    "spam",
                    "similar_message",
                    "low",
                    f"{round(ratio * 100)}% similar to recent message",
                )
            )
            break
    return flags


def toxicity_score(flags: list[ModerationFlag]) -> float:
    """Severity base + flag count bonus + per-category weights, capped at 1.0."""
    if not flags:
        return 0.0
    highest = max(flags, key=lambda f: SEVERITY_ORDER[f.severity]).severity
    score = SEVERITY_WEIGHTS[highest]
    score += min(len(flags) * 0.05, 0.2)
    score += sum(CATEGORY_WEIGHTS.get(f.category, 0.0) for f in flags)
    return min(round(score, 4), 1.0)


# --- Entry point ---------------------------------------------------------


def moderate_message(content: str, context: ModerationContext | None = None) -> ModerationResult:
    """Check a chat message and decide what to do with it."""
    flags: list[ModerationFlag] = []
    text = normalize(content)

    flags.extend(_evasion_flags(content))

    for pattern in SCAM_PATTERNS:
        if match := pattern.search(content):
            flags.append(ModerationFlag("spam", "scam_pattern", "critical", match.group(0)))
    for pattern in HARASSMENT_PATTERNS:
        if match := pattern.search(content):
            flags.append(ModerationFlag("harassment", "harassment_pattern", "critical", match.group(0)))

    if context is not None:
        flags.extend(_rate_flags(content, context))

    for word in _find_words(text, HATE_SPEECH_WORDS):
        flags.append(ModerationFlag("hate_speech", "hate_word", "critical", word))

    # Trash talk like "they killed it" is fine when the message is about sports.
    violence_excused = has_sports_context(content) and is_sports_allowed_phrase(content)
    if not violence_excused:
        for word in _find_words(text, VIOLENCE_WORDS):
            flags.append(ModerationFlag("violence", "violence_word", "critical", word))

    for pattern in THREAT_PHRASES:
        if match := pattern.search(content):
            flags.append(ModerationFlag("violence", "threat_phrase", "critical", match.group(0)))
    for pattern in DOXXING_PATTERNS:
        if match := pattern.search(content):
            flags.append(ModerationFlag("harassment", "doxxing_pattern", "critical", match.group(0)))

    word_rules = (
        (NUDITY_SEX_WORDS, "nudity_sex", "explicit_content", "high"),
        (GAMBLING_WORDS, "gambling", "gambling_content", "high"),
        (DRUGS_ALCOHOL_WORDS, "drugs_alcohol", "substance_content", "high"),
        (PROFANITY_WORDS, "profanity", "profanity_word", "high"),
        (SPAM_KEYWORDS, "spam", "spam_keyword", "medium"),
        (SALES_KEYWORDS, "sales", "sales_keyword", "medium"),
    )
    for entries, category, rule, severity in word_rules:
        for word in _find_words(text, entries):
            flags.append(ModerationFlag(category, rule, severity, word))

    for pattern in SPAM_PATTERNS:
        if match := pattern.search(content):
            flags.append(ModerationFlag("spam", "spam_pattern", "medium", match.group(0)))

    for link in extract_links(content):
        if not is_allowed_link(link):
            flags.append(ModerationFlag("links", "unauthorized_link", "high", link))

    if len(content) > 10:
        unicode_ratio = len(_NON_ASCII_RE.findall(content)) / len(content)
        if unicode_ratio > 0.3:
            flags.append(
                ModerationFlag(
                    "evasion",
                    "high_unicode_ratio",
                    "medium",
                    f"{round(unicode_ratio * 100)}% non-ASCII characters",
                )
            )
        symbol_ratio = len(_SYMBOL_RE.findall(content)) / len(content)
        if symbol_ratio > 0.4:
            flags.append(
                ModerationFlag(
                    "evasion", "high_symbol_ratio", "low", f"{round(symbol_ratio * 100)}% symbols"
                )
            )

    return _decide(flags)


def _decide(flags: list[ModerationFlag]) -> ModerationResult:
    if not flags:
        return ModerationResult(approved=True, action="allow")

    score = toxicity_score(flags)
    highest = max(flags, key=lambda f: SEVERITY_ORDER[f.severity]).severity
    label = flags[0].category.replace("_", " ")
    if highest == "critical":
        return ModerationResult(False, "ban", flags, score, f"Message blocked: {label}")
    if highest == "high":
        return ModerationResult(False, "block", flags, score, f"Message blocked: {label}")
    if highest == "medium":
        return ModerationResult(False, "shadow_block", flags, score, f"Message not delivered: {label}")
    return ModerationResult(True, "warn", flags, score)
