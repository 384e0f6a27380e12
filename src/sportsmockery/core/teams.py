"""The five Chicago teams SportsMockery covers.

Two key styles are in use: site slugs (``chicago-bears``) for the X bot and
hub pages, and short team keys (``bears``) for the GM simulator and Scout.
"""

from __future__ import annotations

TEAM_SLUGS: tuple[str, ...] = (
    "chicago-bears",
    "chicago-bulls",
    "chicago-cubs",
    "chicago-white-sox",
    "chicago-blackhawks",
)

TEAM_DISPLAY_NAMES: dict[str, str] = {
    "chicago-bears": "Chicago Bears",
    "chicago-bulls": "Chicago Bulls",
    "chicago-cubs": "Chicago Cubs",
    "chicago-white-sox": "Chicago White Sox",
    "chicago-blackhawks": "Chicago Blackhawks",
}

TEAM_SHORT_NAMES: dict[str, str] = {
    "chicago-bears": "Bears",
    "chicago-bulls": "Bulls",
    "chicago-cubs": "Cubs",
    "chicago-white-sox": "White Sox",
    "chicago-blackhawks": "Blackhawks",
}

TEAM_SPORTS: dict[str, str] = {
    "chicago-bears": "NFL",
    "chicago-bulls": "NBA",
    "chicago-cubs": "MLB",
    "chicago-white-sox": "MLB",
    "chicago-blackhawks": "NHL",
}

TEAM_EMOJIS: dict[str, str] = {
    "chicago-bears": "\N{BEAR FACE}",
    "chicago-bulls": "\N{OX}",
    "chicago-cubs": "\N{TEDDY BEAR}",
    "chicago-white-sox": "\N{BASEBALL}",
    "chicago-blackhawks": "\N{ICE HOCKEY STICK AND PUCK}",
}

# GM / Scout team keys -> league.
TEAM_KEY_SPORTS: dict[str, str] = {
    "bears": "nfl",
    "bulls": "nba",
    "blackhawks": "nhl",
    "cubs": "mlb",
    "whitesox": "mlb",
}

SPORTS: frozenset[str] = frozenset(TEAM_KEY_SPORTS.values())


def is_team_slug(value: str) -> bool:
    return value in TEAM_SLUGS


def team_key(value: str) -> str | None:
    """Normalise ``bears`` / ``chicago-bears`` / ``chicago-white-sox`` to a GM team key."""
    key = value.strip().lower().removeprefix("chicago-").replace("-", "")
    return key if key in TEAM_KEY_SPORTS else None


def sport_for_team(value: str) -> str | None:
    key = team_key(value)
    return TEAM_KEY_SPORTS.get(key) if key else None
