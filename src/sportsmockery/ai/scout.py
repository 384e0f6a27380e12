"""Scout: the site's AI question answering, proxied to DataLab.

The local work is context building. Before forwarding a question we guess the
team and sport it is about, which season it refers to, and whether it needs
preseason/regular/postseason games kept apart. DataLab's chart payload is
reshaped for the client's chart component on the way back.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date
from typing import Any

from sportsmockery.ai.datalab import DataLabClient, DataLabError

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3

TEAM_PATTERNS: list[tuple[re.Pattern[str], str, str]] = [
    (re.compile(r"\b(bears|chicago bears|da bears)\b", re.I), "bears", "nfl"),
    (re.compile(r"\b(bulls|chicago bulls)\b", re.I), "bulls", "nba"),
    (re.compile(r"\b(blackhawks|hawks|chicago blackhawks)\b", re.I), "blackhawks", "nhl"),
    (re.compile(r"\b(cubs|chicago cubs|cubbies)\b", re.I), "cubs", "mlb"),
    (re.compile(r"\b(white sox|whitesox|sox|chicago white sox)\b", re.I), "whitesox", "mlb"),
]

PLAYER_PATTERNS: list[tuple[re.Pattern[str], str, str]] = [
    (re.compile(r"\b(caleb williams|williams)\b", re.I), "bears", "nfl"),
    (re.compile(r"\b(dj moore|moore)\b", re.I), "bears", "nfl"),
    (re.compile(r"\b(rome odunze|odunze)\b", re.I), "bears", "nfl"),
    (re.compile(r"\b(montez sweat)\b", re.I), "bears", "nfl"),
    (re.compile(r"\b(demar derozan|derozan)\b", re.I), "bulls", "nba"),
    (re.compile(r"\b(zach lavine|lavine)\b", re.I), "bulls", "nba"),
    (re.compile(r"\b(coby white)\b", re.I), "bulls", "nba"),
    (re.compile(r"\b(connor bedard|bedard)\b", re.I), "blackhawks", "nhl"),
    (re.compile(r"\b(dansby swanson|swanson)\b", re.I), "cubs", "mlb"),
    (re.compile(r"\b(cody bellinger|bellinger)\b", re.I), "cubs", "mlb"),
    (re.compile(r"\b(luis robert)\b", re.I), "whitesox", "mlb"),
]

GAME_TYPE_PATTERNS = [
    re.compile(r"\b(schedule|schedules)\b", re.I),
    re.compile(r"\b(record|records)\b", re.I),
    re.compile(r"\b(streak|streaks|win streak|losing streak)\b", re.I),
    re.compile(r"\b(standings|division|playoff)\b", re.I),
    re.compile(r"\b(game by game|week by week)\b", re.I),
    re.compile(r"\b(preseason|regular season|postseason|playoffs)\b", re.I),
]

_YEAR_RE = re.compile(r"\b(202[0-9])\b")

# Sports whose season spans two calendar years.
_SPLIT_SEASON_SPORTS = frozenset({"nba", "nhl"})

DEFAULT_SUGGESTIONS = [
    "What's the Bears' record this season?",
    "Who leads the Bulls in scoring?",
    "Compare Caleb Williams to other rookie QBs",
]

# Fields relayed from DataLab's answer untouched.
RELAYED_FIELDS = (
    "response",
    "rowCount",
    "source",
    "team",
    "teamDisplayName",
    "sport",
    "dataGapLogged",
    "showSuggestions",
    "suggestions",
    "relatedArticles",
    "newsSummary",
    "bonusInsight",
    "rawData",
    "sessionId",
    "sessionContext",
)


def detect_team_and_sport(query: str) -> tuple[str | None, str | None]:
    """Team key and sport a question is about, or (None, None)."""
    for pattern, team, sport in TEAM_PATTERNS:
        if pattern.search(query):
            return team, sport
    for pattern, team, sport in PLAYER_PATTERNS:
        if pattern.search(query):
            return team, sport
    return None, None


def extract_year(query: str, today: date | None = None) -> int:
    """Season year a question refers to; defaults to the current year."""
    today = today or date.today()
    match = _YEAR_RE.search(query)
    if match:
        return int(match.group(1))

    lowered = query.lower()
    if any(p in lowered for p in ("this year", "this season", "current season")):
        return today.year
    if any(p in lowered for p in ("last year", "last season", "previous season")):
        return today.year - 1
    return today.year


def normalize_season_year(year: int, sport: str | None, today: date | None = None) -> int:
    """Map a calendar year to the season start year DataLab stores.

    NBA and NHL seasons span two calendar years, so both the current and the
    next year mean the season in progress (which started last year when it
    is before July). Older years and other sports pass through.
    """
    if sport not in _SPLIT_SEASON_SPORTS:
        return year
    today = today or date.today()
    current_season_start = today.year - 1 if today.month < 7 else today.year
    if year in (today.year, today.year + 1):
        return current_season_start
    return year


def needs_game_type_context(query: str) -> bool:
    return any(pattern.search(query) for pattern in GAME_TYPE_PATTERNS)


_LEADING_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _to_number(value: Any) -> float:
    """Numeric cell value; strings keep their leading number ("45.5%" is 45.5).

    Anything unparseable or non-finite becomes 0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    match = _LEADING_FLOAT_RE.match(str(value))
    if match is None:
        return 0
    number = float(match.group(1))
    return number if math.isfinite(number) else 0


def _cell(row: Any, columns: list[Any], index: int) -> Any:
    if isinstance(row, dict):
        return row.get(columns[index])
    if isinstance(row, (list, tuple)) and index < len(row):
        return row[index]
    return None


def transform_chart_data(chart: Any) -> dict[str, Any] | None:
    """Reshape DataLab ``{columns, rows}`` into ``{type, title, labels, datasets}``.

    The first column labels each row; every other column becomes a dataset.
    Rows may be objects keyed by column or positional lists; other rows are
    skipped. Charts already carrying labels and datasets pass through unchanged.
    """
    if not chart or not isinstance(chart, dict):
        return None
    if chart.get("labels") and chart.get("datasets"):
        return chart

    columns = chart.get("columns")
    rows = chart.get("rows")
    if not isinstance(columns, list) or not isinstance(rows, list):
        return None
    rows = [row for row in rows if isinstance(row, (dict, list, tuple))]
    if not columns or not rows:
        return None

    labels = [str(_cell(row, columns, 0) or "") for row in rows]
    datasets = [
        {"label": column, "data": [_to_number(_cell(row, columns, index)) for row in rows]}
        for index, column in enumerate(columns)
        if index > 0
    ]
    return {"type": chart.get("type"), "title": chart.get("title"), "labels": labels, "datasets": datasets}


def build_query_payload(query: str, session_id: str | None, today: date | None = None) -> dict[str, Any]:
    """Request body for DataLab's query endpoint, with season and game-type hints."""
    team, sport = detect_team_and_sport(query)
    requested_year = extract_year(query, today)

    payload: dict[str, Any] = {"query": query.strip()}
    if session_id:
        payload["sessionId"] = session_id
    if team and sport and requested_year:
        payload["seasonContext"] = {
            "requestedYear": requested_year,
            "normalizedSeasonStartYear": normalize_season_year(requested_year, sport, today),
            "team": team,
            "sport": sport,
        }
    if needs_game_type_context(query):
        payload["gameTypeContext"] = {
            "includePreseason": True,
            "includeRegular": True,
            "includePostseason": True,
            "separatePhases": True,
        }
    return payload


def error_answer(error: DataLabError) -> dict[str, Any]:
    """Friendly fallback answer so the client always has something to render."""
    if error.is_timeout:
        message = (
            "The request took too long to complete. "
            "Please try a simpler question or try again later."
        )
    elif error.status is None:
        message = (
            "I'm having trouble connecting to the data service. "
            "The service may be temporarily unavailable."
        )
    else:
        message = (
            "I'm having trouble connecting to the data service right now. "
            "Please try again in a moment."
        )
    return {
        "response": message,
        "source": "error",
        "showSuggestions": True,
        "suggestions": list(DEFAULT_SUGGESTIONS),
    }


async def ask_scout(
    client: DataLabClient,
    query: str,
    session_id: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Forward a question to DataLab and relay its answer.

    Never raises for upstream failures or malformed answers; returns
    ``error_answer`` instead.
    """
    payload = build_query_payload(query, session_id, today)
    logger.info(
        "scout_query chars=%d session=%s season_context=%s",
        len(payload["query"]),
        bool(session_id),
        "seasonContext" in payload,
    )
    try:
        data = await client.query(payload)
    except DataLabError as exc:
        logger.warning("scout_query_failed status=%s error=%s", exc.status, exc.message)
        return error_answer(exc)

    try:
        answer = {field: data.get(field) for field in RELAYED_FIELDS}
        answer["chartData"] = transform_chart_data(data.get("chartData"))
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("scout_answer_malformed error=%s", exc)
        return error_answer(DataLabError(502, "DataLab returned a malformed answer"))
    return answer
