"""Article text helpers: word counts, reading time, truncation and shortcodes.

Article bodies are WordPress HTML. Editors embed interactive widgets with
shortcodes (``[poll:12]``, ``[chart id="7"]``) which the client renders in
place, so the API ships each body pre-split into ordered segments.
"""

from __future__ import annotations

import html as html_lib
import math
import re
import unicodedata
from dataclasses import dataclass
from typing import Literal

WORDS_PER_MINUTE = 200
TWEET_LIMIT = 280

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_SHORTCODE_RE = re.compile(
    r"""\[(?P<kind>poll|chart)(?::(?P<colon_id>[A-Za-z0-9_-]+)|\s+id="(?P<attr_id>[A-Za-z0-9_-]+)")\]"""
)
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_DASH_RE = re.compile(r"[\s_-]+")
_CAPTION_TRAILING = " \t\r\n,;:.-"


@dataclass(frozen=True)
class HtmlSegment:
    html: str
    type: Literal["html"] = "html"

    @property
    def raw(self) -> str:
        return self.html


@dataclass(frozen=True)
class ShortcodeSegment:
    kind: str  # "poll" | "chart"
    ident: str
    raw: str
    type: Literal["shortcode"] = "shortcode"


Segment = HtmlSegment | ShortcodeSegment


def strip_tags(html: str) -> str:
    """Drop markup and decode entities, collapsing whitespace."""
    text = _TAG_RE.sub(" ", html or "")
    return _WS_RE.sub(" ", html_lib.unescape(text)).strip()


def word_count(html: str) -> int:
    text = strip_tags(html)
    return len(text.split()) if text else 0


def reading_time(html: str, wpm: int = WORDS_PER_MINUTE) -> int:
    """Estimated minutes to read *html*. Never less than one minute."""
    return max(1, math.ceil(word_count(html) / wpm))


def slugify(title: str) -> str:
    """URL slug from a headline: ascii, lowercase, dash separated."""
    normalized = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode()
    cleaned = _SLUG_STRIP_RE.sub("", normalized.lower())
    return _SLUG_DASH_RE.sub("-", cleaned).strip("-")


def truncate_caption(text: str, limit: int, suffix: str = "...") -> str:
    """Shorten *text* to at most *limit* characters on a word boundary.

    Text that already fits is returned unchanged. Otherwise the cut lands on
    the last whitespace before the limit (or is a hard cut when the text has
    no whitespace there), trailing punctuation is trimmed and *suffix* is
    appended inside the limit.
    """
    if len(text) <= limit:
        return text
    budget = limit - len(suffix)
    if budget <= 0:
        return text[:limit]

    head = text[:budget]
    if not text[budget].isspace():
        boundary = max(head.rfind(" "), head.rfind("\n"), head.rfind("\t"))
        if boundary > 0:
            head = head[:boundary]
    head = head.rstrip(_CAPTION_TRAILING)
    if not head:
        head = text[:budget]
    return head + suffix


def truncate_post(content: str, limit: int = TWEET_LIMIT) -> str:
    """Fit generated social copy into *limit* characters.

    Prefers ending on a full sentence past 60% of the limit, then a word
    boundary past 70% (with an ellipsis), then a hard cut with an ellipsis.
    """
    if len(content) <= limit:
        return content

    truncated = content[: limit - 3]
    last_sentence = max(truncated.rfind("."), truncated.rfind("?"), truncated.rfind("!"))
    if last_sentence > limit * 0.6:
        return content[: last_sentence + 1]

    last_space = truncated.rfind(" ")
    if last_space > limit * 0.7:
        return truncated[:last_space] + "..."

    return truncated + "..."


def split_shortcodes(html: str) -> list[Segment]:
    """Split article HTML into ordered html and shortcode segments.

    Recognises ``[poll:ID]``, ``[chart:ID]``, ``[poll id="ID"]`` and
    ``[chart id="ID"]``. Anything else in brackets stays part of the html.
    Empty html runs are dropped, so joining ``segment.raw`` for every
    segment gives back the input.
    """
    segments: list[Segment] = []
    pos = 0
    for match in _SHORTCODE_RE.finditer(html):
        if match.start() > pos:
            segments.append(HtmlSegment(html[pos : match.start()]))
        ident = match.group("colon_id") or match.group("attr_id")
        segments.append(ShortcodeSegment(kind=match.group("kind"), ident=ident, raw=match.group(0)))
        pos = match.end()
    if pos < len(html):
        segments.append(HtmlSegment(html[pos:]))
    return segments


def segment_to_dict(segment: Segment) -> dict[str, str]:
    """JSON shape of a segment for API responses."""
    if isinstance(segment, ShortcodeSegment):
        return {"type": "shortcode", "kind": segment.kind, "id": segment.ident, "raw": segment.raw}
    return {"type": "html", "html": segment.html}
