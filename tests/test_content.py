"""Tests for article text helpers: reading time, slugs, truncation, shortcodes."""

from sportsmockery.core.content import (
    HtmlSegment,
    ShortcodeSegment,
    reading_time,
    segment_to_dict,
    slugify,
    split_shortcodes,
    strip_tags,
    truncate_caption,
    truncate_post,
    word_count,
)


class TestWordCount:
    def test_strips_markup_and_entities(self):
        assert strip_tags("<p>Bears&nbsp;win</p><p>again</p>") == "Bears win again"

    def test_counts_words(self):
        assert word_count("<p>Da Bears <strong>finally</strong> won</p>") == 4

    def test_empty(self):
        assert word_count("") == 0
        assert word_count("<div></div>") == 0


class TestReadingTime:
    def test_minimum_one_minute(self):
        assert reading_time("") == 1
        assert reading_time("<p>short</p>") == 1

    def test_rounds_up(self):
        body = " ".join(["word"] * 201)
        assert reading_time(body) == 2

    def test_exact_multiple(self):
        body = " ".join(["word"] * 400)
        assert reading_time(body) == 2


class TestSlugify:
    def test_basic(self):
        assert slugify("Bears Trade for a Pass Rusher!") == "bears-trade-for-a-pass-rusher"

    def test_accents_and_runs(self):
        assert slugify("  Réal   --  Deal Done ") == "real-deal-done"

    def test_nothing_usable(self):
        assert slugify("!!!") == ""


class TestTruncateCaption:
    def test_fits_unchanged(self):
        assert truncate_caption("Short caption", 50) == "Short caption"

    def test_cuts_on_word_boundary(self):
        result = truncate_caption("The Bears traded their pick for a veteran", 20)
        assert result == "The Bears traded..."
        assert len(result) <= 20

    def test_trailing_punctuation_trimmed(self):
        result = truncate_caption("Cubs win, Sox lose, everyone cries", 15)
        assert result == "Cubs win..."

    def test_hard_cut_without_whitespace(self):
        result = truncate_caption("a" * 30, 10)
        assert result == "aaaaaaa..."
        assert len(result) == 10

    def test_suffix_longer_than_limit(self):
        assert truncate_caption("abcdef", 2) == "ab"


class TestTruncatePost:
    def test_fits_unchanged(self):
        assert truncate_post("Go Bears") == "Go Bears"

    def test_prefers_sentence_end(self):
        first = "A" * 200 + "."
        content = first + " " + "b" * 100
        assert truncate_post(content) == first

    def test_word_boundary_with_ellipsis(self):
        content = ("word " * 80).strip()
        result = truncate_post(content)
        assert result.endswith("...")
        assert len(result) <= 280
        assert not result[:-3].endswith(" ")

    def test_hard_cut(self):
        result = truncate_post("x" * 400)
        assert result == "x" * 277 + "..."


class TestShortcodes:
    def test_plain_html(self):
        assert split_shortcodes("<p>hi</p>") == [HtmlSegment("<p>hi</p>")]

    def test_colon_and_attribute_forms(self):
        html = '<p>Vote:</p>[poll:12]<p>Chart:</p>[chart id="7"]'
        segments = split_shortcodes(html)
        assert [type(s) for s in segments] == [HtmlSegment, ShortcodeSegment, HtmlSegment, ShortcodeSegment]
        assert segments[1].kind == "poll" and segments[1].ident == "12"
        assert segments[3].kind == "chart" and segments[3].ident == "7"

    def test_round_trip_preserves_input(self):
        html = '[poll:1]<p>a [b] c</p>[chart:x-2][unknown:3]'
        assert "".join(s.raw for s in split_shortcodes(html)) == html

    def test_unknown_brackets_stay_html(self):
        segments = split_shortcodes("<p>[gallery:4]</p>")
        assert segments == [HtmlSegment("<p>[gallery:4]</p>")]

    def test_segment_to_dict(self):
        poll, html = split_shortcodes("[poll:5]<p>x</p>")
        assert segment_to_dict(poll) == {"type": "shortcode", "kind": "poll", "id": "5", "raw": "[poll:5]"}
        assert segment_to_dict(html) == {"type": "html", "html": "<p>x</p>"}
