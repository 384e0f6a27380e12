"""Tests for rule-based chat moderation."""

import pytest

from sportsmockery.core.moderation import (
    ModerationContext,
    ModerationFlag,
    extract_links,
    is_allowed_link,
    moderate_message,
    normalize,
    similarity,
    toxicity_score,
)


class TestNormalize:
    @pytest.mark.parametrize(
        "raw",
        ["F.U.C.K", "f u c k", "fuuuuuck", "sh1t", "$hit", "sh!t", "f-ck", "fu\u0441k"],
    )
    def test_obfuscations_collapse(self, raw):
        words = normalize(raw).words
        assert "fuck" in words or "shit" in words or "fck" in words

    def test_zero_width_removed(self):
        assert "fuck" in normalize("f\u200bu\u200bc\u200bk").words

    def test_joined_runs(self):
        text = normalize("kill your self")
        assert "killyourself" in text.joined
        assert "killyourself" not in text.words


class TestCleanMessages:
    @pytest.mark.parametrize(
        "message",
        [
            "Great game by the Bears tonight",
            "That pass was a classic",
            "Scunthorpe fans would love this defense",
            "the white sox have power hitters",
            "check https://espn.com/nfl/story",
        ],
    )
    def test_allowed(self, message):
        result = moderate_message(message)
        assert result.approved
        assert result.action == "allow"
        assert result.flags == []
        assert result.score == 0.0


class TestWordRules:
    def test_profanity_blocks(self):
        result = moderate_message("this is fucking terrible")
        assert not result.approved
        assert result.action == "block"
        assert result.blocked_reason == "Message blocked: profanity"

    def test_obfuscated_profanity_blocks(self):
        result = moderate_message("f.u.c.k this team")
        assert result.action == "block"
        assert any(f.category == "profanity" for f in result.flags)

    def test_compound_hate_phrase_bans(self):
        result = moderate_message("white-power forever")
        assert result.action == "ban"
        assert any(f.category == "hate_speech" for f in result.flags)

    def test_gambling_blocks(self):
        result = moderate_message("Just hit a parlay on DraftKings")
        assert result.action == "block"
        assert {f.category for f in result.flags} == {"gambling"}

    def test_violence_bans_without_sports_context(self):
        result = moderate_message("I want to kill the clock")
        assert result.action == "ban"

    def test_sports_trash_talk_allowed(self):
        result = moderate_message("Bears need to kill the clock and win the game")
        assert result.approved
        assert result.action == "allow"


class TestPatterns:
    def test_threat_bans(self):
        result = moderate_message("I know where you live")
        assert result.action == "ban"
        assert result.flags[0].rule == "threat_phrase"

    def test_scam_bans(self):
        result = moderate_message("send me your bitcoin")
        assert result.action == "ban"

    def test_email_is_doxxing(self):
        result = moderate_message("email him at john@example.com")
        assert result.action == "ban"
        assert any(f.rule == "doxxing_pattern" for f in result.flags)

    def test_unapproved_link_blocks(self):
        result = moderate_message("visit https://spam-site.xyz now")
        assert result.action == "block"
        assert result.flags[0].category == "links"

    def test_reversed_profanity(self):
        result = moderate_message("kcuf")
        assert result.action == "block"
        assert result.flags[0].rule == "reversed_text"

    def test_invisible_characters(self):
        result = moderate_message("f\u200bu\u200bc\u200bk\u200b")
        assert not result.approved
        assert any(f.rule == "invisible_chars" for f in result.flags)


class TestContext:
    def test_flood_shadow_blocks(self):
        result = moderate_message("Go Bears", ModerationContext(message_count_last_minute=10))
        assert not result.approved
        assert result.action == "shadow_block"
        assert result.blocked_reason == "Message not delivered: spam"

    def test_recent_duplicate_shadow_blocks(self):
        context = ModerationContext(recent_messages=[("go bears", 5.0)])
        result = moderate_message("Go Bears", context)
        assert result.action == "shadow_block"
        assert result.flags[0].rule == "duplicate_message"

    def test_old_duplicate_allowed(self):
        context = ModerationContext(recent_messages=[("Go Bears", 120.0)])
        assert moderate_message("Go Bears", context).action == "allow"

    def test_similar_message_warns(self):
        context = ModerationContext(recent_messages=[("Go Bears go", 20.0)])
        result = moderate_message("Go Bears go!", context)
        assert result.approved
        assert result.action == "warn"
        assert result.flags[0].rule == "similar_message"

    def test_new_user_cooldown_warns(self):
        context = ModerationContext(is_new_user=True, seconds_since_last_message=1.0)
        result = moderate_message("Go Cubs", context)
        assert result.action == "warn"


class TestScoring:
    def test_empty(self):
        assert toxicity_score([]) == 0.0

    def test_capped_at_one(self):
        flags = [ModerationFlag("hate_speech", "hate_word", "critical", "x")] * 3
        assert toxicity_score(flags) == 1.0

    def test_low_flag(self):
        flags = [ModerationFlag("spam", "similar_message", "low", "x")]
        assert toxicity_score(flags) == pytest.approx(0.1 + 0.05 + 0.03)


class TestHelpers:
    def test_similarity(self):
        assert similarity("Bears", "bears") == 1.0
        assert similarity("a", "b") == 0.0
        assert 0.0 < similarity("go bears", "go bulls") < 1.0

    def test_extract_links(self):
        links = extract_links("see https://espn.com/x and www.example.org today")
        assert links == ["https://espn.com/x", "www.example.org"]

    @pytest.mark.parametrize(
        ("url", "allowed"),
        [
            ("https://www.espn.com/nfl", True),
            ("chicagobears.com/news", True),
            ("https://sports.yahoo.com/mlb", True),
            ("https://espn.com.evil.io", False),
            ("https://notespn.com", False),
        ],
    )
    def test_is_allowed_link(self, url, allowed):
        assert is_allowed_link(url) is allowed
