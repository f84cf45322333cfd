"""Tests for terminal width measurement and truncation."""

import pytest

from codex_status.utils.text_width import char_width, display_width, iter_clusters, truncate_to_terminal

FAMILY = "\U0001F468\u200d\U0001F469\u200d\U0001F467"


class TestCharWidth:
    """Tests for single code point widths."""

    @pytest.mark.parametrize("ch", ["a", "é", "-", "…"])
    def test_narrow(self, ch):
        assert char_width(ch) == 1

    @pytest.mark.parametrize("ch", ["日", "🙂", "🕒", "🗓", "🛂", "🧪", "☀"])
    def test_wide(self, ch):
        assert char_width(ch) == 2

    @pytest.mark.parametrize("ch", ["\u0301", "\u200d", "\ufe0f", "\x1b", "\x7f"])
    def test_zero_width(self, ch):
        assert char_width(ch) == 0


class TestDisplayWidth:
    """Tests for whole-string widths."""

    def test_combining_mark_adds_nothing(self):
        assert display_width("e\u0301") == 1

    def test_zwj_sequence_is_one_glyph(self):
        assert display_width(FAMILY) == 2

    def test_flag_pair_is_one_glyph(self):
        assert display_width("🇯🇵") == 2

    def test_variation_selector_attaches(self):
        assert display_width("☀\ufe0f") == 2

    def test_control_characters_are_invisible(self):
        assert display_width("a\x1bb") == 2

    def test_skin_tone_modifier_attaches(self):
        clusters = list(iter_clusters("👍🏽x"))
        assert clusters == [("👍🏽", 2), ("x", 1)]


class TestTruncateToTerminal:
    """Tests for column-budget truncation."""

    def test_fitting_text_is_unchanged(self):
        assert truncate_to_terminal("hello", 10) == "hello"
        assert truncate_to_terminal("hello", 5) == "hello"

    def test_clips_ascii(self):
        assert truncate_to_terminal("hello", 4) == "hell"

    def test_missing_budget_disables_truncation(self):
        assert truncate_to_terminal("hello", None) == "hello"
        assert truncate_to_terminal("hello", 0) == "hello"
        assert truncate_to_terminal("hello", -3) == "hello"

    def test_never_splits_a_wide_character(self):
        assert truncate_to_terminal("🙂🙂🙂", 4) == "🙂🙂"
        assert truncate_to_terminal("🙂🙂🙂", 3) == "🙂"
        assert truncate_to_terminal("日本語", 5) == "日本"

    def test_keeps_combining_marks_with_their_base(self):
        assert truncate_to_terminal("A\u0301BC", 2) == "A\u0301B"

    def test_keeps_zwj_sequence_whole(self):
        assert truncate_to_terminal(FAMILY + "x", 2) == FAMILY
        assert truncate_to_terminal(FAMILY + "x", 1) == ""

    def test_status_line_is_clipped_to_budget(self):
        line = "🕒now 🔄1.2K 🤖5-codex 📁acme/api"
        clipped = truncate_to_terminal(line, 12)

        assert display_width(clipped) <= 12
        assert line.startswith(clipped)

    @pytest.mark.parametrize("columns", [1, 3, 7, 20])
    def test_truncation_is_idempotent(self, columns):
        text = "A\u0301 日本 " + FAMILY + " 🇯🇵 end"
        once = truncate_to_terminal(text, columns)

        assert truncate_to_terminal(once, columns) == once
        assert display_width(once) <= columns
