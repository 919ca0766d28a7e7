"""Tests for fluxy.tui.utils."""

from __future__ import annotations

from fluxy.tui.utils import (
    graphemes,
    is_punctuation_char,
    is_whitespace_char,
    strip_ansi,
    truncate_to_width,
    visible_width,
    wrap_text,
)


class TestVisibleWidth:
    def test_ascii(self) -> None:
        assert visible_width("hello") == 5

    def test_empty(self) -> None:
        assert visible_width("") == 0

    def test_ignores_sgr_codes(self) -> None:
        assert visible_width("\x1b[1mbold\x1b[22m") == 4

    def test_ignores_kitty_apc_payload(self) -> None:
        assert visible_width("\x1b_Ga=T,f=100;AAAA\x1b\\") == 0

    def test_cjk_is_double_width(self) -> None:
        assert visible_width("日本") == 4

    def test_emoji_is_double_width(self) -> None:
        assert visible_width("🦊") == 2

    def test_combining_mark_is_zero_width(self) -> None:
        assert visible_width("é") == 1


class TestStripAnsi:
    def test_removes_csi_and_osc(self) -> None:
        assert strip_ansi("\x1b[31mred\x1b[0m\x1b]0;title\x07") == "red"


class TestTruncateToWidth:
    def test_short_text_unchanged(self) -> None:
        assert truncate_to_width("abc", 10) == "abc"

    def test_truncates_with_ellipsis(self) -> None:
        result = truncate_to_width("abcdefghij", 6)
        assert result == "abc..."
        assert visible_width(result) == 6

    def test_pad_fills_to_width(self) -> None:
        assert truncate_to_width("ab", 5, pad=True) == "ab   "

    def test_zero_width_gives_empty(self) -> None:
        assert truncate_to_width("abc", 0) == ""

    def test_wide_characters_never_overflow(self) -> None:
        result = truncate_to_width("日本語テキスト", 7)
        assert visible_width(result) <= 7


class TestWrapText:
    def test_wraps_on_words(self) -> None:
        assert wrap_text("the quick brown fox", 10) == ["the quick", "brown fox"]

    def test_keeps_explicit_newlines(self) -> None:
        assert wrap_text("one\ntwo", 20) == ["one", "two"]

    def test_hard_splits_long_words(self) -> None:
        lines = wrap_text("a" * 25, 10)
        assert lines == ["a" * 10, "a" * 10, "a" * 5]

    def test_every_line_fits(self) -> None:
        text = "HTTP 422: Input validation failed for prompt containing 日本語 words"
        for line in wrap_text(text, 12):
            assert visible_width(line) <= 12

    def test_non_positive_width(self) -> None:
        assert wrap_text("abc", 0) == []


class TestCharClasses:
    def test_graphemes_keep_clusters_together(self) -> None:
        assert graphemes("éx") == ["é", "x"]

    def test_whitespace(self) -> None:
        assert is_whitespace_char(" ")
        assert not is_whitespace_char("a")
        assert not is_whitespace_char("")

    def test_punctuation(self) -> None:
        assert is_punctuation_char(",")
        assert not is_punctuation_char("a")
