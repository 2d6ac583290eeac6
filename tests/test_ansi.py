"""Display-width and ANSI clipping helper tests."""

from __future__ import annotations

import unittest

from markpager import ansi


class DisplayWidthTests(unittest.TestCase):
    def test_wide_and_combining_characters(self) -> None:
        self.assertEqual(ansi.display_width("abc"), 3)
        self.assertEqual(ansi.display_width("漢字"), 4)
        self.assertEqual(ansi.display_width("é"), 1)
        self.assertEqual(ansi.display_width("a\u200db"), 2)

    def test_ansi_width_ignores_escape_sequences(self) -> None:
        self.assertEqual(ansi.ansi_display_width("\033[1mbold\033[0m"), 4)
        self.assertEqual(ansi.strip_ansi("\033[38;2;1;2;3mx\033[0m"), "x")

    def test_expand_tabs_uses_column_stops(self) -> None:
        self.assertEqual(ansi.expand_tabs("\tx"), "    x")
        self.assertEqual(ansi.expand_tabs("ab\tx"), "ab  x")
        self.assertEqual(ansi.expand_tabs("no tabs"), "no tabs")


class ClippingTests(unittest.TestCase):
    def test_take_columns_always_makes_progress(self) -> None:
        self.assertEqual(ansi.take_columns("hello", 3), ("hel", "lo"))
        self.assertEqual(ansi.take_columns("漢字", 1), ("漢", "字"))
        self.assertEqual(ansi.take_columns("", 3), ("", ""))

    def test_clip_text_adds_ellipsis_only_when_cut(self) -> None:
        self.assertEqual(ansi.clip_text("short", 10), "short")
        self.assertEqual(ansi.clip_text("abcdefgh", 5), "abcd…")
        self.assertEqual(ansi.clip_text("abcdefgh", 5, ellipsis=False), "abcde")
        self.assertEqual(ansi.clip_text("漢字漢字", 4), "漢…")
        self.assertEqual(ansi.clip_text("abc", 0), "")

    def test_clip_ansi_line_preserves_styles_and_trailing_reset(self) -> None:
        line = "\033[1mabcdef\033[0m"

        clipped = ansi.clip_ansi_line(line, 3)

        self.assertEqual(clipped, "\033[1mabc")
        self.assertEqual(ansi.clip_ansi_line("\033[1mab\033[0m", 5), "\033[1mab\033[0m")

    def test_clip_ansi_line_does_not_split_wide_character(self) -> None:
        self.assertEqual(ansi.clip_ansi_line("a漢字", 2), "a")


if __name__ == "__main__":
    unittest.main()
