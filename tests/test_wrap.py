"""Span wrapping, clipping and table column sizing tests."""

from __future__ import annotations

import unittest

from markpager.document.table import column_widths, render_table
from markpager.document.types import Span, SpanStyle
from markpager.document.wrap import clip_spans, pad_spans, spans_width, wrap_spans

BOLD = SpanStyle(bold=True)


def _rows(lines) -> list[str]:
    return ["".join(span.text for span in line) for line in lines]


class WrapSpansTests(unittest.TestCase):
    def test_greedy_wrap_drops_leading_whitespace(self) -> None:
        lines = wrap_spans([Span("one two three four")], 9)

        self.assertEqual(_rows(lines), ["one two", "three", "four"])

    def test_word_crossing_style_boundary_stays_together(self) -> None:
        lines = wrap_spans([Span("aa "), Span("bold", BOLD), Span("tail cc")], 8)

        self.assertEqual(_rows(lines), ["aa", "boldtail", "cc"])
        self.assertEqual(lines[1][0], Span("bold", BOLD))

    def test_hard_break_starts_new_row(self) -> None:
        lines = wrap_spans([Span("a"), Span("\n"), Span("b")], 80)

        self.assertEqual(_rows(lines), ["a", "b"])

    def test_wide_characters_never_overflow_when_breaking(self) -> None:
        lines = wrap_spans([Span("漢字漢字漢")], 3)

        for line in lines:
            self.assertLessEqual(spans_width(line), 3)
        self.assertEqual("".join(_rows(lines)), "漢字漢字漢")

    def test_empty_input_yields_one_empty_row(self) -> None:
        self.assertEqual(wrap_spans([], 10), [()])


class ClipAndPadTests(unittest.TestCase):
    def test_clip_spans_keeps_style_of_last_piece_for_ellipsis(self) -> None:
        clipped = clip_spans((Span("ab"), Span("cdef", BOLD)), 4)

        self.assertEqual(clipped, (Span("ab"), Span("c…", BOLD)))

    def test_clip_spans_leaves_fitting_text_untouched(self) -> None:
        self.assertEqual(clip_spans((Span("abc"),), 3), (Span("abc"),))

    def test_pad_spans_alignments(self) -> None:
        cell = (Span("ab"),)

        self.assertEqual(_rows([pad_spans(cell, 5, "left")]), ["ab   "])
        self.assertEqual(_rows([pad_spans(cell, 5, "right")]), ["   ab"])
        self.assertEqual(_rows([pad_spans(cell, 5, "center")]), [" ab  "])


class TableWidthTests(unittest.TestCase):
    def test_natural_widths_when_grid_fits(self) -> None:
        header = [(Span("a"),), (Span("bbb"),)]
        rows = [[(Span("cc"),), (Span("d"),)]]

        self.assertEqual(column_widths(header, rows, 80), [2, 3])

    def test_widest_column_shrinks_first(self) -> None:
        header = [(Span("x" * 10),), (Span("y" * 4),)]

        widths = column_widths(header, [], 15)

        self.assertEqual(1 + sum(w + 3 for w in widths), 15)
        self.assertEqual(widths, [4, 4])

    def test_ties_shrink_leftmost_column(self) -> None:
        header = [(Span("aaaa"),), (Span("bbbb"),)]

        self.assertEqual(column_widths(header, [], 14), [3, 4])

    def test_columns_never_shrink_below_one_cell(self) -> None:
        header = [(Span("a"),)] * 6

        widths = column_widths(header, [], 5)

        self.assertEqual(widths, [1] * 6)
        for spans, _ in render_table(header, [], [], 5):
            self.assertLessEqual(spans_width(spans), 5)

    def test_render_table_tags_header_body_and_borders(self) -> None:
        header = [(Span("h"),)]
        rows = [[(Span("1"),)], [(Span("2"),)]]

        tags = [row for _, row in render_table(header, rows, ["left"], 80)]

        self.assertEqual(tags, [None, -1, None, 0, 1, None])


if __name__ == "__main__":
    unittest.main()
