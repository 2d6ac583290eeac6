"""GFM table grid layout."""

from __future__ import annotations

from dataclasses import replace

from .types import Span, SpanStyle
from .wrap import clip_spans, pad_spans, spans_width

BORDER_STYLE = SpanStyle(dim=True)

Cell = tuple[Span, ...]


def column_widths(header: list[Cell], rows: list[list[Cell]], width: int) -> list[int]:
    """Natural column widths shrunk until the grid fits ``width``.

    The grid occupies ``1 + sum(w + 3)`` columns. While it is too wide, the
    currently widest column (leftmost on ties) loses one cell; columns never
    shrink below one cell.
    """
    count = max([len(header)] + [len(row) for row in rows] + [0])
    widths = [1] * count
    for row in [header] + rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], spans_width(cell))
    while widths and 1 + sum(w + 3 for w in widths) > width:
        widest = max(widths)
        if widest <= 1:
            break
        widths[widths.index(widest)] -= 1
    return widths


def _border(left: str, mid: str, right: str, widths: list[int]) -> tuple[Span, ...]:
    text = left + mid.join("─" * (w + 2) for w in widths) + right
    return (Span(text, BORDER_STYLE),)


def _row(cells: list[Cell], widths: list[int], aligns: list[str], bold: bool) -> tuple[Span, ...]:
    out: list[Span] = [Span("│", BORDER_STYLE)]
    for idx, w in enumerate(widths):
        cell = cells[idx] if idx < len(cells) else ()
        if bold:
            cell = tuple(Span(span.text, replace(span.style, bold=True)) for span in cell)
        align = aligns[idx] if idx < len(aligns) else "left"
        out.append(Span(" "))
        out.extend(pad_spans(clip_spans(cell, w), w, align))
        out.append(Span(" "))
        out.append(Span("│", BORDER_STYLE))
    return tuple(out)


def render_table(
    header: list[Cell],
    rows: list[list[Cell]],
    aligns: list[str],
    width: int,
) -> list[tuple[tuple[Span, ...], int | None]]:
    """Render a boxed grid.

    Returns ``(spans, row_index)`` pairs; ``row_index`` is ``-1`` for the
    header row, the body row number for body rows, and ``None`` for borders.
    Rows still wider than ``width`` (too many columns) are clipped.
    """
    widths = column_widths(header, rows, width)
    if not widths:
        return []
    out: list[tuple[tuple[Span, ...], int | None]] = []
    out.append((_border("┌", "┬", "┐", widths), None))
    out.append((_row(header, widths, aligns, bold=True), -1))
    out.append((_border("├", "┼", "┤", widths), None))
    for idx, row in enumerate(rows):
        out.append((_row(row, widths, aligns, bold=False), idx))
    out.append((_border("└", "┴", "┘", widths), None))
    return [(clip_spans(spans, width) if spans_width(spans) > width else spans, row) for spans, row in out]
