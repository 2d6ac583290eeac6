"""Greedy word wrapping over styled spans.

Input spans may carry ``"\\n"`` for hard breaks. A word is a maximal run of
non-space characters and may cross style boundaries (``**bold**tail``).
Words are never split unless one alone is wider than the target width.
"""

from __future__ import annotations

from ..ansi import ELLIPSIS, display_width, take_columns
from .types import Span, SpanStyle

Piece = tuple[str, SpanStyle]


def _split_words(spans: list[Span]) -> list[list[tuple[str, list[Piece]]]]:
    """Split spans into hard-break segments of ``("space"|"word", pieces)``."""
    segments: list[list[tuple[str, list[Piece]]]] = [[]]
    for span in spans:
        text = span.text
        start = 0
        n = len(text)
        while start < n:
            ch = text[start]
            if ch == "\n":
                segments.append([])
                start += 1
                continue
            is_space = ch in " \t"
            end = start + 1
            while end < n and text[end] != "\n" and (text[end] in " \t") == is_space:
                end += 1
            kind = "space" if is_space else "word"
            chunk = text[start:end]
            tokens = segments[-1]
            if tokens and tokens[-1][0] == kind:
                tokens[-1][1].append((chunk, span.style))
            else:
                tokens.append((kind, [(chunk, span.style)]))
            start = end
    return segments


def _pieces_width(pieces: list[Piece]) -> int:
    return sum(display_width(text) for text, _ in pieces)


def _take_pieces(pieces: list[Piece], max_cols: int) -> tuple[list[Piece], list[Piece]]:
    head: list[Piece] = []
    used = 0
    for idx, (text, style) in enumerate(pieces):
        width = display_width(text)
        if used + width <= max_cols:
            head.append((text, style))
            used += width
            continue
        room = max_cols - used
        part, rest = take_columns(text, room) if room > 0 else ("", text)
        if part and head and used + display_width(part) > max_cols:
            part, rest = "", text
        if not head and not part:
            part, rest = take_columns(text, max(1, max_cols))
        if part:
            head.append((part, style))
        tail = ([(rest, style)] if rest else []) + list(pieces[idx + 1 :])
        return head, tail
    return head, []


def merge_spans(pieces: list[Piece]) -> tuple[Span, ...]:
    """Join adjacent pieces that share a style into single spans."""
    merged: list[Span] = []
    for text, style in pieces:
        if not text:
            continue
        if merged and merged[-1].style == style:
            merged[-1] = Span(merged[-1].text + text, style)
        else:
            merged.append(Span(text, style))
    return tuple(merged)


def wrap_spans(spans: list[Span], width: int) -> list[tuple[Span, ...]]:
    """Wrap ``spans`` to ``width`` columns; returns at least one (maybe empty) line."""
    width = max(1, width)
    out: list[tuple[Span, ...]] = []
    for segment in _split_words(spans):
        current: list[Piece] = []
        current_width = 0
        pending_space: list[Piece] = []
        for kind, pieces in segment:
            if kind == "space":
                # Leading whitespace at a line start is dropped.
                pending_space = pieces if current else []
                continue
            word_width = _pieces_width(pieces)
            space_width = _pieces_width(pending_space)
            if current and current_width + space_width + word_width <= width:
                current.extend(pending_space)
                current.extend(pieces)
                current_width += space_width + word_width
                pending_space = []
                continue
            if current:
                out.append(merge_spans(current))
                current = []
                current_width = 0
            pending_space = []
            remaining = list(pieces)
            while _pieces_width(remaining) > width:
                head, remaining = _take_pieces(remaining, width)
                out.append(merge_spans(head))
            current = remaining
            current_width = _pieces_width(remaining)
        out.append(merge_spans(current))
    return out


def clip_spans(spans: tuple[Span, ...] | list[Span], width: int) -> tuple[Span, ...]:
    """Clip spans to ``width`` columns, ending with ``…`` when anything was cut."""
    pieces = [(span.text, span.style) for span in spans]
    if _pieces_width(pieces) <= width:
        return merge_spans(pieces)
    if width <= 0:
        return ()
    head, _ = _take_pieces(pieces, width - 1)
    if _pieces_width(head) > width - 1:
        head = []
    last_style = head[-1][1] if head else (pieces[0][1] if pieces else SpanStyle())
    head.append((ELLIPSIS, last_style))
    return merge_spans(head)


def pad_spans(spans: tuple[Span, ...], width: int, align: str = "left") -> tuple[Span, ...]:
    """Pad spans with plain spaces to exactly ``width`` columns."""
    used = _pieces_width([(span.text, span.style) for span in spans])
    gap = max(0, width - used)
    if gap == 0:
        return spans
    if align == "right":
        return (Span(" " * gap),) + spans
    if align == "center":
        left = gap // 2
        return ((Span(" " * left),) if left else ()) + spans + (Span(" " * (gap - left)),)
    return spans + (Span(" " * gap),)


def spans_width(spans) -> int:
    return sum(display_width(span.text) for span in spans)
