"""Markdown parsing and width-dependent layout."""

from __future__ import annotations

from .layout import LayoutOptions, layout
from .parser import MarkdownAst, parse
from .types import RenderedDocument


def parse_and_layout(source: str, width: int, **options) -> RenderedDocument:
    """Parse ``source`` and lay it out at ``width`` columns.

    Keyword ``options`` are forwarded to :class:`LayoutOptions`.
    """
    return layout(parse(source), width, LayoutOptions(**options))


__all__ = ["LayoutOptions", "MarkdownAst", "RenderedDocument", "layout", "parse", "parse_and_layout"]
