"""Markdown parser adapter.

Wraps markdown-it-py (CommonMark preset plus GFM tables, strikethrough and
footnotes) and exposes the parsed tree together with the byte offsets layout
needs to tag rendered rows with ``source_range``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.footnote import footnote_plugin

logger = logging.getLogger(__name__)

_PARSER: MarkdownIt | None = None


def _markdown_parser() -> MarkdownIt:
    global _PARSER
    if _PARSER is None:
        _PARSER = (
            MarkdownIt("commonmark", {"html": True})
            .enable(["table", "strikethrough"])
            .use(footnote_plugin)
        )
    return _PARSER


@dataclass(frozen=True)
class MarkdownAst:
    """Parsed document: syntax tree root plus source line byte offsets."""

    root: SyntaxTreeNode
    source: str
    line_starts: tuple[int, ...]

    def byte_range(self, line_map) -> tuple[int, int] | None:
        """Convert a markdown-it ``[start_line, end_line)`` map to byte offsets."""
        if not line_map:
            return None
        start_line, end_line = line_map[0], line_map[1]
        last = len(self.line_starts) - 1
        start_line = max(0, min(start_line, last))
        end_line = max(start_line, min(end_line, last))
        return self.line_starts[start_line], self.line_starts[end_line]

    def line_byte_range(self, line: int) -> tuple[int, int] | None:
        return self.byte_range((line, line + 1))


def _line_starts(source: str) -> tuple[int, ...]:
    starts = [0]
    offset = 0
    for line in source.splitlines(keepends=True):
        offset += len(line.encode("utf-8"))
        starts.append(offset)
    if starts[-1] != len(source.encode("utf-8")):
        starts.append(len(source.encode("utf-8")))
    return tuple(starts)


def parse(source: str) -> MarkdownAst:
    """Parse markdown ``source``; never raises on content.

    If markdown-it rejects the input the document degrades to an empty tree.
    """
    md = _markdown_parser()
    try:
        tokens = md.parse(source)
    except Exception:
        logger.debug("markdown parse failed; rendering empty document", exc_info=True)
        tokens = []
    return MarkdownAst(
        root=SyntaxTreeNode(tokens),
        source=source,
        line_starts=_line_starts(source),
    )
