"""Markdown tree to ``RenderedDocument`` layout.

Layout is a pure function of ``(ast, width, options)``. Block nodes append
rows to a shared builder; nested containers (lists, quotes, footnotes) lay
their children out at a reduced width and then prefix the rows they produced.
Blocks at one nesting level are separated by exactly one empty row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Mapping

from markdown_it.tree import SyntaxTreeNode

from ..ansi import display_width, expand_tabs
from .highlight import DEFAULT_THEME, highlight_code
from .parser import MarkdownAst
from .table import render_table
from .types import (
    CODE,
    EMPTY,
    IMAGE,
    LINE_EMPTY,
    LINE_PARAGRAPH,
    PARAGRAPH,
    PLAIN,
    RULE,
    TABLE,
    FootnoteRef,
    HeadingRef,
    ImageRef,
    ImageSource,
    LineType,
    LinkRef,
    RenderedDocument,
    RenderedLine,
    Span,
    SpanStyle,
    slugify,
)
from .wrap import clip_spans, merge_spans, wrap_spans

logger = logging.getLogger(__name__)

BULLETS = ("•", "◦", "▪")
TASK_OPEN = "☐"
TASK_DONE = "☑"
QUOTE_MARK = "│"
CAPTION_INDENT = 2

MARKER_STYLE = SpanStyle(bold=True)
QUOTE_STYLE = SpanStyle(dim=True)
RULE_STYLE = SpanStyle(dim=True)
HTML_STYLE = SpanStyle(dim=True)
CAPTION_STYLE = SpanStyle(dim=True, italic=True)
PLACEHOLDER_STYLE = SpanStyle(dim=True, italic=True)
FOOTNOTE_STYLE = SpanStyle(dim=True)

Highlighter = Callable[[str, "str | None", str], "list[list[Span]] | None"]


@dataclass(frozen=True)
class LayoutOptions:
    """Inputs besides the tree and width that change the rendered rows."""

    theme: str = DEFAULT_THEME
    image_rows: Mapping[str, int] = field(default_factory=dict)
    missing_images: frozenset[str] = frozenset()
    highlighter: Highlighter = highlight_code


def _plain(spans) -> str:
    return "".join(span.text for span in spans)


def _has_text(spans) -> bool:
    return any(span.text.strip() for span in spans)


def _align_from_attrs(attrs) -> str:
    style = str(attrs.get("style", "")) if attrs else ""
    for align in ("left", "center", "right"):
        if f"text-align:{align}" in style.replace(" ", ""):
            return align
    return "left"


def _footnote_label(meta) -> str:
    meta = meta or {}
    label = meta.get("label")
    if label:
        return str(label)
    return str(int(meta.get("id", 0)) + 1)


def _task_state(item: SyntaxTreeNode) -> bool | None:
    """Return ``True``/``False`` for a checked/unchecked GFM task item."""
    if not item.children or item.children[0].type != "paragraph":
        return None
    inline = item.children[0].children[0] if item.children[0].children else None
    if inline is None or not inline.children or inline.children[0].type != "text":
        return None
    text = inline.children[0].content
    head = text[:3]
    if head not in ("[ ]", "[x]", "[X]"):
        return None
    if len(text) > 3 and text[3] != " ":
        return None
    return head != "[ ]"


class _Builder:
    def __init__(self, ast: MarkdownAst, options: LayoutOptions) -> None:
        self.ast = ast
        self.options = options
        self.lines: list[RenderedLine] = []
        self.headings: list[HeadingRef] = []
        self.images: list[ImageRef] = []
        self.footnotes: list[FootnoteRef] = []
        self._heading_stack: list[tuple[int, int]] = []
        self._slug_counts: dict[str, int] = {}
        self._quote_depth = 0
        self._list_depth = 0
        self._strip_task_prefix = False
        self._handlers: dict[str, Callable[[SyntaxTreeNode, int], None]] = {
            "paragraph": self._paragraph,
            "heading": self._heading,
            "fence": self._fence,
            "code_block": self._code_block,
            "blockquote": self._blockquote,
            "bullet_list": self._bullet_list,
            "ordered_list": self._ordered_list,
            "table": self._table,
            "hr": self._rule,
            "html_block": self._html_block,
            "footnote_block": self._footnote_block,
        }

    # -- emission helpers -------------------------------------------------

    def _emit(self, spans, line_type: LineType, source_range=None) -> int:
        self.lines.append(RenderedLine(tuple(spans), line_type, source_range))
        return len(self.lines) - 1

    def _empty(self) -> None:
        self._emit((), EMPTY)

    def _prefix_range(self, start: int, first: tuple[Span, ...], rest: tuple[Span, ...], retype) -> None:
        """Prefix rows ``start..`` in place; ``retype`` maps old line types."""
        for idx in range(start, len(self.lines)):
            line = self.lines[idx]
            prefix = first if idx == start else rest
            if line.line_type.kind == LINE_EMPTY and idx != start:
                new_type = retype(line.line_type)
                if new_type.kind == LINE_EMPTY:
                    continue
                spans = merge_spans([(s.text.rstrip(), s.style) for s in prefix])
            else:
                new_type = retype(line.line_type)
                spans = prefix + line.spans
            self.lines[idx] = RenderedLine(spans, new_type, line.source_range)

    def _snapshot(self):
        return (
            len(self.lines),
            len(self.headings),
            len(self.images),
            len(self.footnotes),
            list(self._heading_stack),
            dict(self._slug_counts),
        )

    def _restore(self, snapshot) -> None:
        lines, headings, images, footnotes, stack, slugs = snapshot
        del self.lines[lines:]
        del self.headings[headings:]
        del self.images[images:]
        del self.footnotes[footnotes:]
        self._heading_stack = stack
        self._slug_counts = slugs

    # -- block walking ----------------------------------------------------

    def blocks(self, nodes, width: int, separated: bool = True) -> None:
        emitted = False
        for node in nodes:
            mark = len(self.lines)
            if emitted and separated:
                self._empty()
            before = len(self.lines)
            self.block(node, width)
            if len(self.lines) == before:
                del self.lines[mark:]
                continue
            emitted = True

    def block(self, node: SyntaxTreeNode, width: int) -> None:
        handler = self._handlers.get(node.type)
        if handler is None:
            logger.debug("skipping unsupported block node %s", node.type)
            return
        snapshot = self._snapshot()
        try:
            handler(node, max(1, width))
        except Exception:
            logger.debug("skipping malformed %s node at %s", node.type, node.map, exc_info=True)
            self._restore(snapshot)

    # -- inline -----------------------------------------------------------

    def inline(self, node: SyntaxTreeNode, style: SpanStyle, out: list[Span], images: list[SyntaxTreeNode]) -> None:
        for child in node.children:
            kind = child.type
            if kind == "text":
                if child.content:
                    out.append(Span(child.content, style))
            elif kind == "softbreak":
                out.append(Span(" ", style))
            elif kind == "hardbreak":
                out.append(Span("\n", style))
            elif kind == "code_inline":
                out.append(Span(child.content, replace(style, code=True)))
            elif kind == "strong":
                self.inline(child, replace(style, bold=True), out, images)
            elif kind == "em":
                self.inline(child, replace(style, italic=True), out, images)
            elif kind == "s":
                self.inline(child, replace(style, strike=True), out, images)
            elif kind == "link":
                href = str(child.attrs.get("href", ""))
                self.inline(child, replace(style, link=href, underline=True), out, images)
            elif kind == "image":
                images.append(child)
            elif kind == "footnote_ref":
                label = _footnote_label(child.meta)
                out.append(Span(f"[^{label}]", replace(style, link=f"footnote:{label}", dim=True)))
            elif kind == "footnote_anchor":
                continue
            elif kind == "html_inline":
                tag = child.content.strip().lower().replace(" ", "")
                if tag in ("<br>", "<br/>"):
                    out.append(Span("\n", style))
            elif child.children:
                self.inline(child, style, out, images)
            else:
                logger.debug("skipping inline node %s", kind)

    def inline_spans(self, node: SyntaxTreeNode) -> tuple[list[Span], list[SyntaxTreeNode]]:
        spans: list[Span] = []
        images: list[SyntaxTreeNode] = []
        for child in node.children:
            if child.type == "inline":
                self.inline(child, PLAIN, spans, images)
        return spans, images

    # -- block handlers ---------------------------------------------------

    def _paragraph(self, node: SyntaxTreeNode, width: int) -> None:
        source_range = self.ast.byte_range(node.map)
        spans, images = self.inline_spans(node)
        if self._strip_task_prefix:
            self._strip_task_prefix = False
            if spans:
                first = spans[0]
                spans[0] = Span(first.text[3:].lstrip(" "), first.style)
        wrote = False
        if _has_text(spans):
            for row in wrap_spans(spans, width):
                self._emit(row, PARAGRAPH, source_range)
            wrote = True
        for image in images:
            if wrote:
                self._empty()
            self._image(image, width, source_range)
            wrote = True

    def _image(self, node: SyntaxTreeNode, width: int, source_range) -> None:
        src = str(node.attrs.get("src", ""))
        alt_spans: list[Span] = []
        self.inline(node, PLAIN, alt_spans, [])
        alt = _plain(alt_spans).strip() or (node.content or "").strip()
        source = ImageSource.from_reference(src)
        key = source.key
        rows = self.options.image_rows.get(key)
        caption_line = None
        if key in self.options.missing_images:
            line = self._emit(clip_spans((Span(f"[Image not found: {src}]", PLACEHOLDER_STYLE),), width), IMAGE, source_range)
            line_range = (line, line + 1)
        elif rows and rows > 0:
            caption = (Span(" " * CAPTION_INDENT), Span(alt or src, CAPTION_STYLE))
            caption_line = self._emit(clip_spans(caption, width), IMAGE, source_range)
            first = len(self.lines)
            for _ in range(rows):
                self._emit((), IMAGE, source_range)
            line_range = (first, first + rows)
        else:
            line = self._emit(clip_spans((Span(f"[Image: {alt or src}]", PLACEHOLDER_STYLE),), width), IMAGE, source_range)
            line_range = (line, line + 1)
        self.images.append(
            ImageRef(
                index=len(self.images),
                alt_text=alt,
                source=source,
                line_range=line_range,
                source_range=source_range,
                caption_line=caption_line,
            )
        )

    def _heading(self, node: SyntaxTreeNode, width: int) -> None:
        level = int(node.tag[1:]) if node.tag[1:].isdigit() else 1
        spans, _ = self.inline_spans(node)
        spans = [Span(s.text.replace("\n", " "), replace(s.style, bold=True)) for s in spans]
        text = " ".join(_plain(spans).split())
        row = (Span("#" * level + " ", MARKER_STYLE),) + tuple(spans)
        line = self._emit(clip_spans(row, width), LineType.heading(level), self.ast.byte_range(node.map))

        while self._heading_stack and self._heading_stack[-1][0] >= level:
            self._heading_stack.pop()
        parent = self._heading_stack[-1][1] if self._heading_stack else None
        index = len(self.headings)
        self.headings.append(
            HeadingRef(index=index, level=level, text=text, line=line, id=self._unique_slug(text), parent=parent)
        )
        self._heading_stack.append((level, index))

    def _unique_slug(self, text: str) -> str | None:
        base = slugify(text)
        if not base:
            return None
        count = self._slug_counts.get(base, 0)
        self._slug_counts[base] = count + 1
        return base if count == 0 else f"{base}-{count}"

    def _code_lines(self, content: str, language: str | None, first_line: int | None) -> None:
        if content.endswith("\n"):
            content = content[:-1]
        raw = [expand_tabs(line, 4) for line in content.split("\n")]
        highlighted = None
        if language:
            highlighted = self.options.highlighter("\n".join(raw), language, self.options.theme)
        code_style = SpanStyle(code=True)
        for idx, text in enumerate(raw):
            if highlighted is not None and idx < len(highlighted):
                spans = tuple(highlighted[idx])
            else:
                spans = (Span(text, code_style),) if text else ()
            source_range = self.ast.line_byte_range(first_line + idx) if first_line is not None else None
            self._emit(spans, CODE, source_range)

    def _fence(self, node: SyntaxTreeNode, width: int) -> None:
        info = (node.info or "").strip()
        language = info.split()[0] if info else None
        first_line = node.map[0] + 1 if node.map else None
        self._code_lines(node.content, language, first_line)

    def _code_block(self, node: SyntaxTreeNode, width: int) -> None:
        first_line = node.map[0] if node.map else None
        self._code_lines(node.content, None, first_line)

    def _blockquote(self, node: SyntaxTreeNode, width: int) -> None:
        start = len(self.lines)
        self._quote_depth += 1
        depth = self._quote_depth
        try:
            self.blocks(node.children, max(1, width - 2))
        finally:
            self._quote_depth -= 1
        if len(self.lines) == start:
            self._emit((), LineType.quote(depth), self.ast.byte_range(node.map))

        def retype(line_type: LineType) -> LineType:
            if line_type.kind in (LINE_PARAGRAPH, LINE_EMPTY):
                return LineType.quote(depth)
            return line_type

        prefix = (Span(QUOTE_MARK + " ", QUOTE_STYLE),)
        self._prefix_range(start, prefix, prefix, retype)

    def _bullet_list(self, node: SyntaxTreeNode, width: int) -> None:
        items = [child for child in node.children if child.type == "list_item"]
        bullet = BULLETS[self._list_depth % len(BULLETS)]
        self._list(node, items, [bullet] * len(items), width)

    def _ordered_list(self, node: SyntaxTreeNode, width: int) -> None:
        items = [child for child in node.children if child.type == "list_item"]
        try:
            start = int(node.attrs.get("start", 1))
        except (TypeError, ValueError):
            start = 1
        markers = [f"{start + idx}{item.markup or '.'}" for idx, item in enumerate(items)]
        widest = max((display_width(marker) for marker in markers), default=0)
        self._list(node, items, [marker.rjust(widest) for marker in markers], width)

    def _list(self, node: SyntaxTreeNode, items, markers: list[str], width: int) -> None:
        loose = any(
            child.type == "paragraph" and not child.hidden for item in items for child in item.children
        )
        depth = self._list_depth
        self._list_depth += 1
        try:
            for idx, item in enumerate(items):
                if idx and loose:
                    self._empty()
                self._list_item(item, markers[idx], depth, width, loose)
        finally:
            self._list_depth -= 1

    def _list_item(self, item: SyntaxTreeNode, marker: str, depth: int, width: int, loose: bool) -> None:
        task = _task_state(item)
        if task is not None:
            glyph = TASK_DONE if task else TASK_OPEN
            marker = glyph.rjust(display_width(marker)) if display_width(marker) > 1 else glyph
        marker_width = display_width(marker) + 1
        start = len(self.lines)
        self._strip_task_prefix = task is not None
        try:
            self.blocks(item.children, max(1, width - marker_width), separated=loose)
        finally:
            self._strip_task_prefix = False
        if len(self.lines) == start:
            self._emit((), PARAGRAPH, self.ast.byte_range(item.map))

        item_type = LineType.list_item(depth, marker.strip())

        def retype(line_type: LineType) -> LineType:
            if line_type.kind == LINE_PARAGRAPH:
                return item_type
            return line_type

        first = (Span(marker, MARKER_STYLE), Span(" "))
        rest = (Span(" " * marker_width),)
        self._prefix_range(start, first, rest, retype)

    def _table(self, node: SyntaxTreeNode, width: int) -> None:
        header: list[tuple[Span, ...]] = []
        aligns: list[str] = []
        rows: list[list[tuple[Span, ...]]] = []
        header_range = None
        row_ranges: list = []
        for section in node.children:
            for tr in section.children:
                if tr.type != "tr":
                    continue
                cells = []
                for cell in tr.children:
                    spans, _ = self.inline_spans(cell)
                    cells.append(merge_spans([(s.text.replace("\n", " "), s.style) for s in spans]))
                    if section.type == "thead":
                        aligns.append(_align_from_attrs(cell.attrs))
                if section.type == "thead":
                    header = cells
                    header_range = self.ast.byte_range(tr.map)
                else:
                    rows.append(cells)
                    row_ranges.append(self.ast.byte_range(tr.map))
        table_range = self.ast.byte_range(node.map)
        for spans, row in render_table(header, rows, aligns, width):
            if row is None:
                source_range = table_range
            elif row < 0:
                source_range = header_range or table_range
            else:
                source_range = row_ranges[row] or table_range
            self._emit(spans, TABLE, source_range)

    def _rule(self, node: SyntaxTreeNode, width: int) -> None:
        self._emit((Span("─" * width, RULE_STYLE),), RULE, self.ast.byte_range(node.map))

    def _html_block(self, node: SyntaxTreeNode, width: int) -> None:
        content = node.content.rstrip("\n")
        stripped = content.strip()
        if not stripped or (stripped.startswith("<!--") and stripped.endswith("-->")):
            return
        first_line = node.map[0] if node.map else None
        for idx, text in enumerate(content.split("\n")):
            spans = clip_spans((Span(expand_tabs(text, 4), HTML_STYLE),), width) if text else ()
            source_range = self.ast.line_byte_range(first_line + idx) if first_line is not None else None
            self._emit(spans, PARAGRAPH, source_range)

    def _footnote_block(self, node: SyntaxTreeNode, width: int) -> None:
        emitted = False
        for footnote in node.children:
            if footnote.type != "footnote":
                continue
            label = _footnote_label(footnote.meta)
            prefix_text = f"[^{label}]: "
            prefix_width = display_width(prefix_text)
            if emitted:
                self._empty()
            start = len(self.lines)
            self.blocks(footnote.children, max(1, width - prefix_width))
            if len(self.lines) == start:
                self._emit((), PARAGRAPH, self.ast.byte_range(footnote.map))
            self._prefix_range(
                start,
                (Span(prefix_text, FOOTNOTE_STYLE),),
                (Span(" " * prefix_width),),
                lambda line_type: line_type,
            )
            self.footnotes.append(FootnoteRef(label=label, line=start))
            emitted = True

    # -- result -----------------------------------------------------------

    def _links(self) -> tuple[LinkRef, ...]:
        links: list[LinkRef] = []
        for line_no, line in enumerate(self.lines):
            col = 0
            current: list | None = None
            for span in line.spans:
                url = span.style.link
                if url and current is not None and current[1] == url:
                    current[0] += span.text
                else:
                    if current is not None:
                        links.append(LinkRef(text=current[0], url=current[1], line=line_no, column=current[2]))
                    current = [span.text, url, col] if url else None
                col += display_width(span.text)
            if current is not None:
                links.append(LinkRef(text=current[0], url=current[1], line=line_no, column=current[2]))
        return tuple(links)

    def build(self, width: int) -> RenderedDocument:
        self.blocks(self.ast.root.children, width)
        return RenderedDocument(
            lines=tuple(self.lines),
            headings=tuple(self.headings),
            images=tuple(self.images),
            links=self._links(),
            footnotes=tuple(self.footnotes),
            width=width,
        )


def layout(ast: MarkdownAst, width: int, options: LayoutOptions | None = None) -> RenderedDocument:
    """Lay out a parsed document at ``width`` columns. Never raises on content."""
    width = max(1, int(width))
    return _Builder(ast, options or LayoutOptions()).build(width)
