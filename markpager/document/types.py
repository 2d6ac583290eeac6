"""Rendered-document data model.

A ``RenderedDocument`` is the immutable output of layout: styled terminal rows
plus side indices (headings, images, links, footnotes) that point back into
those rows by line number. Documents are replaced wholesale on reparse/resize.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..ansi import display_width

LINE_PARAGRAPH = "paragraph"
LINE_HEADING = "heading"
LINE_CODE = "code"
LINE_QUOTE = "quote"
LINE_LIST_ITEM = "list_item"
LINE_TABLE = "table"
LINE_RULE = "rule"
LINE_IMAGE = "image"
LINE_EMPTY = "empty"

IMAGE_SOURCE_PATH = "path"
IMAGE_SOURCE_URL = "url"
IMAGE_SOURCE_DATA = "data"

_SLUG_DROP_RE = re.compile(r"[^\w\- ]", re.UNICODE)
_URL_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


@dataclass(frozen=True)
class SpanStyle:
    """Inline style flags for one span; colors are ``#rrggbb`` strings."""

    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    dim: bool = False
    code: bool = False
    link: str | None = None
    fg: str | None = None
    bg: str | None = None


PLAIN = SpanStyle()


@dataclass(frozen=True)
class Span:
    text: str
    style: SpanStyle = PLAIN


@dataclass(frozen=True)
class LineType:
    """Semantic tag for one rendered row.

    ``level`` is set for headings (1-6), ``depth`` for quotes and list items,
    and ``marker`` holds the list marker text (``"3."`` or a bullet glyph).
    """

    kind: str
    level: int = 0
    depth: int = 0
    marker: str = ""

    @classmethod
    def heading(cls, level: int) -> LineType:
        return cls(LINE_HEADING, level=max(1, min(6, level)))

    @classmethod
    def quote(cls, depth: int) -> LineType:
        return cls(LINE_QUOTE, depth=depth)

    @classmethod
    def list_item(cls, depth: int, marker: str) -> LineType:
        return cls(LINE_LIST_ITEM, depth=depth, marker=marker)


PARAGRAPH = LineType(LINE_PARAGRAPH)
CODE = LineType(LINE_CODE)
TABLE = LineType(LINE_TABLE)
RULE = LineType(LINE_RULE)
IMAGE = LineType(LINE_IMAGE)
EMPTY = LineType(LINE_EMPTY)


@dataclass(frozen=True)
class RenderedLine:
    spans: tuple[Span, ...]
    line_type: LineType
    source_range: tuple[int, int] | None = None

    @property
    def text(self) -> str:
        """Plain concatenated text of all spans."""
        return "".join(span.text for span in self.spans)

    @property
    def width(self) -> int:
        return display_width(self.text)


@dataclass(frozen=True)
class HeadingRef:
    """One heading; ``parent`` indexes into ``RenderedDocument.headings``."""

    index: int
    level: int
    text: str
    line: int
    id: str | None = None
    parent: int | None = None


@dataclass(frozen=True)
class ImageSource:
    kind: str
    value: str

    @property
    def key(self) -> str:
        """Cache/layout key; the raw reference string as written in markdown."""
        return self.value

    @classmethod
    def from_reference(cls, src: str) -> ImageSource:
        """Classify a markdown image reference without touching the filesystem."""
        src = src.strip()
        lowered = src.lower()
        if lowered.startswith("data:"):
            return cls(IMAGE_SOURCE_DATA, src)
        if lowered.startswith("http://") or lowered.startswith("https://"):
            return cls(IMAGE_SOURCE_URL, src)
        if lowered.startswith("file://"):
            return cls(IMAGE_SOURCE_PATH, src)
        if _URL_SCHEME_RE.match(src):
            return cls(IMAGE_SOURCE_URL, src)
        return cls(IMAGE_SOURCE_PATH, src)


@dataclass(frozen=True)
class ImageRef:
    """Image reference; ``line_range`` is the reserved ``[start, end)`` rows."""

    index: int
    alt_text: str
    source: ImageSource
    line_range: tuple[int, int]
    source_range: tuple[int, int] | None = None
    caption_line: int | None = None


@dataclass(frozen=True)
class LinkRef:
    text: str
    url: str
    line: int
    column: int = 0


@dataclass(frozen=True)
class FootnoteRef:
    label: str
    line: int


def slugify(text: str) -> str:
    """GitHub-style heading slug: lowercase, punctuation dropped, spaces to ``-``."""
    lowered = text.strip().lower()
    cleaned = _SLUG_DROP_RE.sub("", lowered)
    return cleaned.replace(" ", "-")


def _normalize_anchor(text: str) -> str:
    out: list[str] = []
    last_dash = False
    for ch in text.lower():
        if ch.isalnum():
            out.append(ch)
            last_dash = False
        elif not last_dash:
            out.append("-")
            last_dash = True
    return "".join(out).strip("-")


@dataclass(frozen=True)
class RenderedDocument:
    lines: tuple[RenderedLine, ...] = ()
    headings: tuple[HeadingRef, ...] = ()
    images: tuple[ImageRef, ...] = ()
    links: tuple[LinkRef, ...] = ()
    footnotes: tuple[FootnoteRef, ...] = ()
    width: int = 0
    _plain: tuple[str, ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_plain", tuple(line.text for line in self.lines))

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def plain_text(self, index: int) -> str:
        """Plain text of row ``index``; empty string when out of range."""
        if 0 <= index < len(self._plain):
            return self._plain[index]
        return ""

    def plain_lines(self) -> tuple[str, ...]:
        return self._plain

    def heading_at_or_above(self, line: int) -> HeadingRef | None:
        """Return the last heading whose line is ``<= line``."""
        found: HeadingRef | None = None
        for heading in self.headings:
            if heading.line > line:
                break
            found = heading
        return found

    def heading_line_range(self, heading: HeadingRef) -> tuple[int, int]:
        """Rows owned by ``heading``: up to the next heading of any level."""
        end = self.line_count
        if heading.index + 1 < len(self.headings):
            end = self.headings[heading.index + 1].line
        return heading.line, max(heading.line + 1, end)

    def resolve_anchor(self, anchor: str) -> int | None:
        """Map an in-document ``#anchor`` to a heading line."""
        target = anchor.strip().lstrip("#")
        if not target:
            return None
        normalized = _normalize_anchor(target)
        for heading in self.headings:
            if heading.id == target:
                return heading.line
        for heading in self.headings:
            if _normalize_anchor(heading.text) == normalized:
                return heading.line
        return None

    def footnote_line(self, label: str) -> int | None:
        for footnote in self.footnotes:
            if footnote.label == label:
                return footnote.line
        return None

    def links_on_line(self, line: int) -> list[LinkRef]:
        return [link for link in self.links if link.line == line]

    def link_at(self, line: int, column: int) -> LinkRef | None:
        """Return the link covering display ``column`` on ``line``, if any."""
        for link in self.links_on_line(line):
            if link.column <= column < link.column + display_width(link.text):
                return link
        return None
