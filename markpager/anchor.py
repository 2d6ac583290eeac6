"""Reading-position anchors across reparse and re-layout.

``capture`` records where the viewport top sits before a reload;
``reconcile`` maps that record onto a freshly laid-out document. Resolution
order: heading id, normalized heading text, the stored percentage, the content
hash searched around the row it was captured at, then the top of the document.
The percentage wins whenever one was recorded and the new document has rows;
the hash only places anchors captured without one.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from .document.types import RenderedDocument

HASH_LINES = 3
HASH_WINDOW = 50


@dataclass(frozen=True)
class ContentHashAnchor:
    """Digest of the rows at the viewport top plus where they were."""

    hash: str
    line_offset: int
    fraction: float | None = None


@dataclass(frozen=True)
class HeadingAnchor:
    id: str | None
    text: str
    line_offset: int
    fallback: ContentHashAnchor | None = None


@dataclass(frozen=True)
class PercentageAnchor:
    fraction: float


ScrollAnchor = HeadingAnchor | PercentageAnchor | ContentHashAnchor


@dataclass(frozen=True)
class SourceAnchor:
    """Source byte offset of the top row plus how far into that block it was."""

    byte_offset: int
    rows_into_block: int


def _update_digest(digest, token: str) -> None:
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def content_hash(document: RenderedDocument, line: int, count: int = HASH_LINES) -> str:
    """Digest of the plain text of ``count`` rows starting at ``line``."""
    digest = hashlib.blake2b(digest_size=16)
    for idx in range(line, line + count):
        _update_digest(digest, document.plain_text(idx))
    return digest.hexdigest()


def normalize_heading_text(text: str) -> str:
    return " ".join(text.casefold().split())


def capture(document: RenderedDocument, offset: int) -> ScrollAnchor:
    """Capture an anchor for a viewport whose top row is ``offset``."""
    total = document.line_count
    fraction = (offset / total) if total else 0.0
    fraction = max(0.0, min(1.0, fraction))
    heading = document.heading_at_or_above(offset)
    if heading is None:
        return PercentageAnchor(fraction)
    fallback = ContentHashAnchor(
        hash=content_hash(document, offset),
        line_offset=offset,
        fraction=fraction,
    )
    return HeadingAnchor(id=heading.id, text=heading.text, line_offset=offset - heading.line, fallback=fallback)


def capture_anchor(model) -> ScrollAnchor:
    """Capture from a ``Model``; convenience for the reload path."""
    return capture(model.document, model.viewport.offset)


def _heading_offset(document: RenderedDocument, anchor: HeadingAnchor) -> int | None:
    target = None
    if anchor.id:
        for heading in document.headings:
            if heading.id == anchor.id:
                target = heading
                break
    if target is None:
        wanted = normalize_heading_text(anchor.text)
        for heading in document.headings:
            if normalize_heading_text(heading.text) == wanted:
                target = heading
                break
    if target is None:
        return None
    start, end = document.heading_line_range(target)
    return min(start + max(0, anchor.line_offset), end - 1)


def _percentage_offset(document: RenderedDocument, fraction: float) -> int:
    if document.line_count == 0:
        return 0
    return min(document.line_count - 1, int(round(fraction * document.line_count)))


def _search_hash(document: RenderedDocument, anchor: ContentHashAnchor) -> int | None:
    center = max(0, min(anchor.line_offset, document.line_count - 1))
    for distance in range(HASH_WINDOW + 1):
        for candidate in (center - distance, center + distance) if distance else (center,):
            if 0 <= candidate < document.line_count and content_hash(document, candidate) == anchor.hash:
                return candidate
    return None


def _reconcile_fallback(document: RenderedDocument, anchor: ContentHashAnchor) -> int:
    if anchor.fraction is not None and document.line_count:
        return _percentage_offset(document, anchor.fraction)
    found = _search_hash(document, anchor)
    return found if found is not None else 0


def reconcile(document: RenderedDocument, anchor: ScrollAnchor, height: int = 0) -> int:
    """Return the new top row for ``anchor`` in ``document``.

    The result is clamped to ``[0, max(0, line_count - height)]``.
    """
    if isinstance(anchor, HeadingAnchor):
        offset = _heading_offset(document, anchor)
        if offset is None:
            offset = _reconcile_fallback(document, anchor.fallback) if anchor.fallback is not None else 0
    elif isinstance(anchor, PercentageAnchor):
        offset = _percentage_offset(document, anchor.fraction)
    elif isinstance(anchor, ContentHashAnchor):
        offset = _reconcile_fallback(document, anchor)
    else:
        offset = 0
    return max(0, min(offset, max(0, document.line_count - height)))


reconcile_anchor = reconcile


def capture_source(document: RenderedDocument, offset: int) -> SourceAnchor | None:
    """Record the source position of row ``offset`` for same-source re-layout."""
    if not (0 <= offset < document.line_count):
        return None
    for line in range(offset, -1, -1):
        source_range = document.lines[line].source_range
        if source_range is None:
            continue
        first = line
        while first > 0 and document.lines[first - 1].source_range == source_range:
            first -= 1
        return SourceAnchor(byte_offset=source_range[0], rows_into_block=offset - first)
    return None


def reconcile_source(document: RenderedDocument, anchor: SourceAnchor | None) -> int:
    """Find the row showing ``anchor``'s source offset after a re-layout."""
    if anchor is None:
        return 0
    best = None
    for line, rendered in enumerate(document.lines):
        source_range = rendered.source_range
        if source_range is None:
            continue
        start, end = source_range
        if start == anchor.byte_offset or start <= anchor.byte_offset < end:
            best = line
            break
        if start > anchor.byte_offset:
            best = line
            break
    if best is None:
        return 0
    block = document.lines[best].source_range
    last = best
    while last + 1 < document.line_count and document.lines[last + 1].source_range == block:
        last += 1
    return min(best + anchor.rows_into_block, last)
