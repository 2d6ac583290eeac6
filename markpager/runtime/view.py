"""Frame composition: model in, ANSI text out.

The view never mutates the model. It reads decoded images from the shared
cache and keeps a small memo of encoded image payloads so unchanged images
are not re-encoded every frame.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass

from ..ansi import clip_ansi_line, clip_text, display_width
from ..app import messages as msg
from ..app.model import STATUS_WARNING, Model
from ..app.search import SEARCH_ACTIVE, SEARCH_EDITING, SEARCH_IDLE, SearchMatch
from ..app.toc import has_children, pane_width, visible_entries
from ..document.types import LINE_CODE, LINE_HEADING, LINE_QUOTE, LineType, RenderedDocument, RenderedLine, SpanStyle
from ..images.encode import encode, kitty_clear
from ..images.protocol import PROTOCOL_HALFBLOCK, PROTOCOL_KITTY, cell_size
from ..ui_theme import DEFAULT_THEME, UITheme
from .keys import HELP_ENTRIES

ENCODED_MEMO_SIZE = 32
TOC_TITLE = "Contents"
HELP_TITLE = "Keys"
LINKS_TITLE = "Links"


@dataclass(frozen=True)
class ScreenGeometry:
    toc_width: int
    content_col: int
    content_width: int
    doc_rows: int
    width: int


def geometry(model: Model) -> ScreenGeometry:
    toc = pane_width(model.toc, model.terminal_width)
    return ScreenGeometry(
        toc_width=toc,
        content_col=toc,
        content_width=max(1, model.terminal_width - toc),
        doc_rows=model.document_height,
        width=model.terminal_width,
    )


def _hex_rgb(value: str) -> tuple[int, int, int]:
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def span_sgr(style: SpanStyle, line_type: LineType, theme: UITheme = DEFAULT_THEME) -> str:
    parts: list[str] = []
    if line_type.kind == LINE_HEADING:
        parts.append(theme.heading[max(1, min(6, line_type.level)) - 1])
    elif line_type.kind == LINE_QUOTE:
        parts.append(theme.quote)
    if style.bold:
        parts.append("\033[1m")
    if style.dim:
        parts.append("\033[2m")
    if style.italic:
        parts.append("\033[3m")
    if style.underline:
        parts.append("\033[4m")
    if style.strike:
        parts.append("\033[9m")
    if style.fg:
        r, g, b = _hex_rgb(style.fg)
        parts.append(f"\033[38;2;{r};{g};{b}m")
    elif style.link:
        parts.append(theme.link)
    elif style.code:
        parts.append(theme.inline_code)
    if style.bg:
        r, g, b = _hex_rgb(style.bg)
        parts.append(f"\033[48;2;{r};{g};{b}m")
    elif line_type.kind == LINE_CODE:
        parts.append(theme.code_block_bg)
    return "".join(parts)


def render_line(
    line: RenderedLine,
    width: int,
    matches: list[SearchMatch] | None = None,
    current: SearchMatch | None = None,
    theme: UITheme = DEFAULT_THEME,
) -> str:
    """Render one row as ANSI, clipped to ``width`` and padded for code rows."""
    out: list[str] = []
    col = 0
    for span in line.spans:
        base = span_sgr(span.style, line.line_type, theme)
        if not matches:
            out.append(theme.reset + base + span.text)
            col += display_width(span.text)
            continue
        segment: list[str] = []
        segment_state = None
        for ch in span.text:
            state = None
            for match in matches:
                if match.column <= col < match.column + match.length:
                    state = "current" if match == current else "hit"
                    break
            if state != segment_state and segment:
                out.append(_segment(base, segment_state, "".join(segment), theme))
                segment = []
            segment_state = state
            segment.append(ch)
            col += display_width(ch)
        if segment:
            out.append(_segment(base, segment_state, "".join(segment), theme))
    text = clip_ansi_line("".join(out), width) + theme.reset
    if line.line_type.kind == LINE_CODE:
        pad = max(0, width - min(width, line.width))
        text += theme.code_block_bg + " " * pad + theme.reset
    return text


def _segment(base: str, state: str | None, text: str, theme: UITheme) -> str:
    if state == "current":
        return theme.reset + base + theme.search_current + text
    if state == "hit":
        return theme.reset + base + theme.search_hit + text
    return theme.reset + base + text


def render_document_ansi(document: RenderedDocument, theme: UITheme = DEFAULT_THEME) -> str:
    """Whole document as styled text, for non-interactive output."""
    rows = [render_line(line, max(document.width, line.width), theme=theme) for line in document.lines]
    return "\n".join(rows) + ("\n" if rows else "")


def toc_window(model: Model, rows: int) -> tuple[int, list[int]]:
    """First shown entry position and the visible heading indices."""
    entries = visible_entries(model.document.headings, model.toc.collapsed)
    body_rows = max(0, rows - 1)
    if model.toc.selected in entries and body_rows:
        pos = entries.index(model.toc.selected)
        start = max(0, min(pos - body_rows // 2, len(entries) - body_rows))
    else:
        start = 0
    return start, entries


def render_toc(model: Model, rows: int, theme: UITheme = DEFAULT_THEME) -> list[str]:
    width = pane_width(model.toc, model.terminal_width)
    if width == 0:
        return []
    inner = width - 1
    headings = model.document.headings
    start, entries = toc_window(model, rows)
    out = [theme.toc_title + clip_ansi_line(TOC_TITLE.ljust(inner), inner) + theme.reset]
    for idx in entries[start : start + max(0, rows - 1)]:
        heading = headings[idx]
        if not has_children(headings, idx):
            marker = " "
        elif idx in model.toc.collapsed:
            marker = "▸"
        else:
            marker = "▾"
        label = " " * (2 * (heading.level - 1)) + marker + " " + heading.text
        if display_width(label) > inner:
            label = clip_text(label, inner)
        label = label + " " * max(0, inner - display_width(label))
        if idx == model.toc.selected:
            color = theme.toc_selected if model.toc.focused else theme.toc_selected_unfocused
        else:
            color = theme.toc_entry
        out.append(color + label + theme.reset)
    while len(out) < rows:
        out.append(" " * inner)
    return [row + theme.divider + "│" + theme.reset for row in out[:rows]]


def render_status(model: Model, width: int, theme: UITheme = DEFAULT_THEME) -> str:
    if model.search.mode == SEARCH_EDITING:
        left = "/" + model.search.query
        count = len(model.search.matches)
        right = f"{count} match{'es' if count != 1 else ''}" if model.search.query else ""
    else:
        name = model.path.name if model.path is not None else "<stdin>"
        left = " " + name + (" [watch]" if model.watching else "")
        if model.status:
            left += "  " + model.status
        elif model.search.mode == SEARCH_ACTIVE and model.search.matches:
            left += f"  /{model.search.query}"
        viewport = model.viewport
        visible = viewport.visible_range()
        last = visible.stop if len(visible) else viewport.offset
        right = f"{viewport.offset + 1}-{last}/{viewport.total_lines} {round(viewport.scroll_percentage() * 100)}% "
    gap = width - display_width(left) - display_width(right)
    if gap < 1:
        text = clip_ansi_line(left, max(0, width - display_width(right) - 1)) + " " + right
    else:
        text = left + " " * gap + right
    text = clip_ansi_line(text, width)
    style = theme.status_warning if model.status and model.status_level == STATUS_WARNING else ""
    return theme.status_bar + style + text + " " * max(0, width - display_width(text)) + theme.reset


class ImagePainter:
    """Encodes visible images for the model's protocol."""

    def __init__(self, truecolor: bool = True) -> None:
        self.truecolor = truecolor
        self._memo: OrderedDict[tuple, object] = OrderedDict()

    def _encoded(self, protocol: str, key: str, image, cols: int, rows: int):
        memo_key = (protocol, key, cols, rows, id(image))
        cached = self._memo.get(memo_key)
        if cached is not None:
            self._memo.move_to_end(memo_key)
            return cached
        encoded = encode(protocol, image, cols, rows, self.truecolor)
        self._memo[memo_key] = encoded
        while len(self._memo) > ENCODED_MEMO_SIZE:
            self._memo.popitem(last=False)
        return encoded

    def paint(self, model: Model, geo: ScreenGeometry) -> tuple[dict[int, str], str]:
        """Return halfblock row overrides and escape payloads to append."""
        cache = model.images
        overrides: dict[int, str] = {}
        payloads: list[str] = []
        if cache is None or not model.config.images_enabled:
            return overrides, ""
        viewport = model.viewport
        top = viewport.offset
        bottom = top + viewport.height
        visible_keys: list[str] = []
        for image_ref in model.document.images:
            first, last = image_ref.line_range
            if last <= top or first >= bottom:
                continue
            key = image_ref.source.key
            size = model.image_sizes.get(key)
            if size is None:
                continue
            visible_keys.append(key)
            image = cache.get(key)
            if image is None:
                continue
            cols, _ = cell_size(size, model.content_width)
            rows = last - first
            indent = model.document.lines[first].width
            if model.protocol == PROTOCOL_HALFBLOCK:
                lines = self._encoded(model.protocol, key, image, cols, rows)
                for line_no in range(max(first, top), min(last, bottom)):
                    prefix = render_line(model.document.lines[line_no], indent) if indent else ""
                    overrides[line_no - top] = prefix + lines[line_no - first]
                continue
            if first < top or last > bottom:
                continue
            payload = self._encoded(model.protocol, key, image, cols, rows)
            payloads.append(f"\x1b[{first - top + 1};{geo.content_col + indent + 1}H{payload}")
        cache.set_visible(visible_keys)
        prefix = kitty_clear() if model.protocol == PROTOCOL_KITTY else ""
        return overrides, prefix + "".join(payloads)


def _box(title: str, rows: list[tuple[str, str]], geo: ScreenGeometry, theme: UITheme) -> list[tuple[int, int, str]]:
    """Centre a bordered two-column box over the document rows.

    Returns ``(row, column, text)`` placements, 0-based. Rows that do not
    fit are dropped; nothing is drawn on a screen too small for a border.
    """
    if geo.doc_rows < 3 or geo.width < 8:
        return []
    rows = rows[: geo.doc_rows - 2]
    key_width = max((display_width(key) for key, _ in rows), default=0)
    wanted = max([display_width(title) + 2] + [key_width + 2 + display_width(text) for key, text in rows])
    inner = min(wanted, geo.width - 4)
    top = (geo.doc_rows - len(rows) - 2) // 2
    left = (geo.width - inner - 4) // 2
    label = clip_text(f" {title} ", inner + 2)
    rule = "─" * (inner + 2 - display_width(label))
    placed = [(top, left, theme.overlay + "┌" + label + rule + "┐" + theme.reset)]
    for idx, (key, text) in enumerate(rows, start=1):
        key_cell = clip_text(key, inner)
        key_cell += " " * max(0, min(inner, key_width + 2) - display_width(key_cell))
        body = clip_text(text, inner - display_width(key_cell))
        pad = " " * (inner - display_width(key_cell) - display_width(body))
        boxed = theme.overlay + "│ " + theme.overlay_key + key_cell + theme.overlay + body + pad + " │" + theme.reset
        placed.append((top + idx, left, boxed))
    placed.append((top + len(rows) + 1, left, theme.overlay + "└" + "─" * (inner + 2) + "┘" + theme.reset))
    return placed


def render_overlay(model: Model, geo: ScreenGeometry, theme: UITheme = DEFAULT_THEME) -> list[tuple[int, int, str]]:
    """Placements for the help box or the numbered link picker, if open."""
    if model.help_visible:
        return _box(HELP_TITLE, list(HELP_ENTRIES), geo, theme)
    if model.link_picker:
        rows = []
        for number, link in enumerate(model.link_picker, start=1):
            label = link.text.strip()
            rows.append((str(number), f"{label}  {link.url}" if label and label != link.url else link.url))
        return _box(LINKS_TITLE, rows, geo, theme)
    return []


def render_frame(model: Model, painter: ImagePainter | None = None, theme: UITheme = DEFAULT_THEME) -> str:
    geo = geometry(model)
    toc_rows = render_toc(model, geo.doc_rows, theme)
    overrides, payload = painter.paint(model, geo) if painter is not None else ({}, "")

    by_line: dict[int, list[SearchMatch]] = {}
    if model.search.mode != SEARCH_IDLE:
        for match in model.search.matches:
            by_line.setdefault(match.line, []).append(match)
    current = model.search.current_match

    out: list[str] = ["\x1b[H"]
    document = model.document
    for row in range(geo.doc_rows):
        out.append(f"\x1b[{row + 1};1H\x1b[2K")
        if toc_rows:
            out.append(toc_rows[row])
        line_no = model.viewport.offset + row
        if row in overrides:
            out.append(clip_ansi_line(overrides[row], geo.content_width) + theme.reset)
        elif line_no < document.line_count:
            out.append(
                render_line(document.lines[line_no], geo.content_width, by_line.get(line_no), current, theme)
            )
    out.append(f"\x1b[{geo.doc_rows + 1};1H\x1b[2K")
    out.append(render_status(model, geo.width, theme))
    placed = render_overlay(model, geo, theme)
    if placed:
        payload = kitty_clear() if model.protocol == PROTOCOL_KITTY else ""
    for row, col, text in placed:
        out.append(f"\x1b[{row + 1};{col + 1}H{text}")
    out.append(payload)
    return "".join(out)


def hit_test(model: Model, col: int, row: int) -> object | None:
    """Translate a 1-based mouse click into a message, if it hits something."""
    if model.help_visible:
        return msg.HideHelp()
    if model.link_picker:
        return msg.CancelLinkPicker()
    geo = geometry(model)
    x = col - 1
    y = row - 1
    if not (0 <= y < geo.doc_rows):
        return None
    if geo.toc_width and x < geo.toc_width - 1:
        start, entries = toc_window(model, geo.doc_rows)
        pos = start + y - 1
        if y >= 1 and 0 <= pos < len(entries):
            return msg.TocSelect(entries[pos])
        return None
    line = model.viewport.offset + y
    link = model.document.link_at(line, x - geo.content_col)
    if link is not None:
        return msg.FollowLink(link.url)
    return None
