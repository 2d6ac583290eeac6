"""Terminal-cell text measurement and ANSI shaping utilities.

Layout measures plain span text with these helpers; the view uses the
ANSI-aware variants when clipping already-styled rows to the screen.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
TAB_STOP = 8
ELLIPSIS = "…"


def char_display_width(ch: str, col: int = 0) -> int:
    """Cells taken by ``ch`` when printed at column ``col``.

    Tabs expand to the next 8-column stop, combining marks and zero-width
    format characters consume no columns, and East Asian wide/fullwidth
    characters consume two.
    """
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.category(ch) == "Cf":
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def display_width(text: str) -> int:
    """Cells taken by unstyled ``text``."""
    col = 0
    for ch in text:
        col += char_display_width(ch, col)
    return col


def ansi_display_width(text: str) -> int:
    """Cells taken by ``text`` once SGR escapes are ignored."""
    return display_width(ANSI_ESCAPE_RE.sub("", text))


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def expand_tabs(text: str, tab_size: int = 4) -> str:
    """Expand tabs to spaces using ``tab_size`` column stops."""
    if "\t" not in text:
        return text
    out: list[str] = []
    col = 0
    for ch in text:
        if ch == "\t":
            pad = tab_size - (col % tab_size)
            out.append(" " * pad)
            col += pad
            continue
        out.append(ch)
        col += char_display_width(ch, col)
    return "".join(out)


def take_columns(text: str, max_cols: int) -> tuple[str, str]:
    """Split ``text`` into a head that fits ``max_cols`` columns and the rest.

    The head always holds at least one character when ``text`` is non-empty
    and ``max_cols`` is positive, so callers hard-breaking a long word make
    progress even for a double-width character in a one-column slot.
    """
    if max_cols <= 0 or not text:
        return "", text
    col = 0
    for idx, ch in enumerate(text):
        w = char_display_width(ch, col)
        if col + w > max_cols:
            if idx == 0:
                return text[:1], text[1:]
            return text[:idx], text[idx:]
        col += w
    return text, ""


def clip_text(text: str, max_cols: int, ellipsis: bool = True) -> str:
    """Clip plain text to ``max_cols`` columns, ending with ``…`` when cut."""
    if max_cols <= 0:
        return ""
    if display_width(text) <= max_cols:
        return text
    if not ellipsis:
        head, _ = take_columns(text, max_cols)
        return head
    head, _ = take_columns(text, max(0, max_cols - 1))
    if display_width(head) > max_cols - 1:
        head = ""
    return head + ELLIPSIS


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Cut a styled row after ``max_cols`` cells, keeping every escape seen.

    Tabs become spaces at their real stop width.
    """
    if max_cols <= 0 or not text:
        return ""

    out: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < max_cols:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        w = char_display_width(ch, col)
        if ch == "\t":
            if col + w > max_cols:
                break
            out.append(" " * w)
            col += w
            i += 1
            continue
        if col + w > max_cols:
            break
        out.append(ch)
        col += w
        i += 1

    # Keep trailing escape sequences (usually the reset) after the last cell.
    while i < n and text[i] == "\x1b":
        match = ANSI_ESCAPE_RE.match(text, i)
        if match is None:
            break
        out.append(match.group(0))
        i = match.end()

    return "".join(out)
