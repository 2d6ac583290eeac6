"""Pygments-backed code block highlighting.

Returns per-line styled spans for a fenced code block, or ``None`` when the
language is unknown so layout falls back to plain rows.
"""

from __future__ import annotations

import logging

from pygments.lexers import get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .types import Span, SpanStyle

logger = logging.getLogger(__name__)

DEFAULT_THEME = "monokai"

_VALID_STYLES: set[str] = set()
_INVALID_STYLES: set[str] = set()
_TOKEN_STYLE_CACHE: dict[str, dict[object, SpanStyle]] = {}
_UNKNOWN_LANGUAGES: set[str] = set()


def normalize_theme(theme: str) -> str:
    """Return ``theme`` if Pygments knows it, else the default theme."""
    if theme in _VALID_STYLES:
        return theme
    if theme in _INVALID_STYLES:
        return DEFAULT_THEME
    try:
        get_style_by_name(theme)
    except ClassNotFound:
        logger.debug("unknown code theme %r, using %s", theme, DEFAULT_THEME)
        _INVALID_STYLES.add(theme)
        return DEFAULT_THEME
    _VALID_STYLES.add(theme)
    return theme


def _color(value: str) -> str | None:
    if not value:
        return None
    value = value.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        return None
    return "#" + value.lower()


def _token_style(theme: str, token_type) -> SpanStyle:
    cache = _TOKEN_STYLE_CACHE.setdefault(theme, {})
    cached = cache.get(token_type)
    if cached is not None:
        return cached
    style = get_style_by_name(theme)
    info = style.style_for_token(token_type)
    span_style = SpanStyle(
        bold=bool(info.get("bold")),
        italic=bool(info.get("italic")),
        underline=bool(info.get("underline")),
        code=True,
        fg=_color(info.get("color") or ""),
    )
    cache[token_type] = span_style
    return span_style


def _lexer_for(language: str):
    key = language.strip().lower()
    if not key or key in _UNKNOWN_LANGUAGES:
        return None
    try:
        return get_lexer_by_name(key, stripnl=False, stripall=False, ensurenl=False)
    except ClassNotFound:
        _UNKNOWN_LANGUAGES.add(key)
        return None


def highlight_code(code: str, language: str | None, theme: str = DEFAULT_THEME) -> list[list[Span]] | None:
    """Highlight ``code`` into one span list per source line.

    ``code`` must not end with a newline; the result has exactly
    ``len(code.split("\\n"))`` entries. Returns ``None`` for unknown or
    missing languages and on lexer failure.
    """
    if not language:
        return None
    lexer = _lexer_for(language)
    if lexer is None:
        return None

    theme = normalize_theme(theme)
    expected = len(code.split("\n"))
    lines: list[list[Span]] = [[]]
    try:
        for token_type, value in lexer.get_tokens(code):
            if not value:
                continue
            style = _token_style(theme, token_type)
            parts = value.split("\n")
            for idx, part in enumerate(parts):
                if idx > 0:
                    lines.append([])
                if part:
                    _append_span(lines[-1], part, style)
    except Exception:
        logger.debug("highlighting failed for language %r", language, exc_info=True)
        return None

    if len(lines) < expected:
        lines.extend([] for _ in range(expected - len(lines)))
    return lines[:expected]


def _append_span(line: list[Span], text: str, style: SpanStyle) -> None:
    if line and line[-1].style == style:
        line[-1] = Span(line[-1].text + text, style)
        return
    line.append(Span(text, style))
