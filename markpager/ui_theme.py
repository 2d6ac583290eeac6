"""UI palette for the markdown view.

Themes are ANSI SGR fragments for document chrome (headings, quotes, links,
search hits, TOC, status bar, overlays). Code highlighting colours come
from the Pygments style instead.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UITheme:
    """Semantic ANSI palette used by the view."""

    name: str
    reset: str
    reverse: str
    divider: str
    heading: tuple[str, ...]
    inline_code: str
    code_block_bg: str
    link: str
    quote: str
    search_hit: str
    search_current: str
    status_bar: str
    status_warning: str
    toc_selected: str
    toc_selected_unfocused: str
    toc_entry: str
    toc_title: str
    overlay: str
    overlay_key: str


DEFAULT_THEME = UITheme(
    name="default",
    reset="\033[0m",
    reverse="\033[7m",
    divider="\033[2m",
    heading=(
        "\033[1;38;5;81m",
        "\033[1;38;5;114m",
        "\033[1;38;5;180m",
        "\033[1;38;5;175m",
        "\033[1;38;5;146m",
        "\033[1;38;5;250m",
    ),
    inline_code="\033[38;5;216m",
    code_block_bg="\033[48;5;235m",
    link="\033[38;5;75m",
    quote="\033[38;5;245m",
    search_hit="\033[30;48;5;186m",
    search_current="\033[30;48;5;214m",
    status_bar="\033[7m",
    status_warning="\033[1;38;5;214m",
    toc_selected="\033[7m",
    toc_selected_unfocused="\033[1;38;5;81m",
    toc_entry="\033[38;5;250m",
    toc_title="\033[1m",
    overlay="\033[38;5;252;48;5;236m",
    overlay_key="\033[1;38;5;81;48;5;236m",
)
