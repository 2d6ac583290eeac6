"""Terminal graphics capability probing and protocol selection."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

PROTOCOL_KITTY = "kitty"
PROTOCOL_SIXEL = "sixel"
PROTOCOL_ITERM2 = "iterm2"
PROTOCOL_HALFBLOCK = "halfblock"

PROTOCOL_PRIORITY = (PROTOCOL_KITTY, PROTOCOL_SIXEL, PROTOCOL_ITERM2)

IMAGE_WIDTH_FRACTION = 0.65
CELL_ASPECT = 2.0


@dataclass(frozen=True)
class TerminalCaps:
    kitty: bool = False
    sixel: bool = False
    iterm2: bool = False
    truecolor: bool = False


def probe_terminal_caps(environ: Mapping[str, str] | None = None) -> TerminalCaps:
    """Guess graphics support from the environment; runs once at startup.

    Inside tmux/screen no pass-through protocol is assumed.
    """
    env = os.environ if environ is None else environ
    term = env.get("TERM", "")
    program = env.get("TERM_PROGRAM", "")
    truecolor = env.get("COLORTERM", "").lower() in {"truecolor", "24bit"}
    if env.get("TMUX") or term.startswith("screen"):
        return TerminalCaps(truecolor=truecolor)

    kitty = (
        term == "xterm-kitty"
        or bool(env.get("KITTY_WINDOW_ID"))
        or "ghostty" in term
        or program.lower() == "ghostty"
    )
    iterm2 = program in {"iTerm.app", "WezTerm"}
    sixel = any(name in term for name in ("sixel", "foot", "mlterm"))
    return TerminalCaps(kitty=kitty, sixel=sixel, iterm2=iterm2, truecolor=truecolor or kitty or iterm2)


def protocol_for(caps: TerminalCaps, force_halfblock: bool = False) -> str:
    """Pick the first supported protocol in kitty, sixel, iterm2 order."""
    if force_halfblock:
        return PROTOCOL_HALFBLOCK
    for name in PROTOCOL_PRIORITY:
        if getattr(caps, name):
            return name
    return PROTOCOL_HALFBLOCK


def cell_size(pixel_size: tuple[int, int], content_width: int) -> tuple[int, int]:
    """Return ``(columns, rows)`` an image occupies at ``content_width``.

    Width is capped at 65% of the content width; rows keep the pixel aspect
    ratio with terminal cells assumed twice as tall as wide.
    """
    px_w, px_h = pixel_size
    cols = max(1, int(content_width * IMAGE_WIDTH_FRACTION))
    if px_w <= 0 or px_h <= 0:
        return cols, 1
    rows = max(1, round(cols * px_h / px_w / CELL_ASPECT))
    return cols, rows
