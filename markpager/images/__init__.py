"""Image resolution, decoding, caching and terminal encoding."""

from __future__ import annotations

from .cache import ImageCache
from .protocol import TerminalCaps, cell_size, probe_terminal_caps, protocol_for
from .source import ImageHandle, resolve

__all__ = [
    "ImageCache",
    "ImageHandle",
    "TerminalCaps",
    "cell_size",
    "probe_terminal_caps",
    "protocol_for",
    "resolve",
]
