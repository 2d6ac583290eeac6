"""Public package surface for markpager.

Exports ``main`` for programmatic CLI invocation and ``parse_and_layout`` for
embedding the markdown layout pipeline without the interactive runtime.
"""

from __future__ import annotations

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


def parse_and_layout(*args, **kwargs):
    """Lazily import the layout pipeline (markdown-it and pygments are heavy)."""
    from .document import parse_and_layout as _parse_and_layout

    return _parse_and_layout(*args, **kwargs)


__all__ = ["main", "parse_and_layout"]
