"""Interactive runtime: terminal I/O, effects, and the event loop.

Names resolve on first access so ``import markpager.runtime`` does not pull
in Pillow, requests or termios until the pager actually starts.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .app import render_static, run_pager
    from .effects import EffectRunner
    from .loop import RuntimeLoopTiming, run_main_loop

_LAZY_EXPORTS = {
    "run_pager": ".app",
    "render_static": ".app",
    "run_main_loop": ".loop",
    "RuntimeLoopTiming": ".loop",
    "EffectRunner": ".effects",
}


def __getattr__(name: str):
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(import_module(module_name, __name__), name)
    globals()[name] = value
    return value


__all__ = sorted(_LAZY_EXPORTS)
