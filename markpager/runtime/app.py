"""Runtime composition: probes the terminal, builds the model and runs the loop."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from ..app.model import init_model
from ..config import ViewerConfig
from ..document import parse_and_layout
from ..images.cache import ImageCache
from ..images.loader import ImageLoadScheduler
from ..images.protocol import probe_terminal_caps, protocol_for
from .effects import EffectRunner
from .loop import RuntimeLoopTiming, run_main_loop
from .terminal import TerminalController
from .view import ImagePainter, render_document_ansi

logger = logging.getLogger(__name__)


def render_static(source: str, width: int, config: ViewerConfig) -> str:
    """Lay out ``source`` once and return it as styled text."""
    document = parse_and_layout(source, max(1, width), theme=config.code_theme)
    return render_document_ansi(document)


def run_pager(source: str, path: Path | None, config: ViewerConfig) -> None:
    """Show ``source`` interactively, or print it when stdin/stdout is not a tty."""
    if not os.isatty(sys.stdin.fileno()) or not os.isatty(sys.stdout.fileno()):
        width = config.wrap_width or 80
        sys.stdout.write(render_static(source, width, config))
        return

    caps = probe_terminal_caps()
    protocol = protocol_for(caps, force_halfblock=config.force_halfblock)
    logger.debug("terminal caps %s, protocol %s", caps, protocol)

    terminal = TerminalController(sys.stdin.fileno(), sys.stdout.fileno())
    width, height = terminal.size()
    cache = ImageCache(config.image_cache_bytes)
    base_dir = path.parent if path is not None else Path.cwd()
    scheduler = ImageLoadScheduler(cache, base_dir) if config.images_enabled else None
    effects = EffectRunner(scheduler)
    model = init_model(source, path, width, height, config, protocol=protocol, images=cache)

    try:
        with terminal.raw_mode():
            run_main_loop(model, terminal, effects, ImagePainter(caps.truecolor), RuntimeLoopTiming())
    finally:
        effects.shutdown()
