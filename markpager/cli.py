"""Command-line front door for markpager.

Parses CLI options, merges them over the saved defaults, loads the markdown
source and dispatches into the interactive pager or the one-shot renderer.
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path

from .config import ViewerConfig, load_viewer_config, save_viewer_config
from .document.highlight import normalize_theme
from .errors import MarkpagerError
from .runtime import run_pager
from .runtime.app import render_static
from .runtime.effects import load_source, sanitize_terminal_text

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _default_render_width() -> int:
    """Resolve default render width from current terminal size."""
    term = shutil.get_terminal_size((80, 24))
    return max(1, term.columns)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markpager",
        description="View a markdown file in the terminal with live reload and inline images.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Markdown file. Reads stdin when omitted or '-'.")
    parser.add_argument("--watch", action="store_true", default=None, help="Reload when the file changes.")
    parser.add_argument("--toc", action="store_true", default=None, help="Show the table of contents pane.")
    parser.add_argument("--no-images", action="store_true", help="Show image placeholders only.")
    parser.add_argument(
        "--force-halfblock",
        action="store_true",
        default=None,
        help="Draw images with half-block characters regardless of terminal support.",
    )
    parser.add_argument("--code-theme", default=None, help="Pygments style for code blocks (default: monokai).")
    parser.add_argument("--wrap-width", type=_positive_int, default=None, help="Maximum text width in columns.")
    parser.add_argument("--render", action="store_true", help="Print the rendered document and exit.")
    parser.add_argument(
        "--width",
        type=_positive_int,
        default=None,
        help="Column width for --render output (default: terminal width).",
    )
    parser.add_argument("--debug-log", metavar="PATH", default=None, help="Write debug logging to PATH.")
    parser.add_argument("--save-defaults", action="store_true", help="Store the given options as defaults.")
    return parser


def config_from_args(args: argparse.Namespace, base: ViewerConfig) -> ViewerConfig:
    """Apply CLI flags over ``base``; unset flags keep the saved value."""
    config = base.merged(
        watch=args.watch,
        toc_visible=args.toc,
        images_enabled=False if args.no_images else None,
        force_halfblock=args.force_halfblock,
        code_theme=args.code_theme,
        wrap_width=args.wrap_width,
        debug_log=args.debug_log,
    )
    theme = normalize_theme(config.code_theme)
    if theme != config.code_theme:
        logger.warning("unknown code theme %r, using %s", config.code_theme, theme)
        config = config.merged(code_theme=theme)
    return config


def configure_logging(debug_log: str | None) -> None:
    if not debug_log:
        return
    handler = logging.FileHandler(debug_log, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("markpager")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def read_input(path_arg: str | None) -> tuple[str, Path | None]:
    """Return the markdown source and its path (``None`` for stdin)."""
    if path_arg is None or path_arg == "-":
        if sys.stdin.isatty():
            raise SystemExit("markpager: no input file (pass a path or pipe markdown on stdin)")
        return sanitize_terminal_text(sys.stdin.read()), None
    path = Path(path_arg).expanduser()
    return load_source(path), path.resolve()


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and launch markpager."""
    args = build_parser().parse_args(argv)
    config = config_from_args(args, load_viewer_config())
    configure_logging(config.debug_log)

    if args.save_defaults:
        save_viewer_config(config)

    try:
        source, path = read_input(args.path)
    except MarkpagerError as exc:
        raise SystemExit(f"markpager: {exc}") from exc

    if args.render:
        width = args.width if args.width is not None else (config.wrap_width or _default_render_width())
        sys.stdout.write(render_static(source, width, config))
        return

    if path is None and config.watch:
        logger.debug("watch requested for stdin input; ignoring")
        config = config.merged(watch=False)
    run_pager(source, path, config)


if __name__ == "__main__":
    main()
