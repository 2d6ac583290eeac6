"""The single application state record and how it is built."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from ..config import ViewerConfig
from ..document import LayoutOptions, parse
from ..document.layout import layout
from ..document.types import LinkRef, RenderedDocument
from ..images.protocol import PROTOCOL_HALFBLOCK, cell_size
from ..viewport import Viewport
from .search import SearchState
from .toc import TocState, pane_width

STATUS_BAR_ROWS = 1
MIN_CONTENT_WIDTH = 10

STATUS_INFO = "info"
STATUS_WARNING = "warning"


@dataclass(frozen=True)
class Model:
    document: RenderedDocument
    source: str
    path: Path | None
    viewport: Viewport
    config: ViewerConfig
    terminal_width: int
    terminal_height: int
    toc: TocState = TocState()
    search: SearchState = SearchState()
    watching: bool = False
    generation: int = 0
    image_sizes: Mapping[str, tuple[int, int]] = field(default_factory=dict)
    image_failures: Mapping[str, str] = field(default_factory=dict)
    missing_images: frozenset[str] = frozenset()
    protocol: str = PROTOCOL_HALFBLOCK
    images: object | None = None
    status: str | None = None
    status_level: str = STATUS_INFO
    status_serial: int = 0
    help_visible: bool = False
    link_picker: tuple[LinkRef, ...] = ()
    quit: bool = False

    @property
    def content_width(self) -> int:
        return content_width(self.toc, self.terminal_width, self.config.wrap_width)

    @property
    def document_height(self) -> int:
        return document_height(self.terminal_height)

    @property
    def base_dir(self) -> Path:
        return self.path.parent if self.path is not None else Path.cwd()


def content_width(toc: TocState, terminal_width: int, wrap_width: int | None) -> int:
    """Layout width: terminal minus the TOC pane, capped by ``wrap_width``."""
    width = max(1, terminal_width - pane_width(toc, terminal_width))
    if wrap_width:
        width = min(width, wrap_width)
    return max(min(MIN_CONTENT_WIDTH, terminal_width), width)


def document_height(terminal_height: int) -> int:
    return max(1, terminal_height - STATUS_BAR_ROWS)


def image_rows(image_sizes: Mapping[str, tuple[int, int]], width: int) -> dict[str, int]:
    return {key: cell_size(size, width)[1] for key, size in image_sizes.items()}


def build_document(
    source: str,
    width: int,
    config: ViewerConfig,
    image_sizes: Mapping[str, tuple[int, int]] | None = None,
    missing_images: frozenset[str] = frozenset(),
) -> RenderedDocument:
    options = LayoutOptions(
        theme=config.code_theme,
        image_rows=image_rows(image_sizes or {}, width) if config.images_enabled else {},
        missing_images=missing_images if config.images_enabled else frozenset(),
    )
    return layout(parse(source), width, options)


def init_model(
    source: str,
    path: Path | None,
    terminal_width: int,
    terminal_height: int,
    config: ViewerConfig | None = None,
    protocol: str = PROTOCOL_HALFBLOCK,
    images: object | None = None,
) -> Model:
    """Build the startup model from the initial file contents."""
    config = config or ViewerConfig()
    toc = TocState(visible=config.toc_visible)
    width = content_width(toc, terminal_width, config.wrap_width)
    document = build_document(source, width, config)
    viewport = Viewport(width=width, height=document_height(terminal_height), total_lines=document.line_count)
    return Model(
        document=document,
        source=source,
        path=path,
        viewport=viewport,
        config=config,
        terminal_width=terminal_width,
        terminal_height=terminal_height,
        toc=toc,
        watching=config.watch,
        protocol=protocol,
        images=images,
    )
