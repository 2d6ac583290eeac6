"""Messages accepted by ``update``.

Each message is a small frozen record; ``update`` dispatches on its class.
The runtime produces them from keys, resize events, the file watcher, and
finished image loads.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ScrollBy:
    delta: int


@dataclass(frozen=True)
class PageDown:
    pass


@dataclass(frozen=True)
class PageUp:
    pass


@dataclass(frozen=True)
class HalfPageDown:
    pass


@dataclass(frozen=True)
class HalfPageUp:
    pass


@dataclass(frozen=True)
class GoToTop:
    pass


@dataclass(frozen=True)
class GoToBottom:
    pass


@dataclass(frozen=True)
class GoToLine:
    """Jump so rendered row ``line`` (0-based) is the top row."""

    line: int


@dataclass(frozen=True)
class GoToPercentage:
    percent: float


@dataclass(frozen=True)
class StartSearch:
    pass


@dataclass(frozen=True)
class SearchQueryChanged:
    query: str


@dataclass(frozen=True)
class SearchCommit:
    pass


@dataclass(frozen=True)
class NextMatch:
    pass


@dataclass(frozen=True)
class PrevMatch:
    pass


@dataclass(frozen=True)
class CancelSearch:
    pass


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class ToggleToc:
    pass


@dataclass(frozen=True)
class ToggleTocFocus:
    pass


@dataclass(frozen=True)
class TocNavigate:
    """Move the TOC selection by ``delta`` visible entries."""

    delta: int


@dataclass(frozen=True)
class TocSelect:
    """Jump to the selected heading, or to ``index`` when given."""

    index: int | None = None


@dataclass(frozen=True)
class TocToggleCollapse:
    index: int | None = None


@dataclass(frozen=True)
class FileChanged:
    source: str


@dataclass(frozen=True)
class WatchFailed:
    reason: str


@dataclass(frozen=True)
class ToggleWatch:
    pass


@dataclass(frozen=True)
class ForceReload:
    """Re-read the file now, whether or not the watcher saw a change."""


@dataclass(frozen=True)
class ReloadFailed:
    reason: str


@dataclass(frozen=True)
class ImageLoaded:
    """A decode finished; ``size`` is the pixel size, ``rows`` its cell height."""

    key: str
    generation: int
    rows: int
    size: tuple[int, int] | None = None


@dataclass(frozen=True)
class ImageLoadFailed:
    key: str
    generation: int
    reason: str
    missing: bool = False


@dataclass(frozen=True)
class FollowLink:
    url: str


@dataclass(frozen=True)
class OpenVisibleLinks:
    """Follow the only link on screen, or number them for picking."""


@dataclass(frozen=True)
class SelectVisibleLink:
    """Follow entry ``index`` (1-based) of the open link picker."""

    index: int


@dataclass(frozen=True)
class CancelLinkPicker:
    pass


@dataclass(frozen=True)
class ToggleHelp:
    pass


@dataclass(frozen=True)
class HideHelp:
    pass


@dataclass(frozen=True)
class ClearStatus:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Message = (
    ScrollBy
    | PageDown
    | PageUp
    | HalfPageDown
    | HalfPageUp
    | GoToTop
    | GoToBottom
    | GoToLine
    | GoToPercentage
    | StartSearch
    | SearchQueryChanged
    | SearchCommit
    | NextMatch
    | PrevMatch
    | CancelSearch
    | Resize
    | ToggleToc
    | ToggleTocFocus
    | TocNavigate
    | TocSelect
    | TocToggleCollapse
    | FileChanged
    | WatchFailed
    | ToggleWatch
    | ForceReload
    | ReloadFailed
    | ImageLoaded
    | ImageLoadFailed
    | FollowLink
    | OpenVisibleLinks
    | SelectVisibleLink
    | CancelLinkPicker
    | ToggleHelp
    | HideHelp
    | ClearStatus
    | Quit
)
