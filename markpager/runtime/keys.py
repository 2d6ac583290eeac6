"""Key token to message translation.

Normal mode uses a less-style table. A numeric prefix turns ``G`` into
go-to-line and ``%`` into go-to-percentage. While a search query is being
edited every printable key extends the query. The help overlay and the
link picker each take every key while they are open.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..app import messages as msg
from ..app.search import SEARCH_ACTIVE, SEARCH_EDITING

MOUSE_WHEEL_LINES = 3
HELP_CLOSE_KEYS = frozenset({"ESC", "?", "q", "Q", "F1"})


@dataclass(frozen=True)
class KeyBinding:
    """Mapping from one or more key tokens to a message factory."""

    combos: tuple[str, ...]
    message: Callable[[], object]


NORMAL_BINDINGS: tuple[KeyBinding, ...] = (
    KeyBinding(("q", "Q", "CTRL_C"), msg.Quit),
    KeyBinding(("j", "DOWN", "ENTER", "e"), lambda: msg.ScrollBy(1)),
    KeyBinding(("k", "UP", "y"), lambda: msg.ScrollBy(-1)),
    KeyBinding((" ", "PAGE_DOWN", "f", "CTRL_F"), msg.PageDown),
    KeyBinding(("b", "PAGE_UP", "CTRL_B"), msg.PageUp),
    KeyBinding(("d", "CTRL_D"), msg.HalfPageDown),
    KeyBinding(("u", "CTRL_U"), msg.HalfPageUp),
    KeyBinding(("g", "HOME", "<"), msg.GoToTop),
    KeyBinding(("G", "END", ">"), msg.GoToBottom),
    KeyBinding(("/",), msg.StartSearch),
    KeyBinding(("n",), msg.NextMatch),
    KeyBinding(("N",), msg.PrevMatch),
    KeyBinding(("t",), msg.ToggleToc),
    KeyBinding(("TAB", "SHIFT_TAB"), msg.ToggleTocFocus),
    KeyBinding(("w",), msg.ToggleWatch),
    KeyBinding(("r", "R"), msg.ForceReload),
    KeyBinding(("o",), msg.OpenVisibleLinks),
    KeyBinding(("?", "F1"), msg.ToggleHelp),
)

HELP_ENTRIES: tuple[tuple[str, str], ...] = (
    ("j k  Up Down", "Scroll one line"),
    ("Space b  PgDn PgUp", "Page down / up"),
    ("d u", "Half page down / up"),
    ("g G  Home End", "Top / bottom"),
    ("<n>G  <n>%", "Go to line / percentage"),
    ("/  n N", "Search, next / previous match"),
    ("Esc", "Clear search"),
    ("t  Tab", "Toggle / focus contents"),
    ("h l z", "Collapse / expand (contents)"),
    ("o", "Open a visible link"),
    ("w", "Toggle file watching"),
    ("r R", "Reload file"),
    ("? F1", "Toggle this help"),
    ("q Ctrl-C", "Quit"),
)

TOC_BINDINGS: tuple[KeyBinding, ...] = (
    KeyBinding(("ENTER",), msg.TocSelect),
    KeyBinding(("h", "l", "LEFT", "RIGHT", "z"), msg.TocToggleCollapse),
    KeyBinding(("ESC",), msg.ToggleTocFocus),
)


def _table(bindings: tuple[KeyBinding, ...]) -> dict[str, Callable[[], object]]:
    table: dict[str, Callable[[], object]] = {}
    for binding in bindings:
        for combo in binding.combos:
            table[combo] = binding.message
    return table


_NORMAL = _table(NORMAL_BINDINGS)
_TOC = _table(TOC_BINDINGS)


class KeyTranslator:
    """Stateful translator; holds the pending numeric prefix."""

    def __init__(self) -> None:
        self.count = ""

    def translate(self, key: str, model) -> object | None:
        if not key:
            return None
        if model.help_visible:
            self.count = ""
            if key == "CTRL_C":
                return msg.Quit()
            return msg.HideHelp() if key in HELP_CLOSE_KEYS else None
        if model.link_picker:
            self.count = ""
            if len(key) == 1 and key in "123456789":
                return msg.SelectVisibleLink(int(key))
            if key.startswith("MOUSE"):
                return None
            return msg.CancelLinkPicker()
        if model.search.mode == SEARCH_EDITING:
            return self._search_key(key, model.search.query)

        if key.isdigit() and len(key) == 1 and not model.toc.focused:
            self.count += key
            return None
        count, self.count = self.count, ""
        if count:
            if key in ("G", "END"):
                return msg.GoToLine(max(0, int(count) - 1))
            if key == "%":
                return msg.GoToPercentage(min(100, int(count)))

        if key.startswith("MOUSE_WHEEL_UP"):
            return msg.ScrollBy(-MOUSE_WHEEL_LINES)
        if key.startswith("MOUSE_WHEEL_DOWN"):
            return msg.ScrollBy(MOUSE_WHEEL_LINES)
        if key == "ESC" and model.search.mode == SEARCH_ACTIVE:
            return msg.CancelSearch()

        if model.toc.focused:
            factory = _TOC.get(key)
            if factory is not None:
                return factory()
        factory = _NORMAL.get(key)
        return factory() if factory is not None else None

    @staticmethod
    def _search_key(key: str, query: str) -> object | None:
        if key == "ENTER":
            return msg.SearchCommit()
        if key in ("ESC", "CTRL_C"):
            return msg.CancelSearch()
        if key == "BACKSPACE":
            if not query:
                return msg.CancelSearch()
            return msg.SearchQueryChanged(query[:-1])
        if len(key) == 1 and key.isprintable():
            return msg.SearchQueryChanged(query + key)
        return None

