"""Table-of-contents state over the document's heading tree.

Headings form a tree through ``HeadingRef.parent`` indices. An entry is shown
when none of its ancestors is collapsed; selection always names a shown entry.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..document.types import HeadingRef, RenderedDocument

TOC_MIN_WIDTH = 20
TOC_MAX_WIDTH = 36
TOC_MIN_TERMINAL_WIDTH = 40


@dataclass(frozen=True)
class TocState:
    visible: bool = False
    focused: bool = False
    selected: int = 0
    collapsed: frozenset[int] = frozenset()


def pane_width(state: TocState, terminal_width: int) -> int:
    """Columns taken by the TOC pane including its separator column."""
    if not state.visible or terminal_width < TOC_MIN_TERMINAL_WIDTH:
        return 0
    return max(TOC_MIN_WIDTH, min(TOC_MAX_WIDTH, terminal_width // 4)) + 1


def ancestors(headings: tuple[HeadingRef, ...], index: int) -> list[int]:
    out: list[int] = []
    parent = headings[index].parent
    while parent is not None:
        out.append(parent)
        parent = headings[parent].parent
    return out


def has_children(headings: tuple[HeadingRef, ...], index: int) -> bool:
    return any(heading.parent == index for heading in headings)


def visible_entries(headings: tuple[HeadingRef, ...], collapsed: frozenset[int]) -> list[int]:
    return [
        heading.index
        for heading in headings
        if not any(ancestor in collapsed for ancestor in ancestors(headings, heading.index))
    ]


def shown_entry(headings: tuple[HeadingRef, ...], collapsed: frozenset[int], index: int) -> int:
    """``index`` itself, or its outermost collapsed ancestor when hidden."""
    shown = index
    for ancestor in ancestors(headings, index):
        if ancestor in collapsed:
            shown = ancestor
    return shown


def _clamp_selection(state: TocState, headings: tuple[HeadingRef, ...]) -> TocState:
    if not headings:
        return replace(state, selected=0, collapsed=frozenset())
    selected = max(0, min(state.selected, len(headings) - 1))
    collapsed = frozenset(idx for idx in state.collapsed if idx < len(headings))
    return replace(state, selected=shown_entry(headings, collapsed, selected), collapsed=collapsed)


def navigate(state: TocState, headings: tuple[HeadingRef, ...], delta: int) -> TocState:
    entries = visible_entries(headings, state.collapsed)
    if not entries:
        return state
    current = shown_entry(headings, state.collapsed, state.selected) if state.selected < len(headings) else entries[0]
    pos = entries.index(current) if current in entries else 0
    pos = max(0, min(len(entries) - 1, pos + delta))
    return replace(state, selected=entries[pos])


def toggle_collapse(state: TocState, headings: tuple[HeadingRef, ...], index: int | None = None) -> TocState:
    target = state.selected if index is None else index
    if not (0 <= target < len(headings)) or not has_children(headings, target):
        return state
    collapsed = set(state.collapsed)
    if target in collapsed:
        collapsed.remove(target)
    else:
        collapsed.add(target)
    frozen = frozenset(collapsed)
    return replace(state, collapsed=frozen, selected=shown_entry(headings, frozen, state.selected))


def follow_viewport(state: TocState, document: RenderedDocument, top: int) -> TocState:
    """Select the heading at/above ``top`` while the pane is shown but unfocused."""
    if not state.visible or state.focused:
        return state
    heading = document.heading_at_or_above(top)
    if heading is None:
        return replace(state, selected=0) if state.selected != 0 else state
    selected = shown_entry(document.headings, state.collapsed, heading.index)
    return state if selected == state.selected else replace(state, selected=selected)


def after_relayout(state: TocState, document: RenderedDocument, top: int) -> TocState:
    """Keep TOC state valid for a new document and re-sync the selection."""
    return follow_viewport(_clamp_selection(state, document.headings), document, top)
