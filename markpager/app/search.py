from __future__ import annotations

from dataclasses import dataclass, replace

from ..ansi import display_width
from ..document.types import RenderedDocument

SEARCH_IDLE = "idle"
SEARCH_EDITING = "editing"
SEARCH_ACTIVE = "active"


@dataclass(frozen=True)
class SearchMatch:
    line: int
    column: int  # display column
    length: int  # display width


@dataclass(frozen=True)
class SearchState:
    mode: str = SEARCH_IDLE
    query: str = ""
    matches: tuple[SearchMatch, ...] = ()
    current: int | None = None

    @property
    def current_match(self) -> SearchMatch | None:
        if self.current is None or not (0 <= self.current < len(self.matches)):
            return None
        return self.matches[self.current]


def is_case_sensitive(query: str) -> bool:
    """Smart case: any uppercase letter makes the search case-sensitive."""
    return any(ch.isupper() for ch in query)


def find_matches(document: RenderedDocument, query: str) -> tuple[SearchMatch, ...]:
    """Non-overlapping substring matches over each row's plain text."""
    if not query:
        return ()
    sensitive = is_case_sensitive(query)
    needle = query if sensitive else query.lower()
    matches: list[SearchMatch] = []
    for line_no, text in enumerate(document.plain_lines()):
        haystack = text if sensitive else text.lower()
        if len(haystack) != len(text):
            # Lowercasing changed lengths (e.g. U+0130); fall back to casefold-free scan.
            haystack = text
        start = haystack.find(needle)
        while start >= 0:
            end = start + len(needle)
            matches.append(
                SearchMatch(
                    line=line_no,
                    column=display_width(text[:start]),
                    length=max(1, display_width(text[start:end])),
                )
            )
            start = haystack.find(needle, end)
    return tuple(matches)


def nearest_match(matches: tuple[SearchMatch, ...], top: int) -> int | None:
    """Index of the first match at or after row ``top``, wrapping to the first."""
    if not matches:
        return None
    for idx, match in enumerate(matches):
        if match.line >= top:
            return idx
    return 0


def step(state: SearchState, direction: int, top: int) -> SearchState:
    """Move to the next (``1``) or previous (``-1``) match with wraparound."""
    if not state.matches:
        return state
    if state.current is None:
        return replace(state, current=nearest_match(state.matches, top))
    return replace(state, current=(state.current + direction) % len(state.matches))


def refresh(state: SearchState, document: RenderedDocument, top: int) -> SearchState:
    """Recompute matches after a re-layout, keeping a selection when active."""
    if state.mode == SEARCH_IDLE or not state.query:
        return state
    matches = find_matches(document, state.query)
    current = None
    if state.mode == SEARCH_ACTIVE and matches:
        current = nearest_match(matches, top)
    return replace(state, matches=matches, current=current)
