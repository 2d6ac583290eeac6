"""Pure state transitions: ``update(model, message) -> model``.

No I/O happens here. File reads, decodes, and URL opening live in the
runtime's effect layer, which turns their results into messages.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from ..anchor import capture, capture_source, reconcile, reconcile_source
from ..document.types import LinkRef
from ..images.protocol import cell_size
from ..viewport import Viewport
from . import messages as msg
from . import search as search_ops
from . import toc as toc_ops
from .model import STATUS_INFO, STATUS_WARNING, Model, build_document

logger = logging.getLogger(__name__)

FOOTNOTE_PREFIX = "footnote:"
LINK_PICKER_LIMIT = 9


# -- helpers ---------------------------------------------------------------


def with_status(model: Model, text: str | None, level: str = STATUS_INFO) -> Model:
    return replace(model, status=text, status_level=level, status_serial=model.status_serial + 1)


def _with_viewport(model: Model, viewport: Viewport) -> Model:
    toc = toc_ops.follow_viewport(model.toc, model.document, viewport.offset)
    return replace(model, viewport=viewport, toc=toc)


def _scroll_to(model: Model, line: int) -> Model:
    return _with_viewport(model, model.viewport.scroll_to(line))


def _layout_model(model: Model, offset_for) -> Model:
    """Re-run layout for ``model``'s current inputs.

    ``offset_for(document)`` picks the new top row; the viewport, search
    matches, and TOC selection are refreshed against the new document.
    """
    width = model.content_width
    document = build_document(model.source, width, model.config, model.image_sizes, model.missing_images)
    height = model.document_height
    viewport = Viewport(width=width, height=height, total_lines=document.line_count)
    viewport = viewport.scroll_to(offset_for(document))
    return replace(
        model,
        document=document,
        viewport=viewport,
        search=search_ops.refresh(model.search, document, viewport.offset),
        toc=toc_ops.after_relayout(model.toc, document, viewport.offset),
    )


def relayout(model: Model, **changes) -> Model:
    """Apply ``changes`` and re-layout, keeping the reading position."""
    old_offset = model.viewport.offset
    anchor = capture_source(model.document, old_offset)
    updated = replace(model, **changes) if changes else model
    if old_offset == 0:
        return _layout_model(updated, lambda document: 0)
    return _layout_model(updated, lambda document: reconcile_source(document, anchor))


# -- navigation --------------------------------------------------------------


def _toc_routed(model: Model, delta: int) -> Model:
    return replace(model, toc=toc_ops.navigate(model.toc, model.document.headings, delta))


def _scroll_by(model: Model, message: msg.ScrollBy) -> Model:
    if model.toc.focused:
        return _toc_routed(model, message.delta)
    return _with_viewport(model, model.viewport.scroll_by(message.delta))


def _page(direction: int, half: bool):
    def handle(model: Model, message) -> Model:
        if model.toc.focused:
            step = max(1, model.viewport.height // 2 if half else model.viewport.height)
            return _toc_routed(model, direction * step)
        return _with_viewport(model, model.viewport.page(direction, half=half))

    return handle


def _go_to_top(model: Model, message: msg.GoToTop) -> Model:
    if model.toc.focused:
        return _toc_routed(model, -len(model.document.headings))
    return _with_viewport(model, model.viewport.go_to_top())


def _go_to_bottom(model: Model, message: msg.GoToBottom) -> Model:
    if model.toc.focused:
        return _toc_routed(model, len(model.document.headings))
    return _with_viewport(model, model.viewport.go_to_bottom())


def _go_to_line(model: Model, message: msg.GoToLine) -> Model:
    return _scroll_to(model, message.line)


def _go_to_percentage(model: Model, message: msg.GoToPercentage) -> Model:
    return _with_viewport(model, model.viewport.go_to_percentage(message.percent))


# -- search ------------------------------------------------------------------


def _jump_to_match(model: Model) -> Model:
    match = model.search.current_match
    if match is None:
        return model
    if not model.viewport.contains(match.line):
        model = _scroll_to(model, match.line)
    total = len(model.search.matches)
    return with_status(model, f"Match {model.search.current + 1}/{total}")


def _start_search(model: Model, message: msg.StartSearch) -> Model:
    return replace(model, search=search_ops.SearchState(mode=search_ops.SEARCH_EDITING))


def _search_query_changed(model: Model, message: msg.SearchQueryChanged) -> Model:
    if model.search.mode != search_ops.SEARCH_EDITING:
        return model
    matches = search_ops.find_matches(model.document, message.query)
    return replace(model, search=replace(model.search, query=message.query, matches=matches, current=None))


def _search_commit(model: Model, message: msg.SearchCommit) -> Model:
    state = model.search
    if state.mode != search_ops.SEARCH_EDITING:
        return model
    if not state.query:
        return replace(model, search=search_ops.SearchState())
    matches = search_ops.find_matches(model.document, state.query)
    current = search_ops.nearest_match(matches, model.viewport.offset)
    model = replace(
        model,
        search=search_ops.SearchState(
            mode=search_ops.SEARCH_ACTIVE,
            query=state.query,
            matches=matches,
            current=current,
        ),
    )
    if current is None:
        return with_status(model, f"Pattern not found: {state.query}", STATUS_WARNING)
    return _jump_to_match(model)


def _step_match(direction: int):
    def handle(model: Model, message) -> Model:
        if model.search.mode != search_ops.SEARCH_ACTIVE or not model.search.matches:
            return model
        state = search_ops.step(model.search, direction, model.viewport.offset)
        return _jump_to_match(replace(model, search=state))

    return handle


def _cancel_search(model: Model, message: msg.CancelSearch) -> Model:
    return replace(model, search=search_ops.SearchState())


# -- layout-changing ---------------------------------------------------------


def _resize(model: Model, message: msg.Resize) -> Model:
    width = max(1, message.width)
    height = max(1, message.height)
    if width == model.terminal_width and height == model.terminal_height:
        return model
    return relayout(model, terminal_width=width, terminal_height=height)


def _toggle_toc(model: Model, message: msg.ToggleToc) -> Model:
    visible = not model.toc.visible
    toc = replace(model.toc, visible=visible, focused=model.toc.focused and visible)
    return relayout(model, toc=toc)


def _toggle_toc_focus(model: Model, message: msg.ToggleTocFocus) -> Model:
    if not model.toc.visible:
        model = relayout(model, toc=replace(model.toc, visible=True))
        return replace(model, toc=replace(model.toc, focused=True))
    if model.toc.focused:
        toc = toc_ops.follow_viewport(replace(model.toc, focused=False), model.document, model.viewport.offset)
        return replace(model, toc=toc)
    return replace(model, toc=replace(model.toc, focused=True))


def _toc_navigate(model: Model, message: msg.TocNavigate) -> Model:
    if not model.toc.visible:
        return model
    return _toc_routed(model, message.delta)


def _toc_select(model: Model, message: msg.TocSelect) -> Model:
    headings = model.document.headings
    index = model.toc.selected if message.index is None else message.index
    if not (0 <= index < len(headings)):
        return model
    model = replace(model, toc=replace(model.toc, selected=index))
    return replace(model, viewport=model.viewport.scroll_to(headings[index].line))


def _toc_toggle_collapse(model: Model, message: msg.TocToggleCollapse) -> Model:
    return replace(model, toc=toc_ops.toggle_collapse(model.toc, model.document.headings, message.index))


# -- file watching -----------------------------------------------------------


def _file_changed(model: Model, message: msg.FileChanged) -> Model:
    anchor = capture(model.document, model.viewport.offset)
    reloaded = replace(
        model,
        source=message.source,
        generation=model.generation + 1,
        image_failures={},
        missing_images=frozenset(),
        link_picker=(),
    )
    reloaded = _layout_model(reloaded, lambda document: reconcile(document, anchor, reloaded.document_height))
    referenced = {image.source.key for image in reloaded.document.images}
    sizes = {key: size for key, size in reloaded.image_sizes.items() if key in referenced}
    if len(sizes) != len(reloaded.image_sizes):
        reloaded = replace(reloaded, image_sizes=sizes)
    logger.debug("reloaded document generation %d", reloaded.generation)
    return with_status(reloaded, "File changed, reloaded")


def _watch_failed(model: Model, message: msg.WatchFailed) -> Model:
    logger.warning("file watching disabled: %s", message.reason)
    return with_status(replace(model, watching=False), f"Watch disabled: {message.reason}", STATUS_WARNING)


def _toggle_watch(model: Model, message: msg.ToggleWatch) -> Model:
    if model.path is None:
        return with_status(model, "Nothing to watch", STATUS_WARNING)
    watching = not model.watching
    return with_status(replace(model, watching=watching), "Watching for changes" if watching else "Watch off")


def _force_reload(model: Model, message: msg.ForceReload) -> Model:
    if model.path is None:
        return with_status(model, "Nothing to reload", STATUS_WARNING)
    return with_status(model, f"Reloading {model.path.name}")


def _reload_failed(model: Model, message: msg.ReloadFailed) -> Model:
    return with_status(model, f"Reload failed: {message.reason}", STATUS_WARNING)


# -- images ------------------------------------------------------------------


def _image_loaded(model: Model, message: msg.ImageLoaded) -> Model:
    if message.generation != model.generation:
        logger.debug("dropping stale image result %s (generation %d)", message.key, message.generation)
        return model
    size = message.size
    if size is None:
        cols, _ = cell_size((1, 1), model.content_width)
        size = (cols, max(1, message.rows) * 2)
    if model.image_sizes.get(message.key) == tuple(size):
        return model
    sizes = dict(model.image_sizes)
    sizes[message.key] = tuple(size)
    failures = {key: reason for key, reason in model.image_failures.items() if key != message.key}
    return relayout(model, image_sizes=sizes, image_failures=failures)


def _image_load_failed(model: Model, message: msg.ImageLoadFailed) -> Model:
    if message.generation != model.generation:
        logger.debug("dropping stale image failure %s (generation %d)", message.key, message.generation)
        return model
    failures = dict(model.image_failures)
    failures[message.key] = message.reason
    if not message.missing or message.key in model.missing_images:
        return replace(model, image_failures=failures)
    return relayout(model, image_failures=failures, missing_images=model.missing_images | {message.key})


# -- links / misc ------------------------------------------------------------


def _follow_link(model: Model, message: msg.FollowLink) -> Model:
    url = message.url.strip()
    if url.startswith(FOOTNOTE_PREFIX):
        label = url[len(FOOTNOTE_PREFIX) :]
        line = model.document.footnote_line(label)
        if line is None:
            return with_status(model, f"No footnote [^{label}]", STATUS_WARNING)
        return _scroll_to(model, line)
    if url.startswith("#"):
        line = model.document.resolve_anchor(url)
        if line is None:
            return with_status(model, f"No heading {url}", STATUS_WARNING)
        return _scroll_to(model, line)
    if not url:
        return model
    return with_status(model, f"Opening {url}")


def visible_links(model: Model) -> list[LinkRef]:
    """Links starting on a visible row, in document order, at most nine."""
    visible = model.viewport.visible_range()
    links = [link for link in model.document.links if link.line in visible]
    return links[:LINK_PICKER_LIMIT]


def followed_url(model: Model, message) -> str | None:
    """The URL ``message`` follows when applied to ``model``, if any."""
    if isinstance(message, msg.FollowLink):
        return message.url.strip()
    if isinstance(message, msg.OpenVisibleLinks):
        links = visible_links(model)
        return links[0].url.strip() if len(links) == 1 else None
    if isinstance(message, msg.SelectVisibleLink):
        if 1 <= message.index <= len(model.link_picker):
            return model.link_picker[message.index - 1].url.strip()
    return None


def _open_visible_links(model: Model, message: msg.OpenVisibleLinks) -> Model:
    links = visible_links(model)
    if not links:
        return with_status(model, "No visible links")
    if len(links) == 1:
        return _follow_link(model, msg.FollowLink(links[0].url))
    picked = replace(model, link_picker=tuple(links), help_visible=False)
    return with_status(picked, f"Select link: 1-{len(links)} (Esc to cancel)")


def _select_visible_link(model: Model, message: msg.SelectVisibleLink) -> Model:
    url = followed_url(model, message)
    if url is None:
        return model
    return _follow_link(replace(model, link_picker=()), msg.FollowLink(url))


def _cancel_link_picker(model: Model, message: msg.CancelLinkPicker) -> Model:
    if not model.link_picker:
        return model
    return replace(model, link_picker=(), status=None, status_level=STATUS_INFO)


def _toggle_help(model: Model, message: msg.ToggleHelp) -> Model:
    return replace(model, help_visible=not model.help_visible, link_picker=())


def _hide_help(model: Model, message: msg.HideHelp) -> Model:
    if not model.help_visible:
        return model
    return replace(model, help_visible=False)


def _clear_status(model: Model, message: msg.ClearStatus) -> Model:
    if model.status is None:
        return model
    return replace(model, status=None, status_level=STATUS_INFO)


def _quit(model: Model, message: msg.Quit) -> Model:
    return replace(model, quit=True)


_HANDLERS: dict[type, Callable[[Model, object], Model]] = {
    msg.ScrollBy: _scroll_by,
    msg.PageDown: _page(1, False),
    msg.PageUp: _page(-1, False),
    msg.HalfPageDown: _page(1, True),
    msg.HalfPageUp: _page(-1, True),
    msg.GoToTop: _go_to_top,
    msg.GoToBottom: _go_to_bottom,
    msg.GoToLine: _go_to_line,
    msg.GoToPercentage: _go_to_percentage,
    msg.StartSearch: _start_search,
    msg.SearchQueryChanged: _search_query_changed,
    msg.SearchCommit: _search_commit,
    msg.NextMatch: _step_match(1),
    msg.PrevMatch: _step_match(-1),
    msg.CancelSearch: _cancel_search,
    msg.Resize: _resize,
    msg.ToggleToc: _toggle_toc,
    msg.ToggleTocFocus: _toggle_toc_focus,
    msg.TocNavigate: _toc_navigate,
    msg.TocSelect: _toc_select,
    msg.TocToggleCollapse: _toc_toggle_collapse,
    msg.FileChanged: _file_changed,
    msg.WatchFailed: _watch_failed,
    msg.ToggleWatch: _toggle_watch,
    msg.ForceReload: _force_reload,
    msg.ReloadFailed: _reload_failed,
    msg.ImageLoaded: _image_loaded,
    msg.ImageLoadFailed: _image_load_failed,
    msg.FollowLink: _follow_link,
    msg.OpenVisibleLinks: _open_visible_links,
    msg.SelectVisibleLink: _select_visible_link,
    msg.CancelLinkPicker: _cancel_link_picker,
    msg.ToggleHelp: _toggle_help,
    msg.HideHelp: _hide_help,
    msg.ClearStatus: _clear_status,
    msg.Quit: _quit,
}


def update(model: Model, message) -> Model:
    """Return the model that follows ``model`` after ``message``."""
    handler = _HANDLERS.get(type(message))
    if handler is None:
        logger.debug("ignoring unknown message %r", message)
        return model
    return handler(model, message)
