"""Effect layer: performs I/O on behalf of ``update`` and reports back.

After each transition the loop hands ``(old, new, message)`` to
``EffectRunner.after_update``, which starts or stops the watcher, opens
external links, re-reads the file on request and plans image loads.
``poll`` collects finished work as messages for the loop to dispatch.
"""

from __future__ import annotations

import logging
import re
import webbrowser
from pathlib import Path
from urllib.parse import urlparse

from ..app import messages as msg
from ..app.update import FOOTNOTE_PREFIX, followed_url
from ..errors import DocumentLoadError
from ..images.loader import ImageLoadScheduler, images_to_request
from ..images.protocol import cell_size
from .watch import WATCH_FAILED, FileWatcher

logger = logging.getLogger(__name__)

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def read_text(path: Path) -> str:
    """Read text trying UTF-8, UTF-8 with BOM, then latin-1."""
    for encoding in ("utf-8", "utf-8-sig", "latin-1"):
        try:
            return path.read_text(encoding=encoding)
        except UnicodeDecodeError:
            continue
    return path.read_bytes().decode("utf-8", errors="replace")


def sanitize_terminal_text(source: str) -> str:
    """Escape terminal control bytes so document text cannot drive the terminal."""
    if _CONTROL_RE.search(source) is None:
        return source
    return _CONTROL_RE.sub(lambda m: f"\\x{ord(m.group()):02x}", source)


def read_source(path: Path) -> str:
    return sanitize_terminal_text(read_text(path))


def load_source(path: Path) -> str:
    """Read the document at startup; raises ``DocumentLoadError``."""
    if not path.exists():
        raise DocumentLoadError(path, "no such file")
    if path.is_dir():
        raise DocumentLoadError(path, "is a directory")
    try:
        return read_source(path)
    except OSError as exc:
        raise DocumentLoadError(path, exc.strerror or str(exc)) from exc


def reload_message(path: Path) -> object:
    """Read ``path`` after a change notification."""
    try:
        return msg.FileChanged(read_source(path))
    except OSError as exc:
        return msg.WatchFailed(exc.strerror or str(exc))


def is_external_link(url: str) -> bool:
    return bool(url) and not url.startswith("#") and not url.startswith(FOOTNOTE_PREFIX)


def link_target(url: str, base_dir: Path) -> str:
    """Browser target for ``url``; relative paths resolve against ``base_dir``."""
    if urlparse(url).scheme:
        return url
    return (base_dir / url).resolve().as_uri()


class EffectRunner:
    def __init__(
        self,
        scheduler: ImageLoadScheduler | None = None,
        open_url=webbrowser.open,
    ) -> None:
        self.scheduler = scheduler
        self._open_url = open_url
        self._watcher: FileWatcher | None = None
        self._pending: list[object] = []

    def start(self, model) -> None:
        self._sync_watcher(model)
        self._plan_images(model)

    def after_update(self, old, new, message) -> None:
        if new.watching != old.watching or new.path != old.path:
            self._sync_watcher(new)
        url = followed_url(old, message)
        if url is not None and is_external_link(url):
            self._open(url, new.base_dir)
        if isinstance(message, msg.ForceReload) and new.path is not None:
            self._pending.append(self._reread(new.path))
        if (
            new.viewport.offset != old.viewport.offset
            or new.document is not old.document
            or new.generation != old.generation
        ):
            self._plan_images(new)

    @staticmethod
    def _reread(path: Path) -> object:
        try:
            return msg.FileChanged(read_source(path))
        except OSError as exc:
            logger.warning("could not reload %s: %s", path, exc)
            return msg.ReloadFailed(exc.strerror or str(exc))

    def _open(self, url: str, base_dir: Path) -> None:
        target = link_target(url, base_dir)
        try:
            self._open_url(target)
        except Exception:
            logger.warning("could not open %s", target, exc_info=True)

    def _sync_watcher(self, model) -> None:
        wanted = model.watching and model.path is not None
        if wanted and self._watcher is None:
            self._watcher = FileWatcher(model.path, debounce_seconds=model.config.debounce_seconds)
            self._watcher.start()
        elif not wanted and self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def _plan_images(self, model) -> None:
        if self.scheduler is None:
            return
        cache = self.scheduler.cache
        for image in images_to_request(model, cached=cache.__contains__):
            key = image.source.key
            cached = cache.get(key)
            if cached is not None:
                _, rows = cell_size(cached.size, model.content_width)
                self._pending.append(msg.ImageLoaded(key, model.generation, rows, tuple(cached.size)))
                continue
            self.scheduler.request(image, model.generation, model.content_width)

    def poll(self, model) -> list[object]:
        """Collect messages from finished background work."""
        out, self._pending = self._pending, []
        if self._watcher is not None and model.path is not None:
            events = self._watcher.drain()
            failed = [event for event in events if event.kind == WATCH_FAILED]
            if failed:
                out.append(msg.WatchFailed(failed[-1].reason))
            elif events:
                out.append(reload_message(model.path))
        if self.scheduler is not None:
            out.extend(self.scheduler.drain_results())
        return out

    def shutdown(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if self.scheduler is not None:
            self.scheduler.shutdown()
