"""Poll-based file watching with debounce.

A daemon thread compares a stat signature of the watched file every poll
interval. A change arms the debounce timer and further changes re-arm it;
once the file has been quiet for the debounce window a single event is
queued for the event loop.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue

logger = logging.getLogger(__name__)

POLL_SECONDS = 0.05
WATCH_CHANGED = "changed"
WATCH_FAILED = "failed"


def path_stat_signature(path: Path) -> tuple[str, int, int, int, int]:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0, 0, 0)
    except PermissionError:
        return ("denied", 0, 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_mode, st.st_ino)


@dataclass(frozen=True)
class WatchEvent:
    kind: str
    reason: str = ""


class FileWatcher:
    def __init__(
        self,
        path: Path,
        debounce_seconds: float = 0.1,
        poll_seconds: float = POLL_SECONDS,
    ) -> None:
        self.path = path
        self.debounce_seconds = max(0.0, debounce_seconds)
        self.poll_seconds = max(0.001, poll_seconds)
        self._events: Queue[WatchEvent] = Queue()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._signature = path_stat_signature(path)
        self._pending_since: float | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self, now: float) -> WatchEvent | None:
        """Advance the watcher by one poll at time ``now``.

        Returns the event emitted by this poll, if any; it is also queued.
        """
        signature = path_stat_signature(self.path)
        if signature[0] == "denied":
            event = WatchEvent(WATCH_FAILED, f"permission denied: {self.path}")
            self._events.put(event)
            self._signature = signature
            self._pending_since = None
            return event
        if signature != self._signature:
            self._signature = signature
            self._pending_since = now
            return None
        if self._pending_since is not None and now - self._pending_since >= self.debounce_seconds:
            self._pending_since = None
            event = WatchEvent(WATCH_CHANGED)
            self._events.put(event)
            return event
        return None

    def _run(self) -> None:
        while not self._stop.wait(self.poll_seconds):
            try:
                event = self.poll_once(time.monotonic())
            except Exception as exc:
                logger.warning("file watcher stopped", exc_info=True)
                self._events.put(WatchEvent(WATCH_FAILED, str(exc)))
                return
            if event is not None and event.kind == WATCH_FAILED:
                return

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._signature = path_stat_signature(self.path)
        self._pending_since = None
        self._thread = threading.Thread(target=self._run, name="markpager-watch", daemon=True)
        self._thread.start()
        logger.debug("watching %s", self.path)

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def drain(self) -> list[WatchEvent]:
        out: list[WatchEvent] = []
        while True:
            try:
                out.append(self._events.get_nowait())
            except Empty:
                break
        return out
