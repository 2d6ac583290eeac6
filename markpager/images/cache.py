"""Byte-bounded LRU cache of decoded images.

Decode workers insert from their own threads and the loop reads while
drawing, so every access goes through one lock. Entries are ordered by
when they were last displayed; eviction never removes a visible key.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Iterable

logger = logging.getLogger(__name__)


def image_nbytes(image) -> int:
    """Decoded size as ``width * height * bands``."""
    width, height = image.size
    return int(width) * int(height) * max(1, len(image.getbands()))


class ImageCache:
    def __init__(self, budget_bytes: int) -> None:
        self.budget_bytes = max(0, int(budget_bytes))
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[object, int]] = OrderedDict()
        self._total = 0
        self._visible: frozenset[str] = frozenset()

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[str]:
        """Keys from least to most recently displayed."""
        with self._lock:
            return list(self._entries)

    def get(self, key: str):
        with self._lock:
            entry = self._entries.get(key)
            return entry[0] if entry is not None else None

    def set_visible(self, keys: Iterable[str]) -> None:
        """Record the keys on screen; they are protected from eviction."""
        visible = frozenset(keys)
        with self._lock:
            self._visible = visible
            for key in visible:
                if key in self._entries:
                    self._entries.move_to_end(key)

    def put(self, key: str, image, protected: Iterable[str] | None = None) -> list[str]:
        """Insert ``image`` under ``key``; return the keys evicted to fit it.

        ``protected`` defaults to the keys last passed to ``set_visible``. If
        only protected entries remain the image is stored over budget.
        """
        size = image_nbytes(image)
        with self._lock:
            keep = self._visible if protected is None else frozenset(protected)
            keep = keep | {key}
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._total -= previous[1]
            evicted: list[str] = []
            if self._total + size > self.budget_bytes:
                for candidate in list(self._entries):
                    if self._total + size <= self.budget_bytes:
                        break
                    if candidate in keep:
                        continue
                    _, freed = self._entries.pop(candidate)
                    self._total -= freed
                    evicted.append(candidate)
            self._entries[key] = (image, size)
            self._total += size
            if self._total > self.budget_bytes:
                logger.debug(
                    "image cache over budget: %d > %d bytes after inserting %s",
                    self._total,
                    self.budget_bytes,
                    key,
                )
        if evicted:
            logger.debug("evicted images %s", evicted)
        return evicted
