"""Off-thread image decoding and load planning.

``ImageLoadScheduler`` runs decodes on a small thread pool. Workers write the
decoded image into the shared ``ImageCache`` and push an ``ImageLoaded`` or
``ImageLoadFailed`` message onto a queue the event loop drains. Every request
carries the document generation it was made for so ``update`` can drop
results that arrive after a reload.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from queue import Empty, Queue
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image, UnidentifiedImageError

from ..app.messages import ImageLoaded, ImageLoadFailed
from ..document.types import ImageRef
from .cache import ImageCache
from .protocol import cell_size
from .source import ImageHandle, resolve

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10.0
MAX_REMOTE_BYTES = 32 * 1024 * 1024

session = requests.Session()
session.headers.update({"User-Agent": "markpager"})


class ImageLoadError(Exception):
    """Decode failure; ``missing`` marks a source that does not exist."""

    def __init__(self, reason: str, missing: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.missing = missing


def _open_image(data: bytes | BytesIO | Path):
    try:
        image = Image.open(data)
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageLoadError(f"cannot decode image: {exc}") from exc
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    return image


def _decode_data_uri(value: str) -> bytes:
    header, sep, payload = value.partition(",")
    if not sep:
        raise ImageLoadError("malformed data URI")
    if header.lower().endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ImageLoadError(f"bad base64 payload: {exc}") from exc
    return unquote_to_bytes(payload)


def _fetch(url: str) -> bytes:
    try:
        response = session.get(url, timeout=HTTP_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise ImageLoadError(f"fetch failed: {exc}") from exc
    if response.status_code == 404:
        raise ImageLoadError("not found", missing=True)
    try:
        response.raise_for_status()
    except requests.HTTPError as exc:
        raise ImageLoadError(str(exc)) from exc
    if len(response.content) > MAX_REMOTE_BYTES:
        raise ImageLoadError("remote image too large")
    return response.content


def decode_image(handle: ImageHandle):
    """Load and decode ``handle``; raises ``ImageLoadError``."""
    if handle.is_local:
        path = Path(handle.location)
        if not path.is_file():
            raise ImageLoadError(f"no such file: {path}", missing=True)
        return _open_image(path)
    if handle.is_data:
        return _open_image(BytesIO(_decode_data_uri(str(handle.location))))
    return _open_image(BytesIO(_fetch(str(handle.location))))


@dataclass(frozen=True)
class ImageLoadRequest:
    handle: ImageHandle
    generation: int
    content_width: int


class ImageLoadScheduler:
    """Thread-pool image loader with in-flight dedupe by key."""

    def __init__(
        self,
        cache: ImageCache,
        base_dir: Path,
        decode=decode_image,
        max_workers: int = 2,
    ) -> None:
        self.cache = cache
        self.base_dir = base_dir
        self._decode = decode
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="markpager-image")
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._results: Queue = Queue()

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def request(self, image: ImageRef, generation: int, content_width: int) -> bool:
        """Queue a decode for ``image``; ``False`` if already in flight."""
        handle = resolve(image.source, self.base_dir)
        with self._lock:
            if handle.key in self._in_flight:
                return False
            self._in_flight.add(handle.key)
        request = ImageLoadRequest(handle=handle, generation=generation, content_width=content_width)
        self._executor.submit(self._run, request)
        return True

    def _run(self, request: ImageLoadRequest) -> None:
        key = request.handle.key
        try:
            image = self._decode(request.handle)
        except ImageLoadError as exc:
            logger.debug("image %s failed: %s", key, exc.reason)
            self._results.put(ImageLoadFailed(key, request.generation, exc.reason, exc.missing))
        except Exception as exc:
            logger.debug("image %s failed", key, exc_info=True)
            self._results.put(ImageLoadFailed(key, request.generation, str(exc)))
        else:
            self.cache.put(key, image)
            _, rows = cell_size(image.size, request.content_width)
            self._results.put(ImageLoaded(key, request.generation, rows, tuple(image.size)))
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def drain_results(self) -> list:
        """Drain all completed load messages."""
        out = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def images_to_request(model, lookahead: int | None = None, cached=None) -> list[ImageRef]:
    """Images near the viewport that still need a decode, one per key.

    The window is the visible rows plus ``lookahead`` rows on each side
    (one viewport height by default). Keys known to have failed are skipped.
    Sized keys are skipped too unless ``cached`` is given and reports the
    decoded image gone, which happens after the LRU evicts it.
    """
    if not model.config.images_enabled:
        return []
    viewport = model.viewport
    margin = viewport.height if lookahead is None else max(0, lookahead)
    start = viewport.offset - margin
    end = viewport.offset + viewport.height + margin
    seen: set[str] = set()
    out: list[ImageRef] = []
    for image in model.document.images:
        first, last = image.line_range
        if last <= start or first >= end:
            continue
        key = image.source.key
        if key in seen or key in model.image_failures:
            continue
        if key in model.image_sizes and (cached is None or cached(key)):
            continue
        seen.add(key)
        out.append(image)
    return out
