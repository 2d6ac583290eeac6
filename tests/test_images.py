"""Image subsystem tests: protocol choice, cache budget, decoding, loading."""

from __future__ import annotations

import base64
import tempfile
import threading
import time
import unittest
from dataclasses import replace
from io import BytesIO
from pathlib import Path
from unittest import mock

from PIL import Image

from markpager.app.messages import ImageLoaded, ImageLoadFailed
from markpager.app.model import init_model
from markpager.config import ViewerConfig
from markpager.document.types import ImageRef, ImageSource
from markpager.images import encode as encode_mod
from markpager.images.cache import ImageCache
from markpager.images.loader import ImageLoadError, ImageLoadScheduler, decode_image, images_to_request
from markpager.images.protocol import (
    PROTOCOL_HALFBLOCK,
    PROTOCOL_ITERM2,
    PROTOCOL_KITTY,
    PROTOCOL_SIXEL,
    TerminalCaps,
    cell_size,
    probe_terminal_caps,
    protocol_for,
)
from markpager.images.source import resolve

MB = 1_000_000


class _FakeImage:
    """Stands in for a decoded image; only the size accounting is used."""

    def __init__(self, width: int, height: int, bands: int = 4) -> None:
        self.size = (width, height)
        self._bands = tuple("RGBA"[:bands])

    def getbands(self):
        return self._bands


def _four_mb() -> _FakeImage:
    return _FakeImage(1000, 1000, bands=4)


def _png_bytes(size=(4, 2), color=(255, 0, 0)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def _wait_for_results(scheduler: ImageLoadScheduler, count: int, timeout: float = 2.0) -> list:
    results: list = []
    deadline = time.monotonic() + timeout
    while len(results) < count and time.monotonic() < deadline:
        results.extend(scheduler.drain_results())
        time.sleep(0.01)
    return results


class ProtocolTests(unittest.TestCase):
    def test_priority_is_kitty_then_sixel_then_iterm2(self) -> None:
        self.assertEqual(protocol_for(TerminalCaps(kitty=True, sixel=True, iterm2=True)), PROTOCOL_KITTY)
        self.assertEqual(protocol_for(TerminalCaps(sixel=True, iterm2=True)), PROTOCOL_SIXEL)
        self.assertEqual(protocol_for(TerminalCaps(iterm2=True)), PROTOCOL_ITERM2)
        self.assertEqual(protocol_for(TerminalCaps()), PROTOCOL_HALFBLOCK)

    def test_force_halfblock_overrides_capabilities(self) -> None:
        self.assertEqual(protocol_for(TerminalCaps(kitty=True), force_halfblock=True), PROTOCOL_HALFBLOCK)

    def test_probe_reads_terminal_environment(self) -> None:
        self.assertTrue(probe_terminal_caps({"TERM": "xterm-kitty"}).kitty)
        self.assertTrue(probe_terminal_caps({"KITTY_WINDOW_ID": "3"}).kitty)
        self.assertTrue(probe_terminal_caps({"TERM_PROGRAM": "iTerm.app"}).iterm2)
        self.assertTrue(probe_terminal_caps({"TERM": "foot"}).sixel)
        self.assertTrue(probe_terminal_caps({"COLORTERM": "truecolor"}).truecolor)
        self.assertEqual(probe_terminal_caps({"TERM": "xterm-256color"}), TerminalCaps())

    def test_multiplexers_disable_graphics_protocols(self) -> None:
        caps = probe_terminal_caps({"TERM": "xterm-kitty", "TMUX": "/tmp/tmux-1/default,1,0"})
        self.assertFalse(caps.kitty)
        self.assertFalse(probe_terminal_caps({"TERM": "screen-256color", "KITTY_WINDOW_ID": "1"}).kitty)

    def test_cell_size_caps_width_and_keeps_aspect(self) -> None:
        self.assertEqual(cell_size((100, 100), 80), (52, 26))
        self.assertEqual(cell_size((200, 50), 100), (65, 8))
        self.assertEqual(cell_size((0, 0), 80), (52, 1))


class ImageCacheTests(unittest.TestCase):
    def test_evicts_least_recent_non_visible_image(self) -> None:
        cache = ImageCache(10 * MB)
        cache.put("A", _four_mb())
        cache.set_visible(["A"])
        cache.put("B", _four_mb())
        cache.set_visible(["B"])

        evicted = cache.put("C", _four_mb())

        self.assertEqual(evicted, ["A"])
        self.assertEqual(sorted(cache.keys()), ["B", "C"])
        self.assertEqual(cache.total_bytes, 8 * MB)

    def test_visible_images_are_never_evicted(self) -> None:
        cache = ImageCache(10 * MB)
        cache.put("A", _four_mb())
        cache.put("B", _four_mb())
        cache.set_visible(["A", "B"])

        evicted = cache.put("C", _four_mb())

        self.assertEqual(evicted, [])
        self.assertEqual(len(cache), 3)
        self.assertGreater(cache.total_bytes, cache.budget_bytes)

    def test_replacing_key_does_not_double_count(self) -> None:
        cache = ImageCache(10 * MB)
        cache.put("A", _four_mb())
        cache.put("A", _FakeImage(10, 10, bands=3))

        self.assertEqual(cache.total_bytes, 300)
        self.assertEqual(len(cache), 1)

    def test_concurrent_inserts_keep_accounting_consistent(self) -> None:
        cache = ImageCache(50 * 400)

        def worker(prefix: str) -> None:
            for idx in range(200):
                cache.put(f"{prefix}{idx}", _FakeImage(10, 10, bands=4), protected=())

        threads = [threading.Thread(target=worker, args=(name,)) for name in "abcd"]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertLessEqual(cache.total_bytes, cache.budget_bytes)
        self.assertEqual(cache.total_bytes, len(cache) * 400)


class DecodeTests(unittest.TestCase):
    def test_decodes_local_file_relative_to_base_dir(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "img").mkdir()
            (root / "img" / "pic.png").write_bytes(_png_bytes())

            handle = resolve(ImageSource.from_reference("img/pic.png"), root)
            image = decode_image(handle)

        self.assertEqual(handle.location, root / "img" / "pic.png")
        self.assertEqual(image.size, (4, 2))
        self.assertIn(image.mode, ("RGB", "RGBA"))

    def test_missing_file_is_reported_as_missing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handle = resolve(ImageSource.from_reference("nope.png"), Path(tmp))

            with self.assertRaises(ImageLoadError) as ctx:
                decode_image(handle)

        self.assertTrue(ctx.exception.missing)

    def test_garbage_file_is_a_decode_failure(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "bad.png").write_bytes(b"not an image")
            handle = resolve(ImageSource.from_reference("bad.png"), Path(tmp))

            with self.assertRaises(ImageLoadError) as ctx:
                decode_image(handle)

        self.assertFalse(ctx.exception.missing)

    def test_decodes_base64_data_uri(self) -> None:
        uri = "data:image/png;base64," + base64.b64encode(_png_bytes((3, 3))).decode("ascii")

        image = decode_image(resolve(ImageSource.from_reference(uri), Path("/")))

        self.assertEqual(image.size, (3, 3))

    def test_remote_404_is_missing(self) -> None:
        response = mock.Mock(status_code=404)
        with mock.patch("markpager.images.loader.session.get", return_value=response):
            with self.assertRaises(ImageLoadError) as ctx:
                decode_image(resolve(ImageSource.from_reference("https://x.test/a.png"), Path("/")))

        self.assertTrue(ctx.exception.missing)

    def test_remote_image_is_fetched_and_decoded(self) -> None:
        response = mock.Mock(status_code=200, content=_png_bytes((5, 4)))
        with mock.patch("markpager.images.loader.session.get", return_value=response) as get:
            image = decode_image(resolve(ImageSource.from_reference("https://x.test/a.png"), Path("/")))

        get.assert_called_once()
        self.assertEqual(image.size, (5, 4))


class SchedulerTests(unittest.TestCase):
    def _ref(self, src: str) -> ImageRef:
        return ImageRef(index=0, alt_text="", source=ImageSource.from_reference(src), line_range=(0, 1))

    def test_successful_load_fills_cache_and_reports_size(self) -> None:
        cache = ImageCache(10 * MB)
        scheduler = ImageLoadScheduler(cache, Path("/"), decode=lambda handle: _FakeImage(100, 100))
        try:
            self.assertTrue(scheduler.request(self._ref("a.png"), generation=3, content_width=80))
            results = _wait_for_results(scheduler, 1)
        finally:
            scheduler.shutdown()

        self.assertEqual(results, [ImageLoaded("a.png", 3, 26, (100, 100))])
        self.assertIn("a.png", cache)

    def test_failed_load_reports_reason_and_missing_flag(self) -> None:
        def fail(handle):
            raise ImageLoadError("no such file", missing=True)

        scheduler = ImageLoadScheduler(ImageCache(MB), Path("/"), decode=fail)
        try:
            scheduler.request(self._ref("a.png"), generation=1, content_width=80)
            results = _wait_for_results(scheduler, 1)
        finally:
            scheduler.shutdown()

        self.assertEqual(results, [ImageLoadFailed("a.png", 1, "no such file", True)])

    def test_in_flight_requests_are_deduplicated(self) -> None:
        release = threading.Event()

        def slow(handle):
            release.wait(2.0)
            return _FakeImage(10, 10)

        scheduler = ImageLoadScheduler(ImageCache(MB), Path("/"), decode=slow)
        try:
            self.assertTrue(scheduler.request(self._ref("a.png"), 0, 80))
            self.assertFalse(scheduler.request(self._ref("a.png"), 0, 80))
            self.assertTrue(scheduler.in_flight("a.png"))
            release.set()
            results = _wait_for_results(scheduler, 1)
        finally:
            scheduler.shutdown()

        self.assertEqual(len(results), 1)

    def test_images_to_request_limits_to_window_and_skips_known(self) -> None:
        source = "![a](a.png)\n\n" + "\n\n".join(f"p{i}" for i in range(60)) + "\n\n![z](z.png)\n\n![b](b.png)"
        model = init_model(source, None, 80, 11, ViewerConfig())

        wanted = [image.source.key for image in images_to_request(model)]

        self.assertEqual(wanted, ["a.png"])
        self.assertEqual(images_to_request(replace(model, image_failures={"a.png": "x"})), [])
        sized = replace(model, image_sizes={"a.png": (10, 10)})
        self.assertEqual(images_to_request(sized), [])
        self.assertEqual(images_to_request(sized, cached=lambda key: True), [])
        self.assertEqual([image.source.key for image in images_to_request(sized, cached=lambda key: False)], ["a.png"])
        far = [image.source.key for image in images_to_request(model, lookahead=500)]
        self.assertEqual(far, ["a.png", "z.png", "b.png"])


class EncodeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.image = Image.new("RGBA", (8, 8), (0, 128, 255, 255))

    def test_halfblock_emits_one_row_per_cell(self) -> None:
        rows = encode_mod.encode_halfblock(self.image, cols=4, rows=3)

        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0].count("▀"), 4)
        self.assertIn("\x1b[38;2;0;128;255m", rows[0])

    def test_halfblock_256_colour_fallback(self) -> None:
        rows = encode_mod.encode_halfblock(self.image, cols=2, rows=1, truecolor=False)

        self.assertIn("\x1b[38;5;", rows[0])

    def test_kitty_payload_is_chunked(self) -> None:
        noisy = Image.effect_noise((64, 64), 100).convert("RGB")

        payload = encode_mod.encode_kitty(noisy, cols=20, rows=10)

        self.assertTrue(payload.startswith("\x1b_Ga=T,f=100,q=2,c=20,r=10,m=1;"))
        self.assertTrue(payload.endswith("\x1b\\"))
        self.assertIn("\x1b_Gm=0;", payload)

    def test_iterm2_and_sixel_framing(self) -> None:
        iterm = encode_mod.encode(PROTOCOL_ITERM2, self.image, 2, 1)
        sixel = encode_mod.encode(PROTOCOL_SIXEL, self.image, 2, 1)

        self.assertTrue(iterm.startswith("\x1b]1337;File=inline=1;"))
        self.assertTrue(iterm.endswith("\x07"))
        self.assertTrue(sixel.startswith("\x1bPq"))
        self.assertTrue(sixel.endswith("\x1b\\"))

    def test_unknown_protocol_raises(self) -> None:
        with self.assertRaises(ValueError):
            encode_mod.encode("braille", self.image, 1, 1)


if __name__ == "__main__":
    unittest.main()
