"""Event loop tests with a scripted terminal and key stream."""

from __future__ import annotations

import unittest
from dataclasses import replace
from pathlib import Path
from unittest import mock

from markpager.ansi import strip_ansi
from markpager.app import messages as msg
from markpager.app.model import init_model
from markpager.runtime.effects import EffectRunner
from markpager.runtime.keys import KeyTranslator
from markpager.runtime.loop import Dispatcher, RuntimeLoopTiming, StatusTimer, key_message, run_main_loop


class _FakeTerminal:
    stdin_fd = 0

    def __init__(self, sizes: list[tuple[int, int]]) -> None:
        self._sizes = sizes
        self.frames: list[str] = []

    def size(self) -> tuple[int, int]:
        if len(self._sizes) > 1:
            return self._sizes.pop(0)
        return self._sizes[0]

    def write(self, text: str) -> None:
        self.frames.append(text)


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _sections(count: int) -> str:
    return "\n\n".join(f"# Part {idx}\n\n" + "\n\n".join(f"line {idx}.{n}" for n in range(6)) for idx in range(count))


class RuntimeLoopTests(unittest.TestCase):
    def _run(self, model, keys: list[str], sizes: list[tuple[int, int]], clock: _FakeClock | None = None, step: float = 0.0):
        clock = clock or _FakeClock()
        stream = iter(keys)

        def fake_read_key(fd: int, timeout_ms: int | None = None) -> str:
            clock.now += step
            return next(stream)

        terminal = _FakeTerminal(sizes)
        effects = EffectRunner()
        with mock.patch("markpager.runtime.loop.read_key", side_effect=fake_read_key):
            final = run_main_loop(model, terminal, effects, timing=RuntimeLoopTiming(), clock=clock)
        return final, terminal

    def test_keys_drive_the_model_until_quit(self) -> None:
        model = init_model(_sections(4), Path("/tmp/doc.md"), 80, 10)

        final, terminal = self._run(model, ["j", "j", "", "G", "q"], [(80, 10)])

        self.assertTrue(final.quit)
        self.assertEqual(final.viewport.offset, final.viewport.max_offset)
        self.assertEqual(len(terminal.frames), 4)
        self.assertIn("Part 0", strip_ansi(terminal.frames[0]))

    def test_terminal_resize_dispatches_relayout(self) -> None:
        model = init_model(_sections(2), Path("/tmp/doc.md"), 80, 10)

        final, _ = self._run(model, ["", "q"], [(80, 10), (60, 20)])

        self.assertEqual((final.terminal_width, final.terminal_height), (60, 20))
        self.assertEqual(final.document.width, 60)

    def test_status_message_clears_after_lifetime(self) -> None:
        model = init_model("text", None, 80, 10)

        final, terminal = self._run(model, ["w", "", "", "", "q"], [(80, 10)], step=1.5)

        self.assertIsNone(final.status)
        self.assertTrue(any("Nothing to watch" in strip_ansi(frame) for frame in terminal.frames))
        self.assertNotIn("Nothing to watch", strip_ansi(terminal.frames[-1]))


class DispatcherTests(unittest.TestCase):
    def test_unchanged_model_skips_effects(self) -> None:
        effects = mock.Mock()
        dispatch = Dispatcher(effects)
        dispatch.dirty = False
        model = init_model("text", None, 80, 10)

        self.assertIs(dispatch(model, msg.Resize(80, 10)), model)
        self.assertFalse(dispatch.dirty)
        effects.after_update.assert_not_called()

        new = dispatch(model, msg.Quit())
        self.assertTrue(new.quit)
        self.assertTrue(dispatch.dirty)
        effects.after_update.assert_called_once_with(model, new, msg.Quit())

    def test_redecoded_image_of_known_size_repaints(self) -> None:
        effects = mock.Mock()
        dispatch = Dispatcher(effects)
        model = replace(init_model("![a](a.png)", None, 80, 10), image_sizes={"a.png": (100, 100)})
        dispatch.dirty = False

        self.assertIs(dispatch(model, msg.ImageLoaded("a.png", model.generation, 26, (100, 100))), model)
        self.assertTrue(dispatch.dirty)

        dispatch.dirty = False
        dispatch(model, msg.ImageLoaded("a.png", model.generation + 1, 26, (100, 100)))
        self.assertFalse(dispatch.dirty)
        effects.after_update.assert_not_called()


class StatusTimerTests(unittest.TestCase):
    def test_deadline_resets_on_new_status(self) -> None:
        from markpager.app.update import with_status

        timer = StatusTimer(4.0)
        model = with_status(init_model("text", None, 80, 10), "hello")
        timer.observe(model, 0.0)
        self.assertFalse(timer.expired(model, 3.9))

        model = with_status(model, "again")
        timer.observe(model, 3.0)
        self.assertFalse(timer.expired(model, 6.9))
        self.assertTrue(timer.expired(model, 7.0))
        self.assertFalse(timer.expired(model, 8.0))


class KeyMessageTests(unittest.TestCase):
    def test_mouse_tokens_route_through_hit_test(self) -> None:
        model = init_model("[docs](https://example.com)", None, 80, 10)
        translator = KeyTranslator()

        self.assertEqual(key_message("MOUSE_LEFT_DOWN:2:1", model, translator), msg.FollowLink("https://example.com"))
        self.assertIsNone(key_message("MOUSE_LEFT_UP:2:1", model, translator))
        self.assertEqual(key_message("j", model, translator), msg.ScrollBy(1))


if __name__ == "__main__":
    unittest.main()
