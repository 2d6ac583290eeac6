"""Main interactive event loop.

Each iteration collects background results, picks up terminal resizes,
expires status messages, renders when something changed, then waits a
short while for one key. All state changes go through ``update``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..app import messages as msg
from ..app.model import Model
from ..app.update import update
from .effects import EffectRunner
from .input import read_key
from .keys import KeyTranslator
from .terminal import TerminalController
from .view import ImagePainter, hit_test, render_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    poll_ms: int = 50
    status_seconds: float = 4.0


class StatusTimer:
    """Tracks when the current status message should be cleared."""

    def __init__(self, lifetime: float) -> None:
        self.lifetime = lifetime
        self._serial = 0
        self._deadline: float | None = None

    def observe(self, model: Model, now: float) -> None:
        if model.status_serial != self._serial:
            self._serial = model.status_serial
            self._deadline = now + self.lifetime if model.status else None

    def expired(self, model: Model, now: float) -> bool:
        if not model.status or self._deadline is None:
            return False
        if now < self._deadline:
            return False
        self._deadline = None
        return True


class Dispatcher:
    """Applies messages and forwards each transition to the effect layer."""

    def __init__(self, effects: EffectRunner) -> None:
        self.effects = effects
        self.dirty = True

    def __call__(self, model: Model, message) -> Model:
        new = update(model, message)
        if new is model:
            if isinstance(message, msg.ImageLoaded) and message.generation == model.generation:
                # re-decoded after eviction; same size, fresh pixels
                self.dirty = True
            return model
        self.effects.after_update(model, new, message)
        self.dirty = True
        return new


def key_message(key: str, model: Model, translator: KeyTranslator):
    if key.startswith("MOUSE_LEFT_DOWN:"):
        _, col, row = key.split(":")
        return hit_test(model, int(col), int(row))
    if key.startswith("MOUSE_LEFT_UP:") or key == "MOUSE":
        return None
    return translator.translate(key, model)


def run_main_loop(
    model: Model,
    terminal: TerminalController,
    effects: EffectRunner,
    painter: ImagePainter | None = None,
    timing: RuntimeLoopTiming = RuntimeLoopTiming(),
    clock: Callable[[], float] = time.monotonic,
) -> Model:
    """Run until a ``Quit`` message lands; return the final model."""
    dispatch = Dispatcher(effects)
    translator = KeyTranslator()
    status = StatusTimer(timing.status_seconds)
    effects.start(model)

    while not model.quit:
        now = clock()
        for message in effects.poll(model):
            model = dispatch(model, message)

        width, height = terminal.size()
        if (width, height) != (model.terminal_width, model.terminal_height):
            model = dispatch(model, msg.Resize(width, height))

        status.observe(model, now)
        if status.expired(model, now):
            model = dispatch(model, msg.ClearStatus())

        if dispatch.dirty:
            terminal.write(render_frame(model, painter))
            dispatch.dirty = False

        key = read_key(terminal.stdin_fd, timeout_ms=timing.poll_ms)
        if not key:
            continue
        message = key_message(key, model, translator)
        if message is not None:
            model = dispatch(model, message)
            status.observe(model, clock())

    return model
