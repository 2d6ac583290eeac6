"""Raw-mode session control for the pager.

Switches the tty into raw mode on the alternate screen with SGR mouse
reporting, and writes whole frames to stdout.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import termios
import tty

ENTER_SCREEN = "\x1b[?1049h\x1b[?25l\x1b[?1000h\x1b[?1006h"
LEAVE_SCREEN = "\x1b[?1000l\x1b[?1006l\x1b[?25h\x1b[?1049l"
FALLBACK_SIZE = (80, 24)


class TerminalController:
    """Owns the tty state saved at startup and the output descriptor."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)

    def enable_tui_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        self.write(ENTER_SCREEN)

    def disable_tui_mode(self) -> None:
        self.write(LEAVE_SCREEN)
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def size(self) -> tuple[int, int]:
        """Return ``(columns, rows)``, never smaller than 1x1."""
        columns, lines = shutil.get_terminal_size(FALLBACK_SIZE)
        return max(1, columns), max(1, lines)

    def write(self, text: str) -> None:
        """Write ``text`` fully; ``os.write`` may accept only part of a frame."""
        data = memoryview(text.encode("utf-8", errors="replace"))
        while data:
            written = os.write(self.stdout_fd, data)
            data = data[written:]

    @contextlib.contextmanager
    def raw_mode(self):
        """Run the enclosed block in TUI mode; the tty is restored on any exit."""
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()
