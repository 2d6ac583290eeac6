from __future__ import annotations

import os
import unittest

from markpager.runtime import input as input_mod
from markpager.runtime.input import read_key


class ReadKeyTests(unittest.TestCase):
    def setUp(self) -> None:
        input_mod._PENDING_BYTES.clear()
        self.read_fd, self.write_fd = os.pipe()

    def tearDown(self) -> None:
        os.close(self.read_fd)
        os.close(self.write_fd)
        input_mod._PENDING_BYTES.clear()

    def _keys(self, data: bytes, count: int) -> list[str]:
        os.write(self.write_fd, data)
        return [read_key(self.read_fd, timeout_ms=50) for _ in range(count)]

    def test_plain_and_control_keys(self) -> None:
        self.assertEqual(self._keys(b"jq\r\x04\x7f\t", 6), ["j", "q", "ENTER", "CTRL_D", "BACKSPACE", "TAB"])

    def test_timeout_returns_empty_token(self) -> None:
        self.assertEqual(read_key(self.read_fd, timeout_ms=10), "")

    def test_arrow_and_tilde_sequences(self) -> None:
        keys = self._keys(b"\x1b[A\x1b[B\x1b[5~\x1b[6~\x1b[1;5C\x1b[Z", 6)

        self.assertEqual(keys, ["UP", "DOWN", "PAGE_UP", "PAGE_DOWN", "RIGHT", "SHIFT_TAB"])

    def test_function_key_one_in_both_encodings(self) -> None:
        self.assertEqual(self._keys(b"\x1bOP\x1b[11~", 2), ["F1", "F1"])

    def test_lone_escape_and_alt_prefix(self) -> None:
        self.assertEqual(self._keys(b"\x1b", 1), ["ESC"])
        self.assertEqual(self._keys(b"\x1bx", 2), ["ESC", "x"])

    def test_utf8_text_is_decoded_whole(self) -> None:
        self.assertEqual(self._keys("é世".encode("utf-8"), 2), ["é", "世"])

    def test_sgr_mouse_events(self) -> None:
        keys = self._keys(b"\x1b[<64;10;5M\x1b[<65;10;5M\x1b[<0;3;4M\x1b[<0;3;4m", 4)

        self.assertEqual(
            keys,
            ["MOUSE_WHEEL_UP:10:5", "MOUSE_WHEEL_DOWN:10:5", "MOUSE_LEFT_DOWN:3:4", "MOUSE_LEFT_UP:3:4"],
        )


if __name__ == "__main__":
    unittest.main()
