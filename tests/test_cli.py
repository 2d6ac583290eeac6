"""CLI argument handling, config merging and input selection."""

from __future__ import annotations

import io
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from markpager import cli
from markpager.config import ViewerConfig


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch("markpager.cli.load_viewer_config", return_value=ViewerConfig())
        patcher.start()
        self.addCleanup(patcher.stop)
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name).resolve()

    def _doc(self, text: str = "# Hello\n\nworld\n") -> Path:
        target = self.root / "doc.md"
        target.write_text(text, encoding="utf-8")
        return target

    def test_path_argument_is_loaded_and_passed_to_pager(self) -> None:
        target = self._doc()

        with mock.patch("markpager.cli.run_pager") as run_pager:
            cli.main([str(target), "--watch", "--toc"])

        run_pager.assert_called_once()
        source, path, config = run_pager.call_args.args
        self.assertEqual(source, "# Hello\n\nworld\n")
        self.assertEqual(path, target)
        self.assertTrue(config.watch)
        self.assertTrue(config.toc_visible)
        self.assertTrue(config.images_enabled)

    def test_missing_file_exits_with_message(self) -> None:
        with mock.patch("markpager.cli.run_pager") as run_pager:
            with self.assertRaises(SystemExit) as raised:
                cli.main([str(self.root / "absent.md")])

        run_pager.assert_not_called()
        self.assertIn("no such file", str(raised.exception.code))

    def test_render_prints_document_and_exits(self) -> None:
        target = self._doc("plain **bold** text\n")

        with mock.patch("sys.stdout", new_callable=io.StringIO) as stdout, mock.patch(
            "markpager.cli.run_pager"
        ) as run_pager:
            cli.main([str(target), "--render", "--width", "40"])

        run_pager.assert_not_called()
        self.assertIn("plain ", stdout.getvalue())
        self.assertIn("\x1b[1mbold", stdout.getvalue())

    def test_stdin_input_disables_watch(self) -> None:
        with mock.patch.object(sys, "stdin", io.StringIO("from stdin\x07\n")), mock.patch(
            "markpager.cli.run_pager"
        ) as run_pager:
            cli.main(["-", "--watch"])

        source, path, config = run_pager.call_args.args
        self.assertEqual(source, "from stdin\\x07\n")
        self.assertIsNone(path)
        self.assertFalse(config.watch)

    def test_flags_override_saved_defaults(self) -> None:
        base = ViewerConfig(watch=True, wrap_width=60, code_theme="native")
        args = cli.build_parser().parse_args(["doc.md", "--no-images", "--wrap-width", "72"])

        config = cli.config_from_args(args, base)

        self.assertTrue(config.watch)
        self.assertFalse(config.images_enabled)
        self.assertEqual(config.wrap_width, 72)
        self.assertEqual(config.code_theme, "native")

    def test_unknown_theme_falls_back_with_warning(self) -> None:
        args = cli.build_parser().parse_args(["--code-theme", "no-such-style"])

        with self.assertLogs("markpager.cli", level="WARNING"):
            config = cli.config_from_args(args, ViewerConfig())

        self.assertEqual(config.code_theme, "monokai")

    def test_invalid_width_is_rejected(self) -> None:
        with mock.patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                cli.build_parser().parse_args(["--wrap-width", "0"])

    def test_save_defaults_persists_merged_config(self) -> None:
        target = self._doc()

        with mock.patch("markpager.cli.save_viewer_config") as save, mock.patch("markpager.cli.run_pager"):
            cli.main([str(target), "--toc", "--code-theme", "native", "--save-defaults"])

        saved = save.call_args.args[0]
        self.assertTrue(saved.toc_visible)
        self.assertEqual(saved.code_theme, "native")


if __name__ == "__main__":
    unittest.main()
