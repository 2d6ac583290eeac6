from __future__ import annotations

import unittest
from dataclasses import replace
from pathlib import Path

from markpager.app import messages as msg
from markpager.app.model import init_model
from markpager.app.search import SEARCH_ACTIVE, SEARCH_EDITING, SearchState
from markpager.runtime.keys import KeyTranslator


def _model(source: str = "# Title\n\nbody text\n", height: int = 10):
    return init_model(source, Path("/tmp/doc.md"), 80, height)


def _feed(translator: KeyTranslator, model, keys: list[str]) -> list[object]:
    return [translator.translate(key, model) for key in keys]


class NormalModeKeyTests(unittest.TestCase):
    def test_navigation_keys_map_to_messages(self) -> None:
        translator = KeyTranslator()
        model = _model()

        self.assertEqual(translator.translate("j", model), msg.ScrollBy(1))
        self.assertEqual(translator.translate("UP", model), msg.ScrollBy(-1))
        self.assertEqual(translator.translate(" ", model), msg.PageDown())
        self.assertEqual(translator.translate("b", model), msg.PageUp())
        self.assertEqual(translator.translate("CTRL_D", model), msg.HalfPageDown())
        self.assertEqual(translator.translate("g", model), msg.GoToTop())
        self.assertEqual(translator.translate("G", model), msg.GoToBottom())
        self.assertEqual(translator.translate("q", model), msg.Quit())
        self.assertEqual(translator.translate("t", model), msg.ToggleToc())
        self.assertEqual(translator.translate("w", model), msg.ToggleWatch())
        self.assertIsNone(translator.translate("x", model))
        self.assertIsNone(translator.translate("", model))

    def test_numeric_prefix_goes_to_line_or_percentage(self) -> None:
        translator = KeyTranslator()
        model = _model()

        self.assertEqual(_feed(translator, model, ["4", "2", "G"]), [None, None, msg.GoToLine(41)])
        self.assertEqual(_feed(translator, model, ["5", "0", "%"]), [None, None, msg.GoToPercentage(50)])
        self.assertEqual(_feed(translator, model, ["3", "j"]), [None, msg.ScrollBy(1)])
        self.assertEqual(translator.count, "")

    def test_mouse_wheel_scrolls_three_lines(self) -> None:
        translator = KeyTranslator()
        model = _model()

        self.assertEqual(translator.translate("MOUSE_WHEEL_DOWN:4:5", model), msg.ScrollBy(3))
        self.assertEqual(translator.translate("MOUSE_WHEEL_UP:4:5", model), msg.ScrollBy(-3))

    def test_escape_cancels_active_search(self) -> None:
        translator = KeyTranslator()
        model = replace(_model(), search=SearchState(mode=SEARCH_ACTIVE, query="body"))

        self.assertEqual(translator.translate("ESC", model), msg.CancelSearch())
        self.assertEqual(translator.translate("n", model), msg.NextMatch())
        self.assertEqual(translator.translate("N", model), msg.PrevMatch())

    def test_reload_help_and_link_keys(self) -> None:
        translator = KeyTranslator()
        model = _model()

        self.assertEqual(translator.translate("r", model), msg.ForceReload())
        self.assertEqual(translator.translate("R", model), msg.ForceReload())
        self.assertEqual(translator.translate("?", model), msg.ToggleHelp())
        self.assertEqual(translator.translate("F1", model), msg.ToggleHelp())
        self.assertEqual(translator.translate("o", model), msg.OpenVisibleLinks())


class OverlayKeyTests(unittest.TestCase):
    def test_help_swallows_keys_until_closed(self) -> None:
        translator = KeyTranslator()
        model = replace(_model(), help_visible=True)

        self.assertIsNone(translator.translate("j", model))
        self.assertIsNone(translator.translate("4", model))
        self.assertEqual(translator.count, "")
        for key in ("ESC", "?", "q", "F1"):
            self.assertEqual(translator.translate(key, model), msg.HideHelp())
        self.assertEqual(translator.translate("CTRL_C", model), msg.Quit())

    def test_link_picker_takes_digits_and_cancels_on_anything_else(self) -> None:
        translator = KeyTranslator()
        model = _model("[a](#a) [b](#b)\n")
        model = replace(model, link_picker=tuple(model.document.links))

        self.assertEqual(translator.translate("2", model), msg.SelectVisibleLink(2))
        self.assertEqual(translator.count, "")
        self.assertEqual(translator.translate("0", model), msg.CancelLinkPicker())
        self.assertEqual(translator.translate("ESC", model), msg.CancelLinkPicker())
        self.assertEqual(translator.translate("j", model), msg.CancelLinkPicker())
        self.assertIsNone(translator.translate("MOUSE_WHEEL_DOWN:4:5", model))


class SearchEditingKeyTests(unittest.TestCase):
    def test_printable_keys_extend_query(self) -> None:
        translator = KeyTranslator()
        model = replace(_model(), search=SearchState(mode=SEARCH_EDITING, query="ab"))

        self.assertEqual(translator.translate("c", model), msg.SearchQueryChanged("abc"))
        self.assertEqual(translator.translate("q", model), msg.SearchQueryChanged("abq"))
        self.assertEqual(translator.translate("BACKSPACE", model), msg.SearchQueryChanged("a"))
        self.assertEqual(translator.translate("ENTER", model), msg.SearchCommit())
        self.assertEqual(translator.translate("ESC", model), msg.CancelSearch())
        self.assertIsNone(translator.translate("UP", model))

    def test_backspace_on_empty_query_cancels(self) -> None:
        translator = KeyTranslator()
        model = replace(_model(), search=SearchState(mode=SEARCH_EDITING))

        self.assertEqual(translator.translate("BACKSPACE", model), msg.CancelSearch())


class TocFocusKeyTests(unittest.TestCase):
    def test_toc_focus_routes_enter_and_collapse(self) -> None:
        translator = KeyTranslator()
        model = _model()
        model = replace(model, toc=replace(model.toc, visible=True, focused=True))

        self.assertEqual(translator.translate("ENTER", model), msg.TocSelect())
        self.assertEqual(translator.translate("l", model), msg.TocToggleCollapse())
        self.assertEqual(translator.translate("ESC", model), msg.ToggleTocFocus())
        self.assertEqual(translator.translate("j", model), msg.ScrollBy(1))
        self.assertIsNone(translator.translate("5", model))
        self.assertEqual(translator.count, "")


if __name__ == "__main__":
    unittest.main()
