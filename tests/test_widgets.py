# tests/test_widgets.py
import unittest

from treesync import widgets as w
from treesync.events import EventKind
from treesync.schema import Kind
from treesync.styles import Align, BorderStyle, Density, Orientation, Size, Thickness


class TestFactories(unittest.TestCase):
    def test_panel_group_holds_panels(self):
        group = w.panel_group(w.panel(30, w.text("A")), w.panel(70, w.text("B")))
        self.assertIs(group.kind, Kind.PANEL_GROUP)
        self.assertEqual([p["default_size"] for p in group.children], [30, 70])
        self.assertEqual(group.children[0].children[0]["text"], "A")

    def test_panel_group_rejects_other_kinds(self):
        with self.assertRaises(TypeError):
            w.panel_group(w.text("not a panel"))

    def test_select_rejects_other_kinds(self):
        with self.assertRaises(TypeError):
            w.select(w.text("x"))

    def test_option_label_defaults_to_value(self):
        self.assertEqual(w.option("apple")["label"], "apple")
        self.assertEqual(w.option("apple", "Apple")["label"], "Apple")

    def test_row_and_column_set_orientation(self):
        self.assertIs(w.row()["orientation"], Orientation.HORIZONTAL)
        self.assertIs(w.column()["orientation"], Orientation.VERTICAL)

    def test_button_binds_click_handler(self):
        clicked = []
        node = w.button("Go", on_click=clicked.append)
        self.assertIn(EventKind.CLICK, node.handlers)
        self.assertEqual(node["label"], "Go")

    def test_select_binds_select_handler(self):
        node = w.select(w.option("a"), w.option("b"), value="a", on_select=lambda d: None)
        self.assertEqual(node["value"], "a")
        self.assertIn(EventKind.SELECT, node.handlers)


class TestConfigurationFunctions(unittest.TestCase):
    def setUp(self):
        self.base = w.panel_group(w.panel(30, key="a"), w.panel(70, key="b"), key="g")

    def test_derived_variants_do_not_touch_base(self):
        stacked = w.vertical(self.base)
        no_handle = w.show_handle(self.base, False)
        self.assertIs(self.base["direction"], Orientation.HORIZONTAL)
        self.assertTrue(self.base["show_handle"])
        self.assertIs(stacked["direction"], Orientation.VERTICAL)
        self.assertFalse(no_handle["show_handle"])
        self.assertEqual(stacked.id, self.base.id)

    def test_box_configuration_chain(self):
        node = w.box(w.text("hi"))
        node = w.padding(w.margin(w.border_style(node, BorderStyle.DASHED), 2), Thickness.symmetric(4, 8))
        node = w.content_align(node, Align.CENTER)
        self.assertEqual(node["margin"], Thickness.all(2))
        self.assertEqual(node["padding"], Thickness(4, 8, 4, 8))
        self.assertIs(node["border_style"], BorderStyle.DASHED)
        self.assertIs(node["content_align"], Align.CENTER)

    def test_size_and_density(self):
        group = w.width(self.base, Size.px(300))
        self.assertEqual(group["width"], Size.px(300))
        sel = w.density(w.select(), Density.LARGE)
        self.assertIs(sel["density"], Density.LARGE)

    def test_actions_and_content(self):
        d = w.actions(w.detail("Row"), [w.button("Edit")])
        self.assertEqual(len(d["actions"]), 1)
        d = w.content(d, w.text("body"))
        self.assertEqual(d.children[0]["text"], "body")

    def test_on_resize(self):
        group = w.on_resize(self.base, lambda details: None)
        self.assertIn(EventKind.RESIZE, group.handlers)
        self.assertNotIn(EventKind.RESIZE, self.base.handlers)


if __name__ == "__main__":
    unittest.main()
