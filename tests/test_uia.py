# tests/test_uia.py
"""
Tests for the UI Automation backend against fake pywinauto wrappers.
"""

from types import SimpleNamespace

import pytest

from uiseek.backends.uia import (UIAInputDispatcher, UIAScrollPrimitive,
                                 UIASnapshotProvider)
from uiseek.exceptions import ElementNotFoundError, TransientSnapshotError
from uiseek.model import Bounds, ElementSnapshot, ElementType

from .conftest import build_stack


def rect(left, top, right, bottom):
    return SimpleNamespace(left=left, top=top, right=right, bottom=bottom)


class FakeCtrl:
    """Just enough of a pywinauto UIA wrapper."""

    def __init__(self, control_type, name="", bounds=(0, 0, 100, 20), runtime_id=None, visible=True, children=None):
        self.element_info = SimpleNamespace(
            control_type=control_type,
            name=name,
            rectangle=rect(*bounds),
            runtime_id=runtime_id,
            visible=visible,
        )
        self._children = list(children or [])

    def children(self):
        return list(self._children)

    def rectangle(self):
        return self.element_info.rectangle


class FakeList(FakeCtrl):
    """A list showing three 50px rows of items at a time, paged by scroll()."""

    PAGE = 3

    def __init__(self, items):
        super().__init__("List", bounds=(0, 100, 800, 250), runtime_id=(7,))
        self.items = list(items)
        self.start = 0
        self.scrolls = []
        self.brought_into_view = []
        self.iface_scroll = SimpleNamespace(
            CurrentVerticallyScrollable=True,
            CurrentHorizontalScrollPercent=0.0,
            CurrentVerticalScrollPercent=0.0,
        )

    def _item(self, index, row):
        top = 100 + row * 50
        item = FakeCtrl("ListItem", self.items[index], (0, top, 800, top + 50), runtime_id=(7, index))
        item.iface_scroll_item = SimpleNamespace(
            ScrollIntoView=lambda: self.brought_into_view.append(index)
        )
        return item

    def children(self):
        shown = range(self.start, min(self.start + self.PAGE, len(self.items)))
        return [self._item(i, row) for row, i in enumerate(shown)]

    def scroll(self, direction, amount):
        self.scrolls.append((direction, amount))
        last_start = max(len(self.items) - self.PAGE, 0)
        if direction == "down":
            self.start = min(self.start + self.PAGE, last_start)
        elif direction == "up":
            self.start = max(self.start - self.PAGE, 0)
        if last_start:
            self.iface_scroll.CurrentVerticalScrollPercent = 100.0 * self.start / last_start


class BrokenCtrl(FakeCtrl):
    def children(self):
        raise RuntimeError("element not available")


def mail_window(items=("Mail 0", "Mail 1", "Mail 2")):
    mail_list = FakeList(items)
    window = FakeCtrl("Window", "Mail", (0, 0, 800, 600), runtime_id=(1,), children=[
        FakeCtrl("Text", "Inbox", (0, 0, 800, 50), runtime_id=(2,)),
        mail_list,
        FakeCtrl("Button", "Send", (0, 500, 200, 550), runtime_id=(3,)),
        FakeCtrl("Text", "Offscreen note", (0, 0, 0, 0), runtime_id=(4,), visible=False),
    ])
    return window, mail_list


class TestSnapshotProvider:
    """Tests for UIASnapshotProvider."""

    def test_enumerates_window_tree(self):
        window, _ = mail_window()
        snapshots = UIASnapshotProvider(window).enumerate()
        assert [s.text for s in snapshots] == [
            "Mail", "Inbox", None, "Mail 0", "Mail 1", "Mail 2", "Send", "Offscreen note",
        ]
        by_text = {s.text: s for s in snapshots}
        assert by_text["Send"].element_type is ElementType.BUTTON
        assert by_text["Mail 1"].element_type is ElementType.TEXT
        assert by_text["Mail 1"].parent == (7,)
        assert by_text["Mail"].element_type is ElementType.VIEW

    def test_scrollable_list_reports_offset(self):
        window, _ = mail_window()
        container = [s for s in UIASnapshotProvider(window).enumerate() if s.identity == (7,)][0]
        assert container.element_type is ElementType.LIST
        assert container.scroll.offset_y == 0.0
        assert not container.scroll.has_positions

    def test_only_visible(self):
        window, _ = mail_window()
        texts = [s.text for s in UIASnapshotProvider(window).enumerate(only_visible=True)]
        assert "Offscreen note" not in texts

    def test_subtree_by_identity(self):
        window, _ = mail_window()
        provider = UIASnapshotProvider(window)
        provider.enumerate()
        subtree = provider.enumerate((7,))
        assert [s.identity for s in subtree] == [(7,), (7, 0), (7, 1), (7, 2)]

    def test_unknown_root_is_empty(self):
        window, _ = mail_window()
        assert UIASnapshotProvider(window).enumerate(("gone",)) == []

    def test_path_identity_without_runtime_id(self):
        window = FakeCtrl("Window", "W", children=[FakeCtrl("Text", "a"), FakeCtrl("Text", "b")])
        identities = [s.identity for s in UIASnapshotProvider(window).enumerate()]
        assert identities == [("path", 0), ("path", 0, 0), ("path", 0, 1)]

    def test_changing_tree_is_transient(self):
        window = FakeCtrl("Window", "W", runtime_id=(1,), children=[BrokenCtrl("Pane", runtime_id=(2,))])
        with pytest.raises(TransientSnapshotError):
            UIASnapshotProvider(window).enumerate()

    def test_screen_bounds(self):
        window, _ = mail_window()
        assert UIASnapshotProvider(window).screen_bounds() == Bounds(0, 0, 800, 600)


class TestScrollPrimitive:
    """Tests for UIAScrollPrimitive."""

    def test_scroll_by_pages(self):
        window, mail_list = mail_window()
        provider = UIASnapshotProvider(window)
        container = [s for s in provider.enumerate() if s.identity == (7,)][0]
        primitive = UIAScrollPrimitive(provider)
        primitive.scroll_by(container, 0, 149)
        primitive.scroll_by(container, 0, -149)
        assert mail_list.scrolls == [("down", "page"), ("up", "page")]

    def test_select_position_clamps(self):
        window, mail_list = mail_window()
        provider = UIASnapshotProvider(window)
        container = [s for s in provider.enumerate() if s.identity == (7,)][0]
        UIAScrollPrimitive(provider).select_position(container, 10)
        assert mail_list.brought_into_view == [2]

    def test_unknown_container(self):
        window, _ = mail_window()
        provider = UIASnapshotProvider(window)
        stranger = ElementSnapshot("x", ElementType.LIST, Bounds(0, 0, 10, 10))
        with pytest.raises(ElementNotFoundError):
            UIAScrollPrimitive(provider).scroll_by(stranger, 0, 10)

    def test_resolution_scrolls_list_pages(self):
        items = [f"Mail {i}" for i in range(9)]
        window, mail_list = mail_window(items)
        provider = UIASnapshotProvider(window)
        stack = build_stack(provider, UIAScrollPrimitive(provider))
        element = stack["resolver"].find_by_text("Mail 7")
        assert element.identity == (7, 7)
        assert mail_list.scrolls == [("down", "page"), ("down", "page")]


class FakeMouse:
    def __init__(self):
        self.events = []

    def click(self, button, coords):
        self.events.append(("click", button, coords))

    def press(self, button, coords):
        self.events.append(("press", button, coords))

    def release(self, button, coords):
        self.events.append(("release", button, coords))


class TestInputDispatcher:
    """Tests for UIAInputDispatcher."""

    def test_tap(self):
        mouse = FakeMouse()
        UIAInputDispatcher(mouse).tap(10.6, 20.2)
        assert mouse.events == [("click", "left", (10, 20))]

    def test_long_press_releases(self):
        mouse = FakeMouse()
        UIAInputDispatcher(mouse).long_press(5, 6, 0.01)
        assert mouse.events == [("press", "left", (5, 6)), ("release", "left", (5, 6))]
