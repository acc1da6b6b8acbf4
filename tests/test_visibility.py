# tests/test_visibility.py
"""
Tests for the visibility filter.
"""

from uiseek.model import Bounds, ElementSnapshot, ElementType
from uiseek.visibility import VisibilityFilter, index_by_identity

from .conftest import CONTAINER_ID, SCREEN, FakeScreen, row_id

PANEL = Bounds(0, 100, 1080, 400)


def child(identity, top, height=100, parent=CONTAINER_ID, visible=True):
    return ElementSnapshot(identity, ElementType.TEXT, Bounds(0, top, 1080, height), "x", visible=visible, parent=parent)


def container():
    return ElementSnapshot(CONTAINER_ID, ElementType.SCROLL, PANEL)


class TestViewport:
    """Tests for finding the viewport an element is measured against."""

    def test_nearest_scroll_container(self):
        panel = container()
        row = child("r", 150)
        vf = VisibilityFilter(SCREEN)
        assert vf.viewport_for(row, index_by_identity([panel, row])) == PANEL

    def test_container_is_its_own_viewport(self):
        panel = container()
        assert VisibilityFilter(SCREEN).viewport_for(panel, {}) == PANEL

    def test_viewport_not_clipped_to_screen(self):
        """A container reaching past the screen edge keeps its own bounds."""
        panel = ElementSnapshot(CONTAINER_ID, ElementType.SCROLL, Bounds(0, 900, 1080, 400))
        row = child("r", 1050)
        by_id = index_by_identity([panel, row])
        vf = VisibilityFilter(SCREEN)
        assert vf.viewport_for(row, by_id) == Bounds(0, 900, 1080, 400)
        assert vf.is_shown(row, by_id)

    def test_falls_back_to_screen(self):
        orphan = child("r", 150, parent=None)
        assert VisibilityFilter(SCREEN).viewport_for(orphan, {}) == SCREEN

    def test_walks_through_plain_views(self):
        panel = container()
        group = ElementSnapshot("g", ElementType.VIEW, Bounds(0, 100, 1080, 800), parent=CONTAINER_ID)
        row = child("r", 150, parent="g")
        by_id = index_by_identity([panel, group, row])
        assert VisibilityFilter(SCREEN).viewport_for(row, by_id) == PANEL

    def test_parent_cycle_terminates(self):
        a = ElementSnapshot("a", ElementType.VIEW, SCREEN, parent="b")
        b = ElementSnapshot("b", ElementType.VIEW, SCREEN, parent="a")
        assert VisibilityFilter(SCREEN).viewport_for(a, index_by_identity([a, b])) == SCREEN


class TestSufficientVisibility:
    """Tests for the vertical-centre rule."""

    def test_centre_on_bottom_edge_is_shown(self):
        # centre = 450 + 50 = 500 = PANEL.bottom
        assert VisibilityFilter.is_sufficiently_visible(child("r", 450), PANEL)

    def test_centre_on_top_edge_is_shown(self):
        # centre = 50 + 50 = 100 = PANEL.top
        assert VisibilityFilter.is_sufficiently_visible(child("r", 50), PANEL)

    def test_centre_just_outside_is_hidden(self):
        assert not VisibilityFilter.is_sufficiently_visible(child("r", 451), PANEL)
        assert not VisibilityFilter.is_sufficiently_visible(child("r", 49), PANEL)

    def test_platform_hidden_is_never_shown(self):
        panel = container()
        row = child("r", 150, visible=False)
        assert not VisibilityFilter(SCREEN).is_shown(row, index_by_identity([panel, row]))


class TestApply:
    """Tests for filtering a whole enumeration."""

    def test_panel_rows_half_scrolled(self):
        """With a 50px offset the rows whose centres sit on the edges are kept."""
        screen = FakeScreen([f"Row {i}" for i in range(8)], container=ElementType.SCROLL, positions=False)
        screen.offset = 50
        snapshots = screen.enumerate()
        shown = VisibilityFilter(SCREEN).apply(snapshots)
        shown_rows = [s.identity for s in shown if s.parent == CONTAINER_ID]
        assert shown_rows == [row_id(i) for i in range(5)]

    def test_preserves_order(self):
        screen = FakeScreen(["a", "b", "c"])
        snapshots = screen.enumerate()
        shown = VisibilityFilter(SCREEN).apply(snapshots)
        assert [s.identity for s in shown] == [s.identity for s in snapshots]
