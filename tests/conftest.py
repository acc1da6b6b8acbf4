# tests/conftest.py
"""
Shared fixtures: a synthetic scrollable screen and fast timing settings.
"""

from typing import Callable, Dict, Hashable, List, Optional, Sequence

import pytest

from uiseek.actions import Actions
from uiseek.config import TimeConfig
from uiseek.context import ActionContextManager
from uiseek.engine import ResolutionEngine
from uiseek.exceptions import TransientSnapshotError
from uiseek.interfaces import IInputDispatcher, IScrollPrimitive, ISnapshotProvider
from uiseek.model import Bounds, ElementSnapshot, ElementType, ScrollMetrics
from uiseek.resolver import Resolver
from uiseek.scroller import ScrollController
from uiseek.timinglogger import TIMING_LOGGER

SCREEN = Bounds(0, 0, 1080, 1000)
ROOT_ID = ("root",)
TITLE_ID = ("title",)
CONTAINER_ID = ("container",)
FOOTER_ID = ("footer",)

# A settings screen as written by `uiautomator dump`.
SETTINGS_DUMP = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node index="0" text="" resource-id="" class="android.widget.FrameLayout" bounds="[0,0][1080,1920]">
    <node index="0" text="Settings" resource-id="android:id/title" class="android.widget.TextView" bounds="[0,0][1080,150]" />
    <node index="1" text="" resource-id="android:id/list" class="androidx.recyclerview.widget.RecyclerView" scrollable="true" bounds="[0,150][1080,1800]">
      <node index="0" text="" resource-id="" class="android.widget.LinearLayout" bounds="[0,150][1080,350]">
        <node index="0" text="Network" resource-id="android:id/label" class="android.widget.TextView" bounds="[40,200][1040,300]" />
      </node>
      <node index="1" text="" resource-id="" class="android.widget.LinearLayout" bounds="[0,350][1080,550]">
        <node index="0" text="Display" resource-id="android:id/label" class="android.widget.TextView" bounds="[40,400][1040,500]" />
      </node>
    </node>
    <node index="2" text="OK" resource-id="android:id/ok" class="android.widget.Button" bounds="[0,1800][1080,1920]" />
    <node index="3" text="Hidden" resource-id="" class="android.widget.TextView" bounds="[0,0][0,0]" visible-to-user="false" />
  </node>
</hierarchy>"""


def row_id(index: int) -> Hashable:
    return ("row", index)


def _subtree(snapshots: List[ElementSnapshot], root: Optional[Hashable]) -> List[ElementSnapshot]:
    if root is None:
        return snapshots
    by_id = {s.identity: s for s in snapshots}
    if root not in by_id:
        return []

    def under(snapshot: ElementSnapshot) -> bool:
        current: Optional[Hashable] = snapshot.identity
        while current is not None:
            if current == root:
                return True
            parent = by_id.get(current)
            current = parent.parent if parent is not None else None
        return False

    return [s for s in snapshots if under(s)]


class FakeScreen(ISnapshotProvider, IScrollPrimitive):
    """
    A title, one scroll container of fixed-height rows, and an OK button.

    With container LIST/GRID and positions=True the container is virtualized
    and scrolled by item selection, like a list view. With container SCROLL
    every row is laid out and the container is scrolled by pixel offset;
    report_offset=False hides that offset from snapshots.
    """

    def __init__(
        self,
        rows: Sequence[str],
        visible_rows: int = 4,
        row_height: int = 100,
        container: ElementType = ElementType.LIST,
        positions: bool = True,
        report_offset: bool = True,
        row_type: ElementType = ElementType.TEXT,
    ):
        self.rows = list(rows)
        self.visible_rows = visible_rows
        self.row_height = row_height
        self.container_type = container
        self.positions = positions
        self.report_offset = report_offset
        self.row_type = row_type
        self.container_bounds = Bounds(0, 100, SCREEN.width, visible_rows * row_height)
        self.first = 0
        self.offset = 0
        self.enumerations = 0
        self.selections: List[int] = []
        self.scroll_offsets: List[int] = []
        self.transient_failures = 0

    # ---------------- geometry ----------------

    @property
    def virtualized(self) -> bool:
        return self.positions and self.container_type in (ElementType.LIST, ElementType.GRID)

    @property
    def last(self) -> int:
        return min(self.first + self.visible_rows - 1, len(self.rows) - 1)

    @property
    def max_offset(self) -> int:
        return max(len(self.rows) * self.row_height - self.container_bounds.height, 0)

    def _container(self) -> ElementSnapshot:
        if self.virtualized:
            metrics: Optional[ScrollMetrics] = ScrollMetrics(
                offset_y=float(self.first * self.row_height),
                first_visible=self.first,
                last_visible=self.last,
                item_count=len(self.rows),
            )
        elif self.report_offset:
            metrics = ScrollMetrics(offset_y=float(self.offset))
        else:
            metrics = None
        return ElementSnapshot(
            identity=CONTAINER_ID,
            element_type=self.container_type,
            bounds=self.container_bounds,
            parent=ROOT_ID,
            scroll=metrics,
        )

    def _rows(self) -> List[ElementSnapshot]:
        top = self.container_bounds.top
        if self.virtualized:
            indices = range(self.first, self.last + 1)
            position = lambda i: top + (i - self.first) * self.row_height
        else:
            indices = range(len(self.rows))
            position = lambda i: top + i * self.row_height - self.offset
        return [
            ElementSnapshot(
                identity=row_id(i),
                element_type=self.row_type,
                bounds=Bounds(0, position(i), SCREEN.width, self.row_height),
                text=self.rows[i],
                parent=CONTAINER_ID,
            )
            for i in indices
        ]

    def snapshots(self) -> List[ElementSnapshot]:
        footer_top = self.container_bounds.bottom
        return [
            ElementSnapshot(ROOT_ID, ElementType.VIEW, SCREEN),
            ElementSnapshot(TITLE_ID, ElementType.TEXT, Bounds(0, 0, SCREEN.width, 100), "Title", parent=ROOT_ID),
            self._container(),
            *self._rows(),
            ElementSnapshot(FOOTER_ID, ElementType.BUTTON, Bounds(0, footer_top, SCREEN.width, 100), "OK", parent=ROOT_ID),
        ]

    # ---------------- ISnapshotProvider ----------------

    def enumerate(self, root: Optional[Hashable] = None, only_visible: bool = False) -> List[ElementSnapshot]:
        self.enumerations += 1
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise TransientSnapshotError("tree changed")
        snapshots = _subtree(self.snapshots(), root)
        if only_visible:
            snapshots = [s for s in snapshots if s.visible]
        return snapshots

    def screen_bounds(self) -> Bounds:
        return SCREEN

    # ---------------- IScrollPrimitive ----------------

    def select_position(self, container: ElementSnapshot, position: int) -> None:
        self.selections.append(position)
        limit = max(len(self.rows) - self.visible_rows, 0)
        self.first = min(max(position, 0), limit)

    def scroll_by(self, container: ElementSnapshot, dx: int, dy: int) -> None:
        self.scroll_offsets.append(dy)
        self.offset = min(max(self.offset + dy, 0), self.max_offset)


class FrameProvider(ISnapshotProvider):
    """Returns prepared frames in order; the last frame repeats."""

    def __init__(self, frames: Sequence[Sequence[ElementSnapshot]], on_enumerate: Optional[Callable[[int], None]] = None):
        self.frames = [list(f) for f in frames]
        self.calls = 0
        self.on_enumerate = on_enumerate

    def enumerate(self, root: Optional[Hashable] = None, only_visible: bool = False) -> List[ElementSnapshot]:
        frame = self.frames[min(self.calls, len(self.frames) - 1)]
        self.calls += 1
        if self.on_enumerate is not None:
            self.on_enumerate(self.calls)
        snapshots = _subtree(frame, root)
        if only_visible:
            snapshots = [s for s in snapshots if s.visible]
        return snapshots

    def screen_bounds(self) -> Bounds:
        return SCREEN


class NoScroll(IScrollPrimitive):
    def scroll_by(self, container: ElementSnapshot, dx: int, dy: int) -> None:
        pass

    def select_position(self, container: ElementSnapshot, position: int) -> None:
        pass


class TapRecorder(IInputDispatcher):
    def __init__(self):
        self.taps: List[tuple] = []

    def tap(self, x: float, y: float) -> None:
        self.taps.append(("tap", x, y))

    def long_press(self, x: float, y: float, duration: float) -> None:
        self.taps.append(("long_press", x, y, duration))


def text_element(identity: Hashable, text: str, top: int = 200, element_type: ElementType = ElementType.TEXT) -> ElementSnapshot:
    """A shown element at the given vertical position, directly under the root."""
    return ElementSnapshot(identity, element_type, Bounds(0, top, SCREEN.width, 50), text, parent=ROOT_ID)


def frame(*elements: ElementSnapshot) -> List[ElementSnapshot]:
    return [ElementSnapshot(ROOT_ID, ElementType.VIEW, SCREEN), *elements]


def build_stack(provider: ISnapshotProvider, primitive: IScrollPrimitive, max_steps: int = 50) -> Dict[str, object]:
    scroller = ScrollController(provider, primitive, max_steps=max_steps)
    engine = ResolutionEngine(provider, scroller)
    resolver = Resolver(engine)
    dispatcher = TapRecorder()
    return {
        "scroller": scroller,
        "engine": engine,
        "resolver": resolver,
        "dispatcher": dispatcher,
        "actions": Actions(resolver, dispatcher),
    }


FAST_TIMINGS = {
    "text_wait": {"timeout": 0.3, "interval": 0.01},
    "view_wait": {"timeout": 0.3, "interval": 0.01},
    "index_wait": {"timeout": 0.3, "interval": 0.01},
    "either_wait": {"timeout": 0.3, "interval": 0.01},
    "text_resolve": {"timeout": 0.3, "interval": 0.01},
    "exists_wait": {"timeout": 0.05, "interval": 0.01},
    "snapshot_retry": {"timeout": 0.2, "interval": 0.01},
    "scroll_settle_pause": 0.0,
    "spin_wait_pause": 0.0,
    "tap_pause": 0.0,
    "long_press_duration": 0.5,
}


@pytest.fixture(autouse=True)
def fast_timings():
    """Run every test with short timeouts and no settle pauses."""
    TimeConfig.reset_to_defaults()
    ActionContextManager.clear()
    TIMING_LOGGER.disable()
    TIMING_LOGGER.clear()
    with TimeConfig.override(**FAST_TIMINGS) as cfg:
        yield cfg
    ActionContextManager.clear()
    TimeConfig.reset_to_defaults()


@pytest.fixture
def screen():
    """Twelve distinct rows, four shown at a time."""
    return FakeScreen([f"Item {i}" for i in range(12)])


@pytest.fixture
def stack(screen):
    return build_stack(screen, screen)
