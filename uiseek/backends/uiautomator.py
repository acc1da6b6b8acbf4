# uiseek/backends/uiautomator.py
"""
@file uiautomator.py
@brief Android backend built on `uiautomator dump` XML hierarchies.

A dump carries no scroll offsets or item positions, so containers found in
it are always scrolled as panels and progress is judged by their content.
Identities combine the node's index path with its resource id and text:
a recycled row that shows new content is a new element.
"""

from __future__ import annotations

import logging
import re
import subprocess
import xml.etree.ElementTree as ET
from typing import Hashable, List, Optional, Sequence, Tuple

from ..exceptions import TransientSnapshotError, UISeekError
from ..interfaces import IInputDispatcher, IScrollPrimitive, ISnapshotProvider
from ..model import Bounds, ElementSnapshot, ElementType

BOUNDS_PATTERN = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")

# Returned by `uiautomator dump` while the UI thread is busy.
_BUSY_MARKERS = ("could not get idle state", "null root node")


def parse_bounds(value: Optional[str]) -> Bounds:
    """Parse "[left,top][right,bottom]"; malformed values give an empty rectangle."""
    match = BOUNDS_PATTERN.match(value or "")
    if not match:
        return Bounds(0, 0, 0, 0)
    left, top, right, bottom = (int(g) for g in match.groups())
    return Bounds.from_edges(left, top, right, bottom)


def _flag(node: ET.Element, name: str, default: str = "false") -> bool:
    return node.get(name, default).lower() == "true"


def parse_hierarchy(xml_content: str) -> List[ElementSnapshot]:
    """
    Convert a dump into snapshots in document order.

    @param xml_content XML text as written by `uiautomator dump`
    @return Snapshots, parents before children
    @throws ValueError if the text is not a well-formed hierarchy
    """
    try:
        root = ET.fromstring(xml_content)
    except ET.ParseError as e:
        raise ValueError(f"Invalid uiautomator dump: {e}") from e

    top_level = [root] if root.tag == "node" else list(root)
    stack: List[Tuple[ET.Element, Tuple[int, ...], Optional[Hashable]]] = [
        (node, (i,), None) for i, node in reversed(list(enumerate(top_level)))
    ]
    snapshots: List[ElementSnapshot] = []
    while stack:
        node, path, parent = stack.pop()
        if node.tag != "node":
            continue
        class_name = node.get("class", "")
        text = node.get("text") or None
        identity = (path, node.get("resource-id", ""), text)
        snapshots.append(ElementSnapshot(
            identity=identity,
            element_type=ElementType.from_class_name(class_name, _flag(node, "scrollable")),
            bounds=parse_bounds(node.get("bounds")),
            text=text,
            visible=_flag(node, "visible-to-user", "true"),
            parent=parent,
            class_name=class_name,
        ))
        children = list(node)
        for i in range(len(children) - 1, -1, -1):
            stack.append((children[i], path + (i,), identity))
    return snapshots


def _screen_from(snapshots: Sequence[ElementSnapshot]) -> Bounds:
    top_level = [s.bounds for s in snapshots if s.parent is None]
    if not top_level:
        return Bounds(0, 0, 0, 0)
    return Bounds.from_edges(
        min(b.left for b in top_level),
        min(b.top for b in top_level),
        max(b.right for b in top_level),
        max(b.bottom for b in top_level),
    )


def _subtree(snapshots: List[ElementSnapshot], root: Optional[Hashable]) -> List[ElementSnapshot]:
    if root is None:
        return list(snapshots)
    root_path = root[0]
    for snapshot in snapshots:
        if snapshot.identity == root:
            break
    else:
        return []
    depth = len(root_path)
    return [s for s in snapshots if s.identity[0][:depth] == root_path]


class UiautomatorDumpProvider(ISnapshotProvider):
    """
    Snapshot provider over a fixed dump.

    Every enumeration returns the same elements, which makes it suitable
    for offline inspection and dry runs.
    """

    def __init__(self, xml_content: str):
        self._snapshots = parse_hierarchy(xml_content)

    @classmethod
    def from_file(cls, path: str) -> UiautomatorDumpProvider:
        with open(path, "r", encoding="utf-8") as f:
            return cls(f.read())

    def enumerate(self, root: Optional[Hashable] = None, only_visible: bool = False) -> List[ElementSnapshot]:
        snapshots = _subtree(self._snapshots, root)
        if only_visible:
            snapshots = [s for s in snapshots if s.visible]
        return snapshots

    def screen_bounds(self) -> Bounds:
        return _screen_from(self._snapshots)


class StaticScrollPrimitive(IScrollPrimitive):
    """Scroll primitive for a screen that never moves; records the requests it gets."""

    def __init__(self):
        self.calls: List[tuple] = []

    def scroll_by(self, container: ElementSnapshot, dx: int, dy: int) -> None:
        self.calls.append(("scroll_by", container.identity, dx, dy))

    def select_position(self, container: ElementSnapshot, position: int) -> None:
        self.calls.append(("select_position", container.identity, position))


class RecordingDispatcher(IInputDispatcher):
    """Input dispatcher that only records events, for dry runs."""

    def __init__(self):
        self.events: List[tuple] = []

    def tap(self, x: float, y: float) -> None:
        self.events.append(("tap", x, y))

    def long_press(self, x: float, y: float, duration: float) -> None:
        self.events.append(("long_press", x, y, duration))


# =========================================================
# Live device over adb
# =========================================================

class AdbDevice:
    """
    Thin wrapper around the adb executable.

    @param serial Device serial, or None for the only attached device
    @param adb Path to the adb executable
    @param timeout Per-command timeout in seconds
    """

    def __init__(
        self,
        serial: Optional[str] = None,
        adb: str = "adb",
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.serial = serial
        self.adb = adb
        self.timeout = timeout
        self.log = logger or logging.getLogger("uiseek")

    def command(self, *args: str) -> List[str]:
        cmd = [self.adb]
        if self.serial:
            cmd += ["-s", self.serial]
        return cmd + [str(a) for a in args]

    def run(self, *args: str) -> str:
        cmd = self.command(*args)
        self.log.debug("Running: %s", " ".join(cmd))
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        if result.returncode != 0:
            raise RuntimeError(
                f"adb command failed ({result.returncode}): {' '.join(cmd)}\n{result.stderr.strip()}"
            )
        return result.stdout

    def shell(self, *args: str) -> str:
        return self.run("shell", *args)

    def dump_hierarchy(self) -> str:
        """
        Dump the current hierarchy.

        @throws TransientSnapshotError when the device is busy or the dump
                came back incomplete
        """
        output = self.run("exec-out", "uiautomator", "dump", "/dev/tty")
        lowered = output.lower()
        if any(marker in lowered for marker in _BUSY_MARKERS):
            raise TransientSnapshotError(f"uiautomator dump not ready: {output.strip()[:200]}")
        start = output.find("<?xml")
        if start < 0:
            start = output.find("<hierarchy")
        end = output.rfind("</hierarchy>")
        if start < 0 or end < 0:
            raise TransientSnapshotError("uiautomator dump was incomplete")
        return output[start:end + len("</hierarchy>")]


class AdbDumpProvider(ISnapshotProvider):
    """
    Snapshot provider that dumps the device hierarchy on every enumeration.

    Screen bounds come from the most recent dump, so asking for them right
    after an enumeration costs no extra round trip to the device.
    """

    def __init__(self, device: AdbDevice):
        self.device = device
        self._screen: Optional[Bounds] = None

    def _snapshots(self) -> List[ElementSnapshot]:
        try:
            snapshots = parse_hierarchy(self.device.dump_hierarchy())
        except ValueError as e:
            raise TransientSnapshotError(str(e)) from e
        self._screen = _screen_from(snapshots)
        return snapshots

    def enumerate(self, root: Optional[Hashable] = None, only_visible: bool = False) -> List[ElementSnapshot]:
        snapshots = _subtree(self._snapshots(), root)
        if only_visible:
            snapshots = [s for s in snapshots if s.visible]
        return snapshots

    def screen_bounds(self) -> Bounds:
        if self._screen is None:
            self._snapshots()
        return self._screen


class AdbScrollPrimitive(IScrollPrimitive):
    """
    Scrolls by swiping inside the container.

    Dumps report no item positions, so the scroll controller only ever
    calls scroll_by.
    """

    def __init__(self, device: AdbDevice, swipe_ms: int = 400):
        self.device = device
        self.swipe_ms = swipe_ms

    def scroll_by(self, container: ElementSnapshot, dx: int, dy: int) -> None:
        b = container.bounds
        # Content moves down by dy when the finger moves up by dy.
        x = int(b.center_x)
        start_y = int(b.center_y + dy / 2.0)
        end_y = int(b.center_y - dy / 2.0)
        start_x = int(x + dx / 2.0)
        end_x = int(x - dx / 2.0)
        self.device.shell("input", "swipe", start_x, start_y, end_x, end_y, self.swipe_ms)

    def select_position(self, container: ElementSnapshot, position: int) -> None:
        raise UISeekError(
            f"Cannot select position {position} in {container.describe()}: "
            "uiautomator dumps carry no item positions, scroll by swiping instead"
        )


class AdbInputDispatcher(IInputDispatcher):
    def __init__(self, device: AdbDevice):
        self.device = device

    def tap(self, x: float, y: float) -> None:
        self.device.shell("input", "tap", int(x), int(y))

    def long_press(self, x: float, y: float, duration: float) -> None:
        # A swipe that does not move is a long press.
        self.device.shell("input", "swipe", int(x), int(y), int(x), int(y), int(duration * 1000))
