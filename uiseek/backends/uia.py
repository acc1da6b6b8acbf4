# uiseek/backends/uia.py
"""
@file uia.py
@brief Windows backend over pywinauto's UI Automation wrappers.

pywinauto is imported when a window is first needed, so this module can be
imported on any platform.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Hashable, List, Optional, Tuple

from ..exceptions import ElementNotFoundError, TransientSnapshotError
from ..interfaces import IInputDispatcher, IScrollPrimitive, ISnapshotProvider
from ..model import Bounds, ElementSnapshot, ElementType, ScrollMetrics
from ..waits import sleep


def _safe(fn, default=None):
    try:
        return fn()
    except Exception:
        return default


def _bounds(rect) -> Bounds:
    if rect is None:
        return Bounds(0, 0, 0, 0)
    return Bounds.from_edges(int(rect.left), int(rect.top), int(rect.right), int(rect.bottom))


def _scroll_metrics(ctrl) -> Optional[ScrollMetrics]:
    iface = _safe(lambda: ctrl.iface_scroll)
    if iface is None or not _safe(lambda: iface.CurrentVerticallyScrollable, False):
        return None
    return ScrollMetrics(
        offset_x=float(_safe(lambda: iface.CurrentHorizontalScrollPercent, 0.0)),
        offset_y=float(_safe(lambda: iface.CurrentVerticalScrollPercent, 0.0)),
    )


class UIASnapshotProvider(ISnapshotProvider):
    """
    Enumerates the UIA subtree of one top-level window.

    Identities are UIA runtime ids. The wrapper behind each identity of the
    latest enumeration is kept so scroll primitives can act on containers.

    @param window pywinauto wrapper of the window to enumerate; when None the
                  first visible desktop window matching window_title_re is used
    @param window_title_re Regex searched in window titles
    """

    def __init__(
        self,
        window: Any = None,
        window_title_re: Optional[str] = None,
        backend: str = "uia",
        logger: Optional[logging.Logger] = None,
    ):
        self._window = window
        self.window_title_re = window_title_re
        self.backend = backend
        self.log = logger or logging.getLogger("uiseek")
        self._wrappers: Dict[Hashable, Any] = {}

    def window(self):
        if self._window is None:
            self._window = self._select_window()
        return self._window

    def _select_window(self):
        from pywinauto import Desktop

        windows = [w for w in Desktop(backend=self.backend).windows() if _safe(w.is_visible, False)]
        if not windows:
            raise ElementNotFoundError("visible desktop window")
        if self.window_title_re:
            rx = re.compile(self.window_title_re)
            for w in windows:
                if rx.search(_safe(w.window_text, "") or ""):
                    self.log.info("Attached to window: %s", w.window_text())
                    return w
            raise ElementNotFoundError(f"window matching {self.window_title_re!r}")
        self.log.info("Attached to window: %s", _safe(windows[0].window_text, ""))
        return windows[0]

    def wrapper_for(self, identity: Hashable):
        """Wrapper of an element seen in the latest enumeration, or None."""
        return self._wrappers.get(identity)

    def _identity(self, ctrl, path: Tuple[int, ...]) -> Hashable:
        runtime_id = _safe(lambda: ctrl.element_info.runtime_id)
        if runtime_id:
            return tuple(runtime_id)
        return ("path",) + path

    def _snapshot(self, ctrl, identity: Hashable, parent: Optional[Hashable]) -> ElementSnapshot:
        info = ctrl.element_info
        control_type = info.control_type
        scroll = _scroll_metrics(ctrl)
        return ElementSnapshot(
            identity=identity,
            element_type=ElementType.from_class_name(control_type, scroll is not None),
            bounds=_bounds(info.rectangle),
            text=info.name or None,
            visible=bool(_safe(lambda: info.visible, True)),
            parent=parent,
            scroll=scroll,
            class_name=control_type,
        )

    def enumerate(self, root: Optional[Hashable] = None, only_visible: bool = False) -> List[ElementSnapshot]:
        start = self.window() if root is None else self._wrappers.get(root)
        if start is None:
            return []

        wrappers: Dict[Hashable, Any] = {}
        snapshots: List[ElementSnapshot] = []
        stack = [(start, (0,), None)]
        while stack:
            ctrl, path, parent = stack.pop()
            try:
                identity = self._identity(ctrl, path)
                snapshot = self._snapshot(ctrl, identity, parent)
                children = ctrl.children()
            except Exception as e:
                raise TransientSnapshotError(f"UIA element changed during enumeration: {e}") from e
            wrappers[identity] = ctrl
            if not only_visible or snapshot.visible:
                snapshots.append(snapshot)
            for i in range(len(children) - 1, -1, -1):
                stack.append((children[i], path + (i,), identity))

        if root is None:
            self._wrappers = wrappers
        else:
            self._wrappers.update(wrappers)
        return snapshots

    def screen_bounds(self) -> Bounds:
        return _bounds(self.window().rectangle())


class UIAScrollPrimitive(IScrollPrimitive):
    """Scrolls containers through the UIA scroll and scroll-item patterns."""

    def __init__(self, provider: UIASnapshotProvider):
        self.provider = provider

    def _wrapper(self, container: ElementSnapshot):
        wrapper = self.provider.wrapper_for(container.identity)
        if wrapper is None:
            raise ElementNotFoundError(container.describe())
        return wrapper

    def scroll_by(self, container: ElementSnapshot, dx: int, dy: int) -> None:
        wrapper = self._wrapper(container)
        if dy:
            wrapper.scroll("down" if dy > 0 else "up", "page")
        if dx:
            wrapper.scroll("right" if dx > 0 else "left", "page")

    def select_position(self, container: ElementSnapshot, position: int) -> None:
        children = self._wrapper(container).children()
        if not children:
            return
        item = children[min(max(position, 0), len(children) - 1)]
        item.iface_scroll_item.ScrollIntoView()


class UIAInputDispatcher(IInputDispatcher):
    """
    Mouse input through pywinauto.mouse.

    @param mouse Module-like object with click/press/release; defaults to
                 pywinauto.mouse
    """

    def __init__(self, mouse: Any = None):
        self._mouse = mouse

    @property
    def mouse(self):
        if self._mouse is None:
            from pywinauto import mouse
            self._mouse = mouse
        return self._mouse

    def tap(self, x: float, y: float) -> None:
        self.mouse.click(button="left", coords=(int(x), int(y)))

    def long_press(self, x: float, y: float, duration: float) -> None:
        coords = (int(x), int(y))
        self.mouse.press(button="left", coords=coords)
        try:
            sleep(duration)
        finally:
            self.mouse.release(button="left", coords=coords)
