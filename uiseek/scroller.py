"""
@file scroller.py
@brief Scroll controller: reveals more content and detects when there is none.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, List, Optional, Tuple

from .config import DEFAULT_MAX_SCROLL_STEPS, TimeConfig
from .exceptions import IndexOutOfRangeError, InvalidQueryError
from .interfaces import IScrollPrimitive, ISnapshotProvider
from .model import Direction, ElementSnapshot
from .timinglogger import TIMING_LOGGER
from .waits import sleep

CONTAINER_PRIORITY = ("list", "grid", "panel")


@dataclass(frozen=True)
class ScrollState:
    """Outcome of one scroll step."""
    has_more_content: bool
    direction: Direction
    container_type: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return not self.has_more_content


class ScrollController:
    """
    Scrolls the first on-screen container, trying list-like containers
    first, then grids, then generic scroll panels.

    Lists and grids that report item positions are scrolled by selecting
    an item position. Everything else is scrolled by one viewport height
    minus one pixel, and progress is detected by re-reading the
    container's vertical offset, or its shown content when the platform
    reports no offset.
    """

    def __init__(
        self,
        provider: ISnapshotProvider,
        primitive: IScrollPrimitive,
        max_steps: int = DEFAULT_MAX_SCROLL_STEPS,
        logger: Optional[logging.Logger] = None,
    ):
        self.provider = provider
        self.primitive = primitive
        self.max_steps = max_steps
        self.log = logger or logging.getLogger("uiseek")
        self.last_state: Optional[ScrollState] = None

    @staticmethod
    def _on_screen(snapshot: ElementSnapshot) -> bool:
        return snapshot.visible and snapshot.bounds.left >= 0 and snapshot.bounds.height > 0

    def find_container(self, root: Optional[Hashable] = None) -> Optional[ElementSnapshot]:
        """Return the container a scroll step would act on, or None."""
        snapshots = self.provider.enumerate(root, only_visible=True)
        return self._pick_container(snapshots)

    def _pick_container(self, snapshots: List[ElementSnapshot]) -> Optional[ElementSnapshot]:
        for kind in CONTAINER_PRIORITY:
            for snapshot in snapshots:
                if snapshot.element_type.container_kind == kind and self._on_screen(snapshot):
                    return snapshot
        return None

    def scroll(self, direction: Direction = Direction.DOWN, root: Optional[Hashable] = None) -> bool:
        """
        Perform one scroll step.

        @param direction UP or DOWN
        @param root Optional subtree to look for containers in
        @return True if more content may exist in that direction
        """
        container = self.find_container(root)
        if container is None:
            self._record(ScrollState(False, direction, None), None)
            return False
        return self._step(container, direction, root)

    def lists(self, root: Optional[Hashable] = None) -> List[ElementSnapshot]:
        """On-screen list containers in document order."""
        return [
            s for s in self.provider.enumerate(root, only_visible=True)
            if s.element_type.container_kind == "list" and self._on_screen(s)
        ]

    def scroll_list(
        self,
        list_index: int = 0,
        direction: Direction = Direction.DOWN,
        root: Optional[Hashable] = None,
    ) -> bool:
        """
        Perform one scroll step on the list_index-th list on screen.

        @return True if more content may exist in that direction
        @throws InvalidQueryError if list_index is negative
        @throws IndexOutOfRangeError if fewer lists are shown
        """
        if list_index < 0:
            raise InvalidQueryError(f"List index must be >= 0, got {list_index}")
        lists = self.lists(root)
        if list_index >= len(lists):
            raise IndexOutOfRangeError(list_index, "list", len(lists))
        return self._step(lists[list_index], direction, root)

    def _step(self, container: ElementSnapshot, direction: Direction, root: Optional[Hashable]) -> bool:
        kind = container.element_type.container_kind
        if kind in ("list", "grid") and container.scroll is not None and container.scroll.has_positions:
            more = self._scroll_list(container, direction)
        else:
            more = self._scroll_panel(container, direction, root)

        self._record(ScrollState(more, direction, kind), container)
        if more:
            sleep(TimeConfig.current().scroll_settle_pause)
        return more

    def _record(self, state: ScrollState, container: Optional[ElementSnapshot]) -> None:
        self.last_state = state
        if TIMING_LOGGER.is_enabled():
            TIMING_LOGGER.log(
                event="scroll_step" if state.has_more_content else "scroll_exhausted",
                description=container.describe() if container is not None else "no container",
                metadata={"direction": state.direction.value, "container": state.container_type},
            )

    def _select(self, container: ElementSnapshot, position: int) -> None:
        # Grid selection targets the following cell.
        if container.element_type.container_kind == "grid":
            position += 1
        self.primitive.select_position(container, position)

    def _scroll_list(self, container: ElementSnapshot, direction: Direction) -> bool:
        metrics = container.scroll
        first = metrics.first_visible
        last = metrics.last_visible
        count = metrics.item_count

        if direction is Direction.DOWN:
            if last >= count - 1:
                self._select(container, last)
                return False
            if first != last:
                self._select(container, last)
            else:
                self._select(container, first + 1)
            return True

        if first < 2:
            self._select(container, 0)
            return False
        target = first - (last - first)
        if target == last:
            target -= 1
        self._select(container, max(target, 0))
        return True

    def _content_signature(self, container: ElementSnapshot) -> Tuple:
        return tuple(
            (s.text, s.bounds)
            for s in self.provider.enumerate(container.identity, only_visible=True)
            if s.identity != container.identity
        )

    def _scroll_panel(self, container: ElementSnapshot, direction: Direction, root: Optional[Hashable]) -> bool:
        before = container.scroll.offset_y if container.scroll is not None else None
        # Without a readable offset, progress is judged by what the container shows.
        signature = self._content_signature(container) if before is None else None

        step = container.bounds.height - 1
        dy = step if direction is Direction.DOWN else -step
        self.primitive.scroll_by(container, 0, dy)

        after_container = None
        for snapshot in self.provider.enumerate(root, only_visible=True):
            if snapshot.identity == container.identity:
                after_container = snapshot
                break
        if after_container is None:
            self.log.debug("Scroll container %r disappeared after scrolling", container.identity)
            return False
        if before is not None and after_container.scroll is not None:
            return after_container.scroll.offset_y != before
        if signature is None:
            return False
        return self._content_signature(after_container) != signature

    def _scroll_fully(self, direction: Direction, root: Optional[Hashable]) -> int:
        steps = 0
        while steps < self.max_steps and self.scroll(direction, root):
            steps += 1
            sleep(TimeConfig.current().spin_wait_pause)
        if steps >= self.max_steps:
            self.log.warning("Stopped scrolling %s after %d steps", direction.value, steps)
        return steps

    def scroll_to_top(self, root: Optional[Hashable] = None) -> int:
        """Scroll up until exhausted. @return number of productive steps"""
        return self._scroll_fully(Direction.UP, root)

    def scroll_to_bottom(self, root: Optional[Hashable] = None) -> int:
        """Scroll down until exhausted. @return number of productive steps"""
        return self._scroll_fully(Direction.DOWN, root)
