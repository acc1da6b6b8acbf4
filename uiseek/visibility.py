"""
@file visibility.py
@brief Decides whether an element is shown enough to be matched or tapped.
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterable, List, Optional

from .model import Bounds, ElementSnapshot


def index_by_identity(snapshots: Iterable[ElementSnapshot]) -> Dict[Hashable, ElementSnapshot]:
    return {s.identity: s for s in snapshots}


class VisibilityFilter:
    """
    An element counts as shown when its vertical centre lies inside the
    viewport of its nearest scroll container, bounds inclusive. Elements
    outside any container are measured against the screen.
    """

    def __init__(self, screen: Bounds):
        self.screen = screen

    def viewport_for(
        self,
        snapshot: ElementSnapshot,
        by_id: Dict[Hashable, ElementSnapshot],
    ) -> Bounds:
        """
        @param snapshot Element being tested
        @param by_id Every element of the same enumeration, keyed by identity
        @return Bounds of the nearest scroll container, or the screen
        """
        if snapshot.element_type.is_scroll_container:
            return snapshot.bounds

        seen = {snapshot.identity}
        parent_id = snapshot.parent
        while parent_id is not None and parent_id not in seen:
            seen.add(parent_id)
            parent = by_id.get(parent_id)
            if parent is None:
                break
            if parent.element_type.is_scroll_container:
                return parent.bounds
            parent_id = parent.parent
        return self.screen

    @staticmethod
    def is_sufficiently_visible(snapshot: ElementSnapshot, viewport: Bounds) -> bool:
        center_y = snapshot.bounds.center_y
        return viewport.top <= center_y <= viewport.top + viewport.height

    def is_shown(
        self,
        snapshot: ElementSnapshot,
        by_id: Optional[Dict[Hashable, ElementSnapshot]] = None,
    ) -> bool:
        if not snapshot.visible:
            return False
        return self.is_sufficiently_visible(snapshot, self.viewport_for(snapshot, by_id or {}))

    def apply(
        self,
        snapshots: List[ElementSnapshot],
        by_id: Optional[Dict[Hashable, ElementSnapshot]] = None,
    ) -> List[ElementSnapshot]:
        """
        Keep shown elements, preserving order.

        by_id defaults to an index of snapshots itself; pass the full
        enumeration when snapshots is already a filtered subset.
        """
        index = by_id if by_id is not None else index_by_identity(snapshots)
        return [s for s in snapshots if self.is_shown(s, index)]
