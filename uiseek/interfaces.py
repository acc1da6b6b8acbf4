"""
@file interfaces.py
@brief Abstract base classes for the platform collaborators of the engine.

The engine never touches a platform directly. Tree enumeration, scrolling
and input synthesis are injected through these interfaces, so the same
resolution logic runs against a UI Automation desktop, a uiautomator dump
or a synthetic screen in tests.
"""

from abc import ABC, abstractmethod
from typing import Hashable, List, Optional

from .model import Bounds, ElementSnapshot


class ISnapshotProvider(ABC):
    """
    Source of element snapshots.

    Implementations must support concurrent read-only enumeration and must
    not cache results across calls.
    """

    @abstractmethod
    def enumerate(self, root: Optional[Hashable] = None, only_visible: bool = False) -> List[ElementSnapshot]:
        """
        Return a fresh snapshot of every element under root, root included.

        Args:
            root: Identity of the subtree root, or None for the whole screen
            only_visible: Drop elements the platform reports as not shown

        Returns:
            Snapshots in document order (parents before children)

        Raises:
            TransientSnapshotError: The tree changed during enumeration
        """
        pass

    @abstractmethod
    def screen_bounds(self) -> Bounds:
        """Return the bounds of the visible screen."""
        pass


class IScrollPrimitive(ABC):
    """
    Scroll mutations, executed synchronously on the UI-owning context.

    Both methods block until the mutation has been applied.
    """

    @abstractmethod
    def scroll_by(self, container: ElementSnapshot, dx: int, dy: int) -> None:
        """Scroll a panel container by a pixel offset."""
        pass

    @abstractmethod
    def select_position(self, container: ElementSnapshot, position: int) -> None:
        """Bring the item at position of a list/grid container into view."""
        pass


class IInputDispatcher(ABC):
    """Raw input-event synthesis."""

    @abstractmethod
    def tap(self, x: float, y: float) -> None:
        pass

    @abstractmethod
    def long_press(self, x: float, y: float, duration: float) -> None:
        pass
