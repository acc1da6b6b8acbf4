# uiseek/resolver.py
"""
@file resolver.py
@brief Caller API: synchronous, deadline-bounded element lookups.
"""

from __future__ import annotations

from typing import Hashable, List, Optional, Union

from .config import TimeConfig
from .context import tracked_action
from .engine import ResolutionEngine
from .exceptions import ElementNotFoundError, InvalidQueryError
from .model import Direction, ElementSnapshot, ElementType, Query
from .waits import Deadline

TypeLike = Union[ElementType, str]


def _type(element_type: TypeLike) -> ElementType:
    return ElementType.parse(element_type)


class Resolver:
    """
    Test-script facing lookups.

    Every call takes an optional timeout in seconds; when omitted the
    matching TimeConfig setting applies. Calls that return an element raise
    on failure; calls named wait_*/search_*/exists return a bool.
    """

    def __init__(self, engine: ResolutionEngine):
        """
        @param engine Resolution engine bound to a provider and scroller
        """
        self.engine = engine

    @staticmethod
    def _deadline(timeout: Optional[float], default: float) -> Deadline:
        return Deadline(default if timeout is None else timeout)

    @tracked_action("find_by_text")
    def find_by_text(
        self,
        text: str,
        element_type: TypeLike = ElementType.TEXT,
        match: int = 0,
        regex: bool = False,
        scroll: bool = True,
        only_visible: bool = True,
        timeout: Optional[float] = None,
    ) -> ElementSnapshot:
        """
        Resolve the match-th element whose text equals (or full-matches) text.

        @param text Literal text, or a regular expression when regex is set
        @param element_type Tag to restrict the search to
        @param match 1-based ordinal; 0 means the first match
        @throws ElementNotFoundError, PartialMatchError, ResolutionTimeoutError
        """
        query = Query(
            element_type=_type(element_type),
            pattern=text,
            regex=regex,
            match=match,
            only_visible=only_visible,
            scroll=scroll,
            deadline=self._deadline(timeout, TimeConfig.current().text_resolve.timeout),
        )
        return self.engine.resolve(query)

    @tracked_action("find_by_text_after")
    def find_by_text_after(
        self,
        text: str,
        after: str,
        element_type: TypeLike = ElementType.TEXT,
        match: int = 0,
        regex: bool = False,
        scroll: bool = True,
        timeout: Optional[float] = None,
    ) -> ElementSnapshot:
        """Resolve text among elements that follow the first element showing after."""
        query = Query(
            element_type=_type(element_type),
            pattern=text,
            regex=regex,
            match=match,
            anchor=after,
            scroll=scroll,
            deadline=self._deadline(timeout, TimeConfig.current().text_resolve.timeout),
        )
        return self.engine.resolve(query)

    @tracked_action("find_by_type")
    def find_by_type(
        self,
        element_type: TypeLike,
        text: Optional[str] = None,
        match: int = 0,
        regex: bool = False,
        timeout: Optional[float] = None,
    ) -> ElementSnapshot:
        """Resolve an element of a type, optionally also matching text."""
        query = Query(
            element_type=_type(element_type),
            pattern=text,
            regex=regex,
            match=match,
            deadline=self._deadline(timeout, TimeConfig.current().text_resolve.timeout),
        )
        return self.engine.resolve(query)

    @tracked_action("find_by_index")
    def find_by_index(
        self,
        element_type: TypeLike,
        index: int,
        timeout: Optional[float] = None,
    ) -> ElementSnapshot:
        """Resolve the index-th (0-based) shown element of a type."""
        deadline = self._deadline(timeout, TimeConfig.current().index_wait.timeout)
        return self.engine.resolve_by_index(_type(element_type), index, deadline)

    def wait_for_text(
        self,
        text: str,
        minimum_matches: int = 0,
        timeout: Optional[float] = None,
        scroll: bool = True,
        only_visible: bool = True,
        regex: bool = False,
    ) -> bool:
        return self.engine.wait_for_text(
            text,
            minimum_matches=minimum_matches,
            timeout=timeout,
            scroll=scroll,
            only_visible=only_visible,
            regex=regex,
        )

    @tracked_action("expect_text")
    def expect_text(
        self,
        text: str,
        minimum_matches: int = 0,
        timeout: Optional[float] = None,
        scroll: bool = True,
        regex: bool = False,
    ) -> None:
        """
        Like wait_for_text, but raises when the text does not show up.

        @throws ElementNotFoundError
        """
        if not self.wait_for_text(text, minimum_matches, timeout, scroll, True, regex):
            raise ElementNotFoundError(
                Query(pattern=text, regex=regex, match=minimum_matches).describe(),
                timeout=timeout if timeout is not None else TimeConfig.current().text_wait.timeout,
            )

    def search_text(
        self,
        text: str,
        minimum_matches: int = 0,
        scroll: bool = True,
        only_visible: bool = True,
        regex: bool = False,
        element_type: TypeLike = ElementType.TEXT,
    ) -> bool:
        """
        Single sweep without polling: scan, scrolling down until the text
        shows or content ends. element_type narrows the search, e.g. to
        buttons or edit fields.
        """
        return self.engine.search_text(
            text,
            minimum_matches=minimum_matches,
            scroll=scroll,
            only_visible=only_visible,
            regex=regex,
            element_type=_type(element_type),
        )

    def wait_for_type(
        self,
        element_type: TypeLike,
        index: int = 0,
        timeout: Optional[float] = None,
        scroll: bool = True,
    ) -> bool:
        return self.engine.wait_for_type(_type(element_type), index, timeout, scroll)

    def wait_for_either(
        self,
        first: TypeLike,
        second: TypeLike,
        timeout: Optional[float] = None,
    ) -> bool:
        return self.engine.wait_for_either(_type(first), _type(second), timeout)

    def exists(
        self,
        text: str,
        element_type: TypeLike = ElementType.TEXT,
        regex: bool = False,
        timeout: Optional[float] = None,
    ) -> bool:
        """Quick check without scrolling, bounded by exists_wait."""
        settings = TimeConfig.current().exists_wait
        return self.engine.wait_for_text(
            text,
            timeout=settings.timeout if timeout is None else timeout,
            scroll=False,
            regex=regex,
            element_type=_type(element_type),
        )

    @tracked_action("get_all")
    def get_all(
        self,
        element_type: TypeLike = ElementType.VIEW,
        root: Optional[Hashable] = None,
    ) -> List[ElementSnapshot]:
        """Every element of a type on the whole scrollable screen, top to bottom."""
        return self.engine.collect_all(root, _type(element_type))

    def current(self, element_type: TypeLike = ElementType.VIEW, only_visible: bool = True) -> List[ElementSnapshot]:
        """Shown elements of a type right now, without waiting or scrolling."""
        return self.engine.fetch(_type(element_type), only_visible=only_visible)

    @staticmethod
    def _direction(direction: Union[Direction, str]) -> Direction:
        if isinstance(direction, Direction):
            return direction
        try:
            return Direction(str(direction).lower())
        except ValueError as e:
            raise InvalidQueryError(f"Unknown scroll direction: {direction}") from e

    def scroll(self, direction: Union[Direction, str] = Direction.DOWN) -> bool:
        return self.engine.scroller.scroll(self._direction(direction))

    @tracked_action("scroll_list")
    def scroll_list(
        self,
        list_index: int = 0,
        direction: Union[Direction, str] = Direction.DOWN,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Scroll the list_index-th list on screen by one step, waiting (without
        scrolling) for that many lists to be shown first.

        @return True if more content may exist in that direction
        @throws IndexOutOfRangeError if the list never shows up
        """
        direction = self._direction(direction)
        if list_index >= 0:
            self.engine.wait_for_type(ElementType.LIST, list_index, timeout, scroll=False)
        return self.engine.scroller.scroll_list(list_index, direction)

    def scroll_to_top(self) -> int:
        return self.engine.scroller.scroll_to_top()

    def scroll_to_bottom(self) -> int:
        return self.engine.scroller.scroll_to_bottom()

