# uiseek/actions.py
"""
@file actions.py
@brief Input actions on resolved elements.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .config import TimeConfig
from .context import tracked_action
from .exceptions import ActionError, ElementNotFoundError, InvalidQueryError
from .interfaces import IInputDispatcher
from .model import Direction, ElementSnapshot, ElementType
from .resolver import Resolver, TypeLike, _type
from .waits import sleep

LOCATION_ABOVE = "above"
LOCATION_BELOW = "below"


class Actions:
    """
    Tap-style actions built on top of the Resolver.

    All methods resolve their target first, tap the centre of its bounds and
    wrap any failure in ActionError with the original exception as cause.
    """

    def __init__(self, resolver: Resolver, dispatcher: IInputDispatcher):
        """
        @param resolver Element resolver
        @param dispatcher Input-event synthesizer
        """
        self.resolver = resolver
        self.dispatcher = dispatcher

    @property
    def engine(self):
        return self.resolver.engine

    def _tap(self, element: ElementSnapshot, long_press: bool = False, duration: Optional[float] = None) -> None:
        cfg = TimeConfig.current()
        x, y = element.bounds.center_x, element.bounds.center_y
        if long_press:
            self.dispatcher.long_press(x, y, duration if duration is not None else cfg.long_press_duration)
        else:
            self.dispatcher.tap(x, y)
        sleep(cfg.tap_pause)

    @tracked_action("click_on_screen")
    def click_on_screen(self, x: float, y: float, long_press: bool = False) -> None:
        try:
            if long_press:
                self.dispatcher.long_press(x, y, TimeConfig.current().long_press_duration)
            else:
                self.dispatcher.tap(x, y)
        except Exception as e:
            raise ActionError("click_on_screen", target=f"{x},{y}", cause=e) from e

    @tracked_action("click_on_element")
    def click_on_element(self, element: ElementSnapshot, long_press: bool = False) -> None:
        try:
            self._tap(element, long_press)
        except Exception as e:
            raise ActionError("click_on_element", target=element.describe(), cause=e) from e

    @tracked_action("click_on_text")
    def click_on_text(
        self,
        text: str,
        match: int = 0,
        scroll: bool = True,
        long_press: bool = False,
        regex: bool = False,
        element_type: TypeLike = ElementType.TEXT,
        timeout: Optional[float] = None,
    ) -> ElementSnapshot:
        """
        Tap the match-th element showing text, scrolling when needed.

        @return The tapped element
        @throws ActionError wrapping ElementNotFoundError, PartialMatchError
                or ResolutionTimeoutError
        """
        try:
            element = self.resolver.find_by_text(
                text,
                element_type=element_type,
                match=match,
                regex=regex,
                scroll=scroll,
                timeout=timeout,
            )
            self._tap(element, long_press)
            return element
        except ActionError:
            raise
        except Exception as e:
            raise ActionError("click_on_text", target=text, cause=e) from e

    @tracked_action("click_on_type")
    def click_on_type(
        self,
        element_type: TypeLike,
        index: int = 0,
        long_press: bool = False,
        timeout: Optional[float] = None,
    ) -> ElementSnapshot:
        """Tap the index-th shown element of a type."""
        try:
            element = self.resolver.find_by_index(element_type, index, timeout=timeout)
            self._tap(element, long_press)
            return element
        except Exception as e:
            raise ActionError("click_on_type", target=f"{element_type}[{index}]", cause=e) from e

    @tracked_action("click_in_list")
    def click_in_list(
        self,
        line: int = 1,
        list_index: int = 0,
        long_press: bool = False,
        scroll: bool = True,
    ) -> List[ElementSnapshot]:
        """
        Tap a line of a list and return the text elements it shows.

        @param line 1-based line among the rows currently laid out
        @param list_index Which list on screen (0-based)
        @return Text elements inside the tapped row
        """
        row_index = max(line - 1, 0)
        try:
            steps = 0
            while True:
                container = self.resolver.find_by_index(ElementType.LIST, list_index)
                rows = self.engine.children_of(container.identity)
                if row_index < len(rows):
                    row = rows[row_index]
                    texts = self.engine.fetch(ElementType.TEXT, row.identity)
                    self._tap(row, long_press)
                    return texts
                if not scroll or steps >= self.engine.scroller.max_steps:
                    break
                if not self.engine.scroller.scroll(Direction.DOWN):
                    break
                steps += 1
            raise ElementNotFoundError(
                f"line {line} of list {list_index}",
                seen_texts=[r.text for r in rows if r.text],
            )
        except Exception as e:
            raise ActionError("click_in_list", target=f"line {line}", cause=e) from e

    @tracked_action("click_unattached")
    def click_unattached(
        self,
        element_type: TypeLike,
        text: str,
        location: str = LOCATION_ABOVE,
        regex: bool = False,
    ) -> ElementSnapshot:
        """
        Tap an element of a type that sits next to a label it is not attached to.

        With location 'above' the label is above the target, so the first
        element of the type following the label is tapped; with 'below' the
        last one preceding it.
        """
        try:
            location = location.lower()
            if location not in (LOCATION_ABOVE, LOCATION_BELOW):
                raise InvalidQueryError(f"location must be 'above' or 'below', got {location}")
            target_type = _type(element_type)
            label = re.compile(text if regex else re.escape(text))

            if self.resolver.search_text(text, regex=regex):
                elements = self.engine.fetch(ElementType.VIEW)
            else:
                elements = self.engine.collect_all()

            found = False
            target: Optional[ElementSnapshot] = None
            for element in elements:
                if element.element_type.is_a(target_type):
                    target = element
                    if found and location == LOCATION_ABOVE:
                        break
                elif element.element_type.is_a(ElementType.TEXT) and label.fullmatch(element.text or ""):
                    found = True
                    if location == LOCATION_BELOW:
                        break

            if not found or target is None:
                raise ElementNotFoundError(
                    f"{target_type.value} with the text [{text}] floating {location}",
                    seen_texts=[e.text for e in elements if e.text],
                )
            self._tap(target)
            return target
        except Exception as e:
            raise ActionError("click_unattached", target=text, cause=e) from e
