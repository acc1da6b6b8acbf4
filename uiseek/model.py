# uiseek/model.py
"""
@file model.py
@brief Immutable data model shared by providers, matcher, scroller and engine.

Snapshots are produced fresh on every enumeration and never mutated; the
engine only reads them. Element types are plain tags with a parent chain,
which replaces runtime class checks against platform widget classes.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Hashable, Optional

from .exceptions import InvalidQueryError


class ElementType(Enum):
    VIEW = "view"
    TEXT = "text"
    BUTTON = "button"
    EDIT_TEXT = "edit_text"
    CHECK_BOX = "check_box"
    RADIO_BUTTON = "radio_button"
    TOGGLE_BUTTON = "toggle_button"
    IMAGE = "image"
    IMAGE_BUTTON = "image_button"
    SPINNER = "spinner"
    PROGRESS_BAR = "progress_bar"
    WEB = "web"
    LIST = "list"
    GRID = "grid"
    SCROLL = "scroll"

    @property
    def parent(self) -> Optional[ElementType]:
        return _PARENTS.get(self)

    def is_a(self, other: ElementType) -> bool:
        """True if this tag equals other or descends from it."""
        current: Optional[ElementType] = self
        while current is not None:
            if current is other:
                return True
            current = current.parent
        return False

    @property
    def container_kind(self) -> Optional[str]:
        """'list', 'grid' or 'panel' for scroll containers, None otherwise."""
        return _CONTAINER_KINDS.get(self)

    @property
    def is_scroll_container(self) -> bool:
        return self in _CONTAINER_KINDS

    @classmethod
    def parse(cls, name: str) -> ElementType:
        """Parse a tag name such as 'button', 'EditText' or 'edit_text'."""
        if isinstance(name, ElementType):
            return name
        key = re.sub(r"(?<=[a-z])(?=[A-Z])", "_", str(name).strip()).lower().replace("-", "_")
        for member in cls:
            if member.value == key:
                return member
        raise InvalidQueryError(f"Unknown element type: {name}")

    @classmethod
    def from_class_name(cls, class_name: Optional[str], scrollable: bool = False) -> ElementType:
        """
        Map a platform class name or UIA control type to a tag.

        Unknown classes become VIEW, or SCROLL when the platform reports them
        as scrollable.
        """
        simple = (class_name or "").rsplit(".", 1)[-1].rsplit("$", 1)[-1]
        tag = _CLASS_TAGS.get(simple)
        if tag is None:
            tag = ElementType.SCROLL if scrollable else ElementType.VIEW
        return tag


_PARENTS: Dict[ElementType, ElementType] = {
    ElementType.TEXT: ElementType.VIEW,
    ElementType.BUTTON: ElementType.TEXT,
    ElementType.EDIT_TEXT: ElementType.TEXT,
    ElementType.CHECK_BOX: ElementType.BUTTON,
    ElementType.RADIO_BUTTON: ElementType.BUTTON,
    ElementType.TOGGLE_BUTTON: ElementType.BUTTON,
    ElementType.IMAGE: ElementType.VIEW,
    ElementType.IMAGE_BUTTON: ElementType.IMAGE,
    ElementType.SPINNER: ElementType.VIEW,
    ElementType.PROGRESS_BAR: ElementType.VIEW,
    ElementType.WEB: ElementType.VIEW,
    ElementType.LIST: ElementType.VIEW,
    ElementType.GRID: ElementType.VIEW,
    ElementType.SCROLL: ElementType.VIEW,
}

_CONTAINER_KINDS: Dict[ElementType, str] = {
    ElementType.LIST: "list",
    ElementType.GRID: "grid",
    ElementType.SCROLL: "panel",
}

_CLASS_TAGS: Dict[str, ElementType] = {
    # Android widget classes
    "View": ElementType.VIEW,
    "TextView": ElementType.TEXT,
    "CheckedTextView": ElementType.TEXT,
    "Button": ElementType.BUTTON,
    "EditText": ElementType.EDIT_TEXT,
    "AutoCompleteTextView": ElementType.EDIT_TEXT,
    "CheckBox": ElementType.CHECK_BOX,
    "RadioButton": ElementType.RADIO_BUTTON,
    "ToggleButton": ElementType.TOGGLE_BUTTON,
    "Switch": ElementType.TOGGLE_BUTTON,
    "SwitchCompat": ElementType.TOGGLE_BUTTON,
    "ImageView": ElementType.IMAGE,
    "ImageButton": ElementType.IMAGE_BUTTON,
    "Spinner": ElementType.SPINNER,
    "ProgressBar": ElementType.PROGRESS_BAR,
    "SeekBar": ElementType.PROGRESS_BAR,
    "WebView": ElementType.WEB,
    "ListView": ElementType.LIST,
    "ExpandableListView": ElementType.LIST,
    "RecyclerView": ElementType.LIST,
    "GridView": ElementType.GRID,
    "ScrollView": ElementType.SCROLL,
    "NestedScrollView": ElementType.SCROLL,
    # UIA control types
    "Text": ElementType.TEXT,
    "Hyperlink": ElementType.TEXT,
    "ListItem": ElementType.TEXT,
    "TreeItem": ElementType.TEXT,
    "DataItem": ElementType.TEXT,
    "MenuItem": ElementType.BUTTON,
    "TabItem": ElementType.BUTTON,
    "SplitButton": ElementType.BUTTON,
    "Edit": ElementType.EDIT_TEXT,
    "Document": ElementType.EDIT_TEXT,
    "Image": ElementType.IMAGE,
    "ComboBox": ElementType.SPINNER,
    "List": ElementType.LIST,
    "Tree": ElementType.LIST,
    "DataGrid": ElementType.GRID,
    "Table": ElementType.GRID,
}


class Direction(Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Bounds:
    """On-screen rectangle in pixels."""
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2.0

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2.0

    @classmethod
    def from_edges(cls, left: int, top: int, right: int, bottom: int) -> Bounds:
        return cls(left, top, right - left, bottom - top)


@dataclass(frozen=True)
class ScrollMetrics:
    """Scroll offsets, plus item positions for list-like containers."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    first_visible: Optional[int] = None
    last_visible: Optional[int] = None
    item_count: Optional[int] = None

    @property
    def has_positions(self) -> bool:
        return (
            self.first_visible is not None
            and self.last_visible is not None
            and self.item_count is not None
        )


@dataclass(frozen=True)
class ElementSnapshot:
    """
    Read-only record of one element taken during one enumeration.

    identity is stable for the same physical element across enumerations
    and is the only key used for deduplication.
    """
    identity: Hashable
    element_type: ElementType
    bounds: Bounds
    text: Optional[str] = None
    visible: bool = True
    parent: Optional[Hashable] = None
    scroll: Optional[ScrollMetrics] = None
    class_name: Optional[str] = None

    def describe(self) -> str:
        label = f"{self.element_type.value}"
        if self.text:
            label += f" '{self.text}'"
        b = self.bounds
        return f"{label} @({b.left},{b.top} {b.width}x{b.height}) id={self.identity!r}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["identity"] = repr(self.identity)
        data["parent"] = repr(self.parent) if self.parent is not None else None
        data["element_type"] = self.element_type.value
        return data


@dataclass(frozen=True)
class Query:
    """
    Immutable description of what one resolution call looks for.

    match is 1-based; 0 is accepted and means the first match.
    """
    element_type: ElementType = ElementType.TEXT
    pattern: Optional[str] = None
    regex: bool = False
    match: int = 0
    only_visible: bool = True
    anchor: Optional[str] = None
    scroll: bool = True
    root: Optional[Hashable] = None
    deadline: Optional[Any] = None

    @property
    def ordinal(self) -> int:
        return max(self.match, 1)

    def validate(self) -> Query:
        """@throws InvalidQueryError for queries that cannot be evaluated"""
        if self.match < 0:
            raise InvalidQueryError(f"Match ordinal must be >= 0, got {self.match}")
        if self.anchor is not None and self.pattern is None:
            raise InvalidQueryError("An anchor requires a pattern to search after it")
        if self.regex:
            for expr in (self.pattern, self.anchor):
                if expr is None:
                    continue
                try:
                    re.compile(expr)
                except re.error as e:
                    raise InvalidQueryError(f"Invalid regular expression {expr!r}: {e}") from e
        return self

    def describe(self) -> str:
        if self.pattern is None:
            text = f"any {self.element_type.value}"
        else:
            kind = "regex" if self.regex else "text"
            text = f"{self.element_type.value} {kind} '{self.pattern}'"
        if self.match > 1:
            text += f" (match {self.match})"
        if self.anchor is not None:
            text += f" after '{self.anchor}'"
        return text
