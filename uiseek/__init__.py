# uiseek/__init__.py
"""
uiseek - element resolution for UI test automation.

This package provides:
- Resolver: find elements by text, type, ordinal match and index, scrolling
  the screen until they show up
- Actions: tap, long-press and list/label helpers on resolved elements
- ResolutionEngine / ScrollController: the polling and scrolling core
- Runner: YAML scenario execution with JSON reports
- Interfaces: abstract snapshot provider, scroll primitive and input dispatcher
"""

from uiseek.actions import Actions
from uiseek.config import RunSettings, TimeConfig, load_run_settings
from uiseek.engine import ResolutionEngine, SearchResult
from uiseek.exceptions import (ActionError, ConfigError, ElementNotFoundError,
                               IndexOutOfRangeError, InvalidQueryError,
                               PartialMatchError, ResolutionTimeoutError,
                               TimeoutError, TransientSnapshotError,
                               UISeekError)
from uiseek.interfaces import (IInputDispatcher, IScrollPrimitive,
                               ISnapshotProvider)
from uiseek.model import (Bounds, Direction, ElementSnapshot, ElementType,
                          Query, ScrollMetrics)
from uiseek.resolver import Resolver
from uiseek.runner import Runner
from uiseek.scroller import ScrollController
from uiseek.waits import Deadline

__all__ = [
    "Actions",
    "RunSettings",
    "TimeConfig",
    "load_run_settings",
    "ResolutionEngine",
    "SearchResult",
    "ActionError",
    "ConfigError",
    "ElementNotFoundError",
    "IndexOutOfRangeError",
    "InvalidQueryError",
    "PartialMatchError",
    "ResolutionTimeoutError",
    "TimeoutError",
    "TransientSnapshotError",
    "UISeekError",
    "IInputDispatcher",
    "IScrollPrimitive",
    "ISnapshotProvider",
    "Bounds",
    "Direction",
    "ElementSnapshot",
    "ElementType",
    "Query",
    "ScrollMetrics",
    "Resolver",
    "Runner",
    "ScrollController",
    "Deadline",
]

__version__ = "1.0.0"
