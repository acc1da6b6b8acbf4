# uiseek/backends/__init__.py
"""
Platform backends implementing the snapshot, scroll and input interfaces.

The UIA backend needs pywinauto and is imported explicitly from
uiseek.backends.uia.
"""

from .uiautomator import (AdbDevice, AdbDumpProvider, AdbInputDispatcher,
                          AdbScrollPrimitive, RecordingDispatcher,
                          StaticScrollPrimitive, UiautomatorDumpProvider,
                          parse_bounds, parse_hierarchy)

__all__ = [
    "AdbDevice",
    "AdbDumpProvider",
    "AdbInputDispatcher",
    "AdbScrollPrimitive",
    "RecordingDispatcher",
    "StaticScrollPrimitive",
    "UiautomatorDumpProvider",
    "parse_bounds",
    "parse_hierarchy",
]
