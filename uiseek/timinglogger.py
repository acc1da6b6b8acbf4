# uiseek/timinglogger.py
"""
@file timinglogger.py
@brief Timing logger for poll, scroll and wait observability.
"""

from __future__ import annotations

import os
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional


class TimingLogger:
    """
    Thread-safe timing logger with console/file output.

    The most recent events are also kept in memory so a failing resolution
    can be inspected after the fact without enabling console output.
    """

    def __init__(self, history: int = 200) -> None:
        self._lock = threading.Lock()
        self._enabled = False
        self._console = True
        self._file_path: Optional[str] = None
        self._history: Deque[Dict[str, Any]] = deque(maxlen=history)

    def configure(
        self,
        *,
        console: bool = True,
        file_path: Optional[str] = None,
    ) -> None:
        """Configure logger sinks."""
        with self._lock:
            self._console = bool(console)
            self._file_path = file_path

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def recent(self, event: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return buffered events, optionally filtered by event name."""
        with self._lock:
            items = list(self._history)
        if event is None:
            return items
        return [item for item in items if item["event"] == event]

    def clear(self) -> None:
        with self._lock:
            self._history.clear()

    def log(
        self,
        *,
        event: str,
        description: Optional[str] = None,
        status: str = "info",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Emit a timing event."""
        if not self._enabled:
            return

        meta = metadata or {}
        record = {
            "time": time.strftime("%H:%M:%S"),
            "event": event,
            "description": description,
            "status": status.lower(),
            "metadata": dict(meta),
        }
        with self._lock:
            self._history.append(record)

        parts = [f"[{record['status']}]", "[timing]", f"time={record['time']}", f"event={event}"]
        if description:
            parts.append(f"description={description}")
        for key, value in meta.items():
            if isinstance(value, float):
                value = round(value, 3)
            parts.append(f"{key}={value}")
        line = " ".join(parts)

        if self._console:
            print(line, flush=True)

        if self._file_path:
            self._write_file(line)

    def _write_file(self, line: str) -> None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self._file_path)) or ".", exist_ok=True)
            with open(self._file_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError:
            # A broken log sink must not fail the resolution it observes.
            pass


TIMING_LOGGER = TimingLogger()
